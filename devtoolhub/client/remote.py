"""Thin httpx client for the DevToolHub JSON API."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from .config import DEFAULT_API_URL, DEFAULT_TIMEOUT


class RemoteError(Exception):
    """The API could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class ApiClient:
    base_url: str = DEFAULT_API_URL
    token: Optional[str] = None
    transport: Optional[httpx.BaseTransport] = None
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_config(cls, config, transport: Optional[httpx.BaseTransport] = None) -> 'ApiClient':
        return cls(base_url=config.api_url, transport=transport, timeout=config.timeout)

    def _headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        return headers

    def request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = path.lstrip('/')
        try:
            with httpx.Client(
                base_url=self.base_url.rstrip('/') + '/',
                headers=self._headers(),
                transport=self.transport,
                timeout=self.timeout,
            ) as client:
                resp = client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteError(f'Network error: {exc}') from exc

        try:
            data = resp.json()
        except ValueError:
            data = None
        if not resp.is_success:
            detail = data.get('error') if isinstance(data, dict) else None
            raise RemoteError(detail or f'{resp.status_code} {resp.reason_phrase}', status_code=resp.status_code)
        if not isinstance(data, dict):
            raise RemoteError('Unexpected response from server', status_code=resp.status_code)
        return data

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.request('GET', path, params=params)

    def post(self, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.request('POST', path, json=payload or {})

    def patch(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request('PATCH', path, json=payload)

    def delete(self, path: str) -> Dict[str, Any]:
        return self.request('DELETE', path)


class RemoteTable:
    """CRUD over one user-scoped collection, e.g. ``RemoteTable(api, 'favorites')``."""

    def __init__(self, api: ApiClient, path: str):
        self.api = api
        self.path = path.strip('/')

    def select(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        params = {'limit': limit} if limit else None
        return list(self.api.get(f'{self.path}/', params=params).get('items') or [])

    def insert(self, row: Dict[str, Any]) -> Dict[str, Any]:
        return self.api.post(f'{self.path}/', row).get('item') or {}

    def update(self, row_id: str, row: Dict[str, Any]) -> Dict[str, Any]:
        return self.api.patch(f'{self.path}/{row_id}/', row).get('item') or {}

    def delete(self, row_id: str) -> None:
        self.api.delete(f'{self.path}/{row_id}/')
