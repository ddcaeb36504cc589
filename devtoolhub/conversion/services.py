"""PDF to DOCX conversion through the CloudConvert v2 jobs API."""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

from core.logging_utils import get_conversion_logger
from .exceptions import ConversionError, ConversionTimeout

logger = get_conversion_logger()

DEFAULT_API_URL = 'https://api.cloudconvert.com/v2'
POLL_INTERVAL_SECONDS = 5
MAX_POLL_ATTEMPTS = 60


def _job_tasks() -> Dict[str, Any]:
    return {
        'import-1': {'operation': 'import/upload'},
        'convert-1': {
            'operation': 'convert',
            'input': 'import-1',
            'output_format': 'docx',
            'engine': 'libreoffice',
        },
        'export-1': {'operation': 'export/url', 'input': 'convert-1'},
    }


def _unwrap(payload: Any) -> Dict[str, Any]:
    # v2 responses are wrapped in {"data": {...}}
    if isinstance(payload, dict) and isinstance(payload.get('data'), dict):
        return payload['data']
    return payload if isinstance(payload, dict) else {}


def _read_job(response: httpx.Response) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as exc:
        logger.error("CloudConvert returned a non JSON body", extra_data={'status': response.status_code})
        raise ConversionError('Conversion service returned an invalid response', recoverable=True) from exc
    return _unwrap(payload)


def _find_task(tasks: List[Dict[str, Any]], operation: str = None, status: str = None) -> Optional[Dict[str, Any]]:
    for task in tasks or []:
        if operation and task.get('operation') != operation:
            continue
        if status and task.get('status') != status:
            continue
        return task
    return None


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or default
    if isinstance(data, dict) and data.get('message'):
        return str(data['message'])
    return default


@dataclass
class ConversionResult:
    download_url: str
    conversion_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {'success': True, 'downloadUrl': self.download_url, 'conversionId': self.conversion_id}


@dataclass
class CloudConvertClient:
    api_key: str
    base_url: str = DEFAULT_API_URL
    transport: Optional[httpx.BaseTransport] = None
    timeout: float = 60.0
    poll_interval: float = POLL_INTERVAL_SECONDS
    max_attempts: int = MAX_POLL_ATTEMPTS
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def _client(self) -> httpx.Client:
        return httpx.Client(transport=self.transport, timeout=self.timeout)

    def _auth_headers(self) -> Dict[str, str]:
        return {'Authorization': f'Bearer {self.api_key}'}

    def convert_pdf_to_docx(self, filename: str, content: bytes) -> ConversionResult:
        """Create the job, upload the file and wait for the export URL."""
        if not self.api_key:
            raise ConversionError('CloudConvert API key is not configured', status_code=500)
        try:
            with self._client() as client:
                job = self._create_job(client)
                self._upload(client, job, filename, content)
                download_url = self._wait_for_export(client, job['id'])
        except httpx.HTTPError as exc:
            logger.error("CloudConvert request failed", extra_data={'error': str(exc)})
            raise ConversionError(f'Conversion service unreachable: {exc}', recoverable=True) from exc
        logger.info("Conversion finished", extra_data={'job_id': job['id']})
        return ConversionResult(download_url=download_url, conversion_id=job['id'])

    def _create_job(self, client: httpx.Client) -> Dict[str, Any]:
        response = client.post(f'{self.base_url}/jobs', json={'tasks': _job_tasks()}, headers=self._auth_headers())
        if not response.is_success:
            message = _error_message(response, 'Failed to create the conversion job')
            logger.error("CloudConvert job creation failed", extra_data={'status': response.status_code})
            raise ConversionError(message, status_code=response.status_code)
        job = _read_job(response)
        if not job.get('id'):
            raise ConversionError('Conversion service returned no job id')
        logger.info("Conversion job created", extra_data={'job_id': job['id']})
        return job

    def _upload(self, client: httpx.Client, job: Dict[str, Any], filename: str, content: bytes) -> None:
        upload_task = _find_task(job.get('tasks'), operation='import/upload')
        if upload_task is None:
            raise ConversionError('Conversion job has no upload task')
        form = (upload_task.get('result') or {}).get('form') or {}
        if not form.get('url'):
            raise ConversionError('Conversion job has no upload URL')

        response = client.post(
            form['url'],
            data={key: str(value) for key, value in (form.get('parameters') or {}).items()},
            files={'file': (filename, content, 'application/pdf')},
        )
        if not response.is_success:
            raise ConversionError(f'File upload failed: {response.text[:100]}', status_code=response.status_code)

    def _wait_for_export(self, client: httpx.Client, job_id: str) -> str:
        """Poll at a fixed interval until the export task has a file URL."""
        for attempt in range(1, self.max_attempts + 1):
            self.sleep(self.poll_interval)
            response = client.get(f'{self.base_url}/jobs/{job_id}', headers=self._auth_headers())
            if not response.is_success:
                raise ConversionError('Failed to read the conversion status', status_code=response.status_code)
            job = _read_job(response)
            status = job.get('status')
            if status == 'finished':
                export_task = _find_task(job.get('tasks'), operation='export/url', status='finished')
                files = ((export_task or {}).get('result') or {}).get('files') or []
                if files and files[0].get('url'):
                    return files[0]['url']
            elif status == 'error':
                failed = _find_task(job.get('tasks'), status='error')
                message = (failed or {}).get('message') or 'Conversion failed'
                logger.warning("Conversion job failed", extra_data={'job_id': job_id, 'message': message})
                raise ConversionError(message)
            logger.debug("Conversion pending", extra_data={'job_id': job_id, 'attempt': attempt, 'status': status})
        logger.warning("Conversion timed out", extra_data={'job_id': job_id, 'attempts': self.max_attempts})
        raise ConversionTimeout()
