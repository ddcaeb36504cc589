"""Authentication state for the companion client."""

from typing import Any, Dict, Optional

from core.logging_utils import get_client_logger
from .remote import ApiClient, RemoteError
from .storage import AUTH_NAMESPACE, LocalStorage

logger = get_client_logger()

_DEFAULT_STATE = {'user': None, 'token': None}


class AuthSessionStore:
    """Holds the signed-in user and bearer token; shares the token with ``api``."""

    def __init__(self, storage: LocalStorage, api: ApiClient):
        self.storage = storage
        self.api = api
        self.is_loading = False
        self.error: Optional[str] = None
        state = storage.load(AUTH_NAMESPACE, _DEFAULT_STATE)
        self.user: Optional[Dict[str, Any]] = state.get('user')
        self.token: Optional[str] = state.get('token')
        self.api.token = self.token

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token and self.user)

    @property
    def email(self) -> Optional[str]:
        return (self.user or {}).get('email')

    def _persist(self) -> None:
        self.storage.save(AUTH_NAMESPACE, {'user': self.user, 'token': self.token})

    def _set_session(self, user: Optional[Dict[str, Any]], token: Optional[str]) -> None:
        self.user = user
        self.token = token
        self.api.token = token
        self._persist()

    def _authenticate(self, path: str, email: str, password: str, action: str) -> bool:
        self.is_loading = True
        self.error = None
        try:
            data = self.api.post(path, {'email': email, 'password': password})
        except RemoteError as exc:
            self.error = str(exc)
            logger.warning(f"{action} failed", extra_data={'email': email, 'error': str(exc)})
            return False
        finally:
            self.is_loading = False

        if not data.get('user') or not data.get('token'):
            self.error = f'{action} failed: no session returned'
            return False
        self._set_session(data['user'], data['token'])
        logger.info(f"{action} succeeded", extra_data={'email': self.email})
        return True

    def sign_in(self, email: str, password: str) -> bool:
        return self._authenticate('auth/signin/', email, password, 'Sign in')

    def sign_up(self, email: str, password: str) -> bool:
        return self._authenticate('auth/signup/', email, password, 'Sign up')

    def sign_out(self) -> None:
        """Forget the local session; revoking the token remotely is best effort."""
        if self.token:
            try:
                self.api.post('auth/signout/')
            except RemoteError as exc:
                logger.warning("Remote sign out failed", extra_data={'error': str(exc)})
        self.error = None
        self._set_session(None, None)

    def check_auth(self) -> bool:
        """Confirm the stored token; a rejected token clears the session, a network error keeps it."""
        if not self.token:
            if self.user is not None:
                self._set_session(None, None)
            return False
        self.is_loading = True
        try:
            data = self.api.get('auth/session/')
        except RemoteError as exc:
            if exc.status_code == 401:
                logger.info("Stored session is no longer valid")
                self._set_session(None, None)
            else:
                self.error = str(exc)
            return self.is_authenticated
        finally:
            self.is_loading = False
        if data.get('user'):
            self._set_session(data['user'], self.token)
        return self.is_authenticated

    def clear_error(self) -> None:
        self.error = None
