import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_API_URL = 'http://127.0.0.1:8000/api'
DEFAULT_HOME = Path.home() / '.devtoolhub'
DEFAULT_TIMEOUT = 20.0


@dataclass(frozen=True)
class ClientConfig:
    api_url: str = DEFAULT_API_URL
    home: Path = DEFAULT_HOME
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls, environ=None):
        """Read ``DEVTOOLHUB_API_URL``, ``DEVTOOLHUB_HOME`` and ``DEVTOOLHUB_TIMEOUT``."""
        environ = os.environ if environ is None else environ
        raw_timeout = environ.get('DEVTOOLHUB_TIMEOUT', '')
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT
        except ValueError as exc:
            raise ValueError(f'DEVTOOLHUB_TIMEOUT must be a number, got {raw_timeout!r}') from exc
        return cls(
            api_url=(environ.get('DEVTOOLHUB_API_URL') or DEFAULT_API_URL).rstrip('/'),
            home=Path(environ.get('DEVTOOLHUB_HOME') or DEFAULT_HOME).expanduser(),
            timeout=timeout,
        )
