"""Namespaced JSON snapshots on disk, the client's stand-in for browser storage."""

import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict

from core.logging_utils import get_client_logger

logger = get_client_logger()

AUTH_NAMESPACE = 'auth-storage'
PREFERENCES_NAMESPACE = 'devtoolhub-storage'
FAVORITES_NAMESPACE = 'favorites-storage'
PASSWORD_VAULT_NAMESPACE = 'password-vault-storage'
HISTORY_NAMESPACE = 'tool-history-storage'


class LocalStorage:
    """One JSON file per namespace under ``root``."""

    def __init__(self, root):
        self.root = Path(root)

    def path_for(self, namespace: str) -> Path:
        return self.root / f'{namespace}.json'

    def load(self, namespace: str, default: Dict[str, Any]) -> Dict[str, Any]:
        """Return the stored snapshot; a missing or unreadable one yields a copy of ``default``."""
        path = self.path_for(namespace)
        if not path.exists():
            return copy.deepcopy(default)
        try:
            with path.open('r', encoding='utf-8') as handle:
                data = json.load(handle)
        except (OSError, ValueError) as exc:
            logger.warning("Discarding unreadable local snapshot",
                           extra_data={'namespace': namespace, 'error': str(exc)})
            return copy.deepcopy(default)
        if not isinstance(data, dict):
            logger.warning("Discarding malformed local snapshot", extra_data={'namespace': namespace})
            return copy.deepcopy(default)
        merged = copy.deepcopy(default)
        merged.update(data)
        return merged

    def save(self, namespace: str, data: Dict[str, Any]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(namespace)
        fd, tmp_name = tempfile.mkstemp(prefix=f'.{namespace}.', suffix='.tmp', dir=self.root)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as handle:
                json.dump(data, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def clear(self, namespace: str) -> None:
        path = self.path_for(namespace)
        if path.exists():
            path.unlink()
