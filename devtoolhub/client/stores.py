"""
Local-first state containers for favorites, tool history, the password vault
and UI preferences.

Mutations change the in-memory state and the local snapshot right away, then
hand the matching remote call to ``dispatch`` (a daemon thread by default).
A failed push is logged and never rolls local state back. ``sync()`` merges
local and remote rows as a set union keyed per store; there are no
tombstones, so a row deleted while offline can come back on the next sync.
"""

import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from core.logging_utils import get_client_logger
from tools.catalog import is_known_slug
from vault.exceptions import PassphraseError
from vault.records import open_record, open_record_or_placeholder, seal_record
from vault.utils import validate_master_passphrase
from .remote import ApiClient, RemoteError, RemoteTable
from .session import AuthSessionStore
from .storage import (
    FAVORITES_NAMESPACE,
    HISTORY_NAMESPACE,
    PASSWORD_VAULT_NAMESPACE,
    PREFERENCES_NAMESPACE,
    LocalStorage,
)

logger = get_client_logger()

Dispatcher = Callable[[Callable[[], None]], None]

MAX_HISTORY = 50
MAX_RECENT_TOOLS = 10
THEMES = ('light', 'dark')
LANGUAGES = ('zh', 'en')


def run_in_background(task: Callable[[], None]) -> None:
    threading.Thread(target=task, daemon=True).start()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + '+00:00' if value.endswith('Z') else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SyncedStore:
    """Shared persistence, background push and sync bookkeeping."""

    name = ''
    namespace = ''
    table_path = ''
    default_state: Dict[str, Any] = {}

    def __init__(self, storage: LocalStorage, session: AuthSessionStore,
                 api: Optional[ApiClient] = None, dispatch: Optional[Dispatcher] = None):
        self.storage = storage
        self.session = session
        self.remote = RemoteTable(api or session.api, self.table_path)
        self.dispatch = dispatch or run_in_background
        self.is_loading = False
        self.error: Optional[str] = None
        self._restore(storage.load(self.namespace, self.default_state))

    def _restore(self, state: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _snapshot(self) -> Dict[str, Any]:
        raise NotImplementedError

    def _persist(self) -> None:
        self.storage.save(self.namespace, self._snapshot())

    def _push(self, action: str, call: Callable[..., Any], *args: Any) -> None:
        if not self.session.is_authenticated:
            return

        def task():
            try:
                call(*args)
            except Exception as exc:
                logger.sync_event(self.name, action, success=False, extra_data={'error': str(exc)})

        self.dispatch(task)

    def _can_reach_remote(self) -> bool:
        return True

    def _run_remote(self, action: str, work: Callable[[], None]) -> bool:
        """Run ``work`` with the loading flag set; remote failures end up in ``error``."""
        if not self.session.is_authenticated:
            return False
        self.is_loading = True
        self.error = None
        try:
            if not self._can_reach_remote():
                return False
            work()
        except RemoteError as exc:
            self.error = f'{action.capitalize()} failed: {exc}'
            logger.sync_event(self.name, action, success=False, extra_data={'error': str(exc)})
            return False
        finally:
            self.is_loading = False
        self._persist()
        logger.sync_event(self.name, action)
        return True

    def sync(self) -> bool:
        return self._run_remote('sync', self._reconcile)

    def load_from_cloud(self) -> bool:
        return self._run_remote('load', self._replace_with_remote)

    def _reconcile(self) -> None:
        raise NotImplementedError

    def _replace_with_remote(self) -> None:
        raise NotImplementedError


class FavoritesStore(SyncedStore):
    name = 'favorites'
    namespace = FAVORITES_NAMESPACE
    table_path = 'favorites'
    default_state = {'favorites': []}

    def _restore(self, state):
        self.favorites: List[str] = [slug for slug in state.get('favorites') or [] if isinstance(slug, str)]

    def _snapshot(self):
        return {'favorites': list(self.favorites)}

    def is_favorite(self, slug: str) -> bool:
        return slug in self.favorites

    def add_favorite(self, slug: str) -> None:
        if slug in self.favorites:
            return
        self.favorites.append(slug)
        self._persist()
        self._push('add', self.remote.insert, {'tool_slug': slug})

    def remove_favorite(self, slug: str) -> None:
        self.favorites = [existing for existing in self.favorites if existing != slug]
        self._persist()
        self._push('remove', self.remote.delete, slug)

    def _reconcile(self):
        remote_slugs = [row.get('tool_slug') for row in self.remote.select() if row.get('tool_slug')]
        for slug in self.favorites:
            if slug not in remote_slugs:
                self.remote.insert({'tool_slug': slug})
        merged = list(self.favorites)
        for slug in remote_slugs:
            if slug not in merged:
                merged.append(slug)
        self.favorites = merged

    def _replace_with_remote(self):
        slugs = []
        for row in self.remote.select():
            slug = row.get('tool_slug')
            if slug and slug not in slugs:
                slugs.append(slug)
        self.favorites = slugs


def _latest_per_slug(entries: List[Dict[str, str]]) -> List[Dict[str, str]]:
    """Newest first, one entry per slug, capped; unparsable timestamps sort last."""
    oldest = datetime.min.replace(tzinfo=timezone.utc)
    ordered = sorted(entries, key=lambda item: parse_timestamp(item['timestamp']) or oldest, reverse=True)
    seen = set()
    result = []
    for item in ordered:
        if item['tool_slug'] in seen:
            continue
        seen.add(item['tool_slug'])
        result.append(item)
    return result[:MAX_HISTORY]


class HistoryStore(SyncedStore):
    name = 'history'
    namespace = HISTORY_NAMESPACE
    table_path = 'history'
    default_state = {'history': []}

    def _restore(self, state):
        self.history: List[Dict[str, str]] = [
            {
                'id': item.get('id') or str(uuid.uuid4()),
                'tool_slug': item['tool_slug'],
                'timestamp': item.get('timestamp') or '',
            }
            for item in state.get('history') or []
            if isinstance(item, dict) and item.get('tool_slug')
        ]

    def _snapshot(self):
        return {'history': [dict(item) for item in self.history]}

    def add_history(self, slug: str) -> Dict[str, str]:
        entry = {'id': str(uuid.uuid4()), 'tool_slug': slug, 'timestamp': utc_now_iso()}
        self.history = [entry] + [item for item in self.history if item['tool_slug'] != slug]
        self.history = self.history[:MAX_HISTORY]
        self._persist()
        self._push('add', self.remote.insert, dict(entry))
        return entry

    def clear_history(self) -> None:
        self.history = []
        self._persist()

    def get_recent_tools(self, limit: int = 10) -> List[str]:
        return [item['tool_slug'] for item in self.history[:limit]]

    def cleanup_history(self) -> int:
        """Drop entries for unknown tools or with broken timestamps; returns how many went."""
        valid = [
            item for item in self.history
            if is_known_slug(item['tool_slug']) and parse_timestamp(item['timestamp']) is not None
        ]
        removed = len(self.history) - len(valid)
        if removed:
            self.history = valid
            self._persist()
        return removed

    @staticmethod
    def _key(item):
        return item['tool_slug'], parse_timestamp(item['timestamp'])

    def _remote_entries(self):
        return [
            {'id': row.get('id') or '', 'tool_slug': row['tool_slug'], 'timestamp': row.get('timestamp') or ''}
            for row in self.remote.select(limit=MAX_HISTORY)
            if row.get('tool_slug')
        ]

    def _reconcile(self):
        # Only the newest rows are read back, so older pushes rely on the
        # server returning an already stored id unchanged.
        remote = self._remote_entries()
        remote_ids = {item['id'] for item in remote}
        remote_keys = {self._key(item) for item in remote}
        local_keys = {self._key(item) for item in self.history}
        for item in self.history:
            item.setdefault('id', str(uuid.uuid4()))
            if item['id'] not in remote_ids and self._key(item) not in remote_keys:
                self.remote.insert(dict(item))
        merged = list(self.history) + [item for item in remote if self._key(item) not in local_keys]
        self.history = _latest_per_slug(merged)

    def _replace_with_remote(self):
        self.history = self._remote_entries()[:MAX_HISTORY]


_ENTRY_FIELDS = ('id', 'encrypted_data', 'category', 'created_at', 'updated_at')


class PasswordVaultStore(SyncedStore):
    name = 'passwords'
    namespace = PASSWORD_VAULT_NAMESPACE
    table_path = 'passwords'
    default_state = {'entries': []}

    def __init__(self, *args, **kwargs):
        self._passphrase: Optional[str] = None
        super().__init__(*args, **kwargs)

    def _restore(self, state):
        self.entries: List[Dict[str, str]] = [
            {name: entry.get(name) or '' for name in _ENTRY_FIELDS}
            for entry in state.get('entries') or []
            if isinstance(entry, dict) and entry.get('id') and entry.get('encrypted_data')
        ]

    def _snapshot(self):
        # ciphertext only; the passphrase never touches disk
        return {'entries': [dict(entry) for entry in self.entries]}

    @property
    def is_unlocked(self) -> bool:
        return self._passphrase is not None

    def set_master_passphrase(self, passphrase: str) -> None:
        self._passphrase = validate_master_passphrase(passphrase)

    def lock(self) -> None:
        self._passphrase = None

    def _require_passphrase(self) -> str:
        if self._passphrase is None:
            raise PassphraseError('Set the master passphrase first')
        return self._passphrase

    def get_entry(self, entry_id: str) -> Optional[Dict[str, str]]:
        for entry in self.entries:
            if entry['id'] == entry_id:
                return entry
        return None

    def add_entry(self, website: str, username: str, password: str, category: str = '') -> Dict[str, str]:
        passphrase = self._require_passphrase()
        now = utc_now_iso()
        entry = {
            'id': str(uuid.uuid4()),
            'encrypted_data': seal_record(website, username, password, passphrase),
            'category': category or '',
            'created_at': now,
            'updated_at': now,
        }
        self.entries.append(entry)
        self._persist()
        self._push('add', self.remote.insert, dict(entry))
        return entry

    def update_entry(self, entry_id: str, website: Optional[str] = None, username: Optional[str] = None,
                     password: Optional[str] = None, category: Optional[str] = None) -> bool:
        """Apply the given changes; record fields are re-encrypted, which needs the passphrase."""
        entry = self.get_entry(entry_id)
        if entry is None:
            return False
        previous_ciphertext = entry['encrypted_data']
        if website is not None or username is not None or password is not None:
            passphrase = self._require_passphrase()
            record = open_record(previous_ciphertext, passphrase)
            entry['encrypted_data'] = seal_record(
                record['website'] if website is None else website,
                record['username'] if username is None else username,
                record['password'] if password is None else password,
                passphrase,
            )
        if category is not None:
            entry['category'] = category
        entry['updated_at'] = utc_now_iso()
        self._persist()
        if entry['encrypted_data'] != previous_ciphertext:
            self._push('update', self.remote.update, entry_id, {
                'encrypted_data': entry['encrypted_data'],
                'category': entry['category'],
                'updated_at': entry['updated_at'],
            })
        return True

    def delete_entry(self, entry_id: str) -> bool:
        remaining = [entry for entry in self.entries if entry['id'] != entry_id]
        if len(remaining) == len(self.entries):
            return False
        self.entries = remaining
        self._persist()
        self._push('delete', self.remote.delete, entry_id)
        return True

    def reveal_entries(self) -> List[Dict[str, Any]]:
        """Decrypt every entry on its own; unreadable ones come back blank with ``readable`` False."""
        passphrase = self._require_passphrase()
        revealed = []
        for entry in self.entries:
            record = open_record_or_placeholder(entry['encrypted_data'], passphrase, entry['id'])
            revealed.append({
                'id': entry['id'],
                'category': entry['category'],
                'created_at': entry['created_at'],
                'updated_at': entry['updated_at'],
                **record,
            })
        return revealed

    def _can_reach_remote(self) -> bool:
        if self._passphrase is None:
            self.error = 'Set the master passphrase before syncing'
            return False
        return True

    def _remote_entries(self):
        return [
            {name: row.get(name) or '' for name in _ENTRY_FIELDS}
            for row in self.remote.select()
            if row.get('id') and row.get('encrypted_data')
        ]

    def _reconcile(self):
        remote = self._remote_entries()
        remote_ids = {entry['id'] for entry in remote}
        local_ids = {entry['id'] for entry in self.entries}
        for entry in self.entries:
            if entry['id'] not in remote_ids:
                self.remote.insert(dict(entry))
        self.entries = list(self.entries) + [entry for entry in remote if entry['id'] not in local_ids]

    def _replace_with_remote(self):
        self.entries = self._remote_entries()


class PreferencesStore:
    """Theme, language and recently opened tools; local only."""

    default_state = {'theme': 'light', 'language': 'zh', 'recent_tools': []}

    def __init__(self, storage: LocalStorage):
        self.storage = storage
        state = storage.load(PREFERENCES_NAMESPACE, self.default_state)
        self.theme = state['theme'] if state.get('theme') in THEMES else 'light'
        self.language = state['language'] if state.get('language') in LANGUAGES else 'zh'
        self.recent_tools = [slug for slug in state.get('recent_tools') or [] if isinstance(slug, str)]

    def _persist(self):
        self.storage.save(PREFERENCES_NAMESPACE, {
            'theme': self.theme,
            'language': self.language,
            'recent_tools': list(self.recent_tools),
        })

    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValueError(f"theme must be one of {', '.join(THEMES)}")
        self.theme = theme
        self._persist()

    def toggle_theme(self) -> str:
        self.set_theme('dark' if self.theme == 'light' else 'light')
        return self.theme

    def set_language(self, language: str) -> None:
        if language not in LANGUAGES:
            raise ValueError(f"language must be one of {', '.join(LANGUAGES)}")
        self.language = language
        self._persist()

    def add_recent_tool(self, slug: str) -> None:
        self.recent_tools = ([slug] + [existing for existing in self.recent_tools if existing != slug])
        self.recent_tools = self.recent_tools[:MAX_RECENT_TOOLS]
        self._persist()
