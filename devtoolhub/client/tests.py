import json
import shutil
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import httpx
from django.test import SimpleTestCase

from client.config import ClientConfig
from client.remote import ApiClient, RemoteError, RemoteTable
from client.session import AuthSessionStore
from client.storage import FAVORITES_NAMESPACE, PASSWORD_VAULT_NAMESPACE, LocalStorage
from client.stores import (
    MAX_HISTORY,
    FavoritesStore,
    HistoryStore,
    PasswordVaultStore,
    PreferencesStore,
)
from vault.exceptions import PassphraseError

EMAIL = 'dev@example.com'
PASSWORD = 'correct-horse-battery'
PASSPHRASE = 'master passphrase'


def run_now(task):
    task()


class FakeBackend:
    """In-memory stand-in for the DevToolHub API, mounted on httpx.MockTransport."""

    def __init__(self):
        self.tables = {'favorites': [], 'history': [], 'passwords': []}
        self.token = 'token-123'
        self.fail = False
        self.requests = []

    def calls(self, method, table):
        return [path for verb, path in self.requests if verb == method and path.startswith(f'/api/{table}/')]

    def _ok(self, status=200, **data):
        return httpx.Response(status, json={'success': True, **data})

    def __call__(self, request):
        self.requests.append((request.method, request.url.path))
        if self.fail:
            return httpx.Response(503, json={'success': False, 'error': 'Service unavailable'})
        path = request.url.path[len('/api/'):]
        body = json.loads(request.content) if request.content else {}

        if path in ('auth/signin/', 'auth/signup/'):
            if body.get('password') != PASSWORD:
                return httpx.Response(401, json={'success': False, 'error': 'Invalid email or password'})
            return self._ok(user={'id': '1', 'email': body['email']}, token=self.token)
        if path == 'auth/signout/':
            return self._ok()
        if path == 'auth/session/':
            if request.headers.get('Authorization') != f'Bearer {self.token}':
                return httpx.Response(401, json={'success': False, 'error': 'Authentication required'})
            return self._ok(user={'id': '1', 'email': EMAIL})

        table, _, row_id = path.strip('/').partition('/')
        rows = self.tables[table]
        if request.method == 'GET':
            limit = int(request.url.params.get('limit', 0)) or None
            return self._ok(items=rows[:limit])
        if request.method == 'POST':
            for row in rows:
                if body.get('id') and row['id'] == body['id']:
                    return self._ok(item=row)
            row = dict(body)
            row.setdefault('id', str(uuid.uuid4()))
            rows.append(row)
            return self._ok(201, item=row)
        if request.method == 'PATCH':
            for row in rows:
                if row['id'] == row_id:
                    row.update(body)
                    return self._ok(item=row)
            return httpx.Response(404, json={'success': False, 'error': 'Entry not found'})
        key = 'tool_slug' if table == 'favorites' else 'id'
        self.tables[table] = [row for row in rows if row.get(key) != row_id]
        return self._ok()


class ClientTestCase(SimpleTestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.tmpdir, ignore_errors=True)
        self.storage = LocalStorage(self.tmpdir)
        self.backend = FakeBackend()
        self.api = ApiClient(base_url='http://testserver/api', transport=httpx.MockTransport(self.backend))
        self.session = AuthSessionStore(self.storage, self.api)

    def sign_in(self):
        self.assertTrue(self.session.sign_in(EMAIL, PASSWORD))
        self.backend.requests.clear()


class ClientConfigTests(SimpleTestCase):
    def test_defaults(self):
        config = ClientConfig.from_env({})
        self.assertEqual(config.api_url, 'http://127.0.0.1:8000/api')
        self.assertEqual(config.timeout, 20.0)

    def test_environment_overrides(self):
        config = ClientConfig.from_env({
            'DEVTOOLHUB_API_URL': 'https://tools.example.com/api/',
            'DEVTOOLHUB_HOME': '/tmp/devtoolhub-test',
            'DEVTOOLHUB_TIMEOUT': '5',
        })
        self.assertEqual(config.api_url, 'https://tools.example.com/api')
        self.assertEqual(config.home, Path('/tmp/devtoolhub-test'))
        self.assertEqual(config.timeout, 5.0)

    def test_bad_timeout(self):
        with self.assertRaises(ValueError):
            ClientConfig.from_env({'DEVTOOLHUB_TIMEOUT': 'soon'})


class LocalStorageTests(SimpleTestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.tmpdir, ignore_errors=True)
        self.storage = LocalStorage(self.tmpdir)

    def test_round_trip(self):
        self.storage.save(FAVORITES_NAMESPACE, {'favorites': ['json-formatter']})
        self.assertEqual(self.storage.load(FAVORITES_NAMESPACE, {'favorites': []}), {'favorites': ['json-formatter']})
        self.assertEqual(sorted(p.name for p in Path(self.tmpdir).iterdir()), ['favorites-storage.json'])

    def test_missing_snapshot_returns_copy_of_default(self):
        default = {'favorites': []}
        loaded = self.storage.load(FAVORITES_NAMESPACE, default)
        loaded['favorites'].append('x')
        self.assertEqual(default, {'favorites': []})

    def test_corrupt_snapshot_falls_back_to_default(self):
        self.storage.path_for(FAVORITES_NAMESPACE).write_text('{not json', encoding='utf-8')
        with self.assertLogs('client', level='WARNING'):
            loaded = self.storage.load(FAVORITES_NAMESPACE, {'favorites': []})
        self.assertEqual(loaded, {'favorites': []})


class RemoteTableTests(SimpleTestCase):
    def test_server_error_message_is_kept(self):
        def handler(request):
            return httpx.Response(400, json={'success': False, 'error': 'tool_slug is required'})

        table = RemoteTable(ApiClient(base_url='http://testserver/api', transport=httpx.MockTransport(handler)),
                            'favorites')
        with self.assertRaises(RemoteError) as ctx:
            table.insert({})
        self.assertEqual(str(ctx.exception), 'tool_slug is required')
        self.assertEqual(ctx.exception.status_code, 400)

    def test_network_error_becomes_remote_error(self):
        def handler(request):
            raise httpx.ConnectError('connection refused', request=request)

        table = RemoteTable(ApiClient(transport=httpx.MockTransport(handler)), 'history')
        with self.assertRaises(RemoteError):
            table.select()

    def test_bearer_token_and_limit_are_sent(self):
        seen = {}

        def handler(request):
            seen['auth'] = request.headers.get('Authorization')
            seen['url'] = str(request.url)
            return httpx.Response(200, json={'success': True, 'items': []})

        api = ApiClient(base_url='http://testserver/api', token='abc', transport=httpx.MockTransport(handler))
        self.assertEqual(RemoteTable(api, 'history').select(limit=50), [])
        self.assertEqual(seen['auth'], 'Bearer abc')
        self.assertEqual(seen['url'], 'http://testserver/api/history/?limit=50')


class AuthSessionStoreTests(ClientTestCase):
    def test_sign_in_persists_session(self):
        self.assertTrue(self.session.sign_in(EMAIL, PASSWORD))
        self.assertTrue(self.session.is_authenticated)
        self.assertEqual(self.api.token, 'token-123')

        reloaded = AuthSessionStore(self.storage, ApiClient(transport=httpx.MockTransport(self.backend)))
        self.assertTrue(reloaded.is_authenticated)
        self.assertEqual(reloaded.email, EMAIL)

    def test_sign_in_failure_sets_error(self):
        self.assertFalse(self.session.sign_in(EMAIL, 'wrong'))
        self.assertEqual(self.session.error, 'Invalid email or password')
        self.assertFalse(self.session.is_loading)
        self.session.clear_error()
        self.assertIsNone(self.session.error)

    def test_sign_out_clears_session(self):
        self.sign_in()
        self.session.sign_out()
        self.assertFalse(self.session.is_authenticated)
        self.assertIsNone(self.api.token)
        self.assertEqual(self.backend.requests, [('POST', '/api/auth/signout/')])

    def test_check_auth_drops_revoked_token(self):
        self.sign_in()
        self.assertTrue(self.session.check_auth())
        self.backend.token = 'rotated'
        self.assertFalse(self.session.check_auth())
        self.assertIsNone(self.session.user)

    def test_check_auth_keeps_session_when_offline(self):
        self.sign_in()
        self.backend.fail = True
        self.assertTrue(self.session.check_auth())
        self.assertIsNotNone(self.session.error)


class FavoritesStoreTests(ClientTestCase):
    def make_store(self):
        return FavoritesStore(self.storage, self.session, dispatch=run_now)

    def test_add_is_idempotent(self):
        self.sign_in()
        store = self.make_store()
        store.add_favorite('json-formatter')
        store.add_favorite('json-formatter')
        self.assertEqual(store.favorites, ['json-formatter'])
        self.assertEqual(len(self.backend.calls('POST', 'favorites')), 1)

    def test_remove_absent_slug_is_a_noop(self):
        store = self.make_store()
        store.add_favorite('json-formatter')
        store.remove_favorite('regex-tester')
        self.assertEqual(store.favorites, ['json-formatter'])
        self.assertTrue(store.is_favorite('json-formatter'))
        self.assertFalse(store.is_favorite('regex-tester'))

    def test_state_survives_restart(self):
        self.make_store().add_favorite('uuid-generator')
        self.assertEqual(self.make_store().favorites, ['uuid-generator'])

    def test_no_push_when_signed_out(self):
        store = self.make_store()
        store.add_favorite('json-formatter')
        self.assertEqual(self.backend.requests, [])

    def test_failed_push_keeps_local_change(self):
        self.sign_in()
        self.backend.fail = True
        store = self.make_store()
        with self.assertLogs('client', level='WARNING'):
            store.add_favorite('json-formatter')
        self.assertEqual(store.favorites, ['json-formatter'])

    def test_unexpected_push_error_is_logged(self):
        self.sign_in()
        store = self.make_store()
        with patch.object(store.remote, 'insert', side_effect=TypeError('bad row')):
            with self.assertLogs('client', level='WARNING') as captured:
                store.add_favorite('json-formatter')
        self.assertEqual(captured.records[0].context['error'], 'bad row')
        self.assertEqual(store.favorites, ['json-formatter'])

    def test_sync_is_a_union(self):
        self.sign_in()
        self.backend.tables['favorites'] = [{'id': '1', 'tool_slug': 'jwt-decoder'}]
        store = self.make_store()
        store.favorites = ['json-formatter']
        self.assertTrue(store.sync())
        self.assertEqual(store.favorites, ['json-formatter', 'jwt-decoder'])
        self.assertEqual({row['tool_slug'] for row in self.backend.tables['favorites']},
                         {'json-formatter', 'jwt-decoder'})
        self.assertIsNone(store.error)

    def test_sync_without_session_does_nothing(self):
        store = self.make_store()
        store.favorites = ['json-formatter']
        self.assertFalse(store.sync())
        self.assertEqual(store.favorites, ['json-formatter'])
        self.assertEqual(self.backend.requests, [])

    def test_sync_failure_sets_error(self):
        self.sign_in()
        self.backend.fail = True
        store = self.make_store()
        store.favorites = ['json-formatter']
        self.assertFalse(store.sync())
        self.assertIn('Service unavailable', store.error)
        self.assertFalse(store.is_loading)
        self.assertEqual(store.favorites, ['json-formatter'])

    def test_load_from_cloud_replaces_local_state(self):
        self.sign_in()
        self.backend.tables['favorites'] = [{'id': '1', 'tool_slug': 'cron-generator'}]
        store = self.make_store()
        store.favorites = ['json-formatter']
        self.assertTrue(store.load_from_cloud())
        self.assertEqual(store.favorites, ['cron-generator'])


class HistoryStoreTests(ClientTestCase):
    def make_store(self):
        return HistoryStore(self.storage, self.session, dispatch=run_now)

    def test_add_history_dedupes_and_caps(self):
        store = self.make_store()
        for index in range(MAX_HISTORY + 10):
            store.add_history(f'tool-{index}')
        self.assertEqual(len(store.history), MAX_HISTORY)
        self.assertEqual(store.history[0]['tool_slug'], f'tool-{MAX_HISTORY + 9}')

        store.add_history('tool-30')
        self.assertEqual(store.history[0]['tool_slug'], 'tool-30')
        self.assertEqual([item['tool_slug'] for item in store.history].count('tool-30'), 1)

    def test_recent_tools(self):
        store = self.make_store()
        for slug in ('json-formatter', 'regex-tester', 'uuid-generator'):
            store.add_history(slug)
        self.assertEqual(store.get_recent_tools(2), ['uuid-generator', 'regex-tester'])

    def test_clear(self):
        store = self.make_store()
        store.add_history('json-formatter')
        store.clear_history()
        self.assertEqual(store.history, [])

    def test_cleanup_drops_unknown_tools_and_bad_timestamps(self):
        store = self.make_store()
        store.history = [
            {'tool_slug': 'json-formatter', 'timestamp': '2024-01-01T00:00:00+00:00'},
            {'tool_slug': 'retired-tool', 'timestamp': '2024-01-01T00:00:00+00:00'},
            {'tool_slug': 'regex-tester', 'timestamp': 'yesterday'},
        ]
        self.assertEqual(store.cleanup_history(), 2)
        self.assertEqual([item['tool_slug'] for item in store.history], ['json-formatter'])

    def test_push_carries_the_local_timestamp(self):
        self.sign_in()
        entry = self.make_store().add_history('json-formatter')
        self.assertEqual(self.backend.tables['history'][0]['timestamp'], entry['timestamp'])

    def test_sync_merges_sorts_and_keeps_latest_per_slug(self):
        self.sign_in()
        now = datetime(2024, 5, 1, tzinfo=timezone.utc)
        self.backend.tables['history'] = [
            {'id': 'a', 'tool_slug': 'jwt-decoder', 'timestamp': (now - timedelta(hours=1)).isoformat()},
            {'id': 'b', 'tool_slug': 'json-formatter', 'timestamp': (now - timedelta(days=1)).isoformat()},
        ]
        store = self.make_store()
        store.history = [{'tool_slug': 'json-formatter', 'timestamp': now.isoformat()}]

        self.assertTrue(store.sync())
        self.assertEqual([item['tool_slug'] for item in store.history], ['json-formatter', 'jwt-decoder'])
        self.assertEqual(store.history[0]['timestamp'], now.isoformat())
        self.assertEqual(self.backend.calls('GET', 'history'), ['/api/history/'])
        self.assertEqual(len(self.backend.tables['history']), 3)

    def test_entries_carry_a_stable_id(self):
        self.sign_in()
        entry = self.make_store().add_history('json-formatter')
        self.assertEqual(self.backend.tables['history'][0]['id'], entry['id'])
        self.assertEqual(self.make_store().history[0]['id'], entry['id'])

    def test_repeated_sync_does_not_duplicate_old_entries(self):
        self.sign_in()
        now = datetime(2026, 3, 1, tzinfo=timezone.utc)
        self.backend.tables['history'] = [
            {'id': str(uuid.uuid4()), 'tool_slug': 'uuid-generator', 'timestamp': (now - timedelta(minutes=i)).isoformat()}
            for i in range(60)
        ]
        store = self.make_store()
        store.history = [{'tool_slug': 'json-formatter', 'timestamp': '2026-01-01T00:00:00+00:00'}]

        for _ in range(3):
            self.assertTrue(store.sync())
        slugs = [row['tool_slug'] for row in self.backend.tables['history']]
        self.assertEqual(slugs.count('json-formatter'), 1)
        self.assertEqual(len(self.backend.calls('POST', 'history')), 3)


class PasswordVaultStoreTests(ClientTestCase):
    def make_store(self):
        return PasswordVaultStore(self.storage, self.session, dispatch=run_now)

    def test_passphrase_is_required(self):
        store = self.make_store()
        with self.assertRaises(PassphraseError):
            store.add_entry('example.com', 'dev', 'hunter2')
        with self.assertRaises(PassphraseError):
            store.set_master_passphrase('short')

    def test_add_and_reveal(self):
        store = self.make_store()
        store.set_master_passphrase(PASSPHRASE)
        entry = store.add_entry('example.com', 'dev', 'hunter2', 'work')
        revealed = store.reveal_entries()
        self.assertEqual(revealed[0]['id'], entry['id'])
        self.assertEqual(revealed[0]['password'], 'hunter2')
        self.assertTrue(revealed[0]['readable'])

    def test_snapshot_holds_ciphertext_only(self):
        store = self.make_store()
        store.set_master_passphrase(PASSPHRASE)
        store.add_entry('example.com', 'dev', 'hunter2')
        raw = self.storage.path_for(PASSWORD_VAULT_NAMESPACE).read_text(encoding='utf-8')
        self.assertNotIn('hunter2', raw)
        self.assertNotIn(PASSPHRASE, raw)

    def test_unreadable_entry_does_not_break_listing(self):
        store = self.make_store()
        store.set_master_passphrase('first passphrase')
        store.add_entry('old.example.com', 'dev', 'old-secret')
        store.set_master_passphrase('second passphrase')
        store.add_entry('new.example.com', 'dev', 'new-secret')

        revealed = store.reveal_entries()
        self.assertFalse(revealed[0]['readable'])
        self.assertEqual(revealed[0]['password'], '')
        self.assertTrue(revealed[1]['readable'])
        self.assertEqual(revealed[1]['password'], 'new-secret')

    def test_update_pushes_only_changed_ciphertext(self):
        self.sign_in()
        store = self.make_store()
        store.set_master_passphrase(PASSPHRASE)
        entry = store.add_entry('example.com', 'dev', 'hunter2')

        self.assertTrue(store.update_entry(entry['id'], category='personal'))
        self.assertEqual(self.backend.calls('PATCH', 'passwords'), [])

        self.assertTrue(store.update_entry(entry['id'], password='hunter3'))
        self.assertEqual(self.backend.calls('PATCH', 'passwords'), [f"/api/passwords/{entry['id']}/"])
        self.assertEqual(store.reveal_entries()[0]['password'], 'hunter3')
        self.assertEqual(store.reveal_entries()[0]['website'], 'example.com')

    def test_update_and_delete_unknown_entry(self):
        store = self.make_store()
        self.assertFalse(store.update_entry('missing', category='x'))
        self.assertFalse(store.delete_entry('missing'))

    def test_delete_pushes_removal(self):
        self.sign_in()
        store = self.make_store()
        store.set_master_passphrase(PASSPHRASE)
        entry = store.add_entry('example.com', 'dev', 'hunter2')
        self.assertEqual(self.backend.tables['passwords'][0]['id'], entry['id'])
        self.assertTrue(store.delete_entry(entry['id']))
        self.assertEqual(store.entries, [])
        self.assertEqual(self.backend.tables['passwords'], [])

    def test_sync_requires_passphrase(self):
        self.sign_in()
        store = self.make_store()
        self.assertFalse(store.sync())
        self.assertEqual(store.error, 'Set the master passphrase before syncing')
        self.assertEqual(self.backend.requests, [])

    def test_sync_is_a_union_by_id(self):
        self.sign_in()
        store = self.make_store()
        store.set_master_passphrase(PASSPHRASE)
        local = store.add_entry('local.example.com', 'dev', 'a')
        self.backend.tables['passwords'] = [{
            'id': 'remote-1', 'encrypted_data': 'v1:opaque', 'category': '',
            'created_at': '2024-01-01T00:00:00+00:00', 'updated_at': '2024-01-01T00:00:00+00:00',
        }]
        self.assertTrue(store.sync())
        self.assertEqual([entry['id'] for entry in store.entries], [local['id'], 'remote-1'])
        self.assertEqual({row['id'] for row in self.backend.tables['passwords']}, {local['id'], 'remote-1'})

    def test_lock_forgets_passphrase(self):
        store = self.make_store()
        store.set_master_passphrase(PASSPHRASE)
        store.lock()
        self.assertFalse(store.is_unlocked)
        with self.assertRaises(PassphraseError):
            store.reveal_entries()


class PreferencesStoreTests(SimpleTestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.tmpdir, ignore_errors=True)
        self.storage = LocalStorage(self.tmpdir)

    def test_defaults_and_toggle(self):
        prefs = PreferencesStore(self.storage)
        self.assertEqual((prefs.theme, prefs.language), ('light', 'zh'))
        self.assertEqual(prefs.toggle_theme(), 'dark')
        self.assertEqual(PreferencesStore(self.storage).theme, 'dark')

    def test_language_is_validated(self):
        prefs = PreferencesStore(self.storage)
        prefs.set_language('en')
        with self.assertRaises(ValueError):
            prefs.set_language('fr')
        self.assertEqual(prefs.language, 'en')

    def test_recent_tools_dedupe_and_cap(self):
        prefs = PreferencesStore(self.storage)
        for index in range(12):
            prefs.add_recent_tool(f'tool-{index}')
        prefs.add_recent_tool('tool-5')
        self.assertEqual(len(prefs.recent_tools), 10)
        self.assertEqual(prefs.recent_tools[0], 'tool-5')
        self.assertEqual(prefs.recent_tools.count('tool-5'), 1)
