import json
import uuid
from datetime import datetime, timezone

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase
from django.urls import reverse

from accounts.models import ApiToken
from vault.exceptions import CryptoError, PassphraseError
from vault.models import PasswordEntry
from vault.records import open_record, open_record_or_placeholder, seal_record
from vault.utils import decrypt_data, encrypt_data, validate_master_passphrase

PASSPHRASE = 'correct horse battery'


class VaultUtilsTests(SimpleTestCase):
    def test_encrypt_and_decrypt_round_trip(self):
        plaintext = 'sensitive-value'
        encrypted = encrypt_data(plaintext, PASSPHRASE)
        self.assertIsInstance(encrypted, str)
        self.assertTrue(encrypted.startswith('v1:'))
        self.assertNotIn(plaintext, encrypted)
        self.assertEqual(decrypt_data(encrypted, PASSPHRASE), plaintext)

    def test_same_plaintext_encrypts_differently(self):
        self.assertNotEqual(encrypt_data('value', PASSPHRASE), encrypt_data('value', PASSPHRASE))

    def test_encrypt_returns_none_when_plaintext_missing(self):
        self.assertIsNone(encrypt_data('', PASSPHRASE))

    def test_decrypt_returns_none_when_cipher_missing(self):
        self.assertIsNone(decrypt_data('', PASSPHRASE))

    def test_wrong_passphrase_is_recoverable(self):
        encrypted = encrypt_data('value', PASSPHRASE)
        with self.assertRaises(CryptoError) as ctx:
            decrypt_data(encrypted, 'another passphrase')
        self.assertTrue(ctx.exception.recoverable)

    def test_garbage_ciphertext_is_not_recoverable(self):
        for value in ('plain text', 'v1:!!!', 'v1:AAAA'):
            with self.subTest(value=value):
                with self.assertRaises(CryptoError) as ctx:
                    decrypt_data(value, PASSPHRASE)
                self.assertFalse(ctx.exception.recoverable)

    def test_short_passphrase_rejected(self):
        with self.assertRaises(PassphraseError):
            validate_master_passphrase('short')
        self.assertEqual(validate_master_passphrase('long enough'), 'long enough')


class VaultRecordTests(SimpleTestCase):
    def test_seal_and_open(self):
        sealed = seal_record('example.com', 'dev', 'hunter2', PASSPHRASE)
        self.assertEqual(open_record(sealed, PASSPHRASE),
                         {'website': 'example.com', 'username': 'dev', 'password': 'hunter2'})

    def test_seal_requires_valid_passphrase(self):
        with self.assertRaises(PassphraseError):
            seal_record('example.com', 'dev', 'hunter2', 'short')

    def test_non_record_payload_rejected(self):
        with self.assertRaises(CryptoError):
            open_record(encrypt_data('[1, 2, 3]', PASSPHRASE), PASSPHRASE)
        with self.assertRaises(CryptoError):
            open_record(encrypt_data('not json', PASSPHRASE), PASSPHRASE)

    def test_placeholder_for_unreadable_record(self):
        sealed = seal_record('example.com', 'dev', 'hunter2', PASSPHRASE)
        with self.assertLogs('vault', level='ERROR'):
            record = open_record_or_placeholder(sealed, 'wrong passphrase', 'entry-1')
        self.assertEqual(record, {'website': '', 'username': '', 'password': '', 'readable': False})

        record = open_record_or_placeholder(sealed, PASSPHRASE)
        self.assertTrue(record['readable'])
        self.assertEqual(record['password'], 'hunter2')


class PasswordEntryApiTests(TestCase):
    def setUp(self):
        User = get_user_model()
        self.user = User.objects.create_user(email='owner@example.com', password='Complex-Pass-123')
        self.other = User.objects.create_user(email='other@example.com', password='Complex-Pass-123')
        _, self.key = ApiToken.objects.issue(self.user)
        _, self.other_key = ApiToken.objects.issue(self.other)
        self.list_url = reverse('password_entries')

    def auth(self, key=None):
        return {'HTTP_AUTHORIZATION': f'Bearer {key or self.key}'}

    def post_entry(self, payload, key=None):
        return self.client.post(self.list_url, data=json.dumps(payload),
                                content_type='application/json', **self.auth(key))

    def detail_url(self, entry_id):
        return reverse('password_entry_detail', args=[entry_id])

    def test_requires_token(self):
        response = self.client.get(self.list_url)
        self.assertEqual(response.status_code, 401)
        response = self.client.get(self.list_url, HTTP_AUTHORIZATION='Bearer nope')
        self.assertEqual(response.status_code, 401)

    def test_create_and_list_only_own_entries(self):
        response = self.post_entry({'encrypted_data': 'v1:abc', 'category': 'work'})
        self.assertEqual(response.status_code, 201)
        self.post_entry({'encrypted_data': 'v1:other'}, key=self.other_key)

        items = self.client.get(self.list_url, **self.auth()).json()['items']
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0]['encrypted_data'], 'v1:abc')
        self.assertEqual(items[0]['category'], 'work')
        self.assertEqual(items[0]['user_id'], str(self.user.pk))

    def test_create_requires_ciphertext(self):
        response = self.post_entry({'category': 'work'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'encrypted_data is required')

    def test_client_id_and_timestamps_are_kept(self):
        entry_id = str(uuid.uuid4())
        response = self.post_entry({
            'id': entry_id,
            'encrypted_data': 'v1:abc',
            'created_at': '2024-01-01T00:00:00Z',
            'updated_at': '2024-01-02T00:00:00Z',
        })
        self.assertEqual(response.status_code, 201)
        entry = PasswordEntry.objects.get(pk=entry_id)
        self.assertEqual(entry.created_at, datetime(2024, 1, 1, tzinfo=timezone.utc))
        self.assertEqual(entry.updated_at, datetime(2024, 1, 2, tzinfo=timezone.utc))

    def test_repeated_post_is_idempotent(self):
        entry_id = str(uuid.uuid4())
        self.assertEqual(self.post_entry({'id': entry_id, 'encrypted_data': 'v1:abc'}).status_code, 201)
        response = self.post_entry({'id': entry_id, 'encrypted_data': 'v1:changed'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['item']['encrypted_data'], 'v1:abc')
        self.assertEqual(PasswordEntry.objects.count(), 1)

    def test_foreign_id_conflicts(self):
        entry_id = str(uuid.uuid4())
        self.post_entry({'id': entry_id, 'encrypted_data': 'v1:abc'}, key=self.other_key)
        response = self.post_entry({'id': entry_id, 'encrypted_data': 'v1:mine'})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(PasswordEntry.objects.get(pk=entry_id).user, self.other)

    def test_bad_id_and_body(self):
        self.assertEqual(self.post_entry({'id': 'not-a-uuid', 'encrypted_data': 'v1:abc'}).status_code, 400)
        response = self.client.post(self.list_url, data='[1]', content_type='application/json', **self.auth())
        self.assertEqual(response.status_code, 400)

    def test_patch_updates_entry(self):
        entry = PasswordEntry.objects.create(user=self.user, encrypted_data='v1:abc')
        response = self.client.patch(
            self.detail_url(entry.pk),
            data=json.dumps({'encrypted_data': 'v1:new', 'category': 'personal',
                             'updated_at': '2024-03-01T12:00:00+00:00'}),
            content_type='application/json',
            **self.auth(),
        )
        self.assertEqual(response.status_code, 200)
        entry.refresh_from_db()
        self.assertEqual(entry.encrypted_data, 'v1:new')
        self.assertEqual(entry.category, 'personal')
        self.assertEqual(entry.updated_at, datetime(2024, 3, 1, 12, tzinfo=timezone.utc))

    def test_patch_rejects_bad_timestamp(self):
        entry = PasswordEntry.objects.create(user=self.user, encrypted_data='v1:abc')
        response = self.client.patch(self.detail_url(entry.pk), data=json.dumps({'updated_at': 'soon'}),
                                     content_type='application/json', **self.auth())
        self.assertEqual(response.status_code, 400)

    def test_delete_entry(self):
        entry = PasswordEntry.objects.create(user=self.user, encrypted_data='v1:abc')
        response = self.client.delete(self.detail_url(entry.pk), **self.auth())
        self.assertEqual(response.status_code, 200)
        self.assertFalse(PasswordEntry.objects.filter(pk=entry.pk).exists())

    def test_other_users_entry_is_not_found(self):
        entry = PasswordEntry.objects.create(user=self.other, encrypted_data='v1:abc')
        self.assertEqual(self.client.delete(self.detail_url(entry.pk), **self.auth()).status_code, 404)
        self.assertTrue(PasswordEntry.objects.filter(pk=entry.pk).exists())

    def test_deleting_user_removes_entries(self):
        PasswordEntry.objects.create(user=self.user, encrypted_data='v1:abc')
        self.user.delete()
        self.assertEqual(PasswordEntry.objects.count(), 0)
