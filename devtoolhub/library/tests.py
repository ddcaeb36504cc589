import json
import uuid
from datetime import datetime, timedelta, timezone

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.urls import reverse

from accounts.models import ApiToken
from library.models import Favorite, HistoryEntry


class LibraryApiTestCase(TestCase):
    def setUp(self):
        User = get_user_model()
        self.user = User.objects.create_user(email='owner@example.com', password='Complex-Pass-123')
        self.other = User.objects.create_user(email='other@example.com', password='Complex-Pass-123')
        _, key = ApiToken.objects.issue(self.user)
        self.auth = {'HTTP_AUTHORIZATION': f'Bearer {key}'}

    def post(self, url, payload):
        return self.client.post(url, data=json.dumps(payload), content_type='application/json', **self.auth)


class FavoriteApiTests(LibraryApiTestCase):
    def test_requires_token(self):
        self.assertEqual(self.client.get(reverse('favorites')).status_code, 401)

    def test_add_and_list(self):
        response = self.post(reverse('favorites'), {'tool_slug': 'json-formatter'})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['item']['tool_slug'], 'json-formatter')
        Favorite.objects.create(user=self.other, tool_slug='regex-tester')

        items = self.client.get(reverse('favorites'), **self.auth).json()['items']
        self.assertEqual([item['tool_slug'] for item in items], ['json-formatter'])

    def test_slug_is_required(self):
        response = self.post(reverse('favorites'), {'tool_slug': '  '})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'tool_slug is required')

    def test_same_client_id_is_stored_once(self):
        favorite_id = str(uuid.uuid4())
        self.post(reverse('favorites'), {'id': favorite_id, 'tool_slug': 'json-formatter'})
        response = self.post(reverse('favorites'), {'id': favorite_id, 'tool_slug': 'json-formatter'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Favorite.objects.count(), 1)

    def test_foreign_id_conflicts(self):
        favorite = Favorite.objects.create(user=self.other, tool_slug='regex-tester')
        response = self.post(reverse('favorites'), {'id': str(favorite.pk), 'tool_slug': 'json-formatter'})
        self.assertEqual(response.status_code, 409)

    def test_delete_by_slug(self):
        Favorite.objects.create(user=self.user, tool_slug='json-formatter')
        Favorite.objects.create(user=self.other, tool_slug='json-formatter')
        response = self.client.delete(reverse('favorite_detail', args=['json-formatter']), **self.auth)
        self.assertEqual(response.json(), {'success': True, 'deleted': 1})
        self.assertEqual(Favorite.objects.filter(tool_slug='json-formatter').count(), 1)

    def test_delete_missing_slug_is_not_an_error(self):
        response = self.client.delete(reverse('favorite_detail', args=['uuid-generator']), **self.auth)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['deleted'], 0)


class HistoryApiTests(LibraryApiTestCase):
    def add_history(self, user, slug, timestamp):
        return HistoryEntry.objects.create(user=user, tool_slug=slug, timestamp=timestamp)

    def test_add_keeps_client_timestamp(self):
        response = self.post(reverse('history'), {'tool_slug': 'jwt-decoder', 'timestamp': '2024-05-01T08:30:00Z'})
        self.assertEqual(response.status_code, 201)
        entry = HistoryEntry.objects.get()
        self.assertEqual(entry.timestamp, datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc))

    def test_bad_timestamp(self):
        response = self.post(reverse('history'), {'tool_slug': 'jwt-decoder', 'timestamp': 'last week'})
        self.assertEqual(response.status_code, 400)

    def test_list_newest_first_with_limit(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for offset, slug in enumerate(['json-formatter', 'regex-tester', 'cron-generator']):
            self.add_history(self.user, slug, start + timedelta(hours=offset))
        self.add_history(self.other, 'url-parser', start + timedelta(days=1))

        items = self.client.get(reverse('history'), {'limit': 2}, **self.auth).json()['items']
        self.assertEqual([item['tool_slug'] for item in items], ['cron-generator', 'regex-tester'])

    @override_settings(HISTORY_FETCH_LIMIT=1)
    def test_default_limit_comes_from_settings(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.add_history(self.user, 'json-formatter', start)
        self.add_history(self.user, 'regex-tester', start + timedelta(minutes=1))
        items = self.client.get(reverse('history'), **self.auth).json()['items']
        self.assertEqual(len(items), 1)

    def test_invalid_limit(self):
        for limit in ('0', 'abc', '501'):
            with self.subTest(limit=limit):
                response = self.client.get(reverse('history'), {'limit': limit}, **self.auth)
                self.assertEqual(response.status_code, 400)
