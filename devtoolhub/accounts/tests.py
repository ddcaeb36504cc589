import json

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import RequestFactory, TestCase, override_settings
from django.urls import reverse

from accounts.adapter import CustomAccountAdapter
from accounts.api_auth import authenticate_request, get_bearer_token
from accounts.models import ApiToken, hash_token

User = get_user_model()

PASSWORD = 'Complex-Pass-123'


class AccountsTestCase(TestCase):
    def setUp(self):
        cache.clear()
        self.addCleanup(cache.clear)

    def post_json(self, url, payload, **extra):
        return self.client.post(url, data=json.dumps(payload), content_type='application/json', **extra)


class CustomUserTests(TestCase):
    def test_create_user_normalizes_email(self):
        user = User.objects.create_user(email='Dev@Example.COM', password=PASSWORD)
        self.assertEqual(user.email, 'Dev@example.com')
        self.assertTrue(user.check_password(PASSWORD))
        self.assertEqual(user.to_public_dict(), {'id': str(user.pk), 'email': user.email})

    def test_create_user_requires_email(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email='', password=PASSWORD)

    def test_create_superuser(self):
        admin = User.objects.create_superuser(email='admin@example.com', password=PASSWORD)
        self.assertTrue(admin.is_staff)
        self.assertTrue(admin.is_superuser)


class ApiTokenTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email='dev@example.com', password=PASSWORD)

    def test_only_hash_is_stored(self):
        token, raw_key = ApiToken.objects.issue(self.user, label='cli')
        self.assertNotEqual(token.key_hash, raw_key)
        self.assertEqual(token.key_hash, hash_token(raw_key))
        self.assertEqual(len(token.key_hash), 64)

    def test_resolve_marks_token_used(self):
        token, raw_key = ApiToken.objects.issue(self.user)
        self.assertIsNone(token.last_used_at)
        resolved = ApiToken.objects.resolve(raw_key)
        self.assertEqual(resolved.pk, token.pk)
        self.assertIsNotNone(resolved.last_used_at)

    def test_inactive_user_token_does_not_resolve(self):
        _, raw_key = ApiToken.objects.issue(self.user)
        self.user.is_active = False
        self.user.save()
        self.assertIsNone(ApiToken.objects.resolve(raw_key))
        self.assertIsNone(ApiToken.objects.resolve(''))

    def test_bearer_header_parsing(self):
        factory = RequestFactory()
        self.assertEqual(get_bearer_token(factory.get('/', HTTP_AUTHORIZATION='Bearer abc')), 'abc')
        self.assertEqual(get_bearer_token(factory.get('/', HTTP_AUTHORIZATION='bearer abc ')), 'abc')
        self.assertIsNone(get_bearer_token(factory.get('/', HTTP_AUTHORIZATION='Basic abc')))
        self.assertIsNone(get_bearer_token(factory.get('/')))

    def test_unknown_token_is_logged(self):
        request = RequestFactory().get('/api/passwords/', HTTP_AUTHORIZATION='Bearer unknown')
        with self.assertLogs('django.security', level='WARNING'):
            self.assertIsNone(authenticate_request(request))


class SignUpTests(AccountsTestCase):
    def setUp(self):
        super().setUp()
        self.url = reverse('api_signup')

    def test_signup_returns_session(self):
        response = self.post_json(self.url, {'email': 'New@Example.com', 'password': PASSWORD})
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body['user']['email'], 'new@example.com')
        self.assertTrue(ApiToken.objects.filter(key_hash=hash_token(body['token'])).exists())

    def test_signup_rejects_invalid_email(self):
        response = self.post_json(self.url, {'email': 'not-an-email', 'password': PASSWORD})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['field'], 'email')

    def test_signup_rejects_weak_password(self):
        response = self.post_json(self.url, {'email': 'dev@example.com', 'password': '123'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['field'], 'password')
        self.assertFalse(User.objects.exists())

    def test_signup_duplicate_email(self):
        User.objects.create_user(email='dev@example.com', password=PASSWORD)
        response = self.post_json(self.url, {'email': 'dev@example.com', 'password': PASSWORD})
        self.assertEqual(response.status_code, 409)

    def test_signup_is_rate_limited_per_ip(self):
        for index in range(5):
            self.post_json(self.url, {'email': f'user{index}@example.com', 'password': PASSWORD})
        response = self.post_json(self.url, {'email': 'late@example.com', 'password': PASSWORD})
        self.assertEqual(response.status_code, 429)
        self.assertIn('Retry-After', response)
        self.assertFalse(User.objects.filter(email='late@example.com').exists())

    def test_signup_requires_post(self):
        self.assertEqual(self.client.get(self.url).status_code, 405)


class SignInTests(AccountsTestCase):
    def setUp(self):
        super().setUp()
        self.url = reverse('api_signin')
        self.user = User.objects.create_user(email='dev@example.com', password=PASSWORD)

    def test_signin_issues_token(self):
        response = self.post_json(self.url, {'email': 'DEV@example.com', 'password': PASSWORD})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['user'], {'id': str(self.user.pk), 'email': 'dev@example.com'})
        self.assertEqual(ApiToken.objects.resolve(body['token']).user, self.user)

    def test_signin_wrong_password(self):
        response = self.post_json(self.url, {'email': 'dev@example.com', 'password': 'wrong-password'})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error'], 'Invalid email or password')

    def test_signin_missing_fields(self):
        self.assertEqual(self.post_json(self.url, {'email': 'dev@example.com'}).status_code, 400)
        response = self.client.post(self.url, data='not json', content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_repeated_failures_block_the_account(self):
        for _ in range(7):
            self.post_json(self.url, {'email': 'dev@example.com', 'password': 'wrong-password'})
        response = self.post_json(self.url, {'email': 'dev@example.com', 'password': PASSWORD})
        self.assertEqual(response.status_code, 429)
        self.assertIn('Retry-After', response)

    def test_success_resets_failure_count(self):
        for _ in range(5):
            self.post_json(self.url, {'email': 'dev@example.com', 'password': 'wrong-password'})
        self.assertEqual(self.post_json(self.url, {'email': 'dev@example.com', 'password': PASSWORD}).status_code, 200)
        for _ in range(5):
            self.post_json(self.url, {'email': 'dev@example.com', 'password': 'wrong-password'})
        self.assertEqual(self.post_json(self.url, {'email': 'dev@example.com', 'password': PASSWORD}).status_code, 200)


class SessionTests(AccountsTestCase):
    def setUp(self):
        super().setUp()
        self.user = User.objects.create_user(email='dev@example.com', password=PASSWORD)
        _, self.key = ApiToken.objects.issue(self.user)
        self.auth = {'HTTP_AUTHORIZATION': f'Bearer {self.key}'}

    def test_session_returns_user(self):
        response = self.client.get(reverse('api_session'), **self.auth)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['user']['email'], 'dev@example.com')

    def test_session_without_token(self):
        response = self.client.get(reverse('api_session'))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {'success': False, 'error': 'Authentication required'})

    def test_signout_revokes_token(self):
        response = self.client.post(reverse('api_signout'), **self.auth)
        self.assertEqual(response.status_code, 200)
        self.assertFalse(ApiToken.objects.filter(user=self.user).exists())
        self.assertEqual(self.client.get(reverse('api_session'), **self.auth).status_code, 401)


class AccountAdapterTests(TestCase):
    def setUp(self):
        self.request = RequestFactory().get('/accounts/signup/')

    @override_settings(ACCOUNT_ALLOW_SIGNUP=False)
    def test_signup_can_be_closed(self):
        with self.assertLogs('django.security', level='WARNING'):
            self.assertFalse(CustomAccountAdapter(self.request).is_open_for_signup(self.request))

    @override_settings(ACCOUNT_ALLOW_SIGNUP=True)
    def test_signup_open_by_default(self):
        self.assertTrue(CustomAccountAdapter(self.request).is_open_for_signup(self.request))
