import json
import logging
from types import SimpleNamespace
from unittest.mock import patch

from django.core.cache import cache
from django.http import HttpResponse
from django.test import RequestFactory, SimpleTestCase, TestCase, override_settings

from core import views as core_views
from core.http import json_error, json_ok, parse_client_datetime, read_json_body
from core.logging_formatters import StructuredJSONFormatter
from core.logging_utils import AppLogger
from core.middleware import (
    LoggingMiddleware,
    UserIdFilter,
    _request_data,
    bind_user,
    get_client_ip,
    get_request_context,
)
from core.rate_limit import (
    RateLimitScenario,
    increment_rate_limit,
    is_rate_limited,
    reset_rate_limit,
)


class AppLoggerTests(SimpleTestCase):
    def setUp(self):
        self.logger = AppLogger('core.tests')
        self.user = SimpleNamespace(email='user@example.com', pk=3)

    def test_info_logs_formatted_message_with_user_and_extra(self):
        extra = {'ip': '127.0.0.1', 'action': 'view'}
        with self.assertLogs('core.tests', level='INFO') as captured:
            self.logger.info('Test message', user=self.user, extra_data=extra)
        self.assertEqual(len(captured.output), 1)
        logged_message = captured.output[0]
        self.assertIn('[User: user@example.com] Test message', logged_message)
        self.assertIn('ip: 127.0.0.1', logged_message)
        self.assertEqual(captured.records[0].context['user_pk'], 3)

    def test_security_event_uses_security_logger(self):
        with self.assertLogs('django.security', level='WARNING') as captured:
            self.logger.security_event('Suspicious activity', user=self.user)
        self.assertIn('SECURITY EVENT: Suspicious activity', captured.output[0])

    def test_critical_logs_to_alerts_logger(self):
        with self.assertLogs('alerts', level='ERROR') as alerts_log, self.assertLogs(
            'core.tests', level='CRITICAL'
        ) as core_log:
            self.logger.critical('Critical failure detected')
        self.assertTrue(any('CRITICAL: Critical failure detected' in entry for entry in alerts_log.output))
        self.assertTrue(any('Critical failure detected' in entry for entry in core_log.output))

    def test_encryption_event_logs_success_and_failure(self):
        with self.assertLogs('core.tests', level='INFO') as success_log:
            self.logger.encryption_event('open record', success=True)
        self.assertTrue(any('ENCRYPTION SUCCESS: open record' in entry for entry in success_log.output))

        with self.assertLogs('core.tests', level='ERROR') as failure_log:
            self.logger.encryption_event('open record', success=False)
        self.assertTrue(any('ENCRYPTION FAILURE: open record' in entry for entry in failure_log.output))

    def test_sync_event_levels(self):
        with self.assertLogs('core.tests', level='INFO') as captured:
            self.logger.sync_event('favorites', 'sync')
            self.logger.sync_event('favorites', 'add', success=False, extra_data={'error': 'offline'})
        self.assertEqual([record.levelno for record in captured.records], [logging.INFO, logging.WARNING])
        self.assertEqual(captured.records[1].context, {'store': 'favorites', 'error': 'offline'})

    def test_user_activity_includes_email_and_action(self):
        with self.assertLogs('core.tests', level='INFO') as captured:
            self.logger.user_activity('signin', self.user, details='from the CLI')
        self.assertIn('User user@example.com performed action: signin - from the CLI', captured.output[0])


class StructuredJSONFormatterTests(SimpleTestCase):
    def test_merges_request_attributes_and_context(self):
        record = logging.LogRecord('vault', logging.INFO, __file__, 10, 'stored', (), None)
        record.user_id = '7'
        record.request_id = 'req-1'
        record.context = {'entry_id': 'abc', 'user_id': '8'}
        payload = json.loads(StructuredJSONFormatter().format(record))
        self.assertEqual(payload['logger'], 'vault')
        self.assertEqual(payload['message'], 'stored')
        self.assertEqual(payload['user_id'], '7')
        self.assertEqual(payload['context_user_id'], '8')
        self.assertEqual(payload['entry_id'], 'abc')
        self.assertNotIn('path', payload)


class MiddlewareTests(SimpleTestCase):
    def test_get_client_ip_uses_remote_addr(self):
        request = SimpleNamespace(META={'REMOTE_ADDR': '198.51.100.5'})
        self.assertEqual(get_client_ip(request), '198.51.100.5')

    def test_forwarded_header_ignored_without_trusted_proxy(self):
        request = SimpleNamespace(META={'HTTP_X_FORWARDED_FOR': '203.0.113.10', 'REMOTE_ADDR': '198.51.100.5'})
        self.assertEqual(get_client_ip(request), '198.51.100.5')

    @override_settings(TRUSTED_PROXY_IPS=['10.0.0.0/8'])
    def test_forwarded_header_used_behind_trusted_proxy(self):
        request = SimpleNamespace(
            META={'HTTP_X_FORWARDED_FOR': 'unknown, 203.0.113.1, 10.0.0.2', 'REMOTE_ADDR': '10.0.0.1'}
        )
        self.assertEqual(get_client_ip(request), '203.0.113.1')

    def test_get_client_ip_unknown(self):
        self.assertEqual(get_client_ip(SimpleNamespace(META={})), 'unknown')

    def test_user_filter_reads_bound_user(self):
        bind_user(SimpleNamespace(pk=42, email='dev@example.com'))
        try:
            record = logging.LogRecord('test', logging.INFO, __file__, 10, 'msg', (), None)
            UserIdFilter().filter(record)
            self.assertEqual(record.user_id, '42')
            self.assertEqual(record.user_email, 'dev@example.com')
            self.assertEqual(record.ip, 'unknown')
        finally:
            for attribute in ('user_id', 'user_email'):
                delattr(_request_data, attribute)

    def test_logging_middleware_populates_and_cleans_context(self):
        request = RequestFactory().get('/api/tools/', HTTP_X_REQUEST_ID='req-42', REMOTE_ADDR='198.51.100.7')
        request.user = SimpleNamespace(is_authenticated=True, pk=7, email='dev@example.com')
        captured_state = {}

        def get_response(request):
            captured_state['context'] = get_request_context().copy()
            return HttpResponse('ok')

        response = LoggingMiddleware(get_response)(request)

        self.assertEqual(response['X-Request-ID'], 'req-42')
        self.assertEqual(captured_state['context']['user_id'], '7')
        self.assertEqual(captured_state['context']['ip_address'], '198.51.100.7')
        self.assertEqual(captured_state['context']['method'], 'GET')
        self.assertEqual(captured_state['context']['path'], '/api/tools/')
        self.assertEqual(get_request_context(), {})

    def test_middleware_generates_request_id(self):
        response = LoggingMiddleware(lambda request: HttpResponse())(RequestFactory().get('/'))
        self.assertEqual(len(response['X-Request-ID']), 32)


class RateLimitTests(SimpleTestCase):
    def setUp(self):
        cache.clear()
        self.addCleanup(cache.clear)

    def test_blocks_after_limit(self):
        for _ in range(3):
            self.assertTrue(increment_rate_limit(RateLimitScenario.LOGIN_IP, '1.2.3.4', limit=3, window=60).allowed)
        result = increment_rate_limit(RateLimitScenario.LOGIN_IP, '1.2.3.4', limit=3, window=60, block=300)
        self.assertFalse(result.allowed)
        self.assertEqual(result.retry_after, 300)
        self.assertFalse(is_rate_limited(RateLimitScenario.LOGIN_IP, '1.2.3.4').allowed)
        self.assertTrue(is_rate_limited(RateLimitScenario.LOGIN_EMAIL, '1.2.3.4').allowed)

    def test_identifiers_are_case_insensitive(self):
        for _ in range(2):
            increment_rate_limit(RateLimitScenario.LOGIN_EMAIL, 'Dev@Example.com', limit=1, window=60)
        self.assertFalse(is_rate_limited(RateLimitScenario.LOGIN_EMAIL, 'dev@example.com').allowed)

    def test_reset_clears_block(self):
        for _ in range(2):
            increment_rate_limit(RateLimitScenario.SIGNUP_IP, '1.2.3.4', limit=1, window=60)
        reset_rate_limit(RateLimitScenario.SIGNUP_IP, '1.2.3.4')
        self.assertTrue(is_rate_limited(RateLimitScenario.SIGNUP_IP, '1.2.3.4').allowed)

    def test_unknown_identifier_is_never_limited(self):
        for _ in range(5):
            self.assertTrue(increment_rate_limit(RateLimitScenario.CONVERSION_IP, 'unknown', limit=1, window=60).allowed)


class HttpHelperTests(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def test_json_envelopes(self):
        self.assertEqual(json.loads(json_ok(items=[]).content), {'success': True, 'items': []})
        response = json_error('Nope', status=404, field='id')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(json.loads(response.content), {'success': False, 'error': 'Nope', 'field': 'id'})

    def test_read_json_body(self):
        request = self.factory.post('/', data='{"a": 1}', content_type='application/json')
        self.assertEqual(read_json_body(request), {'a': 1})
        self.assertEqual(read_json_body(self.factory.post('/', data='', content_type='application/json')), {})
        for body in ('[1]', '{broken', '[' * 100000 + ']' * 100000):
            with self.subTest(body=body):
                with self.assertRaises(ValueError):
                    read_json_body(self.factory.post('/', data=body, content_type='application/json'))

    def test_parse_client_datetime(self):
        self.assertIsNone(parse_client_datetime('', 'timestamp'))
        parsed = parse_client_datetime('2024-01-01T08:00:00', 'timestamp')
        self.assertEqual(parsed.isoformat(), '2024-01-01T08:00:00+00:00')
        self.assertEqual(parse_client_datetime('2024-01-01T08:00:00+08:00', 'timestamp').utcoffset().total_seconds(),
                         8 * 3600)
        with self.assertRaises(ValueError):
            parse_client_datetime('tomorrow', 'timestamp')
        with self.assertRaises(ValueError):
            parse_client_datetime(12, 'timestamp')


class CoreViewTests(TestCase):
    def test_health(self):
        response = self.client.get('/health/')
        self.assertEqual(response.json(), {'status': 'ok'})
        self.assertIn('X-Request-ID', response)

    def test_home_reports_catalog(self):
        with patch.object(core_views, 'logger') as mock_logger:
            response = self.client.get('/home/')
        mock_logger.info.assert_called_once()
        mock_logger.user_activity.assert_not_called()
        self.assertEqual(response.json()['name'], 'DevToolHub')
        self.assertFalse(response.json()['authenticated'])
        self.assertEqual(response.json()['tool_count'], len(core_views.TOOLS))

    def test_root_redirects_to_home(self):
        response = self.client.get('/')
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, '/home/')
