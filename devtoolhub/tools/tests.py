import json
import string
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import jwt
from django.core.cache import cache
from django.test import SimpleTestCase
from django.urls import reverse

from tools import catalog, cron_tools, encoding, generators, json_tools, jwt_tools, regex_tester, timestamps, url_tools
from tools.exceptions import ToolInputError
from tools.registry import HANDLERS, actions_for, run_tool
from tools.validators import validate_email, validate_password_strength, validate_url

SECRET = 'a-very-long-shared-secret-for-hs256-tests'
OTHER_SECRET = 'another-long-shared-secret-for-hs256-tests'


class CatalogTests(SimpleTestCase):
    def test_catalog_has_ten_unique_tools(self):
        slugs = [tool.slug for tool in catalog.TOOLS]
        self.assertEqual(len(slugs), 10)
        self.assertEqual(len(set(slugs)), 10)

    def test_lookup_by_slug(self):
        self.assertEqual(catalog.get_tool_by_slug('jwt-decoder').name, 'JWT Decoder')
        self.assertIsNone(catalog.get_tool_by_slug('missing'))
        self.assertTrue(catalog.is_known_slug('url-parser'))

    def test_search_is_case_insensitive(self):
        results = catalog.search_tools('JSON')
        self.assertEqual([tool.slug for tool in results], ['json-formatter'])

    def test_blank_search_returns_everything(self):
        self.assertEqual(len(catalog.search_tools('  ')), len(catalog.TOOLS))

    def test_categories_keep_catalog_order(self):
        self.assertEqual(catalog.categories()[0], 'Formatting')
        self.assertIn('Network', catalog.categories())

    def test_every_tool_has_an_action(self):
        for tool in catalog.TOOLS:
            self.assertTrue(actions_for(tool.slug), tool.slug)


class JsonToolsTests(SimpleTestCase):
    def test_format_with_two_spaces(self):
        output = json_tools.format_json('{"a":1,"b":[2,3]}', 2)
        self.assertEqual(output, '{\n  "a": 1,\n  "b": [\n    2,\n    3\n  ]\n}')

    def test_minify_then_format_preserves_value(self):
        source = '{ "name": "中文", "nested": {"x": [1, 2, {"y": null}]} }'
        minified = json_tools.minify_json(source)
        self.assertNotIn(' ', minified.replace('"中文"', ''))
        self.assertEqual(json.loads(json_tools.format_json(minified, 4)), json.loads(source))

    def test_non_ascii_is_kept(self):
        self.assertIn('中文', json_tools.minify_json('{"k": "中文"}'))

    def test_sort_keys(self):
        self.assertEqual(json_tools.format_json('{"b":1,"a":2}', 0, sort_keys=True), '{"a":2,"b":1}')

    def test_invalid_json_is_reported(self):
        result = json_tools.validate_json('{"a": }')
        self.assertFalse(result['valid'])
        self.assertIn('Invalid JSON', result['error'])

    def test_empty_input_is_rejected(self):
        with self.assertRaises(ToolInputError):
            json_tools.format_json('   ')

    def test_nan_is_rejected(self):
        self.assertFalse(json_tools.validate_json('{"a": NaN}')['valid'])

    def test_deep_nesting_is_rejected(self):
        deep = '[' * 100000 + ']' * 100000
        with self.assertRaises(ToolInputError) as ctx:
            json_tools.format_json(deep)
        self.assertEqual(str(ctx.exception), 'Invalid JSON: nesting is too deep')
        self.assertFalse(json_tools.validate_json(deep)['valid'])

    def test_out_of_range_numbers_are_rejected(self):
        for source in ('[1e400]', '{"a": -1E+999}'):
            with self.subTest(source=source):
                with self.assertRaises(ToolInputError) as ctx:
                    json_tools.minify_json(source)
                self.assertEqual(ctx.exception.field, 'input')

    def test_large_exponents_round_trip(self):
        source = '[1e308, -1.5e-300, 2.5E+10, 123456789012345678901234567890]'
        formatted = json_tools.format_json(source)
        minified = json_tools.minify_json(formatted)
        self.assertTrue(json_tools.validate_json(minified)['valid'])
        self.assertEqual(json.loads(minified), json.loads(source))

    def test_indent_out_of_range(self):
        with self.assertRaises(ToolInputError) as ctx:
            json_tools.format_json('{}', 9)
        self.assertEqual(ctx.exception.field, 'indent')


class GeneratorTests(SimpleTestCase):
    def test_password_length_and_charset(self):
        charset = generators.build_charset()
        for length in (4, 5, 16, 32, 63, 64):
            password = generators.generate_password(length)
            self.assertEqual(len(password), length)
            self.assertTrue(set(password) <= set(charset))

    def test_password_respects_selected_classes(self):
        password = generators.generate_password(40, uppercase=False, lowercase=False, symbols=False)
        self.assertTrue(set(password) <= set(string.digits))

    def test_password_length_bounds(self):
        for length in (3, 65, '16'):
            with self.assertRaises(ToolInputError):
                generators.generate_password(length)

    def test_password_needs_a_charset(self):
        with self.assertRaises(ToolInputError):
            generators.generate_password(16, False, False, False, False)

    def test_uuids(self):
        values = generators.generate_uuids(5)
        self.assertEqual(len(set(values)), 5)
        self.assertTrue(all(len(value) == 36 for value in values))
        with self.assertRaises(ToolInputError):
            generators.generate_uuids(0)

    def test_mock_data_kinds(self):
        users = generators.generate_mock_data('user', 3, seed=1)
        self.assertEqual(len(users), 3)
        self.assertTrue(users[0]['email'].endswith('@example.com'))
        products = generators.generate_mock_data('product', 2, seed=1)
        self.assertIn(products[0]['category'], ['Electronics', 'Clothing', 'Food', 'Books'])
        posts = generators.generate_mock_data('post', 1, seed=1)
        self.assertIn('publishedAt', posts[0])

    def test_mock_data_seed_is_reproducible(self):
        first = generators.generate_mock_data('product', 4, seed=42)
        second = generators.generate_mock_data('product', 4, seed=42)
        self.assertEqual(first, second)

    def test_unknown_mock_kind(self):
        with self.assertRaises(ToolInputError):
            generators.generate_mock_data('order')


class RegexTesterTests(SimpleTestCase):
    def test_lists_every_match(self):
        matches = regex_tester.find_matches(r'\d+', 'a1b22c333', '')
        self.assertEqual([m['text'] for m in matches], ['1', '22', '333'])
        self.assertEqual([m['index'] for m in matches], [1, 3, 6])

    def test_ignore_case_flag(self):
        self.assertEqual(len(regex_tester.find_matches('abc', 'ABC abc', 'gi')), 2)
        self.assertEqual(len(regex_tester.find_matches('abc', 'ABC abc', 'g')), 1)

    def test_groups_and_named_groups(self):
        matches = regex_tester.find_matches(r'(?<year>\d{4})-(\d{2})', 'on 2024-05', 'g')
        self.assertEqual(matches[0]['groups'], ['2024', '05'])

    def test_lookbehind_is_untouched(self):
        matches = regex_tester.find_matches(r'(?<=\$)\d+', 'cost $15', 'g')
        self.assertEqual(matches[0]['text'], '15')

    def test_sticky_flag_stops_at_first_gap(self):
        matches = regex_tester.find_matches('a', 'aaba', 'y')
        self.assertEqual(len(matches), 2)

    def test_invalid_pattern(self):
        with self.assertRaises(ToolInputError):
            regex_tester.find_matches('(', 'text')

    def test_invalid_pattern_with_empty_text(self):
        with self.assertRaises(ToolInputError):
            regex_tester.find_matches('[', '')

    def test_empty_pattern_matches_nothing(self):
        self.assertEqual(regex_tester.find_matches('', 'abc'), [])

    def test_whitespace_pattern_is_evaluated(self):
        matches = regex_tester.find_matches(' ', 'a b c')
        self.assertEqual([m['index'] for m in matches], [1, 3])

    def test_slow_pattern_is_rejected(self):
        compiled = MagicMock()
        compiled.finditer.side_effect = TimeoutError('regex timed out')
        with patch.object(regex_tester, 'compile_pattern', return_value=compiled):
            with self.assertRaises(ToolInputError) as ctx:
                regex_tester.find_matches('(a+)+$', 'a' * 40 + 'b')
        self.assertEqual(ctx.exception.field, 'pattern')
        compiled.finditer.assert_called_once_with('a' * 40 + 'b', timeout=regex_tester.MATCH_TIMEOUT)

    def test_slow_sticky_pattern_is_rejected(self):
        compiled = MagicMock()
        compiled.match.side_effect = TimeoutError('regex timed out')
        with patch.object(regex_tester, 'compile_pattern', return_value=compiled):
            with self.assertRaises(ToolInputError):
                regex_tester.find_matches('(a+)+$', 'aaab', 'y')

    def test_clean_flags(self):
        self.assertEqual(regex_tester.clean_flags('gixgi'), 'gi')

    def test_templates_match_their_samples(self):
        for template in regex_tester.REGEX_TEMPLATES:
            matches = regex_tester.find_matches(template['pattern'], template['sample'], template['flags'])
            self.assertTrue(matches, template['name'])


class JwtToolsTests(SimpleTestCase):
    def setUp(self):
        self.token = jwt.encode({'sub': '42', 'exp': 1}, SECRET, algorithm='HS256')

    def test_decode_without_verification(self):
        decoded = jwt_tools.decode_jwt(self.token)
        self.assertEqual(decoded['header']['alg'], 'HS256')
        self.assertEqual(decoded['payload']['sub'], '42')
        self.assertTrue(decoded['expired'])
        self.assertTrue(decoded['expires_at'].startswith('1970-01-01'))

    def test_verify_ignores_expiry(self):
        self.assertTrue(jwt_tools.verify_hs256(self.token, SECRET))

    def test_verify_with_wrong_secret(self):
        self.assertFalse(jwt_tools.verify_hs256(self.token, OTHER_SECRET))

    def test_malformed_token(self):
        with self.assertRaises(ToolInputError):
            jwt_tools.decode_jwt('not-a-token')

    def test_secret_is_required(self):
        with self.assertRaises(ToolInputError):
            jwt_tools.verify_hs256(self.token, '')


class CronToolsTests(SimpleTestCase):
    start = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)  # a Monday

    def test_monday_schedule(self):
        runs = cron_tools.next_runs('0 10 * * 1', 'UTC', 3, start=self.start)
        self.assertEqual([run['display'] for run in runs], [
            '2024-01-01 10:00:00',
            '2024-01-08 10:00:00',
            '2024-01-15 10:00:00',
        ])

    def test_sunday_is_zero_and_seven(self):
        for field in ('0', '7'):
            runs = cron_tools.next_runs(f'0 0 * * {field}', 'UTC', 1, start=self.start)
            self.assertEqual(runs[0]['display'], '2024-01-07 00:00:00')

    def test_every_minute(self):
        runs = cron_tools.next_runs('* * * * *', 'UTC', 2, start=self.start)
        self.assertEqual(runs[1]['display'], '2024-01-01 00:01:00')

    def test_runs_are_rendered_in_the_timezone(self):
        runs = cron_tools.next_runs('30 9 * * *', 'Asia/Shanghai', 1, start=self.start)
        self.assertTrue(runs[0]['iso'].endswith('+08:00'))
        self.assertEqual(runs[0]['display'], '2024-01-01 09:30:00')

    def test_wrong_field_count(self):
        with self.assertRaises(ToolInputError):
            cron_tools.next_runs('* * * *')

    def test_invalid_field(self):
        with self.assertRaises(ToolInputError):
            cron_tools.next_runs('99 * * * *')

    def test_count_bounds(self):
        with self.assertRaises(ToolInputError):
            cron_tools.next_runs('* * * * *', count=0)

    def test_build_and_describe(self):
        expression = cron_tools.build_expression({'minute': '0', 'hour': '10', 'day_of_week': '1'})
        self.assertEqual(expression, '0 10 * * 1')
        self.assertEqual(cron_tools.describe(expression), 'Runs every Monday at 10:00')


class TimestampTests(SimpleTestCase):
    def test_epoch_zero(self):
        result = timestamps.timestamp_to_date(0)
        self.assertEqual(result['human'], '1970-01-01 00:00:00')
        self.assertEqual(result['iso'], '1970-01-01T00:00:00.000Z')

    def test_milliseconds(self):
        result = timestamps.timestamp_to_date('1700000000000', 'milliseconds')
        self.assertEqual(result['seconds'], '1700000000')

    def test_naive_date_uses_timezone(self):
        result = timestamps.date_to_timestamp('2024-01-01T00:00:00', 'Asia/Shanghai')
        self.assertEqual(result['seconds'], '1704038400')

    def test_zulu_suffix(self):
        self.assertEqual(timestamps.date_to_timestamp('2024-01-01T00:00:00Z')['seconds'], '1704067200')

    def test_empty_date_means_now(self):
        self.assertTrue(timestamps.date_to_timestamp('')['seconds'].isdigit())

    def test_bad_input(self):
        with self.assertRaises(ToolInputError):
            timestamps.timestamp_to_date('soon')
        with self.assertRaises(ToolInputError):
            timestamps.date_to_timestamp('yesterday')
        with self.assertRaises(ToolInputError):
            timestamps.timestamp_to_date(0, timezone='Mars/Olympus')


class UrlToolsTests(SimpleTestCase):
    def test_parse(self):
        parsed = url_tools.parse_url(
            'https://example.com/search?q=hello%20world&redirect=%2Flogin%3Fnext%3D1#top')
        self.assertEqual(parsed['base'], 'https://example.com/search')
        self.assertEqual(parsed['params'][0], {'key': 'q', 'value': 'hello world', 'enabled': True})
        self.assertEqual(parsed['params'][1]['nested'], [{'key': 'next', 'value': '1', 'enabled': True}])
        self.assertEqual(parsed['fragment'], 'top')

    def test_build_skips_disabled_rows(self):
        url = url_tools.build_url('https://a.com/', [
            {'key': 'q', 'value': 'a b', 'enabled': True},
            {'key': 'x', 'value': '1', 'enabled': False},
        ], 'f')
        self.assertEqual(url, 'https://a.com/?q=a%20b#f')

    def test_build_with_nested_params(self):
        url = url_tools.build_url('https://a.com/', [{
            'key': 'redirect', 'value': '/login?next=1', 'enabled': True,
            'nested': [{'key': 'next', 'value': '2', 'enabled': True}],
        }])
        self.assertEqual(url, 'https://a.com/?redirect=%2Flogin%3Fnext%3D2')

    def test_missing_host(self):
        with self.assertRaises(ToolInputError):
            url_tools.parse_url('https://')


class EncodingTests(SimpleTestCase):
    def test_base64(self):
        self.assertEqual(encoding.base64_encode('hello'), 'aGVsbG8=')
        self.assertEqual(encoding.base64_decode('aGVsbG8'), 'hello')
        with self.assertRaises(ToolInputError):
            encoding.base64_decode('***')

    def test_url_encoding(self):
        self.assertEqual(encoding.url_encode('a b&c'), 'a%20b%26c')
        self.assertEqual(encoding.url_decode('a%20b%26c'), 'a b&c')

    def test_hashes(self):
        self.assertEqual(encoding.hash_text('', 'MD5'), 'd41d8cd98f00b204e9800998ecf8427e')
        self.assertEqual(
            encoding.hash_text('abc', 'sha256'),
            'ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad',
        )
        with self.assertRaises(ToolInputError):
            encoding.hash_text('abc', 'CRC32')

    def test_aes_with_embedded_iv(self):
        key = '0123456789abcdef'
        first = encoding.symmetric_encrypt('secret text', key)
        second = encoding.symmetric_encrypt('secret text', key)
        self.assertNotEqual(first, second)
        self.assertEqual(encoding.symmetric_decrypt(first, key), 'secret text')

    def test_aes_with_explicit_iv(self):
        key, iv = '0123456789abcdef' * 2, 'fedcba9876543210'
        first = encoding.symmetric_encrypt('secret text', key, iv)
        self.assertEqual(first, encoding.symmetric_encrypt('secret text', key, iv))
        self.assertEqual(encoding.symmetric_decrypt(first, key, iv), 'secret text')

    def test_des(self):
        cipher_text = encoding.symmetric_encrypt('legacy', '8bytekey', cipher='DES')
        self.assertEqual(encoding.symmetric_decrypt(cipher_text, '8bytekey', cipher='DES'), 'legacy')

    def test_bad_key_length(self):
        with self.assertRaises(ToolInputError) as ctx:
            encoding.symmetric_encrypt('x', 'short')
        self.assertEqual(ctx.exception.field, 'key')

    def test_rsa_round_trip(self):
        keys = encoding.generate_rsa_key_pair(1024)
        self.assertIn('BEGIN PUBLIC KEY', keys['public_key'])
        cipher_text = encoding.rsa_encrypt('hi there', keys['public_key'])
        self.assertEqual(encoding.rsa_decrypt(cipher_text, keys['private_key']), 'hi there')

    def test_rsa_rejects_bad_input(self):
        with self.assertRaises(ToolInputError):
            encoding.generate_rsa_key_pair(512)
        with self.assertRaises(ToolInputError):
            encoding.rsa_encrypt('hi', 'not a key')


class ValidatorTests(SimpleTestCase):
    def test_email_and_url(self):
        self.assertTrue(validate_email('dev@example.com'))
        self.assertFalse(validate_email('dev@example'))
        self.assertTrue(validate_url('https://example.com'))
        self.assertFalse(validate_url('example'))

    def test_password_strength(self):
        self.assertEqual(validate_password_strength('Abcdef1!')['score'], 5)
        weak = validate_password_strength('abc')
        self.assertEqual(weak['score'], 1)
        self.assertIn('Use at least 8 characters', weak['feedback'])


class RegistryTests(SimpleTestCase):
    def test_every_handler_targets_a_catalog_tool(self):
        for slug, _ in HANDLERS:
            self.assertTrue(catalog.is_known_slug(slug), slug)

    def test_unknown_action(self):
        with self.assertRaises(LookupError):
            run_tool('json-formatter', 'explode', {})

    def test_payload_types_are_checked(self):
        with self.assertRaises(ToolInputError):
            run_tool('json-formatter', 'minify', {'input': 12})


class ToolViewTests(SimpleTestCase):
    def setUp(self):
        cache.clear()
        self.addCleanup(cache.clear)

    def test_list(self):
        response = self.client.get(reverse('tool_list'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()['tools']), 10)

    def test_list_filters(self):
        response = self.client.get(reverse('tool_list'), {'category': 'Security'})
        slugs = {tool['slug'] for tool in response.json()['tools']}
        self.assertEqual(slugs, {'password-generator', 'jwt-decoder', 'encryption-tool'})

    def test_detail_lists_actions(self):
        response = self.client.get(reverse('tool_detail', args=['json-formatter']))
        self.assertEqual(response.json()['actions'], ['format', 'minify', 'validate'])

    def test_unknown_tool(self):
        self.assertEqual(self.client.get(reverse('tool_detail', args=['nope'])).status_code, 404)

    def test_run_action(self):
        response = self.client.post(
            reverse('tool_run', args=['json-formatter', 'minify']),
            data=json.dumps({'input': '{ "a": 1 }'}), content_type='application/json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'success': True, 'result': {'output': '{"a":1}'}})

    def test_run_action_reports_field(self):
        response = self.client.post(
            reverse('tool_run', args=['password-generator', 'generate']),
            data=json.dumps({'length': 2}), content_type='application/json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['field'], 'length')

    def test_run_action_deeply_nested_json(self):
        response = self.client.post(
            reverse('tool_run', args=['json-formatter', 'format']),
            data=json.dumps({'input': '[' * 100000 + ']' * 100000}), content_type='application/json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['field'], 'input')

    def test_run_action_bad_body(self):
        response = self.client.post(
            reverse('tool_run', args=['json-formatter', 'minify']),
            data='[1]', content_type='application/json',
        )
        self.assertEqual(response.status_code, 400)

    def test_run_unknown_action(self):
        response = self.client.post(reverse('tool_run', args=['json-formatter', 'explode']))
        self.assertEqual(response.status_code, 404)

    def test_get_is_not_allowed(self):
        self.assertEqual(self.client.get(reverse('tool_run', args=['json-formatter', 'minify'])).status_code, 405)

    @patch('tools.views.RUNS_PER_MINUTE', 3)
    def test_runs_are_rate_limited_per_ip(self):
        url = reverse('tool_run', args=['regex-tester', 'test'])
        body = json.dumps({'pattern': 'a', 'text': 'aaa'})
        for _ in range(3):
            self.assertEqual(self.client.post(url, data=body, content_type='application/json').status_code, 200)
        with self.assertLogs('django.security', level='WARNING'):
            response = self.client.post(url, data=body, content_type='application/json')
        self.assertEqual(response.status_code, 429)
        self.assertIn('Retry-After', response)
        self.assertEqual(self.client.get(reverse('tool_list')).status_code, 200)
