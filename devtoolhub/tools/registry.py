"""Maps ``(tool slug, action)`` to the function that runs it.

Each handler receives the decoded request payload and returns a JSON
serializable dict. Bad input surfaces as ``ToolInputError``.
"""

from typing import Any, Callable, Dict, Tuple

from tools import cron_tools, encoding, generators, json_tools, jwt_tools, regex_tester, timestamps, url_tools
from tools.exceptions import ToolInputError

Handler = Callable[[Dict[str, Any]], Dict[str, Any]]


def _text(payload: Dict[str, Any], key: str, default: str = '') -> str:
    value = payload.get(key, default)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ToolInputError(f'{key} must be a string', field=key)
    return value


def _flag(payload: Dict[str, Any], key: str, default: bool) -> bool:
    value = payload.get(key, default)
    if not isinstance(value, bool):
        raise ToolInputError(f'{key} must be true or false', field=key)
    return value


def _json_format(payload):
    return {'output': json_tools.format_json(
        _text(payload, 'input'), payload.get('indent', 2), _flag(payload, 'sort_keys', False))}


def _json_minify(payload):
    return {'output': json_tools.minify_json(_text(payload, 'input'))}


def _json_validate(payload):
    return json_tools.validate_json(_text(payload, 'input'))


def _password(payload):
    return {'password': generators.generate_password(
        payload.get('length', 16),
        uppercase=_flag(payload, 'uppercase', True),
        lowercase=_flag(payload, 'lowercase', True),
        numbers=_flag(payload, 'numbers', True),
        symbols=_flag(payload, 'symbols', True),
    )}


def _timestamp_to_date(payload):
    return timestamps.timestamp_to_date(
        payload.get('timestamp', ''), _text(payload, 'unit', 'seconds'), _text(payload, 'timezone', 'UTC'))


def _date_to_timestamp(payload):
    return timestamps.date_to_timestamp(_text(payload, 'date'), _text(payload, 'timezone', 'UTC'))


def _regex_test(payload):
    matches = regex_tester.find_matches(
        _text(payload, 'pattern'), _text(payload, 'text'), _text(payload, 'flags', 'g'))
    return {'matches': matches, 'count': len(matches)}


def _regex_templates(payload):
    return {'templates': regex_tester.REGEX_TEMPLATES}


def _mock_data(payload):
    return {'data': generators.generate_mock_data(_text(payload, 'kind', 'user'), payload.get('count', 5))}


def _uuids(payload):
    return {'uuids': generators.generate_uuids(payload.get('count', 1))}


def _jwt_decode(payload):
    return jwt_tools.decode_jwt(_text(payload, 'token'))


def _jwt_verify(payload):
    return {'valid': jwt_tools.verify_hs256(_text(payload, 'token'), _text(payload, 'secret'))}


def _base64(payload):
    if _text(payload, 'direction', 'encode') == 'decode':
        return {'output': encoding.base64_decode(_text(payload, 'input'))}
    return {'output': encoding.base64_encode(_text(payload, 'input'))}


def _url_encoding(payload):
    if _text(payload, 'direction', 'encode') == 'decode':
        return {'output': encoding.url_decode(_text(payload, 'input'))}
    return {'output': encoding.url_encode(_text(payload, 'input'))}


def _hash(payload):
    return {'output': encoding.hash_text(_text(payload, 'input'), _text(payload, 'algorithm', 'MD5'))}


def _symmetric(payload):
    args = (_text(payload, 'input'), _text(payload, 'key'), _text(payload, 'iv') or None,
            _text(payload, 'cipher', 'AES').upper())
    if _text(payload, 'direction', 'encrypt') == 'decrypt':
        return {'output': encoding.symmetric_decrypt(*args)}
    return {'output': encoding.symmetric_encrypt(*args)}


def _rsa_keys(payload):
    return encoding.generate_rsa_key_pair(payload.get('key_size', 2048))


def _rsa(payload):
    if _text(payload, 'direction', 'encrypt') == 'decrypt':
        return {'output': encoding.rsa_decrypt(_text(payload, 'input'), _text(payload, 'private_key'))}
    return {'output': encoding.rsa_encrypt(_text(payload, 'input'), _text(payload, 'public_key'))}


def _cron_next_runs(payload):
    expression = _text(payload, 'expression', '* * * * *')
    return {
        'expression': expression,
        'description': cron_tools.describe(expression),
        'fields': cron_tools.split_expression(expression),
        'runs': cron_tools.next_runs(expression, _text(payload, 'timezone', 'UTC'), payload.get('count', 5)),
    }


def _cron_build(payload):
    fields = payload.get('fields') or {}
    if not isinstance(fields, dict):
        raise ToolInputError('fields must be an object', field='fields')
    return {'expression': cron_tools.build_expression(fields)}


def _cron_templates(payload):
    return {'templates': cron_tools.CRON_TEMPLATES}


def _url_parse(payload):
    return url_tools.parse_url(_text(payload, 'url'))


def _url_build(payload):
    params = payload.get('params') or []
    if not isinstance(params, list) or not all(isinstance(row, dict) for row in params):
        raise ToolInputError('params must be a list of objects', field='params')
    return {'url': url_tools.build_url(_text(payload, 'base'), params, _text(payload, 'fragment'))}


HANDLERS: Dict[Tuple[str, str], Handler] = {
    ('json-formatter', 'format'): _json_format,
    ('json-formatter', 'minify'): _json_minify,
    ('json-formatter', 'validate'): _json_validate,
    ('password-generator', 'generate'): _password,
    ('timestamp-converter', 'to-date'): _timestamp_to_date,
    ('timestamp-converter', 'to-timestamp'): _date_to_timestamp,
    ('regex-tester', 'test'): _regex_test,
    ('regex-tester', 'templates'): _regex_templates,
    ('mock-data-generator', 'generate'): _mock_data,
    ('uuid-generator', 'generate'): _uuids,
    ('jwt-decoder', 'decode'): _jwt_decode,
    ('jwt-decoder', 'verify'): _jwt_verify,
    ('encryption-tool', 'base64'): _base64,
    ('encryption-tool', 'url'): _url_encoding,
    ('encryption-tool', 'hash'): _hash,
    ('encryption-tool', 'symmetric'): _symmetric,
    ('encryption-tool', 'rsa-keys'): _rsa_keys,
    ('encryption-tool', 'rsa'): _rsa,
    ('cron-generator', 'next-runs'): _cron_next_runs,
    ('cron-generator', 'build'): _cron_build,
    ('cron-generator', 'templates'): _cron_templates,
    ('url-parser', 'parse'): _url_parse,
    ('url-parser', 'build'): _url_build,
}


def actions_for(slug: str):
    return sorted(action for tool_slug, action in HANDLERS if tool_slug == slug)


def run_tool(slug: str, action: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    handler = HANDLERS.get((slug, action))
    if handler is None:
        raise LookupError(f"Unknown tool action '{slug}/{action}'")
    return handler(payload)
