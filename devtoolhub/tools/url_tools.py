"""URL query editor: split a URL into editable parts and put it back together."""

from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import parse_qsl, quote, unquote, urlsplit

from tools.exceptions import ToolInputError

# characters encodeURIComponent leaves alone
_COMPONENT_SAFE = "-_.!~*'()"


def encode_component(value: str) -> str:
    return quote(value, safe=_COMPONENT_SAFE)


def parse_nested_params(value: str) -> Optional[List[Dict[str, Any]]]:
    """Detect a query string embedded in a parameter value, e.g. ``redirect=/a?b=1``."""
    decoded = unquote(value)
    if '?' not in decoded and not ('&' in decoded and '=' in decoded):
        return None
    query = decoded.split('?', 1)[1] if '?' in decoded else decoded
    if '=' not in query:
        return None
    nested = []
    for pair in query.split('&'):
        if not pair.strip():
            continue
        key, _, nested_value = pair.partition('=')
        if key.strip():
            nested.append({'key': unquote(key.strip()), 'value': unquote(nested_value), 'enabled': True})
    return nested or None


def parse_url(text: str) -> Dict[str, Any]:
    raw = (text or '').strip()
    if not raw:
        raise ToolInputError('Enter a URL to parse', field='url')
    try:
        parts = urlsplit(raw)
    except ValueError as exc:
        raise ToolInputError(f'Could not parse URL: {exc}', field='url') from exc

    absolute = raw.lower().startswith(('http://', 'https://'))
    if absolute and not parts.netloc:
        raise ToolInputError('Could not parse URL: missing host', field='url')
    base = f'{parts.scheme}://{parts.netloc}{parts.path or "/"}' if absolute else parts.path

    params = []
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        row: Dict[str, Any] = {'key': key, 'value': value, 'enabled': True}
        nested = parse_nested_params(value)
        if nested:
            row['nested'] = nested
        params.append(row)
    return {'base': base, 'params': params, 'fragment': parts.fragment}


def _nested_value(value: str, nested: Iterable[Dict[str, Any]]) -> Optional[str]:
    query = '&'.join(
        f"{encode_component(str(item['key']))}={encode_component(str(item.get('value', '')))}"
        for item in nested
        if item.get('enabled', True) and item.get('key')
    )
    if not query:
        return None
    decoded = unquote(value)
    path = decoded.split('?', 1)[0] if '?' in decoded else ''
    return f'{path}?{query}'


def build_url(base: str, params: Iterable[Dict[str, Any]], fragment: str = '') -> str:
    """Rebuild a URL; disabled rows and rows without a key are skipped."""
    query_parts = []
    for param in params:
        if not param.get('enabled', True) or not param.get('key'):
            continue
        value = str(param.get('value', ''))
        if param.get('nested'):
            value = _nested_value(value, param['nested']) or value
        query_parts.append(f"{encode_component(str(param['key']))}={encode_component(value)}")

    query = '&'.join(query_parts)
    hash_part = f'#{fragment}' if fragment else ''
    if not base and not query:
        return ''
    return f'{base}?{query}{hash_part}' if query else f'{base}{hash_part}'
