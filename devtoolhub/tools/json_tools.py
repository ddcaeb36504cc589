"""JSON formatter: pretty-print, minify and validate."""

import json
import math
from typing import Any, Dict

from tools.exceptions import ToolInputError

MAX_INDENT = 8


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _finite_float(literal: str) -> float:
    value = float(literal)
    if not math.isfinite(value):
        raise ValueError(f"number {literal} is out of range")
    return value


def _parse(text: str) -> Any:
    if not isinstance(text, str) or not text.strip():
        raise ToolInputError('Invalid JSON: input is empty', field='input')
    try:
        return json.loads(text, parse_constant=_reject_constant, parse_float=_finite_float)
    except RecursionError as exc:
        raise ToolInputError('Invalid JSON: nesting is too deep', field='input') from exc
    except ValueError as exc:
        raise ToolInputError(f'Invalid JSON: {exc}', field='input') from exc


def _dump(document: Any, **options) -> str:
    try:
        return json.dumps(document, ensure_ascii=False, allow_nan=False, **options)
    except RecursionError as exc:
        raise ToolInputError('Invalid JSON: nesting is too deep', field='input') from exc


def format_json(text: str, indent: int = 2, sort_keys: bool = False) -> str:
    """Re-serialize ``text`` with ``indent`` spaces; key order kept unless ``sort_keys``."""
    if isinstance(indent, bool) or not isinstance(indent, int) or not 0 <= indent <= MAX_INDENT:
        raise ToolInputError(f'Indent must be an integer between 0 and {MAX_INDENT}', field='indent')
    document = _parse(text)
    if indent == 0:
        return _dump(document, sort_keys=sort_keys, separators=(',', ':'))
    return _dump(document, sort_keys=sort_keys, indent=indent)


def minify_json(text: str) -> str:
    return _dump(_parse(text), separators=(',', ':'))


def validate_json(text: str) -> Dict[str, Any]:
    try:
        _parse(text)
    except ToolInputError as exc:
        return {'valid': False, 'error': str(exc)}
    return {'valid': True}
