"""Regex tester with JavaScript style flags."""

import time
from typing import Any, Dict, List

import regex

from tools.exceptions import ToolInputError

FLAG_OPTIONS = 'gimsuy'

_FLAG_BITS = {
    'i': regex.IGNORECASE,
    'm': regex.MULTILINE,
    's': regex.DOTALL,
}

# Seconds a single match run may take before the pattern is rejected
MATCH_TIMEOUT = 1.0

REGEX_TEMPLATES = [
    {
        'name': 'Email',
        'pattern': r'^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$',
        'flags': 'i',
        'sample': 'dev@example.com',
    },
    {
        'name': 'Mobile number (CN)',
        'pattern': r'^1[3-9]\d{9}$',
        'flags': '',
        'sample': '13800138000',
    },
    {
        'name': 'URL',
        'pattern': r'https?:\/\/[^\s/$.?#].[^\s]*',
        'flags': 'i',
        'sample': 'Visit https://devtoolhub.com for more.',
    },
    {
        'name': 'IPv4',
        'pattern': r'^(25[0-5]|2[0-4]\d|[01]?\d\d?)(\.(25[0-5]|2[0-4]\d|[01]?\d\d?)){3}$',
        'flags': '',
        'sample': '192.168.1.1',
    },
]


def clean_flags(flags: str) -> str:
    """Drop unknown and repeated flags, keeping first-seen order."""
    cleaned = ''
    for flag in flags or '':
        if flag in FLAG_OPTIONS and flag not in cleaned:
            cleaned += flag
    return cleaned


def compile_pattern(pattern: str, flags: str = ''):
    """Compile with the ``regex`` engine, which reads ``(?<name>...)`` groups natively."""
    bits = 0
    for flag in clean_flags(flags):
        bits |= _FLAG_BITS.get(flag, 0)
    try:
        return regex.compile(pattern, bits)
    except regex.error as exc:
        raise ToolInputError(f'Invalid regular expression: {exc}', field='pattern') from exc


def _match_dict(match) -> Dict[str, Any]:
    return {'text': match.group(0), 'index': match.start(), 'groups': list(match.groups())}


def _sticky_matches(compiled, text: str) -> List[Dict[str, Any]]:
    deadline = time.monotonic() + MATCH_TIMEOUT
    matches = []
    position = 0
    while position <= len(text):
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError('regex match timed out')
        match = compiled.match(text, position, timeout=remaining)
        if match is None:
            break
        matches.append(_match_dict(match))
        position = match.end() if match.end() > position else position + 1
    return matches


def find_matches(pattern: str, text: str, flags: str = 'g') -> List[Dict[str, Any]]:
    if not pattern:
        return []
    compiled = compile_pattern(pattern, flags)
    if not text:
        return []

    try:
        if 'y' in clean_flags(flags):
            return _sticky_matches(compiled, text)
        return [_match_dict(match) for match in compiled.finditer(text, timeout=MATCH_TIMEOUT)]
    except TimeoutError as exc:
        raise ToolInputError('Pattern took too long to evaluate', field='pattern') from exc
