"""Small input validators shared by the tools and the API forms."""

import json
import re
from typing import Any, Dict
from urllib.parse import urlsplit

_EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


def validate_email(email: str) -> bool:
    return bool(email) and bool(_EMAIL_RE.match(email))


def validate_url(url: str) -> bool:
    try:
        parts = urlsplit(url or '')
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc or parts.path)


def validate_password_strength(password: str) -> Dict[str, Any]:
    """Score 0-5, one point per satisfied rule, with a hint for each missing one."""
    password = password or ''
    rules = (
        (len(password) >= 8, 'Use at least 8 characters'),
        (re.search(r'[a-z]', password), 'Add a lowercase letter'),
        (re.search(r'[A-Z]', password), 'Add an uppercase letter'),
        (re.search(r'[0-9]', password), 'Add a digit'),
        (re.search(r'[^a-zA-Z0-9]', password), 'Add a special character'),
    )
    feedback = [hint for passed, hint in rules if not passed]
    return {'score': len(rules) - len(feedback), 'feedback': feedback}


def validate_json_string(text: str) -> bool:
    try:
        json.loads(text)
    except (TypeError, ValueError):
        return False
    return True
