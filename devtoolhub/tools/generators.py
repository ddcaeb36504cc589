"""Random generators: passwords, UUIDs and mock records."""

import random
import secrets
import string
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from tools.exceptions import ToolInputError

MIN_PASSWORD_LENGTH = 4
MAX_PASSWORD_LENGTH = 64
MAX_UUIDS = 100
MAX_MOCK_RECORDS = 100

UPPERCASE = string.ascii_uppercase
LOWERCASE = string.ascii_lowercase
NUMBERS = string.digits
SYMBOLS = '!@#$%^&*()_+-=[]{}|;:,.<>?'


def _bounded_int(value: Any, low: int, high: int, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ToolInputError(f'{field} must be an integer', field=field)
    if not low <= value <= high:
        raise ToolInputError(f'{field} must be between {low} and {high}', field=field)
    return value


def build_charset(uppercase: bool = True, lowercase: bool = True,
                  numbers: bool = True, symbols: bool = True) -> str:
    charset = ''
    if uppercase:
        charset += UPPERCASE
    if lowercase:
        charset += LOWERCASE
    if numbers:
        charset += NUMBERS
    if symbols:
        charset += SYMBOLS
    if not charset:
        raise ToolInputError('Select at least one character type', field='charset')
    return charset


def generate_password(length: int = 16, uppercase: bool = True, lowercase: bool = True,
                      numbers: bool = True, symbols: bool = True) -> str:
    length = _bounded_int(length, MIN_PASSWORD_LENGTH, MAX_PASSWORD_LENGTH, 'length')
    charset = build_charset(uppercase, lowercase, numbers, symbols)
    return ''.join(secrets.choice(charset) for _ in range(length))


def generate_uuids(count: int = 1) -> List[str]:
    count = _bounded_int(count, 1, MAX_UUIDS, 'count')
    return [str(uuid.uuid4()) for _ in range(count)]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _mock_user(rng: random.Random) -> Dict[str, Any]:
    number = rng.randrange(1000)
    return {
        'id': rng.randrange(10000),
        'name': f'User{number}',
        'email': f'user{number}@example.com',
        'age': rng.randint(18, 67),
        'createdAt': _now_iso(),
    }


def _mock_product(rng: random.Random) -> Dict[str, Any]:
    return {
        'id': rng.randrange(10000),
        'name': f'Product{rng.randrange(1000)}',
        'price': f'{rng.uniform(0, 1000):.2f}',
        'category': rng.choice(['Electronics', 'Clothing', 'Food', 'Books']),
        'inStock': rng.random() > 0.5,
    }


def _mock_post(rng: random.Random) -> Dict[str, Any]:
    return {
        'id': rng.randrange(10000),
        'title': f'Post Title {rng.randrange(1000)}',
        'content': f'This is the content of post {rng.randrange(1000)}',
        'author': f'Author{rng.randrange(100)}',
        'views': rng.randrange(10000),
        'publishedAt': _now_iso(),
    }


MOCK_GENERATORS: Dict[str, Callable[[random.Random], Dict[str, Any]]] = {
    'user': _mock_user,
    'product': _mock_product,
    'post': _mock_post,
}


def generate_mock_data(kind: str = 'user', count: int = 5, seed=None) -> List[Dict[str, Any]]:
    generator = MOCK_GENERATORS.get(kind)
    if generator is None:
        raise ToolInputError(
            f"Unknown data type '{kind}', expected one of: {', '.join(MOCK_GENERATORS)}", field='kind'
        )
    count = _bounded_int(count, 1, MAX_MOCK_RECORDS, 'count')
    rng = random.Random(seed)
    return [generator(rng) for _ in range(count)]
