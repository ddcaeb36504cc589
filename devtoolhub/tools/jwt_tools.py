"""JWT decoder and HS256 signature check, built on PyJWT."""

import time
from datetime import datetime, timezone
from typing import Any, Dict

import jwt

from tools.exceptions import ToolInputError

# Only the signature is checked, claims such as exp are not validated.
_SIGNATURE_ONLY = {
    'verify_signature': True,
    'verify_exp': False,
    'verify_nbf': False,
    'verify_iat': False,
    'verify_aud': False,
    'verify_iss': False,
}


def _split(token: str):
    token = (token or '').strip()
    parts = token.split('.')
    if len(parts) != 3 or not parts[0] or not parts[1]:
        raise ToolInputError('Invalid JWT: expected header.payload.signature', field='token')
    return token, parts


def decode_jwt(token: str) -> Dict[str, Any]:
    """Decode header and payload without verifying anything."""
    token, parts = _split(token)
    try:
        header = jwt.get_unverified_header(token)
        payload = jwt.decode(token, options={'verify_signature': False})
    except jwt.PyJWTError as exc:
        raise ToolInputError(f'Invalid JWT: {exc}', field='token') from exc

    result: Dict[str, Any] = {'header': header, 'payload': payload, 'signature': parts[2]}
    exp = payload.get('exp')
    if isinstance(exp, (int, float)) and not isinstance(exp, bool):
        result['expires_at'] = datetime.fromtimestamp(exp, tz=timezone.utc).isoformat()
        result['expired'] = exp < time.time()
    return result


def verify_hs256(token: str, secret: str) -> bool:
    if not secret:
        raise ToolInputError('A secret is required to verify the signature', field='secret')
    token, parts = _split(token)
    if not parts[2]:
        return False
    try:
        jwt.decode(token, secret, algorithms=['HS256'], options=_SIGNATURE_ONLY)
    except jwt.InvalidSignatureError:
        return False
    except jwt.InvalidAlgorithmError as exc:
        raise ToolInputError(f'Token is not signed with HS256: {exc}', field='token') from exc
    except jwt.PyJWTError as exc:
        raise ToolInputError(f'Invalid JWT: {exc}', field='token') from exc
    return True
