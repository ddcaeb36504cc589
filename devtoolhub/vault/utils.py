"""Passphrase based encryption used for password vault entries.

Ciphertext layout: ``v1:`` + urlsafe base64 of ``salt (16) | nonce (12) | AES-GCM ciphertext``.
The AES-256 key is derived from the master passphrase with PBKDF2-HMAC-SHA256.
"""

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from vault.exceptions import CryptoError, PassphraseError

_VERSION_PREFIX = 'v1:'
_SALT_SIZE = 16
_NONCE_SIZE = 12
_KEY_SIZE = 32
PBKDF2_ITERATIONS = 100_000
MIN_PASSPHRASE_LENGTH = 8


def validate_master_passphrase(passphrase):
    if not passphrase or len(passphrase) < MIN_PASSPHRASE_LENGTH:
        raise PassphraseError(f'The master passphrase must be at least {MIN_PASSPHRASE_LENGTH} characters')
    return passphrase


def derive_key(passphrase, salt, iterations=PBKDF2_ITERATIONS):
    if not passphrase:
        raise PassphraseError('A passphrase is required')
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=_KEY_SIZE, salt=salt, iterations=iterations)
    return kdf.derive(passphrase.encode('utf-8'))


def encrypt_data(plain_text, passphrase):
    """Encrypt ``plain_text`` under ``passphrase``; empty input gives ``None``."""
    if plain_text in (None, ''):
        return None
    salt = os.urandom(_SALT_SIZE)
    nonce = os.urandom(_NONCE_SIZE)
    key = derive_key(passphrase, salt)
    ciphertext = AESGCM(key).encrypt(nonce, plain_text.encode('utf-8'), None)
    payload = base64.urlsafe_b64encode(salt + nonce + ciphertext).decode('ascii')
    return f"{_VERSION_PREFIX}{payload}"


def decrypt_data(encrypted_text, passphrase):
    """Reverse of :func:`encrypt_data`. Any failure surfaces as ``CryptoError``."""
    if not encrypted_text:
        return None
    if not isinstance(encrypted_text, str) or not encrypted_text.startswith(_VERSION_PREFIX):
        raise CryptoError('Unsupported ciphertext format', recoverable=False)
    try:
        decoded = base64.urlsafe_b64decode(encrypted_text[len(_VERSION_PREFIX):])
    except (binascii.Error, ValueError) as exc:
        raise CryptoError('Ciphertext is not valid base64', recoverable=False) from exc
    if len(decoded) <= _SALT_SIZE + _NONCE_SIZE:
        raise CryptoError('Ciphertext is truncated', recoverable=False)

    salt = decoded[:_SALT_SIZE]
    nonce = decoded[_SALT_SIZE:_SALT_SIZE + _NONCE_SIZE]
    ciphertext = decoded[_SALT_SIZE + _NONCE_SIZE:]
    key = derive_key(passphrase, salt)
    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as exc:
        raise CryptoError('Wrong passphrase or corrupted data', recoverable=True) from exc
    try:
        return plaintext.decode('utf-8')
    except UnicodeDecodeError as exc:
        raise CryptoError('Decrypted data is not text', recoverable=False) from exc
