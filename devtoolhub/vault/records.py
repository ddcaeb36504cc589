"""Seal and open password vault records.

A record is the ``{website, username, password}`` triple. It only ever leaves
memory as a single ciphertext produced by :func:`vault.utils.encrypt_data`.
"""

import json
from typing import Dict

from core.logging_utils import get_vault_logger
from vault.exceptions import CryptoError
from vault.utils import decrypt_data, encrypt_data, validate_master_passphrase

logger = get_vault_logger()

RECORD_FIELDS = ('website', 'username', 'password')


def empty_record() -> Dict[str, str]:
    return {name: '' for name in RECORD_FIELDS}


def seal_record(website: str, username: str, password: str, passphrase: str) -> str:
    validate_master_passphrase(passphrase)
    record = {'website': website or '', 'username': username or '', 'password': password or ''}
    return encrypt_data(json.dumps(record, ensure_ascii=False), passphrase)


def open_record(encrypted_data: str, passphrase: str) -> Dict[str, str]:
    """Decrypt a sealed record; anything that is not a record raises ``CryptoError``."""
    plain_text = decrypt_data(encrypted_data, passphrase)
    if plain_text is None:
        raise CryptoError('Nothing to decrypt', recoverable=False)
    try:
        data = json.loads(plain_text)
    except ValueError as exc:
        raise CryptoError('Decrypted data is not a vault record', recoverable=False) from exc
    if not isinstance(data, dict):
        raise CryptoError('Decrypted data is not a vault record', recoverable=False)
    record = empty_record()
    for name in RECORD_FIELDS:
        value = data.get(name)
        if value is not None:
            record[name] = str(value)
    return record


def open_record_or_placeholder(encrypted_data: str, passphrase: str, entry_id=None) -> Dict[str, object]:
    """Like :func:`open_record` but never raises; ``readable`` tells the two outcomes apart."""
    try:
        record = open_record(encrypted_data, passphrase)
    except CryptoError as exc:
        logger.encryption_event(f"open record {entry_id or ''}".strip(), success=False)
        logger.debug("Record could not be opened", extra_data={'entry_id': entry_id, 'reason': str(exc)})
        return {**empty_record(), 'readable': False}
    return {**record, 'readable': True}
