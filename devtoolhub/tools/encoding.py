"""Encryption playground: encodings, digests, symmetric ciphers and RSA."""

from __future__ import annotations

import base64
import binascii
import hashlib
import os
from typing import Dict, Optional, Tuple
from urllib.parse import unquote

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.decrepit.ciphers.algorithms import TripleDES
from cryptography.hazmat.primitives import hashes, padding, serialization
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from tools.exceptions import ToolInputError
from tools.url_tools import encode_component

HASH_ALGORITHMS = {
    'MD5': hashlib.md5,
    'SHA1': hashlib.sha1,
    'SHA256': hashlib.sha256,
    'SHA512': hashlib.sha512,
}

RSA_KEY_SIZES = (1024, 2048, 4096)


def base64_encode(text: str) -> str:
    return base64.b64encode(text.encode('utf-8')).decode('ascii')


def base64_decode(text: str) -> str:
    cleaned = ''.join((text or '').split()).replace('-', '+').replace('_', '/')
    cleaned += '=' * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned, validate=True).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ToolInputError('Decoding failed: input is not valid Base64 text', field='input') from exc


def url_encode(text: str) -> str:
    return encode_component(text or '')


def url_decode(text: str) -> str:
    try:
        return unquote(text or '', errors='strict')
    except UnicodeDecodeError as exc:
        raise ToolInputError('Decoding failed: the input is not a valid encoded URL', field='input') from exc


def hash_text(text: str, algorithm: str = 'MD5') -> str:
    digest = HASH_ALGORITHMS.get((algorithm or '').upper())
    if digest is None:
        raise ToolInputError(f"Unsupported hash algorithm '{algorithm}'", field='algorithm')
    return digest((text or '').encode('utf-8')).hexdigest()


def _cipher_params(cipher: str, key: str, iv: Optional[str]) -> Tuple[object, int, Optional[bytes]]:
    if not key:
        raise ToolInputError('Enter a key', field='key')
    key_bytes = key.encode('utf-8')
    if cipher == 'AES':
        if len(key_bytes) not in (16, 24, 32):
            raise ToolInputError('AES keys must be 16, 24 or 32 bytes', field='key')
        algorithm, block = algorithms.AES(key_bytes), 16
    elif cipher == 'DES':
        if len(key_bytes) not in (8, 16, 24):
            raise ToolInputError('DES keys must be 8 bytes (or 16/24 for Triple DES)', field='key')
        algorithm, block = TripleDES(key_bytes), 8
    else:
        raise ToolInputError(f"Unsupported cipher '{cipher}'", field='cipher')

    iv_bytes = iv.encode('utf-8') if iv else None
    if iv_bytes is not None and len(iv_bytes) != block:
        raise ToolInputError(f'The IV must be {block} bytes for {cipher}', field='iv')
    return algorithm, block, iv_bytes


def symmetric_encrypt(plain_text: str, key: str, iv: Optional[str] = None, cipher: str = 'AES') -> str:
    """CBC + PKCS7, base64 output. Without an IV a random one is prepended to the output."""
    algorithm, block, iv_bytes = _cipher_params(cipher, key, iv)
    embed_iv = iv_bytes is None
    if embed_iv:
        iv_bytes = os.urandom(block)
    padder = padding.PKCS7(block * 8).padder()
    padded = padder.update((plain_text or '').encode('utf-8')) + padder.finalize()
    encryptor = Cipher(algorithm, modes.CBC(iv_bytes)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return base64.b64encode((iv_bytes if embed_iv else b'') + ciphertext).decode('ascii')


def symmetric_decrypt(cipher_text: str, key: str, iv: Optional[str] = None, cipher: str = 'AES') -> str:
    algorithm, block, iv_bytes = _cipher_params(cipher, key, iv)
    try:
        raw = base64.b64decode((cipher_text or '').strip(), validate=True)
    except binascii.Error as exc:
        raise ToolInputError('Ciphertext must be Base64', field='input') from exc
    if iv_bytes is None:
        iv_bytes, raw = raw[:block], raw[block:]
    if not raw or len(raw) % block:
        raise ToolInputError('Ciphertext length is not a whole number of blocks', field='input')
    decryptor = Cipher(algorithm, modes.CBC(iv_bytes)).decryptor()
    padded = decryptor.update(raw) + decryptor.finalize()
    try:
        unpadder = padding.PKCS7(block * 8).unpadder()
        return (unpadder.update(padded) + unpadder.finalize()).decode('utf-8')
    except (ValueError, UnicodeDecodeError) as exc:
        raise ToolInputError('Decryption failed: check the ciphertext and key', field='input') from exc


def generate_rsa_key_pair(key_size: int = 2048) -> Dict[str, str]:
    if key_size not in RSA_KEY_SIZES:
        raise ToolInputError(f'Key size must be one of {RSA_KEY_SIZES}', field='key_size')
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return {'public_key': public_pem.decode('ascii'), 'private_key': private_pem.decode('ascii')}


def _oaep():
    return asym_padding.OAEP(mgf=asym_padding.MGF1(algorithm=hashes.SHA256()),
                             algorithm=hashes.SHA256(), label=None)


def rsa_encrypt(plain_text: str, public_key_pem: str) -> str:
    try:
        public_key = serialization.load_pem_public_key((public_key_pem or '').encode('ascii'))
    except (ValueError, TypeError, UnicodeEncodeError) as exc:
        raise ToolInputError('Invalid RSA public key', field='public_key') from exc
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise ToolInputError('Invalid RSA public key', field='public_key')
    try:
        ciphertext = public_key.encrypt((plain_text or '').encode('utf-8'), _oaep())
    except ValueError as exc:
        raise ToolInputError('Message is too long for this key', field='input') from exc
    return base64.b64encode(ciphertext).decode('ascii')


def rsa_decrypt(cipher_text: str, private_key_pem: str) -> str:
    try:
        private_key = serialization.load_pem_private_key((private_key_pem or '').encode('ascii'), password=None)
    except (ValueError, TypeError, UnicodeEncodeError, InvalidKey) as exc:
        raise ToolInputError('Invalid RSA private key', field='private_key') from exc
    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise ToolInputError('Invalid RSA private key', field='private_key')
    try:
        plaintext = private_key.decrypt(base64.b64decode((cipher_text or '').strip(), validate=True), _oaep())
        return plaintext.decode('utf-8')
    except (binascii.Error, ValueError, UnicodeDecodeError) as exc:
        raise ToolInputError('Decryption failed: check the ciphertext and private key', field='input') from exc
