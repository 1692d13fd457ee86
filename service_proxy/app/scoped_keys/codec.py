"""
Scoped key encryption.

A scoped key is the hex encoded 16 byte IV followed by the hex encoded
AES-256-CBC ciphertext (PKCS7 padded) of the JSON serialized parameters. The
secret itself is the AES key, so it must fit in 32 bytes; shorter secrets are
padded with spaces the same way the analytics vendor's SDKs do it.
"""

import binascii
import json
import os
from typing import Any, Mapping, Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from pydantic import ValidationError as PydanticValidationError

from shared.errors import InvalidTokenError
from .models import ScopedKeyParams

KEY_SIZE = 32
IV_SIZE = 16
BLOCK_BITS = 128


def _cipher_key(secret: str) -> bytes:
    key = secret.encode("utf-8")
    if not key:
        raise ValueError("Scoped key secret must not be empty")
    if len(key) > KEY_SIZE:
        raise ValueError(f"Scoped key secret must be at most {KEY_SIZE} bytes")
    return key.ljust(KEY_SIZE, b" ")


def check_secret(secret: str) -> None:
    """Raise ValueError if ``secret`` cannot be used as a scoped key secret."""
    _cipher_key(secret)


def encode(secret: str, params: Union[ScopedKeyParams, Mapping[str, Any]]) -> str:
    """Encrypt ``params`` under ``secret`` with a fresh IV."""
    if isinstance(params, ScopedKeyParams):
        params = params.to_dict()

    plaintext = json.dumps(dict(params), separators=(",", ":")).encode("utf-8")
    padder = padding.PKCS7(BLOCK_BITS).padder()
    padded = padder.update(plaintext) + padder.finalize()

    iv = os.urandom(IV_SIZE)
    encryptor = Cipher(algorithms.AES(_cipher_key(secret)), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return iv.hex() + ciphertext.hex()


def decode(secret: str, token: str) -> ScopedKeyParams:
    """Decrypt and validate a scoped key.

    Raises:
        InvalidTokenError: the token is malformed, was encrypted under another
            secret, or does not decrypt to a valid parameter object.
    """
    if not isinstance(token, str) or not token:
        raise InvalidTokenError("Scoped key is missing")

    try:
        raw = binascii.unhexlify(token)
    except (binascii.Error, ValueError):
        raise InvalidTokenError("Scoped key is not hex encoded")

    if len(raw) <= IV_SIZE or (len(raw) - IV_SIZE) % (BLOCK_BITS // 8):
        raise InvalidTokenError("Scoped key has an invalid length")

    iv, ciphertext = raw[:IV_SIZE], raw[IV_SIZE:]
    decryptor = Cipher(algorithms.AES(_cipher_key(secret)), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()

    try:
        unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
        payload = json.loads(plaintext.decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        # Bad padding is the usual symptom of a key encrypted under another secret
        raise InvalidTokenError("Scoped key could not be decrypted")

    if not isinstance(payload, dict):
        raise InvalidTokenError("Scoped key does not contain a parameter object")

    try:
        return ScopedKeyParams.model_validate(payload)
    except PydanticValidationError as e:
        raise InvalidTokenError(
            "Scoped key parameters are invalid",
            details={"errors": e.error_count()},
        )
