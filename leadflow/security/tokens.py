"""Encryption of stored channel access tokens (AES-256-CBC, PKCS7)."""

from __future__ import annotations

import os
import re

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..errors import ConfigurationError

_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def _key_bytes(encryption_key: str | None) -> bytes:
    if not encryption_key:
        raise ConfigurationError(
            "Encryption key not configured. Set LEADFLOW_ENCRYPTION_KEY."
        )
    if not _KEY_RE.match(encryption_key):
        raise ConfigurationError(
            "Encryption key must be a 64-character hexadecimal string (32 bytes)"
        )
    return bytes.fromhex(encryption_key)


def encrypt_token(token: str, encryption_key: str | None) -> str:
    """Encrypt ``token`` into the stored ``"<iv_hex>:<cipher_hex>"`` form."""
    key = _key_bytes(encryption_key)
    iv = os.urandom(16)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    data = padder.update(token.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(data) + encryptor.finalize()
    return f"{iv.hex()}:{ciphertext.hex()}"


def decrypt_token(encrypted_token: str, encryption_key: str | None) -> str:
    """Decrypt a stored channel token.

    Raises:
        ConfigurationError: If the key is missing or the token cannot be
            decrypted (corrupted value or rotated key).
    """
    key = _key_bytes(encryption_key)
    if not encrypted_token or ":" not in encrypted_token:
        raise ConfigurationError("Invalid encrypted token format")

    iv_hex, cipher_hex = encrypted_token.split(":", 1)
    try:
        decryptor = Cipher(
            algorithms.AES(key), modes.CBC(bytes.fromhex(iv_hex))
        ).decryptor()
        padded = decryptor.update(bytes.fromhex(cipher_hex)) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plain = unpadder.update(padded) + unpadder.finalize()
        return plain.decode("utf-8")
    except ValueError as exc:
        raise ConfigurationError(
            "Token decryption failed. The stored token may be corrupted or the "
            "encryption key has changed."
        ) from exc
