"""Symmetric encryption utilities for protecting stored tokens.

Every call to :meth:`TokenCipherService.encrypt` derives a fresh AES-256 key
from the shared secret and a random salt, then seals the plaintext with
AES-GCM under a random nonce. The encoded payload is::

    base64( salt (16 bytes) || nonce (12 bytes) || ciphertext + GCM tag )

Both prefix sizes are fixed; changing them makes existing rows undecodable.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

PBKDF2_ITERATIONS = 4096
SALT_SIZE = 16
NONCE_SIZE = 12
KEY_SIZE = 32


class CipherError(ValueError):
    """Base class for token encryption failures."""


class EmptyInputError(CipherError):
    """Raised when asked to encrypt or decrypt an empty string."""


class CiphertextTooShortError(CipherError):
    """Raised when a payload cannot even hold the salt and nonce."""


class EncryptionError(CipherError):
    """Raised when the encryption backend fails."""


class DecryptionError(CipherError):
    """Raised for malformed, tampered, or wrong-key ciphertext."""


class TokenCipherService:
    """Encrypt and decrypt sensitive strings with per-call derived AES-GCM keys."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        self._secret = secret.encode("utf-8")

    def _derive_key(self, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=salt,
            iterations=PBKDF2_ITERATIONS,
        )
        return kdf.derive(self._secret)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a plaintext string and return the encoded ciphertext."""
        if not plaintext:
            raise EmptyInputError("Cannot encrypt an empty value.")

        salt = os.urandom(SALT_SIZE)
        nonce = os.urandom(NONCE_SIZE)
        try:
            sealed = AESGCM(self._derive_key(salt)).encrypt(
                nonce, plaintext.encode("utf-8"), None
            )
        except Exception as exc:  # pragma: no cover - backend failure
            raise EncryptionError("Failed to encrypt token.") from exc
        return base64.b64encode(salt + nonce + sealed).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt an encoded ciphertext string and return the plaintext."""
        if not ciphertext:
            raise EmptyInputError("Cannot decrypt an empty value.")

        try:
            payload = base64.b64decode(ciphertext.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise DecryptionError(
                "Failed to decrypt token; ciphertext is not valid base64."
            ) from exc

        if len(payload) < SALT_SIZE + NONCE_SIZE:
            raise CiphertextTooShortError("Ciphertext is too short.")

        salt = payload[:SALT_SIZE]
        nonce = payload[SALT_SIZE : SALT_SIZE + NONCE_SIZE]
        sealed = payload[SALT_SIZE + NONCE_SIZE :]
        try:
            plaintext = AESGCM(self._derive_key(salt)).decrypt(nonce, sealed, None)
        except InvalidTag as exc:
            raise DecryptionError(
                "Failed to decrypt token; invalid ciphertext provided."
            ) from exc
        return plaintext.decode("utf-8")


__all__ = [
    "CipherError",
    "CiphertextTooShortError",
    "DecryptionError",
    "EmptyInputError",
    "EncryptionError",
    "TokenCipherService",
]
