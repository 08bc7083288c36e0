# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""AES-256-GCM encryption of secret payloads.

Ciphertexts are ``base64(nonce || ciphertext || tag)`` with a fresh 12-byte
nonce per call, so encrypting the same plaintext twice yields different
output.
"""

import base64
import binascii
import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import ConfigurationError, IntegrityError, ValidationError

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


def generate_key() -> bytes:
    """Return a new random 256-bit key."""
    return AESGCM.generate_key(bit_length=KEY_SIZE * 8)


class Encryptor:
    """Authenticated symmetric encryption bound to one key."""

    def __init__(self, key: bytes):
        if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
            raise ConfigurationError(f"encryption key must be exactly {KEY_SIZE} bytes")
        self._aesgcm = AESGCM(bytes(key))
        self.key_id = hashlib.sha256(bytes(key)).hexdigest()[:16]

    @classmethod
    def from_base64(cls, encoded: str) -> "Encryptor":
        """Build an Encryptor from a base64-encoded key.

        Raises:
            ConfigurationError: If the value is not base64 or not 32 bytes
        """
        try:
            key = base64.b64decode(encoded.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise ConfigurationError("encryption key is not valid base64") from e
        return cls(key)

    generate_key = staticmethod(generate_key)

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            raise ValidationError("plaintext must not be empty")
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt and authenticate a ciphertext.

        Every failure (empty or malformed input, truncation, wrong key,
        tampering) raises the same :class:`IntegrityError`.
        """
        if not ciphertext:
            raise IntegrityError()
        try:
            raw = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError):
            raise IntegrityError() from None
        if len(raw) < NONCE_SIZE + TAG_SIZE:
            raise IntegrityError()
        try:
            plaintext = self._aesgcm.decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], None)
            return plaintext.decode("utf-8")
        except (InvalidTag, UnicodeDecodeError):
            raise IntegrityError() from None
