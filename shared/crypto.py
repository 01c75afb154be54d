"""AES-256-GCM encryption for tokens stored at rest.

Stored format: hex(nonce (12 bytes) || ciphertext || tag).
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_LENGTH = 12
KEY_LENGTH = 32


class TokenCipherError(ValueError):
    """Key or ciphertext is malformed, or authentication failed."""


class TokenCipher:
    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_LENGTH:
            raise TokenCipherError(f"Encryption key must be {KEY_LENGTH} bytes, got {len(key)}")
        self._aead = AESGCM(key)

    @classmethod
    def from_hex(cls, key_hex: str) -> TokenCipher:
        """Build from a 64-char hex key (``openssl rand -hex 32``)."""
        try:
            key = bytes.fromhex(key_hex.strip())
        except ValueError as e:
            raise TokenCipherError("Encryption key is not valid hex") from e
        return cls(key)

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_LENGTH)
        return (nonce + self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)).hex()

    def decrypt(self, stored: str) -> str:
        try:
            raw = bytes.fromhex(stored)
        except ValueError as e:
            raise TokenCipherError("Stored token is not valid hex") from e
        if len(raw) <= NONCE_LENGTH:
            raise TokenCipherError("Stored token is too short to contain a nonce")

        nonce, ciphertext = raw[:NONCE_LENGTH], raw[NONCE_LENGTH:]
        try:
            return self._aead.decrypt(nonce, ciphertext, None).decode("utf-8")
        except InvalidTag as e:
            raise TokenCipherError("Token decryption failed (wrong key or corrupted data)") from e
