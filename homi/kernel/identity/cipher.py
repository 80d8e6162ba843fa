"""
AES-256-GCM encryption for sensitive profile fields (national ID).

Envelope format: hex(nonce):hex(tag):hex(ciphertext)
"""

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_LENGTH = 16  # 128 bits
TAG_LENGTH = 16  # 128 bits
DELIMITER = ":"


class DecryptionError(Exception):
    """Envelope is malformed or failed authentication."""


class FieldCipher:
    """
    Authenticated encryption with a fixed process-wide key.

    The key is read once at startup; rotation is not supported.
    """

    def __init__(self, key: bytes):
        if len(key) != 32:
            raise ValueError("Encryption key must be exactly 32 bytes")
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_hex(cls, key_hex: str) -> "FieldCipher":
        if len(key_hex) != 64:
            raise ValueError("ENCRYPTION_KEY must be exactly 64 hex characters (32 bytes)")
        return cls(bytes.fromhex(key_hex))

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_LENGTH)
        # AESGCM appends the tag to the ciphertext
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return DELIMITER.join((nonce.hex(), tag.hex(), ciphertext.hex()))

    def decrypt(self, envelope: str) -> str:
        parts = envelope.split(DELIMITER)
        if len(parts) != 3:
            raise DecryptionError("Invalid encrypted text format")

        try:
            nonce, tag, ciphertext = (bytes.fromhex(p) for p in parts)
        except ValueError as exc:
            raise DecryptionError("Envelope segments must be hex encoded") from exc

        if len(nonce) != NONCE_LENGTH or len(tag) != TAG_LENGTH:
            raise DecryptionError("Invalid nonce or authentication tag length")

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as exc:
            raise DecryptionError("Authentication tag mismatch") from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionError("Decrypted value is not valid UTF-8") from exc
