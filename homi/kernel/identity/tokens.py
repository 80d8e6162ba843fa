"""
Single-use secrets for password reset and email verification.

Only the SHA-256 digest of a token is persisted; the plain token goes to
the user once, by email.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from homi.kernel.models.base import as_utc

TOKEN_BYTES = 32  # rendered as 64 hex characters


class TokenKind(str, Enum):
    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFICATION = "email_verification"


@dataclass(frozen=True)
class MintedToken:
    token: str
    token_hash: str
    expires_at: datetime


class TokenMinter:
    """Generates and checks single-use, time-boxed tokens."""

    def __init__(
        self,
        reset_ttl: timedelta = timedelta(hours=1),
        verification_ttl: timedelta = timedelta(hours=24),
    ):
        self._ttl = {
            TokenKind.PASSWORD_RESET: reset_ttl,
            TokenKind.EMAIL_VERIFICATION: verification_ttl,
        }

    @staticmethod
    def hash_for_lookup(token: str) -> str:
        """SHA-256 hex digest used to find the stored token."""
        return hashlib.sha256(token.encode()).hexdigest()

    def ttl(self, kind: TokenKind) -> timedelta:
        return self._ttl[kind]

    def generate(self, kind: TokenKind, now: datetime) -> MintedToken:
        token = secrets.token_hex(TOKEN_BYTES)
        return MintedToken(
            token=token,
            token_hash=self.hash_for_lookup(token),
            expires_at=now + self._ttl[kind],
        )

    @staticmethod
    def is_live(expires_at: Optional[datetime], now: datetime) -> bool:
        """A token is live only while its expiry is strictly in the future."""
        if expires_at is None:
            return False
        return as_utc(expires_at) > now
