"""
JWT session tokens.

Access tokens are short-lived, refresh tokens long-lived; each family is
signed with its own secret. Sessions are stateless: nothing is stored
server-side, so a token stays valid until it expires.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel

from homi.kernel.identity.errors import InvalidTokenError, TokenExpiredError

ACCESS = "access"
REFRESH = "refresh"


class SessionClaims(BaseModel):
    """Decoded session token claims."""

    sub: str  # Account ID
    email: str
    role: str
    type: str
    exp: datetime
    iat: datetime
    jti: str

    @property
    def account_id(self) -> uuid.UUID:
        return uuid.UUID(self.sub)


class TokenPair(BaseModel):
    """Access and refresh token pair."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # Seconds until access token expires


class JWTManager:
    """
    JWT token creation and verification.

    Handles access tokens (short-lived) and refresh tokens (long-lived).
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        issuer: str = "homi-auth",
        audience: str = "homi-api",
        access_token_expire_minutes: int = 15,
        refresh_token_expire_days: int = 7,
    ):
        if access_secret == refresh_secret:
            raise ValueError("Access and refresh tokens must use different secrets")
        self._secrets = {ACCESS: access_secret, REFRESH: refresh_secret}
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience
        self.access_token_expire_minutes = access_token_expire_minutes
        self.refresh_token_expire_days = refresh_token_expire_days

    def _default_lifetime(self, token_type: str) -> timedelta:
        if token_type == ACCESS:
            return timedelta(minutes=self.access_token_expire_minutes)
        return timedelta(days=self.refresh_token_expire_days)

    def create_token(
        self,
        token_type: str,
        account_id: uuid.UUID,
        email: str,
        role: str,
        expires_delta: Optional[timedelta] = None,
    ) -> tuple[str, datetime]:
        """
        Create a signed token of the given type.

        Returns:
            Tuple of (token, expiration_datetime)
        """
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or self._default_lifetime(token_type))

        payload = {
            "sub": str(account_id),
            "email": email,
            "role": role,
            "type": token_type,
            "exp": expire,
            "iat": now,
            "jti": str(uuid.uuid4()),
            "iss": self.issuer,
            "aud": self.audience,
        }

        token = jwt.encode(payload, self._secrets[token_type], algorithm=self.algorithm)
        return token, expire

    def issue_pair(self, account_id: uuid.UUID, email: str, role: str) -> TokenPair:
        """Create both access and refresh tokens."""
        access_token, access_exp = self.create_token(ACCESS, account_id, email, role)
        refresh_token, _ = self.create_token(REFRESH, account_id, email, role)

        expires_in = int((access_exp - datetime.now(timezone.utc)).total_seconds())

        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=expires_in,
        )

    def _verify(self, token: str, token_type: str) -> SessionClaims:
        label = token_type.capitalize()
        try:
            payload = jwt.decode(
                token,
                self._secrets[token_type],
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except ExpiredSignatureError:
            raise TokenExpiredError(f"{label} token has expired")
        except JWTError:
            raise InvalidTokenError(f"Invalid {token_type} token")

        if payload.get("type") != token_type:
            raise InvalidTokenError(f"Invalid {token_type} token")

        try:
            return SessionClaims(
                sub=payload["sub"],
                email=payload["email"],
                role=payload["role"],
                type=payload["type"],
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                jti=payload["jti"],
            )
        except (KeyError, TypeError, ValueError):
            raise InvalidTokenError(f"Invalid {token_type} token")

    def verify_access_token(self, token: str) -> SessionClaims:
        """Verify and decode an access token."""
        return self._verify(token, ACCESS)

    def verify_refresh_token(self, token: str) -> SessionClaims:
        """Verify and decode a refresh token."""
        return self._verify(token, REFRESH)
