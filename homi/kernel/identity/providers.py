"""
Federated identity providers.

The provider's response is untrusted input: it is validated with pydantic
before the lifecycle sees it.
"""

from typing import Optional, Protocol

import httpx
from pydantic import BaseModel, EmailStr, Field, ValidationError

from homi.logging_config import get_logger

logger = get_logger(__name__)


class ProviderVerificationError(Exception):
    """The provider rejected the token, timed out or answered garbage."""


class FederatedProfile(BaseModel):
    """Identity asserted by an external provider."""

    subject_id: str = Field(..., min_length=1)
    email: EmailStr
    email_verified: bool = False
    given_name: str = ""
    family_name: str = ""
    avatar_url: Optional[str] = None


class IdentityProvider(Protocol):
    name: str

    async def fetch_profile(self, access_token: str) -> FederatedProfile:
        ...


class GoogleIdentityProvider:
    """Verifies a Google OAuth access token against the userinfo endpoint."""

    name = "google"

    def __init__(
        self,
        userinfo_url: str = "https://www.googleapis.com/oauth2/v3/userinfo",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.userinfo_url = userinfo_url
        self.timeout = timeout
        self._transport = transport

    async def fetch_profile(self, access_token: str) -> FederatedProfile:
        if not access_token:
            raise ProviderVerificationError("Empty provider token")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(
                    self.userinfo_url,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.TimeoutException as e:
            logger.warning("Google userinfo request timed out: %s", e)
            raise ProviderVerificationError("Provider request timed out") from e
        except httpx.HTTPError as e:
            logger.warning("Google userinfo request failed: %s", e)
            raise ProviderVerificationError("Provider request failed") from e

        if response.status_code != 200:
            logger.info(
                "Google rejected access token",
                extra={"status_code": response.status_code},
            )
            raise ProviderVerificationError(
                f"Provider answered with status {response.status_code}"
            )

        try:
            data = response.json()
            email_verified = data.get("email_verified", False)
            # Google has been seen sending the flag as a string
            if isinstance(email_verified, str):
                email_verified = email_verified.lower() == "true"
            return FederatedProfile(
                subject_id=data.get("sub") or "",
                email=data.get("email") or "",
                email_verified=email_verified,
                given_name=data.get("given_name") or "",
                family_name=data.get("family_name") or "",
                avatar_url=data.get("picture"),
            )
        except (ValueError, AttributeError, ValidationError) as e:
            raise ProviderVerificationError("Malformed provider profile") from e
