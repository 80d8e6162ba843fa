"""
FastAPI dependencies for authentication, authorization, and database sessions.
"""

from functools import lru_cache
from typing import Annotated, AsyncIterator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from homi.config import get_settings
from homi.database import get_db
from homi.kernel.identity.components import (
    IdentityComponents,
    build_account_lifecycle,
    build_identity_components,
)
from homi.kernel.identity.errors import (
    ForbiddenError,
    InvalidTokenError,
    NotAuthenticatedError,
)
from homi.kernel.identity.identity_service import AccountLifecycle
from homi.kernel.identity.jwt import SessionClaims
from homi.kernel.models.account import Account, AccountRole


# Security scheme
security = HTTPBearer(auto_error=False)


DbSession = Annotated[AsyncSession, Depends(get_db)]


@lru_cache
def get_identity_components() -> IdentityComponents:
    """Process-wide identity components, built on first use."""
    return build_identity_components(get_settings())


Components = Annotated[IdentityComponents, Depends(get_identity_components)]


async def get_account_lifecycle(db: DbSession, components: Components) -> AsyncIterator[AccountLifecycle]:
    yield build_account_lifecycle(db, components)


Lifecycle = Annotated[AccountLifecycle, Depends(get_account_lifecycle)]


async def get_current_claims(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    components: Components,
) -> SessionClaims:
    """Verify the bearer access token. Raises 401 with TOKEN_EXPIRED or INVALID_TOKEN."""
    if not credentials or not credentials.credentials:
        raise NotAuthenticatedError("User not authenticated")
    return components.jwt_manager.verify_access_token(credentials.credentials)


CurrentClaims = Annotated[SessionClaims, Depends(get_current_claims)]


async def get_current_account(claims: CurrentClaims, lifecycle: Lifecycle) -> Account:
    """Load the account behind the access token."""
    try:
        account_id = claims.account_id
    except ValueError:
        raise InvalidTokenError("Invalid access token")
    account = await lifecycle.store.get_by_id(account_id)
    if account is None:
        raise InvalidTokenError("Account no longer exists")
    return account


CurrentAccount = Annotated[Account, Depends(get_current_account)]


def require_roles(*roles: AccountRole):
    """Dependency factory: the current account must have one of ``roles``."""
    allowed = {role.value for role in roles}

    async def _check(account: CurrentAccount) -> Account:
        if account.role_value not in allowed:
            raise ForbiddenError("You do not have permission to perform this action")
        return account

    return _check


AdminAccount = Annotated[Account, Depends(require_roles(AccountRole.ADMIN))]


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
