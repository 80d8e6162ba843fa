"""
Typed errors raised by the identity core.

Every domain error carries a stable machine-readable ``code`` and the
HTTP status the boundary layer maps it to.
"""

from typing import Optional


class AuthError(Exception):
    """Base class for identity domain errors."""

    status_code: int = 400
    code: str = "AUTH_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message, "code": self.code}


class ConflictError(AuthError):
    """Duplicate email or phone number."""
    status_code = 409
    code = "CONFLICT"


class InvalidCredentialsError(AuthError):
    """Bad identifier or password. Both cases share one message."""
    status_code = 401
    code = "INVALID_CREDENTIALS"


class NotAuthenticatedError(AuthError):
    """Missing or unusable session token."""
    status_code = 401
    code = "NOT_AUTHENTICATED"


class TokenExpiredError(NotAuthenticatedError):
    code = "TOKEN_EXPIRED"


class InvalidTokenError(NotAuthenticatedError):
    code = "INVALID_TOKEN"


class ForbiddenError(AuthError):
    """Role not permitted."""
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AuthError):
    status_code = 404
    code = "NOT_FOUND"


class AlreadyInStateError(AuthError):
    """The requested transition already happened."""
    status_code = 400
    code = "ALREADY_IN_STATE"


class PreconditionFailedError(AuthError):
    status_code = 400
    code = "PRECONDITION_FAILED"


class InvalidOrExpiredTokenError(AuthError):
    """Reset or email-verification token unknown or past its expiry."""
    status_code = 400
    code = "INVALID_OR_EXPIRED_TOKEN"


class ExternalProviderError(AuthError):
    """OAuth provider rejected the token, timed out or returned unusable data."""
    status_code = 401
    code = "EXTERNAL_PROVIDER_ERROR"


class InternalError(AuthError):
    """Unexpected failure. The message is always generic."""
    status_code = 500
    code = "INTERNAL_ERROR"
