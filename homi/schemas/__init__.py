"""
Pydantic schemas for API request/response validation.
"""

from homi.schemas.auth import (
    AccountResponse,
    ChangePasswordRequest,
    CompleteVerificationRequest,
    EmailVerificationSentResponse,
    ForgotPasswordRequest,
    GoogleLoginRequest,
    LoginRequest,
    NationalIdResponse,
    ProfileResponse,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UpdateProfileRequest,
)
from homi.schemas.common import (
    ErrorResponse,
    HealthResponse,
    SuccessResponse,
)

__all__ = [
    # Auth
    "AccountResponse",
    "ChangePasswordRequest",
    "CompleteVerificationRequest",
    "EmailVerificationSentResponse",
    "ForgotPasswordRequest",
    "GoogleLoginRequest",
    "LoginRequest",
    "NationalIdResponse",
    "ProfileResponse",
    "RefreshTokenRequest",
    "RegisterRequest",
    "ResetPasswordRequest",
    "TokenResponse",
    "UpdateProfileRequest",
    # Common
    "ErrorResponse",
    "HealthResponse",
    "SuccessResponse",
]
