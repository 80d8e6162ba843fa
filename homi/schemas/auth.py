"""
Authentication schemas.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from homi.kernel.models.account import Account, Gender


def _check_password_strength(v: str) -> str:
    if len(v) < 8:
        raise ValueError("Password must be at least 8 characters")
    if not any(c.isupper() for c in v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in v):
        raise ValueError("Password must contain at least one digit")
    return v


class RegisterRequest(BaseModel):
    """Account registration request."""

    email: EmailStr = Field(..., max_length=255)
    password: str = Field(..., min_length=8, max_length=100)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=1, max_length=20)
    role: Literal["LANDLORD", "TENANT"]

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)

    @field_validator("first_name", "last_name", "phone")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field cannot be blank")
        return v


class LoginRequest(BaseModel):
    """Login by email address or phone number."""

    identifier: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class CompleteVerificationRequest(BaseModel):
    national_id: str = Field(..., min_length=1, max_length=50)
    gender: Gender
    birthdate: date

    @field_validator("birthdate")
    @classmethod
    def validate_birthdate(cls, v: date) -> date:
        if v > date.today():
            raise ValueError("Birthdate cannot be in the future")
        return v


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=64, max_length=64)
    new_password: str = Field(..., min_length=8, max_length=100)

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)


class ChangePasswordRequest(BaseModel):
    """Password change request."""

    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=100)

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)


class RefreshTokenRequest(BaseModel):
    """Token refresh request."""

    refresh_token: str = Field(..., min_length=1)


class GoogleLoginRequest(BaseModel):
    google_access_token: str = Field(..., min_length=1)


class UpdateProfileRequest(BaseModel):
    """Partial profile update. Only fields sent by the client are applied."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=20)
    bio: Optional[str] = Field(None, max_length=2000)
    avatar_url: Optional[str] = Field(None, max_length=500)
    preferred_budget_min: Optional[Decimal] = Field(None, ge=0)
    preferred_budget_max: Optional[Decimal] = Field(None, ge=0)


class ProfileResponse(BaseModel):
    """Profile fields safe to return to the account owner."""

    model_config = ConfigDict(from_attributes=True)

    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    gender: Optional[str] = None
    birthdate: Optional[date] = None
    gamification_points: int = 0
    preferred_budget_min: Optional[Decimal] = None
    preferred_budget_max: Optional[Decimal] = None
    is_verification_complete: bool = False


class AccountResponse(BaseModel):
    """Account summary. Never includes the national ID."""

    id: uuid.UUID
    email: str
    role: str
    is_verified: bool
    email_verified: bool
    is_verification_complete: bool
    created_at: Optional[datetime] = None
    profile: Optional[ProfileResponse] = None

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        profile = account.profile
        return cls(
            id=account.id,
            email=account.email,
            role=account.role_value,
            is_verified=account.is_verified,
            email_verified=account.email_verified,
            is_verification_complete=bool(profile and profile.is_verification_complete),
            created_at=account.created_at,
            profile=ProfileResponse.model_validate(profile) if profile else None,
        )


class TokenResponse(BaseModel):
    """Authentication token response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: AccountResponse


class NationalIdResponse(BaseModel):
    account_id: uuid.UUID
    national_id: Optional[str] = None


class EmailVerificationSentResponse(BaseModel):
    success: bool = True
    message: str
    already_verified: bool = False
