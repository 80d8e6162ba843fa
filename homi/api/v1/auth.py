"""
Authentication endpoints.

Handlers only translate between HTTP and AccountLifecycle; domain errors
are rendered by the AuthError handler in main.
"""

import uuid
from html import escape
from typing import Optional

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import HTMLResponse

from homi.api.deps import (
    AdminAccount,
    CurrentAccount,
    Lifecycle,
    get_client_ip,
)
from homi.config import get_settings
from homi.kernel.identity.errors import InvalidOrExpiredTokenError
from homi.kernel.identity.identity_service import LoginResult
from homi.schemas.auth import (
    AccountResponse,
    ChangePasswordRequest,
    CompleteVerificationRequest,
    EmailVerificationSentResponse,
    ForgotPasswordRequest,
    GoogleLoginRequest,
    LoginRequest,
    NationalIdResponse,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UpdateProfileRequest,
)
from homi.schemas.common import ErrorResponse, SuccessResponse

router = APIRouter(
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)

FORGOT_PASSWORD_MESSAGE = "If an account exists with this email, a password reset link has been sent."


def _token_response(result: LoginResult) -> TokenResponse:
    tokens = result.tokens
    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
        expires_in=tokens.expires_in,
        user=AccountResponse.from_account(result.account),
    )


@router.post("/register", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def register(request: Request, data: RegisterRequest, lifecycle: Lifecycle):
    """
    Register a new LANDLORD or TENANT account.

    No tokens are issued here; the client logs in afterwards.
    """
    account = await lifecycle.register(
        email=data.email,
        password=data.password,
        first_name=data.first_name,
        last_name=data.last_name,
        phone_number=data.phone,
        role=data.role,
        ip_address=get_client_ip(request),
    )
    return SuccessResponse(
        message="Registration successful. Please complete your profile verification to access all features.",
        data=AccountResponse.from_account(account).model_dump(mode="json"),
    )


@router.post("/login", response_model=TokenResponse)
async def login(request: Request, data: LoginRequest, lifecycle: Lifecycle):
    """Log in with an email address or phone number."""
    result = await lifecycle.login(
        data.identifier,
        data.password,
        ip_address=get_client_ip(request),
    )
    return _token_response(result)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(data: RefreshTokenRequest, lifecycle: Lifecycle):
    """Exchange a refresh token for a new token pair."""
    result = await lifecycle.refresh_session(data.refresh_token)
    return _token_response(result)


@router.post("/google", response_model=TokenResponse)
async def google_login(request: Request, data: GoogleLoginRequest, lifecycle: Lifecycle):
    """
    Log in with a Google OAuth access token.

    First-time users get an account provisioned automatically.
    """
    result = await lifecycle.login_with_federated_provider(
        data.google_access_token,
        ip_address=get_client_ip(request),
    )
    return _token_response(result)


@router.post("/forgot-password", response_model=SuccessResponse)
async def forgot_password(request: Request, data: ForgotPasswordRequest, lifecycle: Lifecycle):
    await lifecycle.forgot_password(data.email, ip_address=get_client_ip(request))
    return SuccessResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=SuccessResponse)
async def reset_password(request: Request, data: ResetPasswordRequest, lifecycle: Lifecycle):
    await lifecycle.reset_password(
        data.token,
        data.new_password,
        ip_address=get_client_ip(request),
    )
    return SuccessResponse(
        message="Password reset successful. You can now login with your new password.",
    )


@router.post("/complete-verification", response_model=SuccessResponse)
async def complete_verification(
    request: Request,
    data: CompleteVerificationRequest,
    account: CurrentAccount,
    lifecycle: Lifecycle,
):
    """Submit national ID, gender and birthdate to become fully verified."""
    account = await lifecycle.complete_verification(
        account.id,
        national_id=data.national_id,
        gender=data.gender,
        birthdate=data.birthdate,
        ip_address=get_client_ip(request),
    )
    return SuccessResponse(
        message="Verification completed successfully. Your account is now fully verified.",
        data=AccountResponse.from_account(account).model_dump(mode="json"),
    )


@router.get("/me", response_model=AccountResponse)
async def get_me(account: CurrentAccount, lifecycle: Lifecycle):
    """Get the current account and its profile."""
    account = await lifecycle.get_current_user(account.id)
    return AccountResponse.from_account(account)


@router.put("/profile", response_model=AccountResponse)
async def update_profile(
    request: Request,
    data: UpdateProfileRequest,
    account: CurrentAccount,
    lifecycle: Lifecycle,
):
    account = await lifecycle.update_profile(
        account.id,
        data.model_dump(exclude_unset=True),
        ip_address=get_client_ip(request),
    )
    return AccountResponse.from_account(account)


@router.post("/send-verification-email", response_model=EmailVerificationSentResponse)
async def send_verification_email(request: Request, account: CurrentAccount, lifecycle: Lifecycle):
    result = await lifecycle.send_verification_email(
        account.id,
        ip_address=get_client_ip(request),
    )
    if result.already_verified:
        return EmailVerificationSentResponse(
            message="Email is already verified",
            already_verified=True,
        )
    return EmailVerificationSentResponse(
        message="Verification email sent. Please check your inbox.",
    )


@router.get("/verify-email", response_class=HTMLResponse)
async def verify_email(
    request: Request,
    lifecycle: Lifecycle,
    token: Optional[str] = Query(None),
):
    """
    Verify an email address from the link in the verification email.

    Answers with an HTML page since it is opened from a mail client.
    """
    if not token:
        raise InvalidOrExpiredTokenError("Verification token is required", code="TOKEN_REQUIRED")
    await lifecycle.verify_email(token, ip_address=get_client_ip(request))
    return HTMLResponse(
        _verified_page(
            "Your email has been verified successfully.",
            get_settings().client_url,
        )
    )


@router.put("/change-password", response_model=SuccessResponse)
async def change_password(
    request: Request,
    data: ChangePasswordRequest,
    account: CurrentAccount,
    lifecycle: Lifecycle,
):
    await lifecycle.change_password(
        account.id,
        data.current_password,
        data.new_password,
        ip_address=get_client_ip(request),
    )
    return SuccessResponse(message="Password changed successfully")


@router.get("/users/{account_id}/national-id", response_model=NationalIdResponse)
async def reveal_national_id(account_id: uuid.UUID, admin: AdminAccount, lifecycle: Lifecycle):
    """Decrypt an account's national ID. ADMIN only."""
    national_id = await lifecycle.reveal_national_id(account_id)
    return NationalIdResponse(account_id=account_id, national_id=national_id)


def _verified_page(message: str, client_url: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Email Verified - HOMi</title>
    <style>
        body {{
            font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif;
            background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
            min-height: 100vh; margin: 0;
            display: flex; align-items: center; justify-content: center;
        }}
        .container {{
            background: white; border-radius: 20px; padding: 50px;
            text-align: center; max-width: 500px;
        }}
        h1 {{ color: #1e293b; }}
        p {{ color: #64748b; line-height: 1.6; }}
        .button {{
            display: inline-block; background: #6366f1; color: white;
            text-decoration: none; padding: 15px 35px; border-radius: 50px;
        }}
    </style>
</head>
<body>
    <div class="container">
        <h1>Email Verified!</h1>
        <p>{escape(message)}</p>
        <a href="{escape(client_url, quote=True)}" class="button">Continue to HOMi</a>
    </div>
</body>
</html>
"""
