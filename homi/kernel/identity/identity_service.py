"""
Account lifecycle: registration, login, verification and password flows.

Account state moves REGISTERED -> EMAIL_VERIFIED -> FULLY_VERIFIED and never
backwards. Each operation commits its changes together with the audit
event, or nothing at all. Emails are sent after the commit and their
failure never fails the operation.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, AsyncIterator, Callable, Dict, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError

from homi.kernel.identity.cipher import DecryptionError, FieldCipher
from homi.kernel.identity.errors import (
    AlreadyInStateError,
    AuthError,
    ConflictError,
    ExternalProviderError,
    ForbiddenError,
    InternalError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    InvalidTokenError,
    NotFoundError,
    PreconditionFailedError,
)
from homi.kernel.identity.identifier import IdentifierResolver
from homi.kernel.identity.jwt import JWTManager, TokenPair
from homi.kernel.identity.password import FEDERATED_PASSWORD_SENTINEL, PasswordHasher
from homi.kernel.identity.providers import (
    FederatedProfile,
    IdentityProvider,
    ProviderVerificationError,
)
from homi.kernel.identity.store import AccountStore
from homi.kernel.identity.tokens import TokenKind, TokenMinter
from homi.kernel.models.account import (
    SIGNUP_ROLES,
    Account,
    AccountRole,
    Gender,
    Profile,
)
from homi.kernel.models.base import utcnow
from homi.kernel.models.event_log import EventType
from homi.logging_config import get_logger
from homi.services.email_service import NotificationSender

logger = get_logger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"

# Profile fields a user may edit after registration
PROFILE_EDITABLE_FIELDS = frozenset({
    "first_name",
    "last_name",
    "phone_number",
    "bio",
    "avatar_url",
    "preferred_budget_min",
    "preferred_budget_max",
})


@dataclass
class LoginResult:
    """An authenticated account and its fresh session tokens."""

    account: Account
    tokens: TokenPair
    created: bool = False  # federated login provisioned a new account


@dataclass
class EmailVerificationResult:
    already_verified: bool
    sent: bool


class AccountLifecycle:
    """
    The account verification state machine and credential protocols.

    All collaborators are passed in; the lifecycle holds no global state.
    ``clock`` returns the current aware UTC datetime and exists so expiry
    windows can be tested.
    """

    def __init__(
        self,
        store: AccountStore,
        hasher: PasswordHasher,
        cipher: FieldCipher,
        minter: TokenMinter,
        jwt_manager: JWTManager,
        provider: IdentityProvider,
        notifier: NotificationSender,
        require_email_verification: bool = True,
        federated_default_role: Union[AccountRole, str] = AccountRole.TENANT,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.hasher = hasher
        self.cipher = cipher
        self.minter = minter
        self.jwt_manager = jwt_manager
        self.provider = provider
        self.notifier = notifier
        self.require_email_verification = require_email_verification
        self.federated_default_role = AccountRole(federated_default_role)
        self.clock = clock
        self.resolver = IdentifierResolver(store)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _atomic(self, failure_code: str, failure_message: str) -> AsyncIterator[None]:
        """
        Run a block as one transaction.

        Domain errors pass through; unique-index violations become conflicts;
        anything else is logged and surfaced as a generic InternalError.
        """
        try:
            async with self.store.transaction():
                yield
        except AuthError:
            raise
        except IntegrityError as e:
            raise _conflict_from_integrity_error(e) from e
        except Exception as e:
            logger.exception("Account operation failed", extra={"code": failure_code})
            raise InternalError(failure_message, code=failure_code) from e

    async def _hash_password(self, password: str) -> str:
        return await asyncio.to_thread(self.hasher.hash, password)

    async def _verify_password(self, password: str, digest: str) -> bool:
        return await asyncio.to_thread(self.hasher.verify, password, digest)

    async def _require_account(self, account_id: uuid.UUID) -> Account:
        account = await self.store.get_by_id(account_id)
        if account is None:
            raise NotFoundError("User not found", code="USER_NOT_FOUND")
        return account

    def _issue_tokens(self, account: Account) -> TokenPair:
        return self.jwt_manager.issue_pair(account.id, account.email, account.role_value)

    async def _notify(self, description: str, send) -> bool:
        try:
            sent = await send
        except Exception:
            logger.exception("Failed to send %s email", description)
            return False
        if not sent:
            logger.warning("%s email was not delivered", description.capitalize())
        return sent

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        phone_number: str,
        role: Union[AccountRole, str],
        ip_address: Optional[str] = None,
    ) -> Account:
        """
        Create an account and its profile in one transaction.

        The new account is REGISTERED: neither email- nor fully verified.

        Raises:
            ForbiddenError: ROLE_NOT_ALLOWED for roles users cannot pick
            ConflictError: EMAIL_EXISTS or PHONE_EXISTS
        """
        signup_role = _parse_signup_role(role)
        email = email.lower().strip()
        phone_number = phone_number.strip()

        if await self.store.get_by_email(email):
            raise ConflictError("Email already registered", code="EMAIL_EXISTS")
        if await self.store.phone_in_use(phone_number):
            raise ConflictError("Phone number already registered", code="PHONE_EXISTS")

        password_hash = await self._hash_password(password)

        async with self._atomic("REGISTRATION_FAILED", "Registration failed. Please try again."):
            account = Account(
                id=uuid.uuid4(),
                email=email,
                password_hash=password_hash,
                role=signup_role.value,
                is_verified=False,
                email_verified=False,
            )
            account.profile = Profile(
                first_name=first_name.strip(),
                last_name=last_name.strip(),
                phone_number=phone_number,
            )
            self.store.add(account)
            await self.store.flush()
            await self.store.record_event(
                EventType.ACCOUNT_REGISTERED,
                account,
                payload={"email": email, "role": signup_role.value},
                ip_address=ip_address,
            )

        logger.info("Account registered", extra={"account_id": str(account.id)})
        return account

    async def login(
        self,
        identifier: str,
        password: str,
        ip_address: Optional[str] = None,
    ) -> LoginResult:
        """
        Authenticate by email or phone number.

        Unknown identifiers and wrong passwords are indistinguishable.
        Unverified accounts may log in.
        """
        account = await self.resolver.resolve(identifier)
        if account is None:
            raise InvalidCredentialsError(INVALID_CREDENTIALS_MESSAGE)
        if not await self._verify_password(password, account.password_hash):
            raise InvalidCredentialsError(INVALID_CREDENTIALS_MESSAGE)
        if account.profile is None:
            logger.error("Account has no profile", extra={"account_id": str(account.id)})
            raise InternalError("User profile not found", code="PROFILE_NOT_FOUND")

        upgraded_hash = None
        if self.hasher.needs_rehash(account.password_hash):
            upgraded_hash = await self._hash_password(password)

        async with self._atomic("LOGIN_FAILED", "Login failed. Please try again."):
            if upgraded_hash:
                account.password_hash = upgraded_hash
            await self.store.record_event(
                EventType.ACCOUNT_LOGGED_IN,
                account,
                payload={"method": "password"},
                ip_address=ip_address,
            )

        return LoginResult(account=account, tokens=self._issue_tokens(account))

    async def refresh_session(self, refresh_token: str) -> LoginResult:
        """Exchange a refresh token for a new pair carrying the current email and role."""
        claims = self.jwt_manager.verify_refresh_token(refresh_token)
        try:
            account_id = claims.account_id
        except ValueError:
            raise InvalidTokenError("Invalid refresh token")
        account = await self.store.get_by_id(account_id)
        if account is None:
            raise InvalidTokenError("Account no longer exists")
        return LoginResult(account=account, tokens=self._issue_tokens(account))

    async def get_current_user(self, account_id: uuid.UUID) -> Account:
        return await self._require_account(account_id)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    async def complete_verification(
        self,
        account_id: uuid.UUID,
        national_id: str,
        gender: Union[Gender, str],
        birthdate: date,
        ip_address: Optional[str] = None,
    ) -> Account:
        """
        Move an account to FULLY_VERIFIED.

        The national ID is encrypted before it is stored. The profile fields
        and the verified flag are committed together.
        """
        account = await self._require_account(account_id)
        if account.is_verified:
            raise AlreadyInStateError("Account is already verified", code="ALREADY_VERIFIED")
        profile = account.profile
        if profile is None:
            raise NotFoundError("Profile not found", code="PROFILE_NOT_FOUND")
        if self.require_email_verification and not account.email_verified:
            raise PreconditionFailedError(
                "Please verify your email address first",
                code="EMAIL_NOT_VERIFIED",
            )

        envelope = self.cipher.encrypt(national_id.strip())
        async with self._atomic("VERIFICATION_FAILED", "Verification failed. Please try again."):
            # Guarded write: of two concurrent submissions only one gets here
            if not await self.store.mark_fully_verified(account):
                raise AlreadyInStateError("Account is already verified", code="ALREADY_VERIFIED")
            profile.national_id = envelope
            profile.gender = Gender(gender).value
            profile.birthdate = birthdate
            await self.store.record_event(
                EventType.VERIFICATION_COMPLETED,
                account,
                ip_address=ip_address,
            )

        logger.info("Account fully verified", extra={"account_id": str(account.id)})
        await self._notify("welcome", self.notifier.send_welcome(account.email, profile.first_name))
        return account

    async def send_verification_email(
        self,
        account_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> EmailVerificationResult:
        """Mint a 24 hour email-verification token and mail the link."""
        account = await self._require_account(account_id)
        if account.email_verified:
            return EmailVerificationResult(already_verified=True, sent=False)

        minted = self.minter.generate(TokenKind.EMAIL_VERIFICATION, self.clock())
        async with self._atomic("VERIFICATION_EMAIL_FAILED", "Could not send verification email."):
            account.email_verification_token_hash = minted.token_hash
            account.email_verification_token_expires = minted.expires_at
            await self.store.record_event(
                EventType.EMAIL_VERIFICATION_SENT,
                account,
                ip_address=ip_address,
            )

        sent = await self._notify(
            "verification",
            self.notifier.send_verification_link(account.email, minted.token),
        )
        return EmailVerificationResult(already_verified=False, sent=sent)

    async def verify_email(self, token: str, ip_address: Optional[str] = None) -> Account:
        """Consume an email-verification token. Each token works once."""
        token_hash = self.minter.hash_for_lookup(token or "")
        account = await self.store.get_by_verification_token_hash(token_hash)
        if account is None:
            raise InvalidOrExpiredTokenError(
                "Invalid or expired verification token",
                code="INVALID_VERIFICATION_TOKEN",
            )
        if not self.minter.is_live(account.email_verification_token_expires, self.clock()):
            raise InvalidOrExpiredTokenError(
                "Verification token has expired",
                code="VERIFICATION_TOKEN_EXPIRED",
            )

        async with self._atomic("EMAIL_VERIFICATION_FAILED", "Email verification failed."):
            if not await self.store.consume_verification_token(account, token_hash):
                raise InvalidOrExpiredTokenError(
                    "Invalid or expired verification token",
                    code="INVALID_VERIFICATION_TOKEN",
                )
            await self.store.record_event(
                EventType.EMAIL_VERIFIED,
                account,
                payload={"method": "token"},
                ip_address=ip_address,
            )

        return account

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    async def forgot_password(self, email: str, ip_address: Optional[str] = None) -> None:
        """
        Start a password reset.

        Returns the same way whether or not the email is registered, so the
        caller cannot learn which addresses have accounts.
        """
        account = await self.store.get_by_email(email or "")
        if account is None:
            logger.info("Password reset requested for unknown email")
            return

        minted = self.minter.generate(TokenKind.PASSWORD_RESET, self.clock())
        async with self._atomic("RESET_REQUEST_FAILED", "Could not start password reset."):
            account.reset_token_hash = minted.token_hash
            account.reset_token_expires = minted.expires_at
            await self.store.record_event(
                EventType.PASSWORD_RESET_REQUESTED,
                account,
                ip_address=ip_address,
            )

        await self._notify(
            "password reset",
            self.notifier.send_password_reset_link(account.email, minted.token),
        )

    async def reset_password(
        self,
        token: str,
        new_password: str,
        ip_address: Optional[str] = None,
    ) -> Account:
        """Consume a reset token and set a new password."""
        token_hash = self.minter.hash_for_lookup(token or "")
        account = await self.store.get_by_reset_token_hash(token_hash)
        if account is None:
            raise InvalidOrExpiredTokenError(
                "Invalid or expired reset token",
                code="INVALID_RESET_TOKEN",
            )
        if not self.minter.is_live(account.reset_token_expires, self.clock()):
            raise InvalidOrExpiredTokenError(
                "Reset token has expired",
                code="RESET_TOKEN_EXPIRED",
            )

        password_hash = await self._hash_password(new_password)
        async with self._atomic("PASSWORD_RESET_FAILED", "Password reset failed."):
            if not await self.store.consume_reset_token(account, token_hash, password_hash):
                raise InvalidOrExpiredTokenError(
                    "Invalid or expired reset token",
                    code="INVALID_RESET_TOKEN",
                )
            await self.store.record_event(
                EventType.PASSWORD_RESET,
                account,
                ip_address=ip_address,
            )

        return account

    async def change_password(
        self,
        account_id: uuid.UUID,
        current_password: str,
        new_password: str,
        ip_address: Optional[str] = None,
    ) -> None:
        account = await self._require_account(account_id)
        if not await self._verify_password(current_password, account.password_hash):
            raise InvalidCredentialsError(
                "Current password is incorrect",
                code="INVALID_CURRENT_PASSWORD",
            )
        if await self._verify_password(new_password, account.password_hash):
            raise PreconditionFailedError(
                "New password must be different from the current password",
                code="SAME_PASSWORD",
            )

        password_hash = await self._hash_password(new_password)
        async with self._atomic("PASSWORD_CHANGE_FAILED", "Password change failed."):
            account.password_hash = password_hash
            await self.store.record_event(
                EventType.PASSWORD_CHANGED,
                account,
                ip_address=ip_address,
            )

    # ------------------------------------------------------------------
    # Federated login
    # ------------------------------------------------------------------

    async def login_with_federated_provider(
        self,
        provider_access_token: str,
        ip_address: Optional[str] = None,
    ) -> LoginResult:
        """
        Log in with a provider access token, provisioning an account on
        first use.

        Provisioned accounts are email-verified (the provider vouches for
        the address) but not fully verified, and carry a password sentinel
        that never matches, so they cannot use password login until a reset.
        """
        try:
            federated = await self.provider.fetch_profile(provider_access_token)
        except ProviderVerificationError as e:
            raise ExternalProviderError(
                "Invalid Google token",
                code="INVALID_GOOGLE_TOKEN",
            ) from e

        if not federated.email_verified:
            raise ExternalProviderError(
                "Google account email is not verified",
                code="GOOGLE_EMAIL_NOT_VERIFIED",
            )

        try:
            account, created = await self._sign_in_federated(federated, ip_address)
        except ConflictError:
            # A concurrent first login provisioned this email; use its account
            logger.info("Federated account was provisioned concurrently, retrying lookup")
            account, created = await self._sign_in_federated(federated, ip_address)

        return LoginResult(account=account, tokens=self._issue_tokens(account), created=created)

    async def _sign_in_federated(
        self,
        federated: FederatedProfile,
        ip_address: Optional[str],
    ) -> Tuple[Account, bool]:
        account = await self.store.get_by_email(federated.email)
        created = account is None

        async with self._atomic("FEDERATED_LOGIN_FAILED", "Google login failed. Please try again."):
            if account is None:
                account = self._provision_federated_account(federated)
                self.store.add(account)
                await self.store.flush()
                await self.store.record_event(
                    EventType.ACCOUNT_PROVISIONED,
                    account,
                    payload={"provider": self.provider.name, "role": account.role_value},
                    ip_address=ip_address,
                )
            elif not account.email_verified:
                account.email_verified = True
                await self.store.record_event(
                    EventType.EMAIL_VERIFIED,
                    account,
                    payload={"method": self.provider.name},
                    ip_address=ip_address,
                )
            await self.store.record_event(
                EventType.ACCOUNT_LOGGED_IN,
                account,
                payload={"method": self.provider.name},
                ip_address=ip_address,
            )

        return account, created

    def _provision_federated_account(self, federated: FederatedProfile) -> Account:
        account = Account(
            id=uuid.uuid4(),
            email=federated.email.lower(),
            password_hash=FEDERATED_PASSWORD_SENTINEL,
            role=self.federated_default_role.value,
            is_verified=False,
            email_verified=True,
        )
        account.profile = Profile(
            first_name=federated.given_name or federated.email.split("@")[0],
            last_name=federated.family_name,
            phone_number=None,
            avatar_url=federated.avatar_url,
        )
        return account

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def update_profile(
        self,
        account_id: uuid.UUID,
        changes: Dict[str, Any],
        ip_address: Optional[str] = None,
    ) -> Account:
        """
        Apply a partial profile update.

        Only the keys present in ``changes`` are touched. Verification
        fields cannot be changed here.
        """
        account = await self._require_account(account_id)
        profile = account.profile
        if profile is None:
            raise NotFoundError("Profile not found", code="PROFILE_NOT_FOUND")

        rejected = sorted(set(changes) - PROFILE_EDITABLE_FIELDS)
        if rejected:
            raise PreconditionFailedError(
                f"Fields cannot be updated: {', '.join(rejected)}",
                code="FIELD_NOT_EDITABLE",
            )

        updates = dict(changes)
        for key in ("first_name", "last_name"):
            if key in updates:
                value = (updates[key] or "").strip()
                if not value:
                    raise PreconditionFailedError(
                        f"{key.replace('_', ' ').capitalize()} cannot be empty",
                        code="INVALID_PROFILE",
                    )
                updates[key] = value

        if "phone_number" in updates:
            phone = (updates["phone_number"] or "").strip() or None
            if phone and await self.store.phone_in_use(phone, exclude_account_id=account.id):
                raise ConflictError("Phone number already registered", code="PHONE_EXISTS")
            updates["phone_number"] = phone

        for key in ("preferred_budget_min", "preferred_budget_max"):
            if key in updates:
                updates[key] = _to_budget(updates[key])

        budget_min = updates.get("preferred_budget_min", profile.preferred_budget_min)
        budget_max = updates.get("preferred_budget_max", profile.preferred_budget_max)
        if budget_min is not None and budget_max is not None and budget_min > budget_max:
            raise PreconditionFailedError(
                "Minimum budget cannot exceed maximum budget",
                code="INVALID_BUDGET_RANGE",
            )

        if not updates:
            return account

        async with self._atomic("PROFILE_UPDATE_FAILED", "Profile update failed."):
            for key, value in updates.items():
                setattr(profile, key, value)
            await self.store.record_event(
                EventType.PROFILE_UPDATED,
                account,
                payload={"fields": sorted(updates)},
                entity_type="profile",
                ip_address=ip_address,
            )

        return account

    async def reveal_national_id(self, account_id: uuid.UUID) -> Optional[str]:
        """
        Decrypt the stored national ID.

        Returns None when none is stored or the envelope cannot be opened.
        """
        account = await self._require_account(account_id)
        envelope = account.profile.national_id if account.profile else None
        if not envelope:
            return None
        try:
            return self.cipher.decrypt(envelope)
        except DecryptionError:
            logger.error("National ID could not be decrypted", extra={"account_id": str(account.id)})
            return None


def _parse_signup_role(role: Union[AccountRole, str]) -> AccountRole:
    try:
        parsed = AccountRole(role)
    except ValueError:
        parsed = None
    if parsed not in SIGNUP_ROLES:
        raise ForbiddenError(
            "Only LANDLORD or TENANT can self-register",
            code="ROLE_NOT_ALLOWED",
        )
    return parsed


def _to_budget(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise PreconditionFailedError("Budget must be a number", code="INVALID_BUDGET_RANGE")
    if not amount.is_finite() or amount < 0:
        raise PreconditionFailedError("Budget cannot be negative", code="INVALID_BUDGET_RANGE")
    return amount


def _conflict_from_integrity_error(error: IntegrityError) -> ConflictError:
    detail = str(error.orig).lower()
    if "phone" in detail:
        return ConflictError("Phone number already registered", code="PHONE_EXISTS")
    return ConflictError("Email already registered", code="EMAIL_EXISTS")
