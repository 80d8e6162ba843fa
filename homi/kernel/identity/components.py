"""
Process-wide identity components, built once from settings.

They only hold configuration and secrets, so one instance of each is
shared by every request. The per-request pieces (store, lifecycle) are
assembled around a session by ``build_account_lifecycle``.
"""

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from homi.config import Settings
from homi.kernel.identity.cipher import FieldCipher
from homi.kernel.identity.identity_service import AccountLifecycle
from homi.kernel.identity.jwt import JWTManager
from homi.kernel.identity.password import PasswordHasher
from homi.kernel.identity.providers import GoogleIdentityProvider, IdentityProvider
from homi.kernel.identity.store import AccountStore
from homi.kernel.identity.tokens import TokenMinter
from homi.services.email_service import NotificationSender, SmtpNotificationSender


@dataclass
class IdentityComponents:
    hasher: PasswordHasher
    cipher: FieldCipher
    minter: TokenMinter
    jwt_manager: JWTManager
    provider: IdentityProvider
    notifier: NotificationSender
    require_email_verification: bool
    federated_default_role: str


def build_identity_components(settings: Settings) -> IdentityComponents:
    return IdentityComponents(
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        cipher=FieldCipher.from_hex(settings.encryption_key),
        minter=TokenMinter(
            reset_ttl=timedelta(minutes=settings.reset_token_ttl_minutes),
            verification_ttl=timedelta(hours=settings.email_verification_ttl_hours),
        ),
        jwt_manager=JWTManager(
            access_secret=settings.jwt_access_secret,
            refresh_secret=settings.jwt_refresh_secret,
            algorithm=settings.jwt_algorithm,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            access_token_expire_minutes=settings.access_token_expire_minutes,
            refresh_token_expire_days=settings.refresh_token_expire_days,
        ),
        provider=GoogleIdentityProvider(
            userinfo_url=settings.google_userinfo_url,
            timeout=settings.provider_timeout_seconds,
        ),
        notifier=SmtpNotificationSender(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            from_email=settings.smtp_from_email,
            from_name=settings.smtp_from_name,
            client_url=settings.client_url,
            public_api_url=settings.public_api_url,
            api_prefix=settings.api_prefix,
            environment=settings.environment,
        ),
        require_email_verification=settings.require_email_verification,
        federated_default_role=settings.federated_default_role,
    )


def build_account_lifecycle(
    session: AsyncSession,
    components: IdentityComponents,
) -> AccountLifecycle:
    return AccountLifecycle(
        store=AccountStore(session),
        hasher=components.hasher,
        cipher=components.cipher,
        minter=components.minter,
        jwt_manager=components.jwt_manager,
        provider=components.provider,
        notifier=components.notifier,
        require_email_verification=components.require_email_verification,
        federated_default_role=components.federated_default_role,
    )
