"""
Pytest fixtures for HOMi identity tests.
"""

import os

# Settings are read at import time by homi.database; keep tests off Postgres
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Dict, List, Tuple

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from homi.kernel.identity.cipher import FieldCipher
from homi.kernel.identity.identity_service import AccountLifecycle
from homi.kernel.identity.jwt import JWTManager
from homi.kernel.identity.password import PasswordHasher
from homi.kernel.identity.providers import GoogleIdentityProvider
from homi.kernel.identity.store import AccountStore
from homi.kernel.identity.tokens import TokenMinter
from homi.kernel.models.account import Account, AccountRole, Profile
from homi.kernel.models.base import Base


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_ENCRYPTION_KEY = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"
GOOGLE_USERINFO_URL = "https://google.test/oauth2/v3/userinfo"
DEFAULT_PASSWORD = "TestPassword123"


class FrozenClock:
    """Controllable clock for expiry-window tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingNotifier:
    """NotificationSender that keeps every message instead of sending it."""

    def __init__(self):
        self.verification_links: List[Tuple[str, str]] = []
        self.reset_links: List[Tuple[str, str]] = []
        self.welcomes: List[Tuple[str, str]] = []
        self.fail = False

    async def send_verification_link(self, email: str, token: str) -> bool:
        self.verification_links.append((email, token))
        return not self.fail

    async def send_password_reset_link(self, email: str, token: str) -> bool:
        self.reset_links.append((email, token))
        return not self.fail

    async def send_welcome(self, email: str, name: str) -> bool:
        self.welcomes.append((email, name))
        return not self.fail


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def store(db_session: AsyncSession) -> AccountStore:
    return AccountStore(db_session)


@pytest.fixture
def hasher() -> PasswordHasher:
    # Minimum bcrypt cost keeps the suite fast
    return PasswordHasher(rounds=4)


@pytest.fixture
def cipher() -> FieldCipher:
    return FieldCipher.from_hex(TEST_ENCRYPTION_KEY)


@pytest.fixture
def minter() -> TokenMinter:
    return TokenMinter()


@pytest.fixture
def jwt_manager() -> JWTManager:
    """Create a JWT manager for tests."""
    return JWTManager(
        access_secret="test-access-secret-for-testing-only",
        refresh_secret="test-refresh-secret-for-testing-only",
        access_token_expire_minutes=15,
        refresh_token_expire_days=7,
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def google_users() -> Dict[str, dict]:
    """Google access token -> userinfo payload. Unknown tokens get a 401."""
    return {}


@pytest.fixture
def google_provider(google_users: Dict[str, dict]) -> GoogleIdentityProvider:
    def handler(request: httpx.Request) -> httpx.Response:
        auth = request.headers.get("Authorization", "")
        token = auth.removeprefix("Bearer ")
        if token not in google_users:
            return httpx.Response(401, json={"error": "invalid_token"})
        return httpx.Response(200, json=google_users[token])

    return GoogleIdentityProvider(
        userinfo_url=GOOGLE_USERINFO_URL,
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def lifecycle(
    store: AccountStore,
    hasher: PasswordHasher,
    cipher: FieldCipher,
    minter: TokenMinter,
    jwt_manager: JWTManager,
    google_provider: GoogleIdentityProvider,
    notifier: RecordingNotifier,
    clock: FrozenClock,
) -> AccountLifecycle:
    return AccountLifecycle(
        store=store,
        hasher=hasher,
        cipher=cipher,
        minter=minter,
        jwt_manager=jwt_manager,
        provider=google_provider,
        notifier=notifier,
        require_email_verification=True,
        clock=clock,
    )


@pytest_asyncio.fixture
async def registered_account(lifecycle: AccountLifecycle) -> Account:
    """A freshly registered tenant: neither email- nor fully verified."""
    return await lifecycle.register(
        email="tenant@example.com",
        password=DEFAULT_PASSWORD,
        first_name="Test",
        last_name="Tenant",
        phone_number="0155512345",
        role=AccountRole.TENANT,
    )


@pytest_asyncio.fixture
async def test_admin(db_session: AsyncSession, hasher: PasswordHasher) -> Account:
    """Create a test admin account."""
    account = Account(
        id=uuid.uuid4(),
        email="admin@example.com",
        password_hash=hasher.hash("AdminPass123"),
        role=AccountRole.ADMIN.value,
        is_verified=True,
        email_verified=True,
    )
    account.profile = Profile(first_name="Test", last_name="Admin", phone_number="0100000001")
    db_session.add(account)
    await db_session.commit()
    return account


@pytest.fixture
def auth_headers(jwt_manager: JWTManager):
    """Build bearer headers for an account."""

    def _headers(account: Account) -> dict:
        token, _ = jwt_manager.create_token("access", account.id, account.email, account.role_value)
        return {"Authorization": f"Bearer {token}"}

    return _headers
