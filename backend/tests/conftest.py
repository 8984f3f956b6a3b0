"""pytest configuration and fixtures.

Tests run against an in-memory SQLite database through aiosqlite. Outbound
email is replaced by a recording notifier so no test touches the network.
"""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from storytime.api import deps
from storytime.core import security
from storytime.core.tokens import TokenCodec, TokenPurpose
from storytime.db.session import get_db
from storytime.main import app
from storytime.models import Base
from storytime.services.account_service import AccountService
from storytime.services.notifier import DeliveryError, NotificationKind

TEST_SECRET = "test-secret-key-for-unit-tests"
TEST_PASSWORD = "Secret123"


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


# =============================================================================
# DATABASE FIXTURES (SQLite In-Memory)
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an async SQLite in-memory engine with all tables.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Provide a session bound to the in-memory test database."""
    session_factory = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


# =============================================================================
# COLLABORATOR FIXTURES
# =============================================================================


@dataclass
class SentMessage:
    kind: NotificationKind
    to_address: str
    token: str
    name: str


class FakeNotifier:
    """Records account emails instead of sending them.

    Set ``fail`` to make every delivery raise ``DeliveryError``.
    """

    def __init__(self) -> None:
        self.sent: list[SentMessage] = []
        self.fail = False

    async def send(
        self,
        kind: NotificationKind,
        to_address: str,
        token: str,
        name: str,
    ) -> None:
        if self.fail:
            raise DeliveryError("mail provider unavailable")
        self.sent.append(SentMessage(kind, to_address, token, name))

    def last(self, kind: NotificationKind) -> SentMessage:
        return [m for m in self.sent if m.kind is kind][-1]


class FakeCatalogClient:
    """Returns a fixed catalog credential."""

    def __init__(self) -> None:
        self.calls = 0

    async def fetch_client_token(self) -> dict[str, object]:
        self.calls += 1
        return {"access_token": "catalog-abc", "token_type": "Bearer", "expires_in": 3600}


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def catalog_client() -> FakeCatalogClient:
    return FakeCatalogClient()


@pytest.fixture
def codec() -> TokenCodec:
    """Token codec with production lifetimes and a test secret."""
    return TokenCodec(
        TEST_SECRET,
        ttls={
            TokenPurpose.VERIFY_EMAIL: timedelta(hours=2),
            TokenPurpose.RESET_PASSWORD: timedelta(hours=2),
            TokenPurpose.SESSION: timedelta(days=30),
        },
    )


@pytest.fixture
def fast_bcrypt(monkeypatch: pytest.MonkeyPatch) -> None:
    """Lower the bcrypt cost so lifecycle tests don't spend seconds hashing."""
    monkeypatch.setattr(security, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def account_service(
    db_session: AsyncSession, codec: TokenCodec, notifier: FakeNotifier
) -> AccountService:
    return AccountService(db_session, codec, notifier)


# =============================================================================
# USER FIXTURES
# =============================================================================


@pytest_asyncio.fixture
async def pending_user(account_service: AccountService):
    """A registered user who has not verified their email yet."""
    return await account_service.register("Ann", "Lee", "ann@x.com", TEST_PASSWORD)


@pytest_asyncio.fixture
async def verified_user(
    account_service: AccountService, notifier: FakeNotifier, pending_user
):
    """A registered and verified user."""
    await account_service.verify_email(notifier.last(NotificationKind.VERIFY).token)
    return pending_user


@pytest_asyncio.fixture
async def session_token(account_service: AccountService, verified_user) -> str:
    return await account_service.login(verified_user.email, TEST_PASSWORD)


@pytest.fixture
def auth_headers(session_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {session_token}"}


# =============================================================================
# HTTP CLIENT FIXTURE
# =============================================================================


@pytest_asyncio.fixture
async def async_client(
    db_session: AsyncSession,
    codec: TokenCodec,
    notifier: FakeNotifier,
    catalog_client: FakeCatalogClient,
) -> AsyncGenerator[AsyncClient]:
    """HTTP client against the app with test collaborators injected.

    Every request shares ``db_session``, so tests can assert on rows the
    API wrote.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_token_codec] = lambda: codec
    app.dependency_overrides[deps.get_notifier] = lambda: notifier
    app.dependency_overrides[deps.get_catalog_client] = lambda: catalog_client

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()
