"""Shared test fixtures.

Tests run against a file-backed SQLite database (aiosqlite), one per test.
A file rather than :memory: so that the daily deduction batch, which opens
its own sessions, sees the same data as the test session.

Rows created in db_session must be committed before code that opens its
own sessions (the batch, API requests) can see them.
"""

import uuid
from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tollgate.core.config import settings
from tollgate.core.rate_limiting import limiter
from tollgate.models import Base, User, UserRole, UserStatus
from tollgate.services.session_claims import SessionClaims

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105
TEST_CRON_SECRET = "test-cron-secret-that-is-at-least-32-characters"  # nosec B105

# Test user IDs (consistent across tests for predictable assertions)
ADMIN_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
MEMBER_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def test_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Deterministic settings.

    Requested by db_engine, so every database or API test gets it. Session
    secrets are set, the Secure cookie flag is dropped (the test client
    talks plain http) and rate limiting is off.
    """
    monkeypatch.setattr(settings, "auth_secret", SecretStr(TEST_AUTH_SECRET))
    monkeypatch.setattr(settings, "cron_secret", SecretStr(TEST_CRON_SECRET))
    monkeypatch.setattr(settings, "auth_cookie_secure", False)
    monkeypatch.setattr(settings, "claims_ttl_seconds", 300)
    monkeypatch.setattr(settings, "credit_adjustment_limit", 1000)
    monkeypatch.setattr(settings, "store_timeout_seconds", 10.0)
    monkeypatch.setattr(settings, "daily_deduction_same_day_guard", False)
    monkeypatch.setattr(settings, "daily_deduction_max_users", None)
    monkeypatch.setattr(limiter, "enabled", False)
    yield


# =============================================================================
# Database
# =============================================================================


@pytest_asyncio.fixture
async def db_engine(
    tmp_path,
    test_settings,  # noqa: ARG001 - patches settings for the test
) -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh SQLite database with the full schema."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'tollgate_test.db'}", echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


async def make_user(
    db: AsyncSession,
    *,
    email: str | None = None,
    status: UserStatus = UserStatus.APPROVED,
    role: UserRole = UserRole.USER,
    credits: int = 10,
    user_id: uuid.UUID | None = None,
    password_hash: str | None = None,
    registration_date: datetime | None = None,
    last_credit_deduction: datetime | None = None,
    commit: bool = True,
) -> User:
    """Insert a user row for testing.

    Committed by default so other sessions (batch, API) can see it.
    """
    user_id = user_id or uuid.uuid4()
    user = User(
        id=user_id,
        email=email or f"user-{user_id.hex[:8]}@example.com",
        password_hash=password_hash,
        status=UserStatus(status).value,
        role=UserRole(role).value,
        credits=credits,
        registration_date=registration_date or datetime.now(UTC),
        last_credit_deduction=last_credit_deduction,
    )
    db.add(user)
    if commit:
        await db.commit()
    else:
        await db.flush()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """An APPROVED admin with no credits (admins are not metered)."""
    return await make_user(
        db_session,
        email="admin@example.com",
        role=UserRole.ADMIN,
        credits=0,
        user_id=ADMIN_USER_ID,
    )


@pytest_asyncio.fixture
async def member_user(db_session: AsyncSession) -> User:
    """An APPROVED member with 5 credits."""
    return await make_user(
        db_session,
        email="member@example.com",
        credits=5,
        user_id=MEMBER_USER_ID,
    )


# =============================================================================
# API Test Fixtures
# =============================================================================


def session_cookie(user: User, *, issued_at: datetime | None = None) -> str:
    """Signed session token carrying claims for user."""
    return SessionClaims.from_user(user, issued_at=issued_at).encode()


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test database, with no session.

    Use sign_in() to attach a session cookie for a user.
    """
    from tollgate.core.database import get_db, get_session_factory
    from tollgate.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def sign_in(
    client: AsyncClient, user: User, *, issued_at: datetime | None = None
) -> None:
    """Attach a session cookie for user to client."""
    client.cookies.set(
        settings.auth_cookie_name, session_cookie(user, issued_at=issued_at)
    )


def cron_headers(secret: str = TEST_CRON_SECRET) -> dict[str, str]:
    return {"Authorization": f"Bearer {secret}"}
