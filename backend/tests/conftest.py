"""Shared test configuration and fixtures.

Each test gets a fresh in-memory SQLite schema (through aiosqlite), so tests
are fully isolated and need no running PostgreSQL. Stripe is always mocked
unless a test module opts into the real test-mode API.
"""

import uuid
from collections.abc import AsyncGenerator
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import gpsr_billing.models  # noqa: F401  (registers every table on Base.metadata)
from gpsr_billing.auth.jwt import create_access_token
from gpsr_billing.config import settings
from gpsr_billing.database import Base, get_db
from gpsr_billing.main import app
from gpsr_billing.models.user import User

TEST_WEBHOOK_SECRET = "whsec_test_secret"

# ---------------------------------------------------------------------------
# Per-test engine: one shared in-memory connection, schema created per test
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine; also used by webhook tasks."""
    factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    with patch("gpsr_billing.billing.tasks.async_session_factory", factory):
        yield factory


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session on the per-test database."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to use the test DB session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def webhook_secret():
    """Configure a known Stripe webhook signing secret."""
    with patch.object(settings, "stripe_webhook_secret", TEST_WEBHOOK_SECRET):
        yield TEST_WEBHOOK_SECRET


# ---------------------------------------------------------------------------
# Convenience fixtures: authenticated user
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create and return a test user directly in the DB."""
    unique = uuid.uuid4().hex[:8]
    user = User(email=f"testuser-{unique}@test.com", name="Test User")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict[str, str]:
    """Return Authorization headers for the test user."""
    token = create_access_token({"sub": str(test_user.id), "email": test_user.email})
    return {"Authorization": f"Bearer {token}"}
