"""
Pytest configuration and shared fixtures for testing.
Sets up settings, the test database swap, and HTTP clients.
"""

import asyncio
import os

# Settings are read at import time, so configure them before any app imports
os.environ.setdefault("SKIP_ENV_FILE", "1")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ["ENABLE_METRICS"] = "true"

db_host_env = os.getenv("TEST_DB_HOST")
DB_HOST = db_host_env if db_host_env else ("db" if os.getenv("DOCKER") else "localhost")
TEST_DB_URL = os.getenv(
    "TEST_DB_URL",
    f"postgresql+asyncpg://local_user:local_password@{DB_HOST}:5432/accounts_test_db",
)
os.environ["DB_URL"] = TEST_DB_URL

import uuid
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from accounts import db as app_db
from accounts.dependencies import get_session
from accounts.main import app
from accounts.password import PasswordHasher
from tests import orchestrator


# ==================== Database availability ====================


async def _probe_database() -> None:
    async with app_db.get_new_connection() as connection:
        await connection.exec_driver_sql("SELECT 1")


@pytest.fixture(scope="session")
def database_available() -> bool:
    """True when the PostgreSQL test database accepts connections."""
    try:
        asyncio.run(_probe_database())
    except Exception:
        return False
    return True


@pytest_asyncio.fixture(scope="function")
async def test_db_engine(database_available):
    """NullPool engine swapped into the app for one test, on a clean schema.

    Every test runs on its own event loop, so pooled connections must not be
    shared between tests.
    """
    if not database_available:
        pytest.skip(f"PostgreSQL test database not reachable at {TEST_DB_URL}")

    engine = create_async_engine(TEST_DB_URL, poolclass=NullPool)
    test_session_maker = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    original_engine = app_db.engine
    original_session = app_db.async_session
    app_db.engine = engine
    app_db.async_session = test_session_maker

    await orchestrator.wait_for_database(max_attempts=10)
    await orchestrator.clear_database()

    yield engine

    app_db.engine = original_engine
    app_db.async_session = original_session
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def migrated_db(test_db_engine):
    """Clean schema with every migration applied."""
    await orchestrator.run_pending_migrations()
    yield test_db_engine


@pytest_asyncio.fixture(scope="function")
async def session(migrated_db):
    """Session on the migrated test database."""
    async with app_db.async_session() as session:
        yield session


# ==================== HTTP clients ====================


FAKE_SESSION = object()


@pytest_asyncio.fixture(scope="function")
async def client():
    """HTTP client with no database behind it.

    The session dependency yields a placeholder; tests patch the crud calls
    that would use it.
    """
    async def _fake_session():
        yield FAKE_SESSION

    app.dependency_overrides[get_session] = _fake_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def db_client(migrated_db):
    """HTTP client backed by the migrated test database."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        timeout=30.0,
    ) as ac:
        yield ac


# ==================== Sample data ====================


@pytest.fixture
def hasher():
    """Cheap bcrypt work factor for tests."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def sample_user():
    """Sample registration payload."""
    return {
        "username": "validUsername",
        "email": "validemail@mail.com",
        "password": "validpwd1",
    }


class MockUser:
    """Stand-in for a stored User row."""

    def __init__(self, username: str, email: str, password: str = "$2b$04$" + "x" * 53):
        now = datetime.now(timezone.utc)
        self.id = uuid.uuid4()
        self.username = username
        self.username_normalized = username.lower()
        self.email = email
        self.email_normalized = email.lower()
        self.password = password
        self.created_at = now
        self.updated_at = now
