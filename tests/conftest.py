"""Pytest fixtures for backend tests."""

import os

# Must be set before app.core.config is imported: the secret validator only
# accepts the development JWT secret in DEBUG mode.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import create_access_token, get_password_hash
from app.db.session import Database, get_db
from app.main import create_app
from app.models.user import User, UserRole

TEST_PASSWORD = "Corr3ctHorseBattery"


@pytest.fixture
def now() -> datetime:
    """A fixed reference instant for clock-dependent service tests."""
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


@pytest_asyncio.fixture(scope="function")
async def test_database(tmp_path) -> AsyncGenerator[Database, None]:
    """A fresh SQLite database per test."""
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await database.create_all()

    yield database

    await database.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with test_database.session() as session:
        yield session


async def _make_user(session: AsyncSession, email: str, role: UserRole, **fields) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email,
        password_hash=get_password_hash(TEST_PASSWORD),
        role=role.value,
        is_active=True,
        email_verified=True,
        **fields,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest_asyncio.fixture(scope="function")
async def test_user(test_session: AsyncSession) -> User:
    """Create a regular test user."""
    return await _make_user(test_session, "test@example.com", UserRole.USER, first_name="Test")


@pytest_asyncio.fixture(scope="function")
async def admin_user(test_session: AsyncSession) -> User:
    """Create an admin user."""
    return await _make_user(test_session, "admin@example.com", UserRole.ADMIN)


@pytest_asyncio.fixture(scope="function")
async def test_token(test_user: User) -> str:
    """Create a test JWT token."""
    return create_access_token(data={"sub": str(test_user.id)}, token_version=test_user.token_version)


@pytest_asyncio.fixture(scope="function")
async def admin_token(admin_user: User) -> str:
    return create_access_token(data={"sub": str(admin_user.id)}, token_version=admin_user.token_version)


@pytest.fixture
def app(test_database: Database) -> FastAPI:
    return create_app(database=test_database, start_scheduler=False)


@pytest_asyncio.fixture(scope="function")
async def client(app: FastAPI, test_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an unauthenticated test client."""
    # Override get_db with our test session
    async def override():
        yield test_session

    app.dependency_overrides[get_db] = override

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def authenticated_client(client: AsyncClient, test_token: str) -> AsyncClient:
    """Client carrying a regular user's bearer token."""
    client.headers["Authorization"] = f"Bearer {test_token}"
    return client


@pytest_asyncio.fixture(scope="function")
async def admin_client(client: AsyncClient, admin_token: str) -> AsyncClient:
    """Client carrying an admin's bearer token."""
    client.headers["Authorization"] = f"Bearer {admin_token}"
    return client


@pytest.fixture
def user_password() -> str:
    """Plain-text password of the ``test_user`` and ``admin_user`` fixtures."""
    return TEST_PASSWORD
