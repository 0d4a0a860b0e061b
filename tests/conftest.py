"""
Pytest configuration and fixtures.

Root-level fixtures shared across all test modules.
"""

import os

# Set test environment before the application reads its settings
os.environ["APP_ENV"] = "test"
os.environ["DEBUG"] = "true"

from pathlib import Path
from typing import AsyncGenerator, Dict, List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from projecthub.main import app
from projecthub.core.database import get_db
from projecthub.core.security import get_password_hash
from projecthub.models.user import User

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "testpassword"


# === Project Paths ===

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


# === Marker Configuration ===

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "api: API endpoint tests")
    config.addinivalue_line("markers", "unit: Pure function tests without a database")


# === Core Database Fixtures ===

@pytest_asyncio.fixture
async def test_db() -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def client(test_db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# === Users ===

async def make_user(
    db: AsyncSession,
    username: str,
    roles: List[str],
    approved: bool = True,
    name: str = None,
) -> User:
    """Insert a user directly, bypassing the API."""
    user = User(
        email=f"{username}@test.com",
        username=username,
        name=name or username.title(),
        hashed_password=get_password_hash(TEST_PASSWORD),
        roles=roles,
        approved=approved,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def login(client: AsyncClient, username: str, password: str = TEST_PASSWORD) -> Dict[str, str]:
    """Log in and return an Authorization header."""
    response = await client.post(
        "/api/v1/auth/login",
        json={"email_or_username": username, "password": password},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest_asyncio.fixture
async def admin_user(test_db: AsyncSession) -> User:
    """Create admin user for tests."""
    return await make_user(test_db, "admin", ["staff", "admin"], name="Test Admin")


@pytest_asyncio.fixture
async def madmin_user(test_db: AsyncSession) -> User:
    """Create mid-admin user for tests."""
    return await make_user(test_db, "madmin", ["staff", "madmin"], name="Test Madmin")


@pytest_asyncio.fixture
async def regular_user(test_db: AsyncSession) -> User:
    """Create project-role user for tests."""
    return await make_user(test_db, "regular", ["staff", "user"], name="Test User")


@pytest_asyncio.fixture
async def other_user(test_db: AsyncSession) -> User:
    """A second project-role user."""
    return await make_user(test_db, "other", ["staff", "user"], name="Other User")


@pytest_asyncio.fixture
async def staff_user(test_db: AsyncSession) -> User:
    """Create base-role-only user for tests."""
    return await make_user(test_db, "staffer", ["staff"], name="Test Staff")


@pytest_asyncio.fixture
async def pending_user(test_db: AsyncSession) -> User:
    """An unapproved user."""
    return await make_user(test_db, "pending", ["staff"], approved=False, name="Pending User")


@pytest_asyncio.fixture
async def admin_headers(client: AsyncClient, admin_user: User) -> Dict[str, str]:
    return await login(client, "admin")


@pytest_asyncio.fixture
async def madmin_headers(client: AsyncClient, madmin_user: User) -> Dict[str, str]:
    return await login(client, "madmin")


@pytest_asyncio.fixture
async def user_headers(client: AsyncClient, regular_user: User) -> Dict[str, str]:
    return await login(client, "regular")


@pytest_asyncio.fixture
async def other_headers(client: AsyncClient, other_user: User) -> Dict[str, str]:
    return await login(client, "other")


@pytest_asyncio.fixture
async def staff_headers(client: AsyncClient, staff_user: User) -> Dict[str, str]:
    return await login(client, "staffer")
