"""
Pytest configuration and shared fixtures for testing.
Sets up a throwaway SQLite database per test and an HTTP client bound to it.
"""

import os

# Set TEST_MODE before any app imports to disable rate limiting
os.environ["TEST_MODE"] = "1"

# Enable metrics endpoint for testing
os.environ["ENABLE_METRICS"] = "true"

# Configure the app from the environment only, before importing app modules
os.environ["SKIP_ENV_FILE"] = "1"
os.environ["APP_ENV"] = "test"
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///./test_blog.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-at-least-32-characters")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import NullPool

from blog_service.main import app
from blog_service.db import Database
from blog_service.dependencies import get_database
from blog_service import crud


@pytest_asyncio.fixture(scope="function")
async def database(tmp_path):
    """A fresh SQLite database with all tables created."""
    # NullPool avoids sharing connections between tests
    test_db = Database(f"sqlite+aiosqlite:///{tmp_path / 'blog_test.db'}", poolclass=NullPool)
    await test_db.create_all()

    yield test_db

    await test_db.drop_all()
    await test_db.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(database):
    """Create a test HTTP client whose requests use the test database."""
    app.dependency_overrides[get_database] = lambda: database
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        timeout=30.0
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def sample_user():
    """Sample signup data."""
    return {
        "name": "Leanne Graham",
        "username": "Bret",
        "email": "Sincere@april.biz",
    }


@pytest.fixture
def sample_post():
    return {
        "title": "First post",
        "body": "This body is comfortably longer than ten characters.",
    }


@pytest_asyncio.fixture
async def author(database):
    """A user row created directly through the persistence gateway."""
    return await crud.insert_user(database, "Alice Author", "alice", "alice@example.com")


@pytest_asyncio.fixture
async def other_user(database):
    return await crud.insert_user(database, "Bob Other", "bob", "bob@example.com")
