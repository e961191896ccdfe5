"""Pytest configuration and shared fixtures for the test suite."""

from typing import TYPE_CHECKING, AsyncGenerator

import pytest

if TYPE_CHECKING:
    from a2a_runtime.storage.database import Database


@pytest.fixture
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture
async def test_db() -> AsyncGenerator["Database", None]:
    """Create an in-memory SQLite database for testing.

    Yields:
        Database instance with all tables created
    """
    from a2a_runtime.storage.database import Database, DatabaseConfig

    db = Database(DatabaseConfig(url="sqlite+aiosqlite:///:memory:", echo=False))
    await db.create_tables()

    yield db

    await db.close()
