"""Database configuration and session management.

This module provides SQLAlchemy async engine configuration and session
management for the SQL-backed stores.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from a2a_runtime.storage.base_model import Base


class DatabaseConfig:
    """Database configuration.

    Attributes:
        url: Async database connection URL (sqlite+aiosqlite, postgresql+asyncpg, ...)
        echo: Whether to log SQL statements (default: False)
        pool_size: Connection pool size (default: 5)
        max_overflow: Maximum overflow connections (default: 10)
    """

    def __init__(
        self,
        url: str = "sqlite+aiosqlite:///:memory:",
        echo: bool = False,
        pool_size: int = 5,
        max_overflow: int = 10,
    ):
        self.url = url
        self.echo = echo
        self.pool_size = pool_size
        self.max_overflow = max_overflow


class Database:
    """Async database engine and session manager.

    Example:
        >>> db = Database(DatabaseConfig(url="sqlite+aiosqlite:///./a2a.db"))
        >>> await db.create_tables()
        >>> async with db.session() as session:
        ...     result = await session.execute(select(TaskModel))
    """

    def __init__(self, config: DatabaseConfig):
        """Initialize database with configuration.

        Args:
            config: Database configuration
        """
        self.config = config

        engine_kwargs: dict[str, Any] = {"echo": config.echo}
        if "sqlite" not in config.url:
            # Pool settings do not apply to SQLite
            engine_kwargs["pool_size"] = config.pool_size
            engine_kwargs["max_overflow"] = config.max_overflow

        self.engine = create_async_engine(config.url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_tables(self) -> None:
        """Create all tables defined in ORM models."""
        # Registers the ORM models with Base.metadata
        import a2a_runtime.storage.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_tables(self) -> None:
        """Drop all tables defined in ORM models."""
        import a2a_runtime.storage.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Create a new database session committed on success.

        Yields:
            Async database session
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        """Close database engine and connections."""
        await self.engine.dispose()

    async def health_check(self) -> bool:
        """Check database connectivity.

        Returns:
            True if database is healthy

        Raises:
            SQLAlchemyError: If the database connection fails
        """
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
