"""Database client for SQLite/PostgreSQL connections."""

import logging
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from lifecycle_service.config import settings
from lifecycle_service.utils import service_startup_retry

from .models import Base

logger = logging.getLogger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/").endswith(":"))


class DatabaseClient:
    """Async database client for SQLAlchemy."""

    def __init__(self, database_url: Optional[str] = None):
        """Initialize database engine and session factory.

        Args:
            database_url: Overrides ``settings.database_url``
        """
        self.database_url = database_url or settings.database_url

        # In-memory SQLite must share one connection or every session sees an empty database.
        # File SQLite uses NullPool; PostgreSQL uses the default pool.
        engine_kwargs = {"echo": settings.log_level == "DEBUG"}
        if _is_memory_sqlite(self.database_url):
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        elif "sqlite" in self.database_url:
            engine_kwargs["poolclass"] = NullPool

        self.engine = create_async_engine(self.database_url, **engine_kwargs)

        self.async_session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        logger.info(f"Database client initialized with URL: {self.database_url}")

    @service_startup_retry
    async def verify_connection(self):
        """Verify database connection with retry logic.

        Called before table creation so a database that is still starting up
        gets a few attempts with exponential backoff.
        """
        async with self.engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection verified")

    async def create_tables(self):
        """Create all database tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get database session for dependency injection."""
        async with self.async_session_maker() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self):
        """Close database engine."""
        await self.engine.dispose()
        logger.info("Database client closed")
