"""
Async database connection management using SQLAlchemy 2.0.

Engines are kept per event loop so the same manager works across the
server loop and the short-lived loops pytest-asyncio creates per test.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.pool import StaticPool

from digitalsky.core.config import settings
from digitalsky.models.db import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages async database connections with per-event-loop engines."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.DATABASE_URL
        self._engines: Dict[int, AsyncEngine] = {}
        self._session_factories: Dict[int, async_sessionmaker] = {}

    def _get_loop_id(self) -> int:
        """Get current event loop ID for per-loop resource tracking."""
        try:
            loop = asyncio.get_running_loop()
            return id(loop)
        except RuntimeError:
            return 0

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def _create_engine(self) -> AsyncEngine:
        """Create engine for the configured URL."""
        if self.is_sqlite:
            # A single shared connection keeps ":memory:" databases alive
            return create_async_engine(
                self.database_url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
                echo=settings.DB_ECHO,
            )

        return create_async_engine(
            self.database_url,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
            echo=settings.DB_ECHO,
        )

    def _setup_engine_for_loop(self, loop_id: int) -> None:
        if loop_id in self._engines:
            return

        engine = self._create_engine()
        self._engines[loop_id] = engine
        self._session_factories[loop_id] = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info(f"Database engine initialized for loop {loop_id}")

    async def get_engine_async(self) -> AsyncEngine:
        """Get the async engine, initializing for the current event loop if necessary."""
        loop_id = self._get_loop_id()
        self._setup_engine_for_loop(loop_id)
        return self._engines[loop_id]

    async def test_connection(self, timeout: float = 15.0) -> bool:
        """Test database connectivity with timeout."""
        engine = await self.get_engine_async()

        try:
            async with asyncio.timeout(timeout):
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
            return True
        except asyncio.TimeoutError:
            logger.error(f"Database connection test timed out after {timeout}s")
            return False
        except Exception as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get an async session with automatic commit/rollback.

        Usage:
            async with db.session() as session:
                result = await session.execute(...)
        """
        loop_id = self._get_loop_id()
        self._setup_engine_for_loop(loop_id)

        session = self._session_factories[loop_id]()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_tables(self) -> None:
        """Create all tables."""
        engine = await self.get_engine_async()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def drop_tables(self) -> None:
        """Drop all tables (for testing only)."""
        engine = await self.get_engine_async()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Database tables dropped")

    async def close(self) -> None:
        """Close the engine for the CURRENT event loop only."""
        loop_id = self._get_loop_id()

        engine = self._engines.pop(loop_id, None)
        self._session_factories.pop(loop_id, None)
        if engine is not None:
            await engine.dispose()

        logger.info("Database connections closed for current loop")


# Global database manager instance
db = DatabaseManager()
