"""
Postgres access for subscriptions and chat rows.

One async engine per process. Store modules open sessions through
read_session (no commit) or write_session (commit on success, rollback on
error) and translate SQLAlchemyError into PersistenceError themselves.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shared.config import Settings, get_settings
from shared.models.orm import Base
from shared.utils.logging import get_logger

logger = get_logger(__name__)


def engine_options(settings: Settings) -> dict[str, Any]:
    """create_async_engine keyword arguments for the asyncpg driver."""
    return {
        "pool_size": settings.db_pool_min,
        "max_overflow": max(settings.db_pool_max - settings.db_pool_min, 0),
        "pool_pre_ping": True,
        "echo": settings.debug,
        "connect_args": {"command_timeout": settings.db_command_timeout},
    }


class DatabaseManager:
    """Owns the engine and session factory for one process."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    async def connect(self) -> None:
        self._engine = create_async_engine(self._settings.database_url_str, **engine_options(self._settings))
        self._session_factory = async_sessionmaker(bind=self._engine, expire_on_commit=False)
        logger.info("database_connected", url=self._settings.database_url_safe_log)

    async def create_schema(self) -> None:
        """Create missing tables and indexes (idempotent)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_schema_ready")

    async def ping(self) -> bool:
        """True when a trivial query round-trips; backs GET /ready."""
        try:
            async with self.read_session() as session:
                await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError, RuntimeError) as exc:
            logger.warning("database_ping_failed", error=str(exc))
            return False
        return True

    async def disconnect(self) -> None:
        """Dispose of the engine; safe to call when connect never ran."""
        engine, self._engine, self._session_factory = self._engine, None, None
        if engine is not None:
            await engine.dispose()
            logger.info("database_disconnected")

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("database is not connected")
        return self._engine

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("database is not connected")
        return self._session_factory

    @asynccontextmanager
    async def read_session(self) -> AsyncIterator[AsyncSession]:
        async with self._sessions()() as session:
            yield session

    @asynccontextmanager
    async def write_session(self) -> AsyncIterator[AsyncSession]:
        """Commit when the block exits cleanly, roll back when it raises."""
        async with self._sessions()() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
