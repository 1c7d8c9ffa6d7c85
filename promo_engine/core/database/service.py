"""
Database Service - Core Infrastructure Layer

Purpose
-------
Centralized async database engine and session management for the SQL storage
backend. Provides atomic transactions and schema creation.

Responsibilities
----------------
- Initialize and manage a single AsyncEngine instance with connection pooling
- Provide async context managers for sessions and atomic transactions
- Enforce transaction discipline: commit on success, rollback on exception
- Create the schema from ``Base.metadata``
- Expose a fast health check

Non-Responsibilities
--------------------
- Mapping promotions or player state to rows (handled by ``DatabaseStorage``)
- Per-player serialization (handled by the storage lock)

Architecture Notes
------------------
- ``get_transaction()`` is the primary interface for all state mutations.
  Never call ``session.commit()`` inside storage code.
- NullPool in the testing environment, the default queue pool otherwise.

Usage Example
-------------
>>> async with DatabaseService.get_transaction() as session:
...     session.add(row)
...     # Automatic commit on exit
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from promo_engine.core.config import Config
from promo_engine.core.database.base import Base
from promo_engine.core.logging.logger import get_logger

logger = get_logger(__name__)


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


class DatabaseService:
    """
    Centralized async database engine and session management.

    Public API
    ----------
    - initialize() / shutdown()
    - create_schema()
    - get_session() / get_transaction()
    - health_check()
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _init_lock: Optional[asyncio.Lock] = None

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    @classmethod
    def _lock(cls) -> asyncio.Lock:
        if cls._init_lock is None:
            cls._init_lock = asyncio.Lock()
        return cls._init_lock

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Initialize the database engine and session factory.

        Idempotent: returns immediately when already initialized.

        Raises
        ------
        DatabaseInitializationError
            If the URL is missing or engine creation fails.
        """
        async with cls._lock():
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            database_url = url or Config.DATABASE_URL
            if not database_url:
                raise DatabaseInitializationError(
                    "DATABASE_URL must be configured as a non-empty string"
                )

            engine_kwargs: dict[str, Any] = {"echo": Config.DATABASE_ECHO}
            if Config.is_testing():
                engine_kwargs["poolclass"] = NullPool
            else:
                engine_kwargs["pool_size"] = Config.DATABASE_POOL_SIZE
                engine_kwargs["pool_pre_ping"] = True

            url_scheme = database_url.split(":", 1)[0] if ":" in database_url else "unknown"

            try:
                cls._engine = create_async_engine(database_url, **engine_kwargs)
                cls._session_factory = async_sessionmaker(
                    bind=cls._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )
            except (SQLAlchemyError, ValueError, TypeError) as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

            logger.info(
                "DatabaseService initialized successfully",
                extra={"url_scheme": url_scheme, "pool_class": "NullPool" if Config.is_testing() else "default"},
            )

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine. Safe to call multiple times."""
        async with cls._lock():
            if cls._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return

            engine = cls._engine
            cls._engine = None
            cls._session_factory = None
            await engine.dispose()
            logger.info("DatabaseService shutdown complete")

    @classmethod
    def engine(cls) -> AsyncEngine:
        cls._ensure_initialized()
        assert cls._engine is not None
        return cls._engine

    @classmethod
    async def create_schema(cls) -> None:
        """Create all tables registered on ``Base.metadata``."""
        async with cls.engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema created", extra={"tables": sorted(Base.metadata.tables)})

    @classmethod
    async def health_check(cls) -> bool:
        """Run ``SELECT 1``; returns False instead of raising."""
        if cls._engine is None:
            return False
        try:
            async with cls.get_session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    @classmethod
    def _ensure_initialized(cls) -> None:
        if cls._session_factory is None or cls._engine is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncIterator[AsyncSession]:
        """
        Create a database session without automatic commit.

        For write operations, prefer ``get_transaction()``.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                yield session
            finally:
                logger.debug(
                    "Database session closed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncIterator[AsyncSession]:
        """
        Create a database session wrapped in an atomic transaction.

        Commits on success; rolls back and re-raises on any exception.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                yield session
                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )
            except Exception as exc:
                await session.rollback()
                logger.warning(
                    "Database transaction rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise
