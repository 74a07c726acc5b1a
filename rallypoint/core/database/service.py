"""
Database Service - Core Infrastructure Layer

Purpose
-------
Centralized async database engine and session management for the match
engine. Provides atomic transactions, pessimistic locking and health checks
for all store operations.

Responsibilities
----------------
- Initialize and manage a single AsyncEngine instance with connection pooling
- Provide async context managers for read-only sessions and atomic transactions
- Enforce transaction discipline: automatic commit on success, rollback on exception
- Support pessimistic row locking via `with_for_update()`
- Configure statement timeouts for PostgreSQL connections
- Give SQLite connections real transactional scope (`BEGIN IMMEDIATE`) so the
  same invariants hold in local runs and tests

Non-Responsibilities
--------------------
- Retry policies for transient failures (handled by DatabaseRetryPolicy)
- Mapping driver errors to domain errors (handled by BaseService)
- Schema migrations (`create_schema()` exists for tests and local runs only)

Architecture Notes
------------------
**Transaction Model**:
- `get_transaction()` is the primary interface for all state mutations
- Automatic commit on success, rollback on any exception
- Never call `session.commit()` inside service code

**Connection Pooling**:
- QueuePool for PostgreSQL (configurable pool_size and max_overflow)
- NullPool for SQLite and for the testing environment

Usage Example
-------------
>>> async with DatabaseService.get_transaction() as session:
>>>     match = await matches.get_for_update(session, match_id)
>>>     match.status = MatchStatus.CANCELED
>>>     # Automatic commit on exit
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Dict, Optional, Type

from sqlalchemy import MetaData, event, text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool, Pool

from rallypoint.core.config.config import Config
from rallypoint.core.logging.logger import get_logger

logger = get_logger(__name__)


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


@dataclass(frozen=True)
class _DatabaseConfigSnapshot:
    """Immutable view of the database configuration for one engine lifetime."""

    url: str
    echo: bool
    pool_class: Type[Pool]
    pool_size: int
    max_overflow: int
    pool_recycle: int
    pool_timeout: int
    statement_timeout_ms: int

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


class DatabaseService:
    """
    Centralized async database engine and session management.

    Public API
    ----------
    **Lifecycle**:
    - initialize(database_url=None) -> Initialize engine and session factory
    - shutdown() -> Dispose engine and cleanup resources
    - create_schema(metadata) -> Create tables (tests / local runs)

    **Session Management**:
    - get_session() -> Read-only access
    - get_transaction() -> Atomic write transaction (preferred)

    **Utilities**:
    - health_check() -> Fast database reachability check
    - get_pool_metrics() -> Current connection pool statistics
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _config_snapshot: Optional[_DatabaseConfigSnapshot] = None
    _init_lock: asyncio.Lock = asyncio.Lock()

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    @classmethod
    def _build_config_snapshot(cls, database_url: Optional[str] = None) -> _DatabaseConfigSnapshot:
        url = database_url or getattr(Config, "DATABASE_URL", None)
        if not url or not isinstance(url, str):
            logger.error("DATABASE_URL is not configured or invalid")
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        is_sqlite = url.startswith("sqlite")
        pool_class: Type[Pool] = (
            NullPool if is_sqlite or Config.is_testing() else AsyncAdaptedQueuePool
        )

        snapshot = _DatabaseConfigSnapshot(
            url=url,
            echo=bool(getattr(Config, "DATABASE_ECHO", False)),
            pool_class=pool_class,
            pool_size=int(getattr(Config, "DATABASE_POOL_SIZE", 20)),
            max_overflow=int(getattr(Config, "DATABASE_MAX_OVERFLOW", 10)),
            pool_recycle=int(getattr(Config, "DATABASE_POOL_RECYCLE", 3600)),
            pool_timeout=int(getattr(Config, "DATABASE_POOL_TIMEOUT", 30)),
            statement_timeout_ms=int(getattr(Config, "DATABASE_STATEMENT_TIMEOUT_MS", 5000)),
        )

        logger.debug(
            "Database configuration snapshot created",
            extra={
                "url_scheme": snapshot.url_scheme,
                "pool_class": pool_class.__name__,
                "pool_size": snapshot.pool_size,
                "statement_timeout_ms": snapshot.statement_timeout_ms,
            },
        )
        return snapshot

    @staticmethod
    def _configure_sqlite(engine: AsyncEngine) -> None:
        """
        Take over SQLite transaction control.

        The driver defers BEGIN until the first write, so reads would run
        outside the transaction. Emitting BEGIN IMMEDIATE ourselves takes the
        write lock up front and serializes writers the way a row lock does.
        """

        @event.listens_for(engine.sync_engine, "connect")
        def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _on_begin(conn: Any) -> None:
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    @classmethod
    async def initialize(cls, database_url: Optional[str] = None) -> None:
        """
        Initialize the database engine and session factory.

        Idempotent: returns immediately when already initialized.

        Parameters
        ----------
        database_url:
            Overrides ``Config.DATABASE_URL`` (tests, tooling).

        Raises
        ------
        DatabaseInitializationError
            If configuration is invalid or engine creation fails.
        """
        async with cls._init_lock:
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            try:
                config = cls._build_config_snapshot(database_url)

                engine_kwargs: Dict[str, Any] = {
                    "echo": config.echo,
                    "poolclass": config.pool_class,
                }
                if config.pool_class is AsyncAdaptedQueuePool:
                    engine_kwargs.update(
                        {
                            "pool_size": config.pool_size,
                            "max_overflow": config.max_overflow,
                            "pool_recycle": config.pool_recycle,
                            "pool_timeout": config.pool_timeout,
                            "pool_pre_ping": True,
                        }
                    )
                if config.is_sqlite:
                    engine_kwargs["connect_args"] = {"timeout": 30}

                engine = create_async_engine(config.url, **engine_kwargs)
                if config.is_sqlite:
                    cls._configure_sqlite(engine)

                cls._engine = engine
                cls._config_snapshot = config
                cls._session_factory = async_sessionmaker(
                    bind=engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )

                logger.info(
                    "DatabaseService initialized successfully",
                    extra={
                        "url_scheme": config.url_scheme,
                        "pool_class": config.pool_class.__name__,
                    },
                )

            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine. Safe to call multiple times."""
        async with cls._init_lock:
            if cls._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return

            try:
                await cls._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                cls._engine = None
                cls._session_factory = None
                cls._config_snapshot = None

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    @classmethod
    async def create_schema(cls, metadata: MetaData) -> None:
        """Create all tables of ``metadata``. Production schemas are migrated separately."""
        cls._ensure_initialized()
        assert cls._engine is not None
        async with cls._engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        logger.info("Database schema created", extra={"tables": sorted(metadata.tables)})

    @classmethod
    async def drop_schema(cls, metadata: MetaData) -> None:
        cls._ensure_initialized()
        assert cls._engine is not None
        async with cls._engine.begin() as conn:
            await conn.run_sync(metadata.drop_all)

    # ========================================================================
    # Health Check
    # ========================================================================

    @classmethod
    async def health_check(cls) -> bool:
        """
        Lightweight ``SELECT 1`` reachability probe.

        Returns False instead of raising on store failures.
        """
        if cls._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        finally:
            logger.debug(
                "Database health check completed",
                extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
            )

    @classmethod
    def get_pool_metrics(cls) -> Dict[str, int]:
        """Connection pool statistics; zeros for NullPool or before initialize()."""
        empty = {"pool_size": 0, "checked_out": 0, "checked_in": 0, "overflow": 0}
        if cls._engine is None or cls._config_snapshot is None:
            return empty

        pool = cls._engine.pool
        if cls._config_snapshot.pool_class is NullPool or not hasattr(pool, "checkedout"):
            return empty

        return {
            "pool_size": cls._config_snapshot.pool_size,
            "checked_out": pool.checkedout(),
            "checked_in": pool.checkedin(),
            "overflow": pool.overflow(),
        }

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
    async def _apply_statement_timeout(cls, session: AsyncSession) -> None:
        config = cls._config_snapshot
        if config is not None and config.is_postgres and config.statement_timeout_ms > 0:
            await session.execute(
                text(f"SET LOCAL statement_timeout = {int(config.statement_timeout_ms)}")
            )

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session without automatic commit, for read-only work.

        Raises
        ------
        DatabaseNotInitializedError
            If DatabaseService has not been initialized.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        async with cls._session_factory() as session:
            try:
                await cls._apply_statement_timeout(session)
                yield session
            finally:
                await session.close()

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session wrapped in an atomic transaction.

        Commits when the block exits normally; rolls back and re-raises on
        any exception, so a failed business rule never leaves partial writes.

        Usage Example
        -------------
        >>> async with DatabaseService.get_transaction() as session:
        >>>     match = await session.get(Match, match_id, with_for_update=True)
        >>>     match.status = MatchStatus.OPEN
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                await cls._apply_statement_timeout(session)
                yield session
                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

            except (OperationalError, DBAPIError) as exc:
                await session.rollback()
                logger.warning(
                    "Store error in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise

            except BaseException as exc:
                # Domain errors and cancellation both land here
                await session.rollback()
                logger.debug(
                    "Transaction rolled back",
                    extra={
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise

            finally:
                await session.close()
