"""
Database Service - Core Infrastructure Layer

Purpose
-------
Async engine and session management for one logical store. The engine
holds two instances: "progress" (the XP ledger) and "achievements" (the
unlock log). They may point at the same database or at two separate ones;
no transaction ever spans both.

Responsibilities
----------------
- Initialize and manage an AsyncEngine with connection pooling
- Provide async context managers for sessions and atomic transactions
- Enforce transaction discipline: commit on success, rollback on exception
- Bound every store call with a timeout and translate driver failures into
  `StoreUnavailableError` / `StoreTimeoutError`
- Configure statement timeouts for PostgreSQL connections
- Configure WAL journaling and a busy timeout for SQLite connections
- Create the tables owned by this store

Non-Responsibilities
--------------------
- Retry policies for transient failures (handled by DatabaseRetryPolicy)
- Optimistic-concurrency retries (handled by the XP ledger)
- Database migrations
- Domain logic or business rules

Architecture Notes
------------------
**Transaction Model**:
- `transaction()` is the interface for all state mutations
- Automatic commit on success, rollback on any exception
- Never call `session.commit()` inside repository code

**Error Mapping** (`call()`):
- `asyncio.TimeoutError` -> `StoreTimeoutError`
- `IntegrityError` -> propagated unchanged (never transient)
- `OperationalError` / `DBAPIError` / `OSError` -> `StoreUnavailableError`

**Pooling**:
- NullPool when `use_null_pool` is set (tests), AsyncAdaptedQueuePool otherwise

Configuration
-------------
Settings are snapshotted from Config by `DatabaseSettings.from_config(url)`:
- DATABASE_POOL_SIZE (default: 5)
- DATABASE_MAX_OVERFLOW (default: 10)
- DATABASE_POOL_RECYCLE (default: 1800)
- DATABASE_POOL_TIMEOUT (default: 30)
- DATABASE_STATEMENT_TIMEOUT_MS (default: 5000)
- DATABASE_ECHO (default: False)
- STORE_CALL_TIMEOUT_SECONDS (default: 5.0)

Usage Example
-------------
>>> progress_db = DatabaseService("progress", DatabaseSettings.from_config(url))
>>> await progress_db.initialize()
>>>
>>> async def write() -> None:
>>>     async with progress_db.transaction() as session:
>>>         await session.execute(stmt)
>>>
>>> await progress_db.call(write, operation_name="progress.write")
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional, Sequence, TypeVar

from sqlalchemy import Table, event, text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from progression.core.config.config import Config
from progression.core.database.base import Base
from progression.core.exceptions import StoreTimeoutError, StoreUnavailableError
from progression.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


# ============================================================================
# Lifecycle Exceptions
# ============================================================================


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


# ============================================================================
# Configuration Snapshot
# ============================================================================


@dataclass(frozen=True)
class DatabaseSettings:
    """
    Immutable snapshot of the settings for one store.

    Prevents repeated Config lookups and provides a stable configuration
    view for the lifetime of the engine.
    """

    url: str
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_recycle: int = 1800
    pool_timeout: int = 30
    statement_timeout_ms: int = 5_000
    call_timeout_seconds: float = 5.0
    use_null_pool: bool = False

    @classmethod
    def from_config(cls, url: str) -> "DatabaseSettings":
        """Build settings for `url` from Config tunables."""
        if not url or not isinstance(url, str):
            raise DatabaseInitializationError(
                "Database URL must be configured as a non-empty string"
            )

        return cls(
            url=url,
            echo=bool(Config.DATABASE_ECHO),
            pool_size=int(Config.DATABASE_POOL_SIZE),
            max_overflow=int(Config.DATABASE_MAX_OVERFLOW),
            pool_recycle=int(Config.DATABASE_POOL_RECYCLE),
            pool_timeout=int(Config.DATABASE_POOL_TIMEOUT),
            statement_timeout_ms=int(Config.DATABASE_STATEMENT_TIMEOUT_MS),
            call_timeout_seconds=float(Config.STORE_CALL_TIMEOUT_SECONDS),
            use_null_pool=Config.is_testing(),
        )

    def with_overrides(self, **changes: Any) -> "DatabaseSettings":
        return replace(self, **changes)

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def url_scheme(self) -> str:
        """Extract the URL scheme for logging."""
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


# ============================================================================
# DatabaseService
# ============================================================================


class DatabaseService:
    """
    Async engine and session management for one named store.

    Public API
    ----------
    **Lifecycle**:
    - initialize() -> Create engine and session factory (idempotent)
    - shutdown() -> Dispose engine and cleanup resources
    - create_tables(tables) -> Create the tables this store owns

    **Session Management**:
    - session() -> Read-only or manual transaction control
    - transaction() -> Atomic write transaction (preferred)

    **Calls**:
    - call(operation, operation_name) -> Run with timeout and error mapping

    **Utilities**:
    - health_check() -> Fast database reachability check
    """

    def __init__(self, name: str, settings: DatabaseSettings) -> None:
        self.name = name
        self._settings = settings
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._init_lock = asyncio.Lock()

    @property
    def settings(self) -> DatabaseSettings:
        return self._settings

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def dialect_name(self) -> str:
        self._ensure_initialized()
        assert self._engine is not None
        return self._engine.dialect.name

    def __repr__(self) -> str:
        return (
            f"DatabaseService(name={self.name!r}, "
            f"scheme={self._settings.url_scheme!r}, "
            f"initialized={self.is_initialized})"
        )

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    def _engine_kwargs(self) -> dict[str, Any]:
        settings = self._settings
        engine_kwargs: dict[str, Any] = {"echo": settings.echo}

        if settings.use_null_pool:
            engine_kwargs["poolclass"] = NullPool
        else:
            engine_kwargs.update(
                {
                    "poolclass": AsyncAdaptedQueuePool,
                    "pool_size": settings.pool_size,
                    "max_overflow": settings.max_overflow,
                    "pool_recycle": settings.pool_recycle,
                    "pool_timeout": settings.pool_timeout,
                }
            )

        if settings.is_sqlite:
            # sqlite3 busy handler, in seconds
            engine_kwargs["connect_args"] = {
                "timeout": settings.statement_timeout_ms / 1000.0
            }

        return engine_kwargs

    def _install_sqlite_pragmas(self, engine: AsyncEngine) -> None:
        busy_timeout_ms = self._settings.statement_timeout_ms

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms}")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    async def initialize(self) -> None:
        """
        Initialize the engine and session factory.

        Idempotent: returns immediately if already initialized.

        Raises
        ------
        DatabaseInitializationError
            If the URL is invalid or engine creation fails.
        """
        async with self._init_lock:
            if self._engine is not None:
                logger.debug(
                    "DatabaseService already initialized; skipping",
                    extra={"store": self.name},
                )
                return

            settings = self._settings
            logger.info(
                "Initializing DatabaseService",
                extra={"store": self.name, "url_scheme": settings.url_scheme},
            )

            try:
                engine = create_async_engine(settings.url, **self._engine_kwargs())
                if settings.is_sqlite:
                    self._install_sqlite_pragmas(engine)

                self._engine = engine
                self._session_factory = async_sessionmaker(
                    bind=engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )

                logger.info(
                    "DatabaseService initialized successfully",
                    extra={
                        "store": self.name,
                        "url_scheme": settings.url_scheme,
                        "null_pool": settings.use_null_pool,
                        "call_timeout_seconds": settings.call_timeout_seconds,
                    },
                )

            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={
                        "store": self.name,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed for store '{self.name}': {exc}"
                ) from exc

    async def shutdown(self) -> None:
        """
        Dispose the engine and reset internal state.

        Safe to call multiple times; no-op if already shut down.
        """
        async with self._init_lock:
            if self._engine is None:
                logger.debug(
                    "DatabaseService not initialized; nothing to shutdown",
                    extra={"store": self.name},
                )
                return

            logger.info("Shutting down DatabaseService", extra={"store": self.name})

            try:
                await self._engine.dispose()
                logger.info(
                    "DatabaseService shutdown complete", extra={"store": self.name}
                )
            finally:
                self._engine = None
                self._session_factory = None

    async def create_tables(self, tables: Sequence[Table]) -> None:
        """Create `tables` if they do not exist yet."""
        self._ensure_initialized()
        assert self._engine is not None

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, tables=list(tables))

        logger.info(
            "Store schema ensured",
            extra={"store": self.name, "tables": [t.name for t in tables]},
        )

    # ========================================================================
    # Health Check
    # ========================================================================

    async def health_check(self) -> bool:
        """
        Perform a lightweight health check by executing a simple query.

        Returns False instead of raising on failure.
        """
        if self._engine is None:
            logger.warning(
                "Health check called on uninitialized DatabaseService",
                extra={"store": self.name},
            )
            return False

        start = time.perf_counter()
        success = False

        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            success = True
            return True

        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={
                    "store": self.name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return False

        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            logger.debug(
                "Database health check completed",
                extra={
                    "store": self.name,
                    "success": success,
                    "duration_ms": duration_ms,
                },
            )

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    def _ensure_initialized(self) -> None:
        if self._session_factory is None or self._engine is None:
            logger.error(
                "DatabaseService operation attempted before initialization",
                extra={"store": self.name},
            )
            raise DatabaseNotInitializedError(
                f"DatabaseService '{self.name}' must be initialized before use. "
                "Call initialize() during startup."
            )

    async def _apply_statement_timeout(self, session: AsyncSession) -> None:
        if self._settings.is_postgres:
            await session.execute(
                text(
                    f"SET LOCAL statement_timeout = "
                    f"{int(self._settings.statement_timeout_ms)}"
                )
            )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a session without automatic commit.

        Use for read-only operations. The session is closed on exit; nothing
        is committed.
        """
        self._ensure_initialized()
        assert self._session_factory is not None

        start = time.perf_counter()
        async with self._session_factory() as session:
            try:
                await self._apply_statement_timeout(session)
                yield session
            finally:
                await session.close()
                logger.debug(
                    "Database session closed",
                    extra={
                        "store": self.name,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a session wrapped in an atomic transaction.

        **On Success**: commits the transaction.
        **On Exception**: rolls back and re-raises the original exception.

        Usage Example
        -------------
        >>> async with progress_db.transaction() as session:
        >>>     await session.execute(update_stmt)
        >>>     # Automatic commit on exit
        """
        self._ensure_initialized()
        assert self._session_factory is not None

        start = time.perf_counter()
        async with self._session_factory() as session:
            try:
                await self._apply_statement_timeout(session)
                yield session

                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={
                        "store": self.name,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )

            except BaseException as exc:
                await session.rollback()
                logger.debug(
                    "Database transaction rolled back",
                    extra={
                        "store": self.name,
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise

            finally:
                await session.close()

    # ========================================================================
    # Bounded Calls
    # ========================================================================

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str,
        timeout_seconds: Optional[float] = None,
    ) -> T:
        """
        Run `operation` under this store's call timeout.

        Parameters
        ----------
        operation : Callable[[], Awaitable[T]]
            Zero-argument coroutine factory doing the store work.
        operation_name : str
            Stable identifier for logs (e.g. "progress.compare_and_set").
        timeout_seconds : Optional[float]
            Overrides the configured budget for this call.

        Raises
        ------
        StoreTimeoutError
            The call exceeded its budget. A write may or may not have landed.
        StoreUnavailableError
            The driver or connection failed.
        IntegrityError
            Propagated unchanged; constraint violations are not transient.
        """
        self._ensure_initialized()
        timeout = (
            timeout_seconds
            if timeout_seconds is not None
            else self._settings.call_timeout_seconds
        )

        try:
            return await asyncio.wait_for(operation(), timeout=timeout)

        except asyncio.TimeoutError as exc:
            logger.warning(
                "Store call timed out",
                extra={
                    "store": self.name,
                    "operation": operation_name,
                    "timeout_seconds": timeout,
                },
            )
            raise StoreTimeoutError(self.name, operation_name, timeout) from exc

        except IntegrityError:
            raise

        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Store call failed",
                extra={
                    "store": self.name,
                    "operation": operation_name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            raise StoreUnavailableError(self.name, operation_name, exc) from exc
