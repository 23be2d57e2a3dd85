"""
Pytest Configuration and Fixtures for the Progression Engine Tests
===================================================================

Purpose
-------
Centralized fixtures for the progression test suite: real SQLAlchemy
stores on temporary SQLite files, the services built on top of them, and
an optional PostgreSQL testcontainer.

Responsibilities
----------------
- Force the testing environment before `Config` is imported
- Provide two independent stores per test (separate SQLite files, WAL mode)
- Provide a fast retry policy, an in-memory statistics provider and a
  fully wired `ProgressionEngine`
- Start PostgreSQL through testcontainers when PROGRESSION_TEST_POSTGRES=1

Architecture Notes
------------------
- Unit tests use plain objects and pytest-mock (fast, isolated)
- Integration tests use real engines through aiosqlite
- Every store fixture is function-scoped; each test gets fresh files
"""

from __future__ import annotations

import os

# Must be set before progression.core.config is imported
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("LOG_TO_FILE", "false")

from pathlib import Path
from typing import AsyncGenerator, Callable, Generator, List, Optional

import pytest
import pytest_asyncio

from progression.core.database.retry_policy import DatabaseRetryConfig, DatabaseRetryPolicy
from progression.core.database.service import DatabaseService, DatabaseSettings
from progression.core.logging.logger import get_logger
from progression.database.models import AchievementUnlock, ProgressRecord
from progression.engine import ProgressionEngine
from progression.modules.achievements.evaluator import AchievementEvaluator
from progression.modules.achievements.repository import AchievementLogRepository
from progression.modules.achievements.rules import RuleRegistry
from progression.modules.shared.formulas import level_for_xp
from progression.modules.stats.provider import InMemoryStatisticsProvider
from progression.modules.xp.repository import ProgressLedgerRepository

logger = get_logger(__name__)

POSTGRES_ENABLED = os.getenv("PROGRESSION_TEST_POSTGRES") == "1"


# ============================================================================
# SETTINGS & STORES (Integration Tests)
# ============================================================================


@pytest.fixture
def sqlite_settings(tmp_path: Path) -> Callable[..., DatabaseSettings]:
    """
    Factory for settings pointing at a fresh SQLite file under tmp_path.

    Usage:
        settings = sqlite_settings("progress", call_timeout_seconds=0.1)
    """

    def _build(name: str, **overrides) -> DatabaseSettings:
        url = f"sqlite+aiosqlite:///{tmp_path / f'{name}.db'}"
        settings = DatabaseSettings(
            url=url,
            use_null_pool=True,
            statement_timeout_ms=10_000,
            call_timeout_seconds=30.0,
        )
        return settings.with_overrides(**overrides) if overrides else settings

    return _build


async def _open_store(
    name: str, settings: DatabaseSettings, table
) -> DatabaseService:
    service = DatabaseService(name, settings)
    await service.initialize()
    await service.create_tables([table])
    return service


@pytest_asyncio.fixture
async def progress_db(sqlite_settings) -> AsyncGenerator[DatabaseService, None]:
    """Progress store on its own SQLite file."""
    service = await _open_store(
        "progress", sqlite_settings("progress"), ProgressRecord.__table__
    )
    yield service
    await service.shutdown()


@pytest_asyncio.fixture
async def achievement_db(sqlite_settings) -> AsyncGenerator[DatabaseService, None]:
    """Achievement store on a second, independent SQLite file."""
    service = await _open_store(
        "achievements", sqlite_settings("achievements"), AchievementUnlock.__table__
    )
    yield service
    await service.shutdown()


@pytest.fixture
def open_store(sqlite_settings):
    """
    Factory opening an extra store with custom settings.

    Stores opened here are shut down at teardown by the caller's engine
    or explicitly in the test.
    """

    async def _open(name: str, table, **overrides) -> DatabaseService:
        return await _open_store(name, sqlite_settings(name, **overrides), table)

    return _open


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def retry_policy() -> DatabaseRetryPolicy:
    """Retry policy with millisecond backoff so failure tests stay fast."""
    return DatabaseRetryPolicy(
        DatabaseRetryConfig(
            max_attempts=3,
            initial_backoff_ms=1,
            max_backoff_ms=5,
            jitter_ms=1,
        )
    )


@pytest.fixture
def registry() -> RuleRegistry:
    return RuleRegistry.default()


@pytest.fixture
def stats() -> InMemoryStatisticsProvider:
    return InMemoryStatisticsProvider()


@pytest.fixture
def evaluator(achievement_db, registry, retry_policy) -> AchievementEvaluator:
    return AchievementEvaluator(achievement_db, registry, retry_policy)


@pytest_asyncio.fixture
async def engine(
    progress_db, achievement_db, stats, registry, retry_policy
) -> AsyncGenerator[ProgressionEngine, None]:
    """Fully wired engine over two SQLite stores."""
    engine = ProgressionEngine(
        progress_db,
        achievement_db,
        stats,
        registry=registry,
        retry_policy=retry_policy,
    )
    yield engine
    await engine.close()


# ============================================================================
# TESTCONTAINERS FIXTURES (PostgreSQL suite)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_url() -> Generator[str, None, None]:
    """
    Start a PostgreSQL testcontainer and yield an asyncpg URL.

    Scope: session (container persists across all tests)
    Skipped unless PROGRESSION_TEST_POSTGRES=1.
    """
    if not POSTGRES_ENABLED:
        pytest.skip("set PROGRESSION_TEST_POSTGRES=1 to run PostgreSQL tests")

    from testcontainers.postgres import PostgresContainer

    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:16-alpine", driver="asyncpg")
    container.start()

    try:
        yield container.get_connection_url()
    finally:
        logger.info("Stopping PostgreSQL testcontainer...")
        container.stop()


# ============================================================================
# DATA HELPERS
# ============================================================================


@pytest.fixture
def seed_progress(progress_db):
    """
    Create a progress record with `xp` directly in the progress store.

    Usage:
        await seed_progress("u-1", 220)
    """
    repo = ProgressLedgerRepository(get_logger("tests.seed"))

    async def _seed(user_id: str, xp: int) -> None:
        async with progress_db.transaction() as session:
            await repo.insert_new(session, user_id, xp, level_for_xp(xp))

    return _seed


@pytest.fixture
def read_progress(progress_db):
    """
    Load the stored progress record for a user (None when absent).

    Usage:
        record = await read_progress("u-1")
    """
    repo = ProgressLedgerRepository(get_logger("tests.read"))

    async def _read(user_id: str) -> Optional[ProgressRecord]:
        async with progress_db.session() as session:
            return await repo.get_record(session, user_id)

    return _read


@pytest.fixture
def read_unlocks(achievement_db):
    """
    Load (slug, unlocked_at) rows for a user from the achievement store.

    Usage:
        rows = await read_unlocks("u-1")
    """
    repo = AchievementLogRepository(get_logger("tests.read"))

    async def _read(user_id: str) -> List[AchievementUnlock]:
        async with achievement_db.session() as session:
            return await repo.find_many_where(
                session,
                AchievementUnlock.user_id == user_id,
                order_by=[AchievementUnlock.id],
            )

    return _read
