"""
Integration Tests for DatabaseService
=====================================

Purpose
-------
Test the store layer against real databases: SQLite files for every run,
PostgreSQL through testcontainers when PROGRESSION_TEST_POSTGRES=1.

Test Coverage
-------------
- Initialization, health checks and shutdown
- Transaction commit and rollback
- Bounded calls and their error mapping
- Insert-if-absent and compare-and-set semantics per dialect
"""

import asyncio

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError

from progression.core.config.config import Config
from progression.core.database.base import utc_now
from progression.core.database.bootstrap import ensure_schema, shutdown_stores
from progression.core.database.retry_policy import DatabaseRetryConfig, DatabaseRetryPolicy
from progression.core.database.service import (
    DatabaseNotInitializedError,
    DatabaseService,
    DatabaseSettings,
)
from progression.core.exceptions import StoreTimeoutError, StoreUnavailableError
from progression.core.logging.logger import get_logger
from progression.database.models import AchievementUnlock, ProgressRecord
from progression.engine import ProgressionEngine
from progression.modules.achievements.rules import Trigger
from progression.modules.stats.provider import InMemoryStatisticsProvider
from progression.modules.xp.repository import ProgressLedgerRepository


# ============================================================================
# LIFECYCLE
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestLifecycle:
    async def test_health_check(self, progress_db):
        assert await progress_db.health_check() is True
        assert progress_db.dialect_name == "sqlite"

    async def test_use_before_initialize(self, sqlite_settings):
        service = DatabaseService("progress", sqlite_settings("unused"))

        assert await service.health_check() is False
        with pytest.raises(DatabaseNotInitializedError):
            async with service.session():
                pass

    async def test_initialize_and_shutdown_are_idempotent(self, sqlite_settings):
        service = DatabaseService("progress", sqlite_settings("idempotent"))

        await service.initialize()
        await service.initialize()
        assert service.is_initialized

        await service.shutdown()
        await service.shutdown()
        assert not service.is_initialized

    async def test_sqlite_runs_in_wal_mode(self, progress_db):
        async with progress_db.session() as session:
            mode = (await session.execute(text("PRAGMA journal_mode"))).scalar_one()

        assert mode.lower() == "wal"


# ============================================================================
# TRANSACTIONS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestTransactions:
    async def test_commit(self, progress_db, read_progress):
        # Act
        async with progress_db.transaction() as session:
            session.add(ProgressRecord(user_id="u-1", xp=10, level=1, version=1))

        # Assert
        record = await read_progress("u-1")
        assert record.xp == 10

    async def test_rollback_on_error(self, progress_db, read_progress):
        with pytest.raises(RuntimeError):
            async with progress_db.transaction() as session:
                session.add(ProgressRecord(user_id="u-1", xp=10, level=1, version=1))
                await session.flush()
                raise RuntimeError("abort")

        assert await read_progress("u-1") is None

    async def test_check_constraints(self, progress_db):
        with pytest.raises(IntegrityError):
            async with progress_db.transaction() as session:
                session.add(ProgressRecord(user_id="u-1", xp=-5, level=1, version=1))

    async def test_unique_unlock_constraint(self, achievement_db):
        with pytest.raises(IntegrityError):
            async with achievement_db.transaction() as session:
                for _ in range(2):
                    session.add(
                        AchievementUnlock(user_id="u-1", slug="first-comment", unlocked_at=utc_now())
                    )


# ============================================================================
# BOUNDED CALLS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestCall:
    async def test_returns_result(self, progress_db):
        async def work():
            return 42

        assert await progress_db.call(work, operation_name="test.work") == 42

    async def test_timeout(self, progress_db):
        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(StoreTimeoutError) as exc_info:
            await progress_db.call(slow, operation_name="test.slow", timeout_seconds=0.02)

        assert exc_info.value.store == "progress"
        assert exc_info.value.timeout_seconds == 0.02

    async def test_driver_errors_become_unavailable(self, progress_db):
        async def broken():
            raise OperationalError("SELECT 1", {}, Exception("unable to open database file"))

        with pytest.raises(StoreUnavailableError) as exc_info:
            await progress_db.call(broken, operation_name="test.broken")

        assert isinstance(exc_info.value.original_error, OperationalError)

    async def test_integrity_errors_pass_through(self, progress_db):
        async def conflicting():
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with pytest.raises(IntegrityError):
            await progress_db.call(conflicting, operation_name="test.conflict")


# ============================================================================
# DIALECT WRITES
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestLedgerWrites:
    @pytest.fixture
    def repo(self):
        return ProgressLedgerRepository(get_logger("tests.repo"))

    async def test_insert_new_only_once(self, progress_db, repo):
        async with progress_db.transaction() as session:
            assert await repo.insert_new(session, "u-1", 10, 1) is True
        async with progress_db.transaction() as session:
            assert await repo.insert_new(session, "u-1", 99, 2) is False

    async def test_compare_and_set(self, progress_db, repo, read_progress):
        async with progress_db.transaction() as session:
            await repo.insert_new(session, "u-1", 10, 1)

        async with progress_db.transaction() as session:
            assert await repo.compare_and_set(session, "u-1", 1, 60, 2) is True
        async with progress_db.transaction() as session:
            assert await repo.compare_and_set(session, "u-1", 1, 999, 9) is False

        record = await read_progress("u-1")
        assert (record.xp, record.level, record.version) == (60, 2, 2)


# ============================================================================
# POSTGRESQL (testcontainers)
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
@pytest.mark.postgres
class TestPostgresStores:
    """The full engine against PostgreSQL; skipped unless enabled."""

    @pytest.fixture
    async def pg_engine(self, postgres_url):
        settings = DatabaseSettings(url=postgres_url, use_null_pool=True, call_timeout_seconds=30.0)
        progress_db = DatabaseService("progress", settings)
        achievement_db = DatabaseService("achievements", settings)
        await progress_db.initialize()
        await achievement_db.initialize()
        await ensure_schema(progress_db, achievement_db)

        async with progress_db.transaction() as session:
            await session.execute(text("DELETE FROM progress_records"))
        async with achievement_db.transaction() as session:
            await session.execute(text("DELETE FROM achievement_unlocks"))

        stats = InMemoryStatisticsProvider()
        engine = ProgressionEngine(
            progress_db,
            achievement_db,
            stats,
            retry_policy=DatabaseRetryPolicy(DatabaseRetryConfig(3, 1, 5, 1)),
        )
        try:
            yield engine, stats
        finally:
            await shutdown_stores(progress_db, achievement_db)

    async def test_concurrent_awards(self, pg_engine, monkeypatch):
        engine, _ = pg_engine
        monkeypatch.setattr(Config, "XP_MAX_CONFLICT_RETRIES", 200)

        await asyncio.gather(*(engine.add_xp("u-1", "report") for _ in range(20)))

        snapshot = await engine.get_progress("u-1")
        assert snapshot.xp == 500

    async def test_concurrent_unlocks(self, pg_engine):
        engine, _ = pg_engine
        context = {"totalComments": 1, "commentDaysStreak": 0}

        results = await asyncio.gather(
            *(engine.check_achievements("u-1", Trigger.ON_COMMENT, context) for _ in range(10))
        )

        assert sorted(slug for r in results for slug in r) == ["first-comment"]
        statuses = await engine.list_achievements("u-1")
        assert [s.slug for s in statuses if s.unlocked] == ["first-comment"]

    async def test_award_with_unlock(self, pg_engine):
        engine, stats = pg_engine
        stats.set("u-1", total_reports=1)

        award = await engine.add_xp("u-1", "report")

        assert award.unlocked_achievements == ["first-report"]
