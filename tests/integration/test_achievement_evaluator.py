"""
Integration tests for AchievementEvaluator against a real SQLite
achievement store.

Covers exactly-once unlocks, concurrent checks, faulty predicates and
store failures.
"""

import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from progression.core.exceptions import StoreTimeoutError, StoreUnavailableError
from progression.database.models import AchievementUnlock
from progression.modules.achievements.evaluator import AchievementEvaluator
from progression.modules.achievements.repository import AchievementLogRepository
from progression.modules.achievements.rules import AchievementRule, RuleRegistry, Trigger
from progression.modules.shared.exceptions import UnknownTriggerError, ValidationError

pytestmark = [pytest.mark.integration, pytest.mark.database]


def comment_rule(slug, predicate):
    return AchievementRule(
        slug=slug,
        trigger=Trigger.ON_COMMENT,
        predicate=predicate,
        label=slug.title(),
        description="",
        icon="*",
    )


class TestCheck:
    async def test_unlocks_once(self, evaluator, read_unlocks):
        # Act
        first = await evaluator.check("u-1", Trigger.ON_REPORT_CREATE, {"totalReports": 1})
        second = await evaluator.check("u-1", "onReportCreate", {"totalReports": 1})

        # Assert
        assert first == ["first-report"]
        assert second == []
        rows = await read_unlocks("u-1")
        assert [row.slug for row in rows] == ["first-report"]

    @pytest.mark.parametrize(
        "total_comments,expected",
        [(1, ["first-comment"]), (2, []), (10, ["comment-10"])],
    )
    async def test_comment_thresholds(self, evaluator, total_comments, expected):
        context = {"totalComments": total_comments, "commentDaysStreak": 0}

        assert await evaluator.check("u-1", Trigger.ON_COMMENT, context) == expected

    async def test_reads_camel_case_context_keys(self, evaluator):
        # Act: bags carry only the facts the caller has
        reports = await evaluator.check("u-1", "onReportCreate", {"totalReports": 1})
        comments = await evaluator.check("u-2", "onComment", {"totalComments": 10})

        # Assert
        assert reports == ["first-report"]
        assert comments == ["comment-10"]

    async def test_snake_case_keys_are_not_facts(self, evaluator):
        assert await evaluator.check("u-1", "onReportCreate", {"total_reports": 1}) == []

    async def test_multiple_unlocks_in_registry_order(self, evaluator):
        context = {"totalComments": 1, "commentDaysStreak": 3}

        unlocked = await evaluator.check("u-1", Trigger.ON_COMMENT, context)

        assert unlocked == ["first-comment", "comment-streak-3"]

    async def test_users_are_independent(self, evaluator):
        context = {"mentionsReceived": 1}

        assert await evaluator.check("u-1", Trigger.ON_MENTION, context) == ["first-mention"]
        assert await evaluator.check("u-2", Trigger.ON_MENTION, context) == ["first-mention"]

    async def test_unknown_trigger(self, evaluator):
        with pytest.raises(UnknownTriggerError):
            await evaluator.check("u-1", "onLike", {})

    async def test_context_must_be_a_mapping(self, evaluator):
        with pytest.raises(ValidationError):
            await evaluator.check("u-1", Trigger.ON_COMMENT, [("totalComments", 1)])

    async def test_trigger_without_rules_skips_the_store(
        self, achievement_db, retry_policy, mocker
    ):
        registry = RuleRegistry([comment_rule("only-comments", lambda ctx: True)])
        evaluator = AchievementEvaluator(achievement_db, registry, retry_policy)
        call = mocker.spy(achievement_db, "call")

        assert await evaluator.check("u-1", Trigger.ON_STREAK, {}) == []
        call.assert_not_called()


class TestConcurrentChecks:
    async def test_one_caller_wins_each_unlock(self, evaluator, read_unlocks):
        # Arrange
        context = {"totalReports": 1, "reportDaysStreak": 5}

        # Act
        results = await asyncio.gather(
            *(evaluator.check("u-1", Trigger.ON_REPORT_CREATE, context) for _ in range(8))
        )

        # Assert: each slug reported by exactly one caller, stored once
        reported = [slug for result in results for slug in result]
        assert sorted(reported) == ["first-report", "report-streak-5"]
        rows = await read_unlocks("u-1")
        assert sorted(row.slug for row in rows) == ["first-report", "report-streak-5"]

    async def test_existing_row_is_not_reported(self, evaluator, achievement_db):
        # Arrange: another process already recorded the unlock
        repo = AchievementLogRepository(evaluator.log)
        async with achievement_db.transaction() as session:
            await repo.insert_unlock(session, "u-1", "first-mention")

        # Act
        unlocked = await evaluator.check("u-1", Trigger.ON_MENTION, {"mentionsReceived": 1})

        # Assert
        assert unlocked == []


class TestFaultyRules:
    async def test_raising_predicate_does_not_block_siblings(
        self, achievement_db, retry_policy, caplog
    ):
        def broken(ctx):
            raise KeyError("totalComments")

        registry = RuleRegistry(
            [
                comment_rule("broken", broken),
                comment_rule("always", lambda ctx: True),
            ]
        )
        evaluator = AchievementEvaluator(achievement_db, registry, retry_policy)

        unlocked = await evaluator.check("u-1", Trigger.ON_COMMENT, {})

        assert unlocked == ["always"]
        assert "Achievement predicate raised" in caplog.text


class TestStoreFailures:
    async def test_unavailable_store_is_retried_then_raised(
        self, evaluator, retry_policy, monkeypatch
    ):
        calls = {"count": 0}

        async def failing(self, session, user_id):
            calls["count"] += 1
            raise OperationalError("SELECT slug", {}, Exception("unable to open database"))

        monkeypatch.setattr(AchievementLogRepository, "unlocked_slugs", failing)

        with pytest.raises(StoreUnavailableError):
            await evaluator.check("u-1", Trigger.ON_MENTION, {"mentionsReceived": 1})

        assert calls["count"] == retry_policy.config.max_attempts

    async def test_transient_failure_recovers(self, evaluator, monkeypatch):
        original = AchievementLogRepository.unlocked_slugs
        calls = {"count": 0}

        async def flaky(self, session, user_id):
            calls["count"] += 1
            if calls["count"] == 1:
                raise OperationalError("SELECT slug", {}, Exception("database is locked"))
            return await original(self, session, user_id)

        monkeypatch.setattr(AchievementLogRepository, "unlocked_slugs", flaky)

        unlocked = await evaluator.check("u-1", Trigger.ON_MENTION, {"mentionsReceived": 1})

        assert unlocked == ["first-mention"]

    async def test_timeout(self, open_store, registry, retry_policy, monkeypatch):
        store = await open_store(
            "slow-achievements", AchievementUnlock.__table__, call_timeout_seconds=0.05
        )

        async def slow(self, session, user_id):
            await asyncio.sleep(1)
            return set()

        monkeypatch.setattr(AchievementLogRepository, "unlocked_slugs", slow)
        evaluator = AchievementEvaluator(store, registry, retry_policy)

        try:
            with pytest.raises(StoreTimeoutError):
                await evaluator.check("u-1", Trigger.ON_MENTION, {"mentionsReceived": 1})
        finally:
            await store.shutdown()


class TestUnlocked:
    async def test_lists_unlocks_with_utc_timestamps(self, evaluator):
        await evaluator.check("u-1", Trigger.ON_MENTION, {"mentionsReceived": 1})
        await evaluator.check("u-1", Trigger.ON_STREAK, {"weeklyLoginStreak": 4})

        unlocked = await evaluator.unlocked("u-1")

        assert list(unlocked) == ["first-mention", "weekly-streak-4"]
        assert all(ts.tzinfo is not None for ts in unlocked.values())

    async def test_empty_for_unknown_user(self, evaluator):
        assert await evaluator.unlocked("nobody") == {}
