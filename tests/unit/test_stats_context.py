"""
Unit tests for the statistics context builder and the in-memory provider.
"""

import pytest

from progression.core.exceptions import ConfigurationError
from progression.modules.achievements.rules import RuleRegistry, Trigger
from progression.modules.shared.exceptions import UnknownTriggerError, ValidationError
from progression.modules.stats.provider import (
    FACT_KEYS,
    FACTS_BY_TRIGGER,
    InMemoryStatisticsProvider,
    StatisticsProvider,
    build_context,
    validate_fact_map,
)


class TestBuildContext:
    async def test_comment_facts(self):
        stats = InMemoryStatisticsProvider()
        stats.set("u-1", total_comments=4, comment_days_streak=2, total_reports=9)

        context = await build_context(stats, "u-1", Trigger.ON_COMMENT)

        assert context == {"totalComments": 4, "commentDaysStreak": 2}

    async def test_accepts_trigger_value(self):
        stats = InMemoryStatisticsProvider({"u-1": {"weekly_login_streak": 4}})

        context = await build_context(stats, "u-1", "onStreak")

        assert context == {"weeklyLoginStreak": 4}

    async def test_unknown_user_reads_zeroes(self):
        context = await build_context(
            InMemoryStatisticsProvider(), "nobody", Trigger.ON_REPORT_CREATE
        )

        assert context == {"totalReports": 0, "reportDaysStreak": 0}

    async def test_unknown_trigger(self):
        with pytest.raises(UnknownTriggerError):
            await build_context(InMemoryStatisticsProvider(), "u-1", "onLike")

    @pytest.mark.parametrize("bad_value", [-1, 1.5, "3", None, True])
    async def test_rejects_invalid_fact_values(self, mocker, bad_value):
        provider = mocker.Mock()
        provider.mentions_received = mocker.AsyncMock(return_value=bad_value)

        with pytest.raises(ValidationError) as exc_info:
            await build_context(provider, "u-1", Trigger.ON_MENTION)

        assert exc_info.value.field == "mentionsReceived"

    async def test_provider_errors_propagate(self, mocker):
        provider = mocker.Mock()
        provider.mentions_received = mocker.AsyncMock(side_effect=RuntimeError("down"))

        with pytest.raises(RuntimeError, match="down"):
            await build_context(provider, "u-1", Trigger.ON_MENTION)


class TestFactMap:
    def test_every_trigger_is_mapped(self):
        assert set(FACTS_BY_TRIGGER) == set(Trigger)
        validate_fact_map()

    def test_unknown_fact_name(self):
        broken = dict(FACTS_BY_TRIGGER)
        broken[Trigger.ON_MENTION] = ("mentions_sent",)

        with pytest.raises(ConfigurationError):
            validate_fact_map(broken)

    def test_fact_without_context_key(self, monkeypatch):
        keys = dict(FACT_KEYS)
        del keys["mentions_received"]
        monkeypatch.setattr("progression.modules.stats.provider.FACT_KEYS", keys)

        with pytest.raises(ConfigurationError):
            validate_fact_map()

    @pytest.mark.parametrize("trigger", list(Trigger))
    async def test_catalog_reads_built_context(self, trigger):
        # Arrange: every fact large enough to satisfy threshold rules
        stats = InMemoryStatisticsProvider()
        stats.set("u-1", **{fact: 10 for fact in InMemoryStatisticsProvider.FACTS})
        registry = RuleRegistry.default()

        # Act
        context = await build_context(stats, "u-1", trigger)
        met = [rule.slug for rule in registry.for_trigger(trigger) if rule.is_met(context)]

        # Assert: "first-*" rules need exactly 1, the rest are met
        expected = [
            rule.slug
            for rule in registry.for_trigger(trigger)
            if not rule.slug.startswith("first-")
        ]
        assert met == expected

    def test_missing_trigger(self):
        broken = dict(FACTS_BY_TRIGGER)
        del broken[Trigger.ON_STREAK]

        with pytest.raises(ConfigurationError):
            validate_fact_map(broken)


class TestInMemoryProvider:
    def test_satisfies_protocol(self):
        assert isinstance(InMemoryStatisticsProvider(), StatisticsProvider)

    async def test_increment(self):
        stats = InMemoryStatisticsProvider()

        assert stats.increment("u-1", "total_comments") == 1
        assert stats.increment("u-1", "total_comments", 2) == 3
        assert await stats.total_comments("u-1") == 3

    def test_rejects_unknown_facts(self):
        stats = InMemoryStatisticsProvider()

        with pytest.raises(ValueError):
            stats.set("u-1", likes=3)
        with pytest.raises(ValueError):
            stats.increment("u-1", "likes")
