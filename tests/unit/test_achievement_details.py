"""
Unit tests for AchievementDetailResolver.
"""

from datetime import datetime, timezone

import pytest

from progression.modules.achievements.details import (
    AchievementDetailResolver,
    AchievementDetails,
)
from progression.modules.achievements.rules import RuleRegistry


@pytest.fixture
def resolver():
    return AchievementDetailResolver(RuleRegistry.default())


class TestDescribe:
    def test_known_slugs_in_input_order(self, resolver):
        details = resolver.describe(["first-report", "first-comment"])

        assert [d.slug for d in details] == ["first-report", "first-comment"]
        assert details[0] == AchievementDetails(
            slug="first-report",
            label="First Report!",
            description="You've created your first report!",
            icon="📝",
        )

    def test_unknown_slugs_are_skipped(self, resolver, caplog):
        details = resolver.describe(["nope", "first-comment", "also-nope"])

        assert [d.slug for d in details] == ["first-comment"]
        assert "No achievement rule found for slug" in caplog.text

    def test_duplicates_appear_once(self, resolver):
        details = resolver.describe(["comment-10", "comment-10", "first-comment"])

        assert [d.slug for d in details] == ["comment-10", "first-comment"]

    def test_empty_input(self, resolver):
        assert resolver.describe([]) == []

    def test_to_dict(self, resolver):
        (detail,) = resolver.describe(["weekly-streak-4"])

        assert detail.to_dict() == {
            "slug": "weekly-streak-4",
            "label": "Weekly Warrior",
            "description": "You've used the app for 4 weeks in a row!",
            "icon": "📅",
        }


class TestCatalog:
    def test_flags_unlocked_entries(self, resolver):
        when = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

        catalog = resolver.catalog({"first-mention": when})

        assert len(catalog) == 8
        by_slug = {entry.slug: entry for entry in catalog}
        assert by_slug["first-mention"].unlocked is True
        assert by_slug["first-mention"].unlocked_at == when
        assert by_slug["first-comment"].unlocked is False
        assert by_slug["first-comment"].unlocked_at is None

    def test_to_dict_serializes_timestamp(self, resolver):
        when = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

        entry = next(e for e in resolver.catalog({"first-mention": when}) if e.unlocked)

        assert entry.to_dict()["unlocked_at"] == "2024-05-01T12:00:00+00:00"
