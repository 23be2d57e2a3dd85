"""
Built-in achievement catalog.

Predicates read camelCase keys from the context bag (`totalReports`,
`commentDaysStreak`, ...). `progression.modules.stats.provider.FACT_KEYS`
maps provider facts onto these keys.
"""

from __future__ import annotations

from typing import Tuple

from .rules import AchievementRule, Trigger

DEFAULT_RULES: Tuple[AchievementRule, ...] = (
    # Comments
    AchievementRule(
        slug="first-comment",
        trigger=Trigger.ON_COMMENT,
        predicate=lambda ctx: ctx.get("totalComments", 0) == 1,
        label="First Comment!",
        description="You've made your first comment!",
        icon="💬",
    ),
    AchievementRule(
        slug="comment-streak-3",
        trigger=Trigger.ON_COMMENT,
        predicate=lambda ctx: ctx.get("commentDaysStreak", 0) >= 3,
        label="Comment Streak: 3 Days",
        description="You've commented for 3 days in a row!",
        icon="🔥",
    ),
    AchievementRule(
        slug="comment-10",
        trigger=Trigger.ON_COMMENT,
        predicate=lambda ctx: ctx.get("totalComments", 0) >= 10,
        label="Commenter",
        description="You've made 10 comments!",
        icon="🗣️",
    ),
    # Reports
    AchievementRule(
        slug="first-report",
        trigger=Trigger.ON_REPORT_CREATE,
        predicate=lambda ctx: ctx.get("totalReports", 0) == 1,
        label="First Report!",
        description="You've created your first report!",
        icon="📝",
    ),
    AchievementRule(
        slug="report-streak-5",
        trigger=Trigger.ON_REPORT_CREATE,
        predicate=lambda ctx: ctx.get("reportDaysStreak", 0) >= 5,
        label="Report Streak: 5 Days",
        description="You've created reports for 5 days in a row!",
        icon="📊",
    ),
    # Mentions
    AchievementRule(
        slug="first-mention",
        trigger=Trigger.ON_MENTION,
        predicate=lambda ctx: ctx.get("mentionsReceived", 0) == 1,
        label="First Mention",
        description="Someone mentioned you for the first time!",
        icon="👋",
    ),
    AchievementRule(
        slug="popular-5-mentions",
        trigger=Trigger.ON_MENTION,
        predicate=lambda ctx: ctx.get("mentionsReceived", 0) >= 5,
        label="Popular",
        description="You've been mentioned 5 times!",
        icon="⭐",
    ),
    # Streaks
    AchievementRule(
        slug="weekly-streak-4",
        trigger=Trigger.ON_STREAK,
        predicate=lambda ctx: ctx.get("weeklyLoginStreak", 0) >= 4,
        label="Weekly Warrior",
        description="You've used the app for 4 weeks in a row!",
        icon="📅",
    ),
)
