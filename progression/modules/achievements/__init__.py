"""
Achievements Module

Rule registry, evaluation against the append-only unlock log, and
display metadata resolution.
"""

from .catalog import DEFAULT_RULES
from .details import AchievementDetailResolver, AchievementDetails, AchievementStatus
from .evaluator import AchievementEvaluator
from .repository import AchievementLogRepository
from .rules import AchievementRule, RuleRegistry, Trigger, coerce_trigger

__all__ = [
    "Trigger",
    "AchievementRule",
    "RuleRegistry",
    "coerce_trigger",
    "DEFAULT_RULES",
    "AchievementEvaluator",
    "AchievementLogRepository",
    "AchievementDetailResolver",
    "AchievementDetails",
    "AchievementStatus",
]
