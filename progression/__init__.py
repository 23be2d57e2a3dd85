"""
Progression engine: XP, levels and one-time achievements.

Usage
-----
    from progression import ProgressionEngine, InMemoryStatisticsProvider

    engine = await ProgressionEngine.from_config(stats, create_schema=True)
    award = await engine.add_xp("u-1", "report")
"""

from progression.core.exceptions import (
    ConfigurationError,
    MalformedRuleError,
    ProgressionInfrastructureException,
    StoreTimeoutError,
    StoreUnavailableError,
)
from progression.engine import ProgressionEngine
from progression.modules.achievements import (
    AchievementDetails,
    AchievementRule,
    AchievementStatus,
    RuleRegistry,
    Trigger,
)
from progression.modules.shared.exceptions import (
    ConcurrencyConflictError,
    ProgressionDomainException,
    UnknownActionError,
    UnknownTriggerError,
    ValidationError,
)
from progression.modules.shared.formulas import level_for_xp, xp_for_level
from progression.modules.stats import InMemoryStatisticsProvider, StatisticsProvider
from progression.modules.xp import XP_TARIFF, ActionTag, ProgressSnapshot, XpAward

__version__ = "1.0.0"

__all__ = [
    "ProgressionEngine",
    # Tags & tables
    "ActionTag",
    "Trigger",
    "XP_TARIFF",
    "AchievementRule",
    "RuleRegistry",
    # Results
    "XpAward",
    "ProgressSnapshot",
    "AchievementDetails",
    "AchievementStatus",
    # Statistics
    "StatisticsProvider",
    "InMemoryStatisticsProvider",
    # Level curve
    "level_for_xp",
    "xp_for_level",
    # Errors
    "ProgressionInfrastructureException",
    "ProgressionDomainException",
    "ConfigurationError",
    "MalformedRuleError",
    "StoreUnavailableError",
    "StoreTimeoutError",
    "ValidationError",
    "UnknownActionError",
    "UnknownTriggerError",
    "ConcurrencyConflictError",
]
