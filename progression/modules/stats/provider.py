"""
Statistics Context Builder

Purpose
-------
Bridge between the host application's activity statistics and the
achievement evaluator. The host implements `StatisticsProvider`; the
engine asks it only for the facts the fired trigger's rules read.

Design Notes
------------
- Facts are opaque non-negative integers. Streak semantics (what counts
  as a day or a week, time zones) belong to the provider
- Facts for one trigger are fetched concurrently
- A provider returning a negative or non-integer value is a bug in the
  provider and raises `ValidationError`
"""

from __future__ import annotations

import asyncio
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Protocol, Tuple, Union, runtime_checkable

from progression.core.logging.logger import get_logger
from progression.modules.achievements.rules import Trigger, coerce_trigger
from progression.modules.shared.validators import validate_non_negative_int

logger = get_logger(__name__)


@runtime_checkable
class StatisticsProvider(Protocol):
    """Async source of per-user activity facts."""

    async def total_reports(self, user_id: str) -> int: ...

    async def report_days_streak(self, user_id: str) -> int: ...

    async def total_comments(self, user_id: str) -> int: ...

    async def comment_days_streak(self, user_id: str) -> int: ...

    async def mentions_received(self, user_id: str) -> int: ...

    async def weekly_login_streak(self, user_id: str) -> int: ...


# Provider method -> context bag key read by the rule predicates
FACT_KEYS: Mapping[str, str] = MappingProxyType(
    {
        "total_reports": "totalReports",
        "report_days_streak": "reportDaysStreak",
        "total_comments": "totalComments",
        "comment_days_streak": "commentDaysStreak",
        "mentions_received": "mentionsReceived",
        "weekly_login_streak": "weeklyLoginStreak",
    }
)

FACTS_BY_TRIGGER: Mapping[Trigger, Tuple[str, ...]] = MappingProxyType(
    {
        Trigger.ON_COMMENT: ("total_comments", "comment_days_streak"),
        Trigger.ON_REPORT_CREATE: ("total_reports", "report_days_streak"),
        Trigger.ON_MENTION: ("mentions_received",),
        Trigger.ON_STREAK: ("weekly_login_streak",),
    }
)


def validate_fact_map(fact_map: Mapping[Trigger, Tuple[str, ...]] = FACTS_BY_TRIGGER) -> None:
    """
    Check that every trigger lists facts the provider protocol defines.

    Raises:
        ConfigurationError: On a missing trigger or an unknown fact name
    """
    from progression.core.exceptions import ConfigurationError

    for trigger in Trigger:
        facts = fact_map.get(trigger)
        if not facts:
            raise ConfigurationError("FACTS_BY_TRIGGER", f"no facts defined for '{trigger}'")
        for fact in facts:
            if not callable(getattr(StatisticsProvider, fact, None)):
                raise ConfigurationError(
                    "FACTS_BY_TRIGGER", f"'{fact}' is not a StatisticsProvider method"
                )
            if fact not in FACT_KEYS:
                raise ConfigurationError("FACT_KEYS", f"no context key defined for '{fact}'")


validate_fact_map()


async def build_context(
    provider: StatisticsProvider,
    user_id: str,
    trigger: Union[Trigger, str],
) -> Dict[str, int]:
    """
    Gather the context bag for `trigger`.

    Returns:
        Mapping of context key to value, e.g. {"totalReports": 3, ...}

    Raises:
        ValidationError: If the provider returns an invalid value
        Exception: Whatever the provider raises is propagated
    """
    trigger = coerce_trigger(trigger)
    facts = FACTS_BY_TRIGGER.get(trigger, ())
    if not facts:
        return {}

    values = await asyncio.gather(
        *(getattr(provider, fact)(user_id) for fact in facts)
    )

    context: Dict[str, int] = {}
    for fact, value in zip(facts, values):
        key = FACT_KEYS[fact]
        validate_non_negative_int(value, key)
        context[key] = value

    logger.debug(
        "Achievement context built",
        extra={"user_id": user_id, "trigger": trigger.value, "facts": context},
    )
    return context


class InMemoryStatisticsProvider:
    """
    Dict-backed provider for development and tests.

    Example:
        >>> stats = InMemoryStatisticsProvider()
        >>> stats.set("u-1", total_comments=1)
        >>> await stats.total_comments("u-1")
        1
    """

    FACTS = (
        "total_reports",
        "report_days_streak",
        "total_comments",
        "comment_days_streak",
        "mentions_received",
        "weekly_login_streak",
    )

    def __init__(self, facts: Optional[Mapping[str, Mapping[str, int]]] = None) -> None:
        self._facts: Dict[str, Dict[str, int]] = {
            user_id: dict(values) for user_id, values in (facts or {}).items()
        }

    def set(self, user_id: str, **values: int) -> None:
        unknown = set(values) - set(self.FACTS)
        if unknown:
            raise ValueError(f"unknown facts: {sorted(unknown)}")
        self._facts.setdefault(user_id, {}).update(values)

    def increment(self, user_id: str, fact: str, amount: int = 1) -> int:
        if fact not in self.FACTS:
            raise ValueError(f"unknown fact: {fact}")
        bucket = self._facts.setdefault(user_id, {})
        bucket[fact] = bucket.get(fact, 0) + amount
        return bucket[fact]

    def _get(self, user_id: str, fact: str) -> int:
        return self._facts.get(user_id, {}).get(fact, 0)

    async def total_reports(self, user_id: str) -> int:
        return self._get(user_id, "total_reports")

    async def report_days_streak(self, user_id: str) -> int:
        return self._get(user_id, "report_days_streak")

    async def total_comments(self, user_id: str) -> int:
        return self._get(user_id, "total_comments")

    async def comment_days_streak(self, user_id: str) -> int:
        return self._get(user_id, "comment_days_streak")

    async def mentions_received(self, user_id: str) -> int:
        return self._get(user_id, "mentions_received")

    async def weekly_login_streak(self, user_id: str) -> int:
        return self._get(user_id, "weekly_login_streak")
