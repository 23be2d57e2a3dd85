"""Statistics provider protocol and context-bag construction."""

from .provider import (
    FACT_KEYS,
    FACTS_BY_TRIGGER,
    InMemoryStatisticsProvider,
    StatisticsProvider,
    build_context,
    validate_fact_map,
)

__all__ = [
    "StatisticsProvider",
    "InMemoryStatisticsProvider",
    "FACT_KEYS",
    "FACTS_BY_TRIGGER",
    "build_context",
    "validate_fact_map",
]
