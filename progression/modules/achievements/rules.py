"""
Achievement Rule Registry

Purpose
-------
Declarative achievement rules and the immutable registry that holds them.
A rule binds a slug to a trigger, a pure predicate over the context bag,
and display metadata.

Design Notes
------------
- `RuleRegistry` is built once and injected into the evaluator and the
  detail resolver; there is no module-level mutable registry
- Construction validates every rule: unique non-empty slugs, `Trigger`
  members, callable predicates, non-empty label and icon
- Registry order is preserved and is the order unlocked slugs are reported
- Predicates read facts with `ctx.get(key, 0)` so a missing fact reads as
  "not met" rather than raising

Usage
-----
    registry = RuleRegistry.default()
    for rule in registry.for_trigger(Trigger.ON_COMMENT):
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

from progression.core.exceptions import MalformedRuleError

Predicate = Callable[[Mapping[str, Any]], Any]


class Trigger(str, Enum):
    """Event types that cause rule evaluation. Values are the wire tags."""

    ON_COMMENT = "onComment"
    ON_REPORT_CREATE = "onReportCreate"
    ON_MENTION = "onMention"
    ON_STREAK = "onStreak"

    def __str__(self) -> str:
        return self.value


def coerce_trigger(value: Union[Trigger, str]) -> Trigger:
    """
    Turn a trigger or its string value into a `Trigger`.

    Raises:
        UnknownTriggerError: If the value is not a known trigger
    """
    from progression.modules.shared.exceptions import UnknownTriggerError

    if isinstance(value, Trigger):
        return value
    try:
        return Trigger(value)
    except ValueError:
        raise UnknownTriggerError(value, (t.value for t in Trigger)) from None


@dataclass(frozen=True)
class AchievementRule:
    """
    One achievement definition.

    Attributes:
        slug: Stable unique identifier, persisted in the unlock log
        trigger: Event type that evaluates this rule
        predicate: Pure function of the context bag; truthy means unlocked
        label: Short display name
        description: One-sentence display text
        icon: Emoji or icon identifier
    """

    slug: str
    trigger: Trigger
    predicate: Predicate
    label: str
    description: str
    icon: str

    def is_met(self, context: Mapping[str, Any]) -> bool:
        return bool(self.predicate(context))


class RuleRegistry:
    """
    Immutable, validated collection of achievement rules.

    Args:
        rules: Rules in display/evaluation order

    Raises:
        MalformedRuleError: If any rule fails validation
    """

    def __init__(self, rules: Iterable[AchievementRule]) -> None:
        ordered: Tuple[AchievementRule, ...] = tuple(rules)
        by_slug: Dict[str, AchievementRule] = {}

        for rule in ordered:
            self._validate_rule(rule)
            if rule.slug in by_slug:
                raise MalformedRuleError(rule.slug, "duplicate slug")
            by_slug[rule.slug] = rule

        self._rules = ordered
        self._by_slug = by_slug
        self._by_trigger: Dict[Trigger, Tuple[AchievementRule, ...]] = {
            trigger: tuple(r for r in ordered if r.trigger is trigger)
            for trigger in Trigger
        }

    @staticmethod
    def _validate_rule(rule: Any) -> None:
        if not isinstance(rule, AchievementRule):
            raise MalformedRuleError(repr(rule), "not an AchievementRule")

        slug = rule.slug
        if not isinstance(slug, str) or not slug.strip():
            raise MalformedRuleError(repr(slug), "slug must be a non-empty string")
        if len(slug) > 64:
            raise MalformedRuleError(slug, "slug must be at most 64 characters")
        if not isinstance(rule.trigger, Trigger):
            raise MalformedRuleError(slug, f"unknown trigger {rule.trigger!r}")
        if not callable(rule.predicate):
            raise MalformedRuleError(slug, "predicate must be callable")
        for field in ("label", "icon"):
            value = getattr(rule, field)
            if not isinstance(value, str) or not value.strip():
                raise MalformedRuleError(slug, f"{field} must be a non-empty string")
        if not isinstance(rule.description, str):
            raise MalformedRuleError(slug, "description must be a string")

    @classmethod
    def default(cls) -> "RuleRegistry":
        """Registry holding the built-in catalog."""
        from .catalog import DEFAULT_RULES

        return cls(DEFAULT_RULES)

    def for_trigger(self, trigger: Union[Trigger, str]) -> Tuple[AchievementRule, ...]:
        """Rules evaluated for `trigger`, in registry order."""
        return self._by_trigger[coerce_trigger(trigger)]

    def get(self, slug: str) -> Optional[AchievementRule]:
        return self._by_slug.get(slug)

    @property
    def slugs(self) -> Tuple[str, ...]:
        return tuple(rule.slug for rule in self._rules)

    def __iter__(self) -> Iterator[AchievementRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, slug: object) -> bool:
        return slug in self._by_slug

    def __repr__(self) -> str:
        return f"RuleRegistry(rules={len(self._rules)})"
