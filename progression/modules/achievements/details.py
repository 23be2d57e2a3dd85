"""
Achievement Detail Resolver

Pure lookups from slugs to display metadata. No store access; the
resolver only reads the injected `RuleRegistry`.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from progression.core.logging.logger import get_logger

from .rules import AchievementRule, RuleRegistry

logger = get_logger(__name__)


@dataclass(frozen=True)
class AchievementDetails:
    """Display metadata for one achievement."""

    slug: str
    label: str
    description: str
    icon: str

    @classmethod
    def from_rule(cls, rule: AchievementRule) -> "AchievementDetails":
        return cls(
            slug=rule.slug,
            label=rule.label,
            description=rule.description,
            icon=rule.icon,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AchievementStatus:
    """An achievement's metadata plus whether a given user holds it."""

    slug: str
    label: str
    description: str
    icon: str
    unlocked: bool
    unlocked_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["unlocked_at"] = self.unlocked_at.isoformat() if self.unlocked_at else None
        return data


class AchievementDetailResolver:
    """
    Resolve slugs into display records.

    Args:
        registry: The rule registry to read metadata from
    """

    def __init__(self, registry: RuleRegistry) -> None:
        self._registry = registry

    def describe(self, slugs: Iterable[str]) -> List[AchievementDetails]:
        """
        Details for each known slug, in input order.

        Unknown slugs are skipped with a warning; repeated slugs appear once.
        """
        details: List[AchievementDetails] = []
        seen = set()

        for slug in slugs:
            if slug in seen:
                continue
            seen.add(slug)

            rule = self._registry.get(slug)
            if rule is None:
                logger.warning(
                    "No achievement rule found for slug",
                    extra={"slug": slug},
                )
                continue
            details.append(AchievementDetails.from_rule(rule))

        return details

    def catalog(self, unlocked: Mapping[str, datetime]) -> List[AchievementStatus]:
        """Every registered achievement, flagged with the user's unlock state."""
        return [
            AchievementStatus(
                slug=rule.slug,
                label=rule.label,
                description=rule.description,
                icon=rule.icon,
                unlocked=rule.slug in unlocked,
                unlocked_at=unlocked.get(rule.slug),
            )
            for rule in self._registry
        ]
