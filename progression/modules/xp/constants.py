"""
XP Action Tariff

Purpose
-------
The closed set of XP-earning actions, the fixed gain for each, and the
achievement trigger each action fires. These are static tables; they are
validated at import so a bad edit fails at startup, not mid-request.

Usage
-----
    from progression.modules.xp.constants import XP_TARIFF, ActionTag

    XP_TARIFF[ActionTag.REPORT]  # 25
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Union

from progression.modules.achievements.rules import Trigger


class ActionTag(str, Enum):
    """XP-earning user actions. Values are the tags callers send."""

    COMMENT = "comment"
    REPORT = "report"
    MENTION = "mention"
    LOGIN_STREAK = "login_streak"
    PROFILE_COMPLETE = "profile_complete"
    FIRST_WEEKLY_REPORT = "first_weekly_report"

    def __str__(self) -> str:
        return self.value


# ============================================================================
# Tariff
# ============================================================================

XP_TARIFF: Mapping[ActionTag, int] = MappingProxyType(
    {
        ActionTag.COMMENT: 10,
        ActionTag.REPORT: 25,
        ActionTag.MENTION: 5,
        ActionTag.LOGIN_STREAK: 5,
        ActionTag.PROFILE_COMPLETE: 50,
        ActionTag.FIRST_WEEKLY_REPORT: 15,
    }
)

# Actions without an entry fire no achievement evaluation
TRIGGER_FOR_ACTION: Mapping[ActionTag, Trigger] = MappingProxyType(
    {
        ActionTag.COMMENT: Trigger.ON_COMMENT,
        ActionTag.REPORT: Trigger.ON_REPORT_CREATE,
        ActionTag.MENTION: Trigger.ON_MENTION,
        ActionTag.LOGIN_STREAK: Trigger.ON_STREAK,
    }
)


def validate_tariff(
    tariff: Mapping[ActionTag, int] = XP_TARIFF,
    triggers: Mapping[ActionTag, Trigger] = TRIGGER_FOR_ACTION,
) -> None:
    """
    Check that every action has a positive integer gain and a valid trigger.

    Raises:
        ConfigurationError: If an action is missing, has a non-positive or
            non-integer gain, or maps to something other than a Trigger
    """
    from progression.core.exceptions import ConfigurationError

    for action in ActionTag:
        gain = tariff.get(action)
        if gain is None:
            raise ConfigurationError("XP_TARIFF", f"no XP gain defined for '{action}'")
        if isinstance(gain, bool) or not isinstance(gain, int) or gain <= 0:
            raise ConfigurationError(
                "XP_TARIFF", f"XP gain for '{action}' must be a positive integer, got {gain!r}"
            )

    for action, trigger in triggers.items():
        if not isinstance(action, ActionTag) or not isinstance(trigger, Trigger):
            raise ConfigurationError(
                "TRIGGER_FOR_ACTION", f"invalid mapping {action!r} -> {trigger!r}"
            )


def coerce_action(value: Union[ActionTag, str]) -> ActionTag:
    """
    Turn a tag or its string value into an `ActionTag`.

    Raises:
        UnknownActionError: If the value is not a known action
    """
    from progression.modules.shared.exceptions import UnknownActionError

    if isinstance(value, ActionTag):
        return value
    try:
        return ActionTag(value)
    except ValueError:
        raise UnknownActionError(value, (a.value for a in ActionTag)) from None


def trigger_for(action: ActionTag) -> Optional[Trigger]:
    return TRIGGER_FOR_ACTION.get(action)


validate_tariff()
