"""
XP Module

Action tariff, the progress ledger repository and the XP ledger service.
"""

from .constants import (
    TRIGGER_FOR_ACTION,
    XP_TARIFF,
    ActionTag,
    coerce_action,
    trigger_for,
    validate_tariff,
)
from .repository import ProgressLedgerRepository
from .service import ProgressSnapshot, XpAward, XpLedgerService

__all__ = [
    "ActionTag",
    "XP_TARIFF",
    "TRIGGER_FOR_ACTION",
    "coerce_action",
    "trigger_for",
    "validate_tariff",
    "ProgressLedgerRepository",
    "XpLedgerService",
    "XpAward",
    "ProgressSnapshot",
]
