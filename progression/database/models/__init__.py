"""
Database Models Package
=======================

SQLAlchemy ORM models for the two progression stores.

- progress_record: XP ledger (progress store)
- achievement_unlock: unlock log (achievement store)

Models are schema-only; behavior lives in `progression.modules`.
"""

from progression.core.database.base import Base

from .achievement_unlock import AchievementUnlock
from .progress_record import ProgressRecord

__all__ = [
    "Base",
    "ProgressRecord",
    "AchievementUnlock",
]
