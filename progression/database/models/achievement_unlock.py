"""
Achievement Unlock Model
========================

Append-only log of unlocked achievements. The unique constraint on
(user_id, slug) is what makes unlocking exactly-once under concurrency.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from progression.core.database.base import Base, IdMixin, utc_now


class AchievementUnlock(Base, IdMixin):
    """One unlocked achievement. Never updated or deleted."""

    __tablename__ = "achievement_unlocks"
    __table_args__ = (
        UniqueConstraint("user_id", "slug", name="uq_achievement_unlocks_user_slug"),
        Index("ix_achievement_unlocks_user_id", "user_id"),
    )

    user_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        doc="Opaque user identifier",
    )

    slug: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        doc="Rule slug from the achievement registry",
    )

    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        doc="Unlock time (UTC), set once at insert",
    )

    def __repr__(self) -> str:
        return f"<AchievementUnlock(user_id={self.user_id!r}, slug={self.slug!r})>"
