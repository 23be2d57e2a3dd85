"""
Progress Record Model
=====================

One row per user holding accumulated XP and the level derived from it.

Schema-only representation. The level curve and the write protocol
(insert-if-absent, then version compare-and-set) live in
`progression.modules.xp`.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from progression.core.database.base import Base, TimestampMixin


class ProgressRecord(Base, TimestampMixin):
    """
    Durable XP and level for one user.

    `level` is a cache of `level_for_xp(xp)` and is always written together
    with `xp`. `version` increments on every write.
    """

    # ========================================================================
    # TABLE CONFIGURATION
    # ========================================================================

    __tablename__ = "progress_records"
    __table_args__ = (
        CheckConstraint("xp >= 0", name="ck_progress_records_xp_non_negative"),
        CheckConstraint("level >= 1", name="ck_progress_records_level_positive"),
        Index("ix_progress_records_level", "level"),
    )

    # ========================================================================
    # IDENTITY
    # ========================================================================

    user_id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        doc="Opaque user identifier supplied by the caller",
    )

    version: Mapped[int] = mapped_column(
        nullable=False,
        default=1,
        doc="Optimistic locking version for concurrent updates",
    )

    # ========================================================================
    # LEVEL & EXPERIENCE
    # ========================================================================

    xp: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        doc="Accumulated experience points, never decreases",
    )

    level: Mapped[int] = mapped_column(
        nullable=False,
        default=1,
        doc="Level derived from xp",
    )

    def __repr__(self) -> str:
        return (
            f"<ProgressRecord(user_id={self.user_id!r}, xp={self.xp}, "
            f"level={self.level}, version={self.version})>"
        )
