"""
Achievement Log Repository

Data access for the append-only unlock log. Rows are only ever inserted,
through `INSERT ... ON CONFLICT (user_id, slug) DO NOTHING`; the unique
constraint decides which concurrent caller wins an unlock.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Dict, Optional, Set

from sqlalchemy import select

from progression.core.database.base import as_utc, utc_now
from progression.database.models import AchievementUnlock
from progression.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


class AchievementLogRepository(BaseRepository[AchievementUnlock]):
    """Repository for `AchievementUnlock` rows."""

    CONFLICT_COLUMNS = ("user_id", "slug")

    def __init__(self, logger: Logger) -> None:
        super().__init__(AchievementUnlock, logger)

    async def unlocked_slugs(self, session: AsyncSession, user_id: str) -> Set[str]:
        """Slugs already unlocked by `user_id`."""
        stmt = select(AchievementUnlock.slug).where(AchievementUnlock.user_id == user_id)
        result = await session.execute(stmt)
        return set(result.scalars().all())

    async def unlocked_for_user(
        self, session: AsyncSession, user_id: str
    ) -> Dict[str, datetime]:
        """Map of slug -> unlocked_at for `user_id`, oldest first."""
        rows = await self.find_many_where(
            session,
            AchievementUnlock.user_id == user_id,
            order_by=[AchievementUnlock.unlocked_at, AchievementUnlock.id],
        )
        return {row.slug: as_utc(row.unlocked_at) for row in rows}

    async def insert_unlock(
        self,
        session: AsyncSession,
        user_id: str,
        slug: str,
        unlocked_at: Optional[datetime] = None,
    ) -> bool:
        """
        Record an unlock unless it already exists.

        Returns:
            True if this call created the row
        """
        return await self.insert_if_absent(
            session,
            {
                "user_id": user_id,
                "slug": slug,
                "unlocked_at": unlocked_at or utc_now(),
            },
            self.CONFLICT_COLUMNS,
        )
