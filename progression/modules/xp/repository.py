"""
Progress Ledger Repository

The only code that writes `xp` and `level`. Writes are either a first
insert (`ON CONFLICT (user_id) DO NOTHING`) or a version compare-and-set;
there is no unconditional UPDATE.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import update

from progression.core.database.base import utc_now
from progression.database.models import ProgressRecord
from progression.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


class ProgressLedgerRepository(BaseRepository[ProgressRecord]):
    """Repository for `ProgressRecord` rows."""

    def __init__(self, logger: Logger) -> None:
        super().__init__(ProgressRecord, logger)

    async def get_record(
        self, session: AsyncSession, user_id: str
    ) -> Optional[ProgressRecord]:
        return await self.get(session, user_id)

    async def insert_new(
        self, session: AsyncSession, user_id: str, xp: int, level: int
    ) -> bool:
        """
        Create the user's record at version 1.

        Returns:
            False if another writer created it first
        """
        now = utc_now()
        return await self.insert_if_absent(
            session,
            {
                "user_id": user_id,
                "xp": xp,
                "level": level,
                "version": 1,
                "created_at": now,
                "updated_at": now,
            },
            ("user_id",),
        )

    async def compare_and_set(
        self,
        session: AsyncSession,
        user_id: str,
        expected_version: int,
        xp: int,
        level: int,
    ) -> bool:
        """
        Write xp/level only if the row is still at `expected_version`.

        Returns:
            True if the row was updated, False if another writer got there first
        """
        stmt = (
            update(ProgressRecord)
            .where(
                ProgressRecord.user_id == user_id,
                ProgressRecord.version == expected_version,
            )
            .values(
                xp=xp,
                level=level,
                version=ProgressRecord.version + 1,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        won = result.rowcount == 1

        self.log.debug(
            "Repository.compare_and_set: ProgressRecord",
            extra={
                "user_id": user_id,
                "expected_version": expected_version,
                "won": won,
            },
        )

        return won
