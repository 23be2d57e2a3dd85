"""
XP Ledger Service
=================

Purpose
-------
Award XP for user actions, keep the cached level in step with XP, and
hand off to achievement evaluation once the award is durable.

Domain
------
- Fixed per-action XP gains from the action tariff
- Level derived from total XP via the level curve
- Level-up detection for the caller's notifications
- Read-only progress snapshots

Write Protocol
--------------
Every award runs a compare-and-set loop against the progress store:

1. Read the user's record (absent means xp=0, level=1)
2. Compute new xp and level
3. Insert-if-absent for a new user, otherwise
   `UPDATE ... WHERE user_id = ? AND version = ?`
4. Zero rows affected means another writer won; back off and start over

Statement failures before commit are retried inside the same loop since
nothing was written. A failure or timeout during commit is surfaced as
`StoreUnavailableError` / `StoreTimeoutError` and never replayed, because
the award may already have landed.

Achievement Isolation
---------------------
After the award is committed, the trigger for the action (if any) is
evaluated under one total budget (`ACHIEVEMENT_EVALUATION_TIMEOUT_SECONDS`).
Anything that goes wrong there, a timeout included, is logged and yields
`unlocked_achievements=[]`; the XP award stands.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from progression.core.config.config import Config
from progression.core.database.base import as_utc
from progression.core.database.retry_policy import DatabaseRetryPolicy
from progression.core.database.service import DatabaseService
from progression.core.exceptions import StoreUnavailableError
from progression.core.logging.logger import get_logger
from progression.modules.achievements.evaluator import AchievementEvaluator
from progression.modules.shared.base_service import BaseService
from progression.modules.shared.exceptions import ConcurrencyConflictError
from progression.modules.shared.formulas import (
    level_for_xp,
    level_progress,
    xp_for_level,
)
from progression.modules.shared.validators import validate_user_id
from progression.modules.stats.provider import StatisticsProvider, build_context

from .constants import XP_TARIFF, ActionTag, coerce_action, trigger_for
from .repository import ProgressLedgerRepository


# ============================================================================
# Results
# ============================================================================


@dataclass(frozen=True)
class XpAward:
    """Outcome of one `add_xp` call."""

    user_id: str
    action: ActionTag
    xp_gained: int
    previous_xp: int
    new_xp: int
    previous_level: int
    new_level: int
    leveled_up: bool
    unlocked_achievements: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["action"] = self.action.value
        return data


@dataclass(frozen=True)
class ProgressSnapshot:
    """A user's XP, level and position within the level."""

    user_id: str
    xp: int
    level: int
    current_level_xp: int
    next_level_xp: int
    xp_to_next_level: int
    progress_percent: float
    updated_at: Optional[datetime] = None

    @classmethod
    def from_xp(
        cls, user_id: str, xp: int, updated_at: Optional[datetime] = None
    ) -> "ProgressSnapshot":
        level = level_for_xp(xp)
        next_level_xp = xp_for_level(level + 1)
        return cls(
            user_id=user_id,
            xp=xp,
            level=level,
            current_level_xp=xp_for_level(level),
            next_level_xp=next_level_xp,
            xp_to_next_level=next_level_xp - xp,
            progress_percent=round(level_progress(xp) * 100, 2),
            updated_at=updated_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return data


@dataclass(frozen=True)
class _LedgerWrite:
    previous_xp: int
    new_xp: int
    previous_level: int
    new_level: int


class _StatementFailed(Exception):
    """A statement failed before commit; the attempt wrote nothing."""

    def __init__(self, original: Exception) -> None:
        super().__init__(str(original))
        self.original = original


# ============================================================================
# Service
# ============================================================================


class XpLedgerService(BaseService):
    """
    XP awards and progress reads against the progress store.

    Public API
    ----------
    - add_xp(user_id, action) -> XpAward
    - get_progress(user_id) -> ProgressSnapshot
    """

    CONFLICT_BACKOFF_BASE_MS = 5
    CONFLICT_BACKOFF_MAX_MS = 50

    def __init__(
        self,
        progress_db: DatabaseService,
        evaluator: AchievementEvaluator,
        statistics: StatisticsProvider,
        retry_policy: DatabaseRetryPolicy,
        config: type[Config] = Config,
        logger=None,
    ) -> None:
        super().__init__(config, logger or get_logger(__name__))
        self._db = progress_db
        self._evaluator = evaluator
        self._statistics = statistics
        self._retry = retry_policy
        self._repo = ProgressLedgerRepository(self.log)

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def add_xp(self, user_id: str, action: Union[ActionTag, str]) -> XpAward:
        """
        Award the tariff XP for `action` to `user_id`.

        Args:
            user_id: Opaque user identifier
            action: ActionTag member or its string value

        Returns:
            XpAward with previous/new XP and level, and any achievements
            unlocked by the follow-up evaluation

        Raises:
            ValidationError: Invalid user id
            UnknownActionError: Unknown action value
            ConcurrencyConflictError: Lost every compare-and-set round
            StoreUnavailableError: Progress store failed
            StoreTimeoutError: Progress store call exceeded its budget

        Example:
            >>> award = await ledger.add_xp("u-1", "report")
            >>> award.new_xp, award.new_level
            (25, 1)
        """
        validate_user_id(user_id)
        action = coerce_action(action)
        gain = XP_TARIFF[action]

        write = await self._db.call(
            lambda: self._write_with_retries(user_id, gain),
            operation_name="progress.add_xp",
        )
        leveled_up = write.new_level > write.previous_level

        self.log_operation(
            "add_xp",
            user_id=user_id,
            action=action.value,
            xp_gained=gain,
            new_xp=write.new_xp,
            new_level=write.new_level,
            leveled_up=leveled_up,
        )
        if leveled_up:
            self.log.info(
                f"User {user_id} leveled up from {write.previous_level} to {write.new_level}",
                extra={
                    "user_id": user_id,
                    "old_level": write.previous_level,
                    "new_level": write.new_level,
                },
            )

        unlocked = await self._evaluate_achievements(user_id, action)

        return XpAward(
            user_id=user_id,
            action=action,
            xp_gained=gain,
            previous_xp=write.previous_xp,
            new_xp=write.new_xp,
            previous_level=write.previous_level,
            new_level=write.new_level,
            leveled_up=leveled_up,
            unlocked_achievements=unlocked,
        )

    async def get_progress(self, user_id: str) -> ProgressSnapshot:
        """
        Current XP and level for `user_id`.

        Users without a record get the level-1 defaults; nothing is created.
        """
        validate_user_id(user_id)

        async def _read() -> Tuple[int, Optional[datetime]]:
            async with self._db.session() as session:
                record = await self._repo.get_record(session, user_id)
                if record is None:
                    return 0, None
                return record.xp, as_utc(record.updated_at)

        xp, updated_at = await self._retry.execute(
            lambda: self._db.call(_read, operation_name="progress.get"),
            operation_name="progress.get",
            context={"user_id": user_id, "store": self._db.name},
        )
        return ProgressSnapshot.from_xp(user_id, xp, updated_at)

    # ========================================================================
    # WRITE PATH
    # ========================================================================

    def _conflict_backoff_seconds(self, attempt: int) -> float:
        ceiling = min(
            self.CONFLICT_BACKOFF_BASE_MS * (2 ** (attempt - 1)),
            self.CONFLICT_BACKOFF_MAX_MS,
        )
        return random.uniform(0, ceiling) / 1000.0

    async def _write_with_retries(self, user_id: str, gain: int) -> _LedgerWrite:
        max_attempts = int(self.get_config("XP_MAX_CONFLICT_RETRIES", 25))
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            try:
                outcome = await self._attempt_write(user_id, gain)
            except _StatementFailed as exc:
                last_error = exc.original
                self.log.warning(
                    "XP write attempt failed before commit; retrying",
                    extra={
                        "user_id": user_id,
                        "attempt": attempt,
                        "error_type": type(exc.original).__name__,
                    },
                )
            else:
                if outcome is not None:
                    return outcome
                last_error = None
                self.log.debug(
                    "XP compare-and-set lost a race",
                    extra={"user_id": user_id, "attempt": attempt},
                )

            if attempt < max_attempts:
                await asyncio.sleep(self._conflict_backoff_seconds(attempt))

        if last_error is not None:
            raise StoreUnavailableError(self._db.name, "progress.add_xp", last_error)

        self.log.warning(
            "XP compare-and-set retries exhausted",
            extra={"user_id": user_id, "attempts": max_attempts},
        )
        raise ConcurrencyConflictError("progress_record", user_id, max_attempts)

    async def _attempt_write(self, user_id: str, gain: int) -> Optional[_LedgerWrite]:
        """One compare-and-set round. Returns None when another writer won."""
        async with self._db.transaction() as session:
            try:
                record = await self._repo.get_record(session, user_id)

                if record is None:
                    previous_xp, previous_level = 0, 1
                    new_xp = gain
                    new_level = level_for_xp(new_xp)
                    won = await self._repo.insert_new(session, user_id, new_xp, new_level)
                else:
                    previous_xp, previous_level = record.xp, record.level
                    new_xp = previous_xp + gain
                    new_level = level_for_xp(new_xp)
                    won = await self._repo.compare_and_set(
                        session, user_id, record.version, new_xp, new_level
                    )

            # IntegrityError subclasses DBAPIError
            except IntegrityError:
                raise
            except (OperationalError, DBAPIError) as exc:
                raise _StatementFailed(exc) from exc

        if not won:
            return None

        return _LedgerWrite(
            previous_xp=previous_xp,
            new_xp=new_xp,
            previous_level=previous_level,
            new_level=new_level,
        )

    # ========================================================================
    # ACHIEVEMENT HAND-OFF
    # ========================================================================

    async def _evaluate_achievements(self, user_id: str, action: ActionTag) -> List[str]:
        trigger = trigger_for(action)
        if trigger is None:
            return []

        async def _evaluate() -> List[str]:
            context = await build_context(self._statistics, user_id, trigger)
            return await self._evaluator.check(user_id, trigger, context)

        # One budget covers statistics and every evaluator retry
        timeout = float(self.get_config("ACHIEVEMENT_EVALUATION_TIMEOUT_SECONDS", 10.0))
        try:
            return await asyncio.wait_for(_evaluate(), timeout=timeout)
        except Exception as exc:
            # The award is already durable; evaluation re-runs on the next action
            self.log_error(
                "evaluate_achievements",
                exc,
                user_id=user_id,
                action=action.value,
                trigger=trigger.value,
            )
            return []
