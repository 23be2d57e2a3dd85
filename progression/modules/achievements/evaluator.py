"""
Achievement Evaluator

Purpose
-------
Evaluate the rules registered for a trigger against a context bag and
persist newly satisfied achievements exactly once per (user, slug).

Responsibilities
----------------
- Load the user's unlocked slugs from the achievement store
- Evaluate each remaining rule's predicate, isolating predicate failures
- Insert satisfied rules with insert-if-absent in one transaction
- Report only the slugs this call actually inserted

Design Notes
------------
- Evaluation is idempotent: calling `check` twice with the same context
  unlocks nothing the second time
- Concurrent callers racing on the same slug are arbitrated by the unique
  constraint; the loser sees a conflict and does not report the slug
- Store calls are idempotent and run through `DatabaseRetryPolicy`, each
  attempt bounded by the store's call timeout
- A predicate that raises is logged and treated as "not met"; sibling
  rules are still evaluated
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Union

from progression.core.config.config import Config
from progression.core.database.retry_policy import DatabaseRetryPolicy
from progression.core.database.service import DatabaseService
from progression.core.logging.logger import get_logger
from progression.modules.shared.base_service import BaseService
from progression.modules.shared.exceptions import ValidationError
from progression.modules.shared.validators import validate_user_id

from .repository import AchievementLogRepository
from .rules import AchievementRule, RuleRegistry, Trigger, coerce_trigger


class AchievementEvaluator(BaseService):
    """
    Rule evaluation and unlock persistence against the achievement store.

    Public API
    ----------
    - check(user_id, trigger, context) -> newly unlocked slugs
    - unlocked(user_id) -> slug -> unlocked_at for everything the user holds
    """

    def __init__(
        self,
        achievement_db: DatabaseService,
        registry: RuleRegistry,
        retry_policy: DatabaseRetryPolicy,
        config: type[Config] = Config,
        logger=None,
    ) -> None:
        super().__init__(config, logger or get_logger(__name__))
        self._db = achievement_db
        self._registry = registry
        self._retry = retry_policy
        self._repo = AchievementLogRepository(self.log)

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def check(
        self,
        user_id: str,
        trigger: Union[Trigger, str],
        context: Mapping[str, Any],
    ) -> List[str]:
        """
        Unlock every not-yet-unlocked rule for `trigger` whose predicate holds.

        Args:
            user_id: Opaque user identifier
            trigger: Trigger member or its string value
            context: Named facts for this trigger

        Returns:
            Slugs newly unlocked by this call, in registry order

        Raises:
            ValidationError: Invalid user id or non-mapping context
            UnknownTriggerError: Unknown trigger value
            StoreUnavailableError: Achievement store failed after retries
            StoreTimeoutError: Achievement store timed out after retries

        Example:
            >>> await evaluator.check("u-1", "onReportCreate", {"totalReports": 1})
            ['first-report']
        """
        validate_user_id(user_id)
        trigger = coerce_trigger(trigger)
        if not isinstance(context, Mapping):
            raise ValidationError("context", "context must be a mapping of facts")

        rules = self._registry.for_trigger(trigger)
        if not rules:
            return []

        already_unlocked = await self._load_unlocked_slugs(user_id)
        candidates = [rule for rule in rules if rule.slug not in already_unlocked]

        satisfied = [
            rule for rule in candidates if self._evaluate(rule, user_id, trigger, context)
        ]
        if not satisfied:
            self.log.debug(
                "No new achievements satisfied",
                extra={
                    "user_id": user_id,
                    "trigger": trigger.value,
                    "candidates": len(candidates),
                },
            )
            return []

        newly_unlocked = await self._insert_unlocks(
            user_id, [rule.slug for rule in satisfied]
        )

        if newly_unlocked:
            self.log_operation(
                "achievements_unlocked",
                user_id=user_id,
                trigger=trigger.value,
                slugs=newly_unlocked,
            )

        return newly_unlocked

    async def unlocked(self, user_id: str) -> Dict[str, datetime]:
        """
        Everything `user_id` has unlocked.

        Returns:
            Mapping of slug -> unlocked_at (UTC), oldest first
        """
        validate_user_id(user_id)

        async def _load() -> Dict[str, datetime]:
            async with self._db.session() as session:
                return await self._repo.unlocked_for_user(session, user_id)

        return await self._run(_load, "achievements.list_unlocked", user_id)

    # ========================================================================
    # INTERNAL
    # ========================================================================

    def _evaluate(
        self,
        rule: AchievementRule,
        user_id: str,
        trigger: Trigger,
        context: Mapping[str, Any],
    ) -> bool:
        try:
            return rule.is_met(context)
        except Exception as exc:
            self.log.warning(
                "Achievement predicate raised; treating as not met",
                extra={
                    "user_id": user_id,
                    "trigger": trigger.value,
                    "slug": rule.slug,
                    "error_type": type(exc).__name__,
                    "error_message": str(exc),
                },
            )
            return False

    async def _run(self, work, operation_name: str, user_id: str):
        return await self._retry.execute(
            lambda: self._db.call(work, operation_name=operation_name),
            operation_name=operation_name,
            context={"user_id": user_id, "store": self._db.name},
        )

    async def _load_unlocked_slugs(self, user_id: str) -> Set[str]:
        async def _load() -> Set[str]:
            async with self._db.session() as session:
                return await self._repo.unlocked_slugs(session, user_id)

        return await self._run(_load, "achievements.load_unlocked", user_id)

    async def _insert_unlocks(
        self,
        user_id: str,
        slugs: Sequence[str],
        unlocked_at: Optional[datetime] = None,
    ) -> List[str]:
        async def _insert() -> List[str]:
            inserted: List[str] = []
            async with self._db.transaction() as session:
                for slug in slugs:
                    if await self._repo.insert_unlock(session, user_id, slug, unlocked_at):
                        inserted.append(slug)
            return inserted

        return await self._run(_insert, "achievements.insert_unlocks", user_id)
