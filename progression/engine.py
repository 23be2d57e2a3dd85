"""
Progression Engine
==================

Purpose
-------
Public entry point. Wires the XP ledger, achievement evaluator and detail
resolver over two stores and binds a log context around every call.

Lifecycle
---------
    async with await ProgressionEngine.from_config(stats, create_schema=True) as engine:
        award = await engine.add_xp("u-1", "report")

or, with stores managed by the host application:

    engine = ProgressionEngine(progress_db, achievement_db, stats)

Operations
----------
- add_xp(user_id, action) -> XpAward
- check_achievements(user_id, trigger, context) -> List[str]
- describe_achievements(slugs) -> List[AchievementDetails]
- get_progress(user_id) -> ProgressSnapshot
- list_achievements(user_id) -> List[AchievementStatus]
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Union

from progression.core.config.config import Config
from progression.core.database.bootstrap import (
    create_retry_policy,
    create_store_services,
    ensure_schema,
    initialize_stores,
    shutdown_stores,
)
from progression.core.database.retry_policy import DatabaseRetryPolicy
from progression.core.database.service import DatabaseService
from progression.core.logging.logger import LogContext, get_logger, setup_logging
from progression.modules.achievements.details import (
    AchievementDetailResolver,
    AchievementDetails,
    AchievementStatus,
)
from progression.modules.achievements.evaluator import AchievementEvaluator
from progression.modules.achievements.rules import RuleRegistry, Trigger
from progression.modules.stats.provider import StatisticsProvider, validate_fact_map
from progression.modules.xp.constants import ActionTag, validate_tariff
from progression.modules.xp.service import ProgressSnapshot, XpAward, XpLedgerService

logger = get_logger(__name__)

COMPONENT = "progression"


def _tag(value: Any) -> str:
    return str(getattr(value, "value", value))


class ProgressionEngine:
    """
    Facade over the progression services.

    Args:
        progress_db: Store holding progress records
        achievement_db: Store holding the unlock log (may share a database
            with `progress_db`, never a transaction)
        statistics: Source of per-user activity facts
        registry: Achievement rules; defaults to the built-in catalog
        retry_policy: Retry policy for idempotent store calls

    Raises:
        ConfigurationError: If the static tables fail validation
    """

    def __init__(
        self,
        progress_db: DatabaseService,
        achievement_db: DatabaseService,
        statistics: StatisticsProvider,
        registry: Optional[RuleRegistry] = None,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
        config: type[Config] = Config,
    ) -> None:
        validate_tariff()
        validate_fact_map()

        self._progress_db = progress_db
        self._achievement_db = achievement_db
        self._registry = registry if registry is not None else RuleRegistry.default()
        retry = retry_policy if retry_policy is not None else DatabaseRetryPolicy.from_config()

        self._evaluator = AchievementEvaluator(
            achievement_db, self._registry, retry, config=config
        )
        self._resolver = AchievementDetailResolver(self._registry)
        self._ledger = XpLedgerService(
            progress_db, self._evaluator, statistics, retry, config=config
        )

    @classmethod
    async def from_config(
        cls,
        statistics: StatisticsProvider,
        registry: Optional[RuleRegistry] = None,
        create_schema: bool = False,
        verify_health: bool = True,
    ) -> "ProgressionEngine":
        """
        Build an engine with both stores configured from Config.

        Sets up logging, initializes the stores and optionally creates
        their tables. Stores are disposed again if any step fails.
        """
        setup_logging()
        progress_db, achievement_db = create_store_services()

        try:
            await initialize_stores(
                progress_db, achievement_db, verify_health=verify_health
            )
            if create_schema:
                await ensure_schema(progress_db, achievement_db)
        except BaseException:
            await shutdown_stores(progress_db, achievement_db)
            raise

        logger.info(
            "Progression engine ready",
            extra={"config": Config.get_config_summary()},
        )

        return cls(
            progress_db,
            achievement_db,
            statistics,
            registry=registry,
            retry_policy=create_retry_policy(),
        )

    async def close(self) -> None:
        """Dispose both stores. Safe to call more than once."""
        await shutdown_stores(self._progress_db, self._achievement_db)

    async def __aenter__(self) -> "ProgressionEngine":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    # ========================================================================
    # Operations
    # ========================================================================

    async def add_xp(self, user_id: str, action: Union[ActionTag, str]) -> XpAward:
        """Award XP for `action`; see `XpLedgerService.add_xp`."""
        async with LogContext(
            user_id=user_id,
            action=_tag(action),
            component=COMPONENT,
            operation="add_xp",
        ):
            return await self._ledger.add_xp(user_id, action)

    async def check_achievements(
        self,
        user_id: str,
        trigger: Union[Trigger, str],
        context: Mapping[str, Any],
    ) -> List[str]:
        """
        Evaluate `trigger` rules for `user_id` against `context`.

        Store failures propagate here, unlike inside `add_xp`.
        """
        async with LogContext(
            user_id=user_id,
            trigger=_tag(trigger),
            component=COMPONENT,
            operation="check_achievements",
        ):
            return await self._evaluator.check(user_id, trigger, context)

    def describe_achievements(self, slugs: Iterable[str]) -> List[AchievementDetails]:
        """Display metadata for `slugs`, unknown slugs skipped."""
        return self._resolver.describe(slugs)

    async def get_progress(self, user_id: str) -> ProgressSnapshot:
        async with LogContext(
            user_id=user_id, component=COMPONENT, operation="get_progress"
        ):
            return await self._ledger.get_progress(user_id)

    async def list_achievements(self, user_id: str) -> List[AchievementStatus]:
        """Every registered achievement with `user_id`'s unlock state."""
        async with LogContext(
            user_id=user_id, component=COMPONENT, operation="list_achievements"
        ):
            unlocked = await self._evaluator.unlocked(user_id)
            return self._resolver.catalog(unlocked)
