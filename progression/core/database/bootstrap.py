"""
Database Subsystem Bootstrap

Purpose
-------
Single entry point for building, initializing and shutting down the two
stores (progress ledger and achievement log) with health verification and
component factory methods.

Responsibilities
----------------
- Build the two DatabaseService instances from Config
- Initialize them and optionally verify readiness with a bounded health check
- Create each store's tables on request (dev/test convenience)
- Provide a factory for DatabaseRetryPolicy
- Shut both stores down, continuing past failures

Bootstrap Sequence
------------------
1. `create_store_services()` reads PROGRESS_DATABASE_URL and
   ACHIEVEMENT_DATABASE_URL
2. `initialize_stores()` creates engines; health checks run with a timeout
3. `ensure_schema()` creates `progress_records` in the progress store and
   `achievement_unlocks` in the achievement store
4. `shutdown_stores()` disposes engines

Error Handling
--------------
`initialize_stores()` raises DatabaseInitializationError when engine
creation fails or a health check fails or times out. The original
exception is preserved via `from exc`.
"""

from __future__ import annotations

import asyncio
from typing import Tuple

from progression.core.config.config import Config
from progression.core.database.retry_policy import (
    DatabaseRetryConfig,
    DatabaseRetryPolicy,
)
from progression.core.database.service import (
    DatabaseInitializationError,
    DatabaseService,
    DatabaseSettings,
)
from progression.core.logging.logger import get_logger

logger = get_logger(__name__)

PROGRESS_STORE = "progress"
ACHIEVEMENT_STORE = "achievements"


# ============================================================================
# Construction
# ============================================================================


def create_store_services() -> Tuple[DatabaseService, DatabaseService]:
    """
    Build (progress_db, achievement_db) from Config.

    The two services get separate engines even when both URLs are equal,
    so a slow achievement store cannot starve the ledger's pool.
    """
    progress_db = DatabaseService(
        PROGRESS_STORE, DatabaseSettings.from_config(Config.PROGRESS_DATABASE_URL)
    )
    achievement_db = DatabaseService(
        ACHIEVEMENT_STORE,
        DatabaseSettings.from_config(Config.ACHIEVEMENT_DATABASE_URL),
    )

    logger.debug(
        "Store services created from config",
        extra={
            "progress_scheme": progress_db.settings.url_scheme,
            "achievement_scheme": achievement_db.settings.url_scheme,
            "shared_url": Config.PROGRESS_DATABASE_URL == Config.ACHIEVEMENT_DATABASE_URL,
        },
    )

    return progress_db, achievement_db


# ============================================================================
# Subsystem Lifecycle
# ============================================================================


async def _verify_health(service: DatabaseService, timeout: float) -> None:
    try:
        healthy = await asyncio.wait_for(service.health_check(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.error(
            "Database health check timed out during bootstrap",
            extra={"store": service.name, "timeout_seconds": timeout},
        )
        raise DatabaseInitializationError(
            f"Store '{service.name}' health check timed out after {timeout}s"
        ) from exc

    if not healthy:
        logger.error(
            "Database health check failed during bootstrap",
            extra={"store": service.name},
        )
        raise DatabaseInitializationError(
            f"Store '{service.name}' is unreachable or unhealthy after initialization"
        )


async def initialize_stores(
    *services: DatabaseService, verify_health: bool = True
) -> None:
    """
    Initialize every service and optionally verify that each one answers.

    Raises
    ------
    DatabaseInitializationError
        If initialization fails or a health check fails/times out.
    """
    logger.info(
        "Initializing database subsystem",
        extra={"stores": [s.name for s in services]},
    )

    for service in services:
        await service.initialize()

    if not verify_health:
        logger.info("Database subsystem initialized (health check skipped)")
        return

    for service in services:
        await _verify_health(service, service.settings.call_timeout_seconds)

    logger.info("Database subsystem initialized and healthy")


async def ensure_schema(
    progress_db: DatabaseService, achievement_db: DatabaseService
) -> None:
    """Create each store's tables if missing."""
    from progression.database.models import AchievementUnlock, ProgressRecord

    await progress_db.create_tables([ProgressRecord.__table__])
    await achievement_db.create_tables([AchievementUnlock.__table__])


async def shutdown_stores(*services: DatabaseService) -> None:
    """
    Dispose every service. Failures are logged and do not stop the others.
    """
    logger.info("Shutting down database subsystem")

    for service in services:
        try:
            await service.shutdown()
        except Exception as exc:
            logger.error(
                "Error during store shutdown",
                extra={
                    "store": service.name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )


# ============================================================================
# Component Factory Methods
# ============================================================================


def create_retry_policy() -> DatabaseRetryPolicy:
    """Create a DatabaseRetryPolicy configured from Config."""
    config = DatabaseRetryConfig.from_config()
    policy = DatabaseRetryPolicy(config)

    logger.debug(
        "Created DatabaseRetryPolicy from config",
        extra={
            "max_attempts": config.max_attempts,
            "initial_backoff_ms": config.initial_backoff_ms,
            "max_backoff_ms": config.max_backoff_ms,
            "jitter_ms": config.jitter_ms,
        },
    )

    return policy
