"""
Database subsystem for the progression engine.

Provides async SQLAlchemy engines and session management per store,
the retry policy for idempotent store calls, and ORM base classes.
"""

from progression.core.database.base import (
    Base,
    as_utc,
    IdMixin,
    TimestampMixin,
    utc_now,
)
from progression.core.database.bootstrap import (
    ACHIEVEMENT_STORE,
    PROGRESS_STORE,
    create_retry_policy,
    create_store_services,
    ensure_schema,
    initialize_stores,
    shutdown_stores,
)
from progression.core.database.retry_policy import (
    DatabaseRetryConfig,
    DatabaseRetryPolicy,
)
from progression.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
    DatabaseSettings,
)

__all__ = [
    # ORM Base & Mixins
    "Base",
    "IdMixin",
    "TimestampMixin",
    "utc_now",
    "as_utc",
    # Service
    "DatabaseService",
    "DatabaseSettings",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
    # Retry
    "DatabaseRetryConfig",
    "DatabaseRetryPolicy",
    # Bootstrap
    "PROGRESS_STORE",
    "ACHIEVEMENT_STORE",
    "create_store_services",
    "initialize_stores",
    "ensure_schema",
    "shutdown_stores",
    "create_retry_policy",
]
