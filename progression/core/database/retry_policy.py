"""
Database Retry Policy - Infrastructure Resilience

Purpose
-------
Configurable retry policy for transient store failures with exponential
backoff and jitter.

Responsibilities
----------------
- Execute async operations with retry logic
- Classify errors as retriable or non-retriable
- Implement exponential backoff with jitter
- Emit structured logs for each attempt

Non-Responsibilities
--------------------
- Transaction management (caller owns transactions)
- Optimistic-concurrency retries on the XP ledger (the ledger runs its own
  compare-and-set loop and is never wrapped in this policy, since a write
  whose commit outcome is unknown must not be replayed)

Architecture Notes
------------------
**Retry Classification**:
- Retriable: OperationalError, DBAPIError, and any exception whose
  `is_retryable` flag is set (StoreUnavailableError, StoreTimeoutError)
- Non-retriable: IntegrityError and everything else

**Backoff Strategy**:
- Formula: min(base * 2^(attempt-1), max) + random(0, jitter)

Configuration
-------------
All values sourced from Config:
- DATABASE_RETRY_MAX_ATTEMPTS (default: 3)
- DATABASE_RETRY_INITIAL_BACKOFF_MS (default: 50)
- DATABASE_RETRY_MAX_BACKOFF_MS (default: 1000)
- DATABASE_RETRY_JITTER_MS (default: 50)

Usage Example
-------------
Only wrap idempotent operations:

>>> retry_policy = DatabaseRetryPolicy.from_config()
>>>
>>> async def insert_unlock() -> bool:
>>>     async with achievement_db.transaction() as session:
>>>         return await repo.insert_if_absent(session, user_id, slug)
>>>
>>> await retry_policy.execute(
>>>     insert_unlock,
>>>     operation_name="achievements.insert_unlocks",
>>>     context={"user_id": user_id},
>>> )
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from progression.core.config.config import Config
from progression.core.exceptions import is_transient_error
from progression.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


# ============================================================================
# Configuration
# ============================================================================


@dataclass
class DatabaseRetryConfig:
    """
    Configuration for database retry behavior.

    Attributes
    ----------
    max_attempts : int
        Maximum number of attempts (including initial attempt).
    initial_backoff_ms : int
        Initial backoff duration in milliseconds.
    max_backoff_ms : int
        Maximum backoff duration in milliseconds.
    jitter_ms : int
        Maximum random jitter to add to backoff in milliseconds.
    retriable_exceptions : Tuple[Type[BaseException], ...]
        Exception types considered retriable.
    non_retriable_exceptions : Tuple[Type[BaseException], ...]
        Exception types never retried, even when they subclass a retriable type.
    """

    max_attempts: int
    initial_backoff_ms: int
    max_backoff_ms: int
    jitter_ms: int
    retriable_exceptions: Tuple[Type[BaseException], ...] = (
        OperationalError,
        DBAPIError,
    )
    non_retriable_exceptions: Tuple[Type[BaseException], ...] = (IntegrityError,)

    @classmethod
    def from_config(cls) -> DatabaseRetryConfig:
        """Build retry configuration from Config with safe defaults."""
        return cls(
            max_attempts=int(getattr(Config, "DATABASE_RETRY_MAX_ATTEMPTS", 3)),
            initial_backoff_ms=int(
                getattr(Config, "DATABASE_RETRY_INITIAL_BACKOFF_MS", 50)
            ),
            max_backoff_ms=int(getattr(Config, "DATABASE_RETRY_MAX_BACKOFF_MS", 1000)),
            jitter_ms=int(getattr(Config, "DATABASE_RETRY_JITTER_MS", 50)),
        )


# ============================================================================
# Retry Policy
# ============================================================================


class DatabaseRetryPolicy:
    """
    Execute async store operations with retry semantics.

    Public API
    ----------
    - __init__(config) -> Create policy with configuration
    - from_config() -> Create policy from Config
    - execute(operation, operation_name, context) -> Execute with retries
    """

    def __init__(self, config: DatabaseRetryConfig) -> None:
        self._config = config

    @property
    def config(self) -> DatabaseRetryConfig:
        return self._config

    @classmethod
    def from_config(cls) -> DatabaseRetryPolicy:
        return cls(DatabaseRetryConfig.from_config())

    def _is_retriable(self, exc: BaseException) -> bool:
        if isinstance(exc, self._config.non_retriable_exceptions):
            return False
        return isinstance(exc, self._config.retriable_exceptions) or is_transient_error(
            exc
        )

    def _compute_backoff_ms(self, attempt: int) -> int:
        """
        Compute backoff duration for given attempt with jitter.

        Parameters
        ----------
        attempt : int
            Current attempt number (1-indexed).
        """
        exponent = max(attempt - 1, 0)
        base = self._config.initial_backoff_ms * (2**exponent)
        capped = min(base, self._config.max_backoff_ms)

        jitter = (
            random.randint(0, self._config.jitter_ms)
            if self._config.jitter_ms > 0
            else 0
        )

        return capped + jitter

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str,
        context: Optional[dict[str, Any]] = None,
    ) -> T:
        """
        Execute async operation with retry logic for transient failures.

        Parameters
        ----------
        operation : Callable[[], Awaitable[T]]
            Zero-argument async callable performing store work.
        operation_name : str
            Stable identifier for logging (e.g., "achievements.load_unlocked").
        context : Optional[dict[str, Any]]
            Additional structured context for logs.

        Raises
        ------
        Exception
            The last exception when retries are exhausted, or the first
            non-retriable exception.
        """
        ctx_extra = context.copy() if context else {}
        ctx_extra["operation"] = operation_name

        attempt = 0

        while True:
            attempt += 1

            try:
                return await operation()

            except Exception as exc:
                error_type = type(exc).__name__
                retriable = self._is_retriable(exc)
                will_retry = retriable and attempt < self._config.max_attempts

                logger.warning(
                    "Database operation failed",
                    extra={
                        **ctx_extra,
                        "attempt": attempt,
                        "error_type": error_type,
                        "retriable": retriable,
                        "will_retry": will_retry,
                    },
                )

                if not will_retry:
                    logger.error(
                        "Database operation retries exhausted or not retriable",
                        extra={
                            **ctx_extra,
                            "attempt": attempt,
                            "error_type": error_type,
                            "retriable": retriable,
                            "max_attempts": self._config.max_attempts,
                        },
                    )
                    raise

                backoff_ms = self._compute_backoff_ms(attempt)

                logger.debug(
                    "Backing off before retry",
                    extra={**ctx_extra, "attempt": attempt, "backoff_ms": backoff_ms},
                )

                await asyncio.sleep(backoff_ms / 1000.0)
