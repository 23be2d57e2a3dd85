"""
Infrastructure exceptions for the progression engine.

Purpose
-------
Define the structured exception hierarchy for infrastructure-level concerns:
store failures, store timeouts and configuration errors that prevent the
engine from starting. Domain errors (bad input, lost optimistic races) live
in `progression.modules.shared.exceptions`.

Design Notes
------------
- All infrastructure exceptions inherit from
  `ProgressionInfrastructureException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Helper functions (`is_transient_error`, `get_error_severity`, `should_alert`)
  centralize common exception handling patterns.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, not concerning (e.g., lost CAS round)
    INFO = "info"  # Normal operation (e.g., validation failures)
    WARNING = "warning"  # Concerning but handled (e.g., retryable errors)
    ERROR = "error"  # Unexpected errors requiring attention
    CRITICAL = "critical"  # Startup-blocking failures


class ProgressionInfrastructureException(Exception):
    """
    Base exception for all infrastructure-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise ProgressionInfrastructureException(
        ...     "Progress store unreachable",
        ...     {"store": "progress"}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ConfigurationError(ProgressionInfrastructureException):
    """
    Raised when configuration is invalid or missing.

    Covers environment settings as well as static tables such as the
    action tariff. These are raised at startup, never mid-request.

    Args:
        config_key: The configuration key or table that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        error_message = f"Configuration error for {config_key}: {message}"
        super().__init__(
            error_message,
            details={
                "config_key": config_key,
                "message": message,
            },
            error_code="CONFIG_ERROR",
        )


class MalformedRuleError(ConfigurationError):
    """
    Raised when an achievement rule table fails validation.

    Args:
        slug: Slug of the offending rule (or a placeholder when missing)
        message: What is wrong with the rule
    """

    def __init__(self, slug: str, message: str) -> None:
        self.slug = slug
        super().__init__(f"achievement_rule[{slug}]", message)
        self.error_code = "MALFORMED_RULE"


class DatabaseError(ProgressionInfrastructureException):
    """
    Raised when store operations fail.

    Args:
        operation: Description of the database operation that failed
        original_error: The underlying database exception
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, original_error: Exception) -> None:
        self.operation = operation
        self.original_error = original_error
        message = f"Database error during {operation}: {str(original_error)}"
        super().__init__(
            message,
            details={
                "operation": operation,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="DATABASE_ERROR",
            is_retryable=True,
        )


class StoreUnavailableError(DatabaseError):
    """
    Raised when a store rejects or drops a call (connection, lock, driver).

    Args:
        store: Logical store name ("progress" or "achievements")
        operation: Operation that was running
        original_error: The driver-level exception
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, store: str, operation: str, original_error: Exception) -> None:
        self.store = store
        super().__init__(f"{store}.{operation}", original_error)
        self.details["store"] = store
        self.error_code = "STORE_UNAVAILABLE"


class StoreTimeoutError(DatabaseError):
    """
    Raised when a store call exceeds its time budget.

    The outcome of a write that timed out is unknown; callers retrying a
    non-idempotent write must accept that risk.

    Args:
        store: Logical store name
        operation: Operation that was running
        timeout_seconds: The budget that was exceeded
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, store: str, operation: str, timeout_seconds: float) -> None:
        self.store = store
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"{store}.{operation}",
            TimeoutError(f"exceeded {timeout_seconds:.2f}s"),
        )
        self.details.update({"store": store, "timeout_seconds": timeout_seconds})
        self.error_code = "STORE_TIMEOUT"


# Utility functions for exception handling patterns


def is_transient_error(exc: BaseException) -> bool:
    """
    Check if an exception represents a transient error that can be retried.

    Args:
        exc: Exception to check

    Returns:
        True if error is retryable, False otherwise.
    """
    return bool(getattr(exc, "is_retryable", False))


def get_error_severity(exc: BaseException) -> ErrorSeverity:
    """
    Get the severity level of an exception for logging.

    Args:
        exc: Exception to check

    Returns:
        ErrorSeverity level.
    """
    severity = getattr(exc, "severity", None)
    if isinstance(severity, ErrorSeverity):
        return severity
    return ErrorSeverity.ERROR


def should_alert(exc: BaseException) -> bool:
    """
    Determine if an exception should trigger alerting.

    Args:
        exc: Exception to check

    Returns:
        True if severity is ERROR or CRITICAL, False otherwise.
    """
    severity = get_error_severity(exc)
    return severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
