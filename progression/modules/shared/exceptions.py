"""
Domain exceptions for the progression engine.

Purpose
-------
Define the structured exception hierarchy for progression rules: invalid
input, unknown action or trigger tags, and lost optimistic-concurrency
races. Infrastructure failures (stores, configuration) are defined in
`progression.core.exceptions` and share the same `ErrorSeverity` scale.

Design Notes
------------
- All domain exceptions inherit from `ProgressionDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Unknown tags are programming errors in the caller, not user errors; they
  still derive from `ValidationError` so one `except` clause covers bad input.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from progression.core.exceptions import ErrorSeverity


class ProgressionDomainException(Exception):
    """
    Base exception for all progression domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise ProgressionDomainException(
        ...     "XP award rejected",
        ...     {"reason": "unknown user"}
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


class ValidationError(ProgressionDomainException):
    """
    Raised when input fails domain validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        error_message = f"Validation error for {field}: {message}"
        super().__init__(
            error_message,
            details={
                "field": field,
                "validation_message": message,
            },
            error_code=f"VALIDATION_{field.upper()}",
        )


class UnknownActionError(ValidationError):
    """
    Raised when an action tag is not part of the closed action set.

    Args:
        action: The rejected value
        known: The accepted tag values
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR

    def __init__(self, action: Any, known: Iterable[str]) -> None:
        self.action = action
        known_list = sorted(known)
        super().__init__(
            "action", f"unknown action {action!r}; expected one of {known_list}"
        )
        self.details["known"] = known_list
        self.error_code = "UNKNOWN_ACTION"


class UnknownTriggerError(ValidationError):
    """
    Raised when a trigger tag is not part of the closed trigger set.

    Args:
        trigger: The rejected value
        known: The accepted tag values
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR

    def __init__(self, trigger: Any, known: Iterable[str]) -> None:
        self.trigger = trigger
        known_list = sorted(known)
        super().__init__(
            "trigger", f"unknown trigger {trigger!r}; expected one of {known_list}"
        )
        self.details["known"] = known_list
        self.error_code = "UNKNOWN_TRIGGER"


class ConcurrencyConflictError(ProgressionDomainException):
    """
    Raised when an optimistic write keeps losing races past its retry budget.

    Nothing was written by the failing call; retrying the whole operation
    is safe.

    Args:
        resource: What was being written (e.g., "progress_record")
        identifier: Row identifier
        attempts: How many compare-and-set rounds were tried
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, resource: str, identifier: Any, attempts: int) -> None:
        self.resource = resource
        self.identifier = identifier
        self.attempts = attempts
        super().__init__(
            f"Concurrent updates to {resource} {identifier!r} "
            f"did not settle after {attempts} attempts",
            details={
                "resource": resource,
                "identifier": identifier,
                "attempts": attempts,
            },
            error_code="CONCURRENCY_CONFLICT",
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """
    Check if an exception represents a transient error that can be retried.

    Args:
        exc: Exception to check

    Returns:
        True if error is retryable, False otherwise.
    """
    if isinstance(exc, ProgressionDomainException):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """
    Get the severity level of an exception for logging.

    Args:
        exc: Exception to check

    Returns:
        ErrorSeverity level.
    """
    if isinstance(exc, ProgressionDomainException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """
    Determine if an exception should trigger alerting.

    Returns:
        True if severity is ERROR or CRITICAL, False otherwise.
    """
    severity = get_error_severity(exc)
    return severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
