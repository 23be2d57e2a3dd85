"""
Base Service Foundation

Purpose
-------
Provides the foundational class for progression services. Services
implement business logic, own their transactions through a
DatabaseService, and raise domain exceptions.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Validation error wrapping

What this class does NOT do:
- Manage database transactions (that's DatabaseService's job)
- Hold SQLAlchemy sessions

Usage
-----
    class XpLedgerService(BaseService):
        def __init__(self, progress_db, config, logger):
            super().__init__(config, logger)
            self._db = progress_db
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from logging import Logger

    from progression.core.config.config import Config


class BaseService:
    """
    Base class for all progression services.

    Args:
        config: Configuration source exposing `get(key, default)`
        logger: Structured logger instance
    """

    def __init__(self, config: type[Config], logger: Logger) -> None:
        self._config = config
        self.log = logger

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Safely retrieve configuration value.

        Args:
            key: Configuration key to retrieve
            default: Default value if key not found
            required: If True, raise exception if key missing

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        from progression.core.exceptions import ConfigurationError

        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(
                key, f"Required configuration key '{key}' is missing"
            )
        return value

    def log_operation(self, operation: str, **context: Any) -> None:
        """
        Log a service operation with structured context.

        Args:
            operation: Name of the operation being performed
            **context: Additional context data
        """
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(
        self,
        operation: str,
        error: BaseException,
        **context: Any,
    ) -> None:
        """
        Log a service error with full context.

        Args:
            operation: Name of the operation that failed
            error: The exception that occurred
            **context: Additional context data
        """
        self.log.error(
            f"Service error during {operation}: {str(error)}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )
