"""
Progression Shared Module

Purpose
-------
Domain-level foundations for the xp, achievements and stats modules:
- Domain exceptions and error handling
- Base service and repository patterns
- Level-curve formulas
- Domain validation utilities

Usage
-----
    from progression.modules.shared import (
        BaseService,
        BaseRepository,
        ValidationError,
        level_for_xp,
    )
"""

from __future__ import annotations

from .base_repository import BaseRepository
from .base_service import BaseService
from .exceptions import (
    ConcurrencyConflictError,
    ProgressionDomainException,
    UnknownActionError,
    UnknownTriggerError,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)
from .formulas import level_for_xp, level_progress, xp_for_level, xp_to_next_level
from .validators import (
    validate_non_negative_int,
    validate_positive_int,
    validate_user_id,
)

__all__ = [
    # Base patterns
    "BaseService",
    "BaseRepository",
    # Exceptions
    "ProgressionDomainException",
    "ValidationError",
    "UnknownActionError",
    "UnknownTriggerError",
    "ConcurrencyConflictError",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
    # Formulas
    "level_for_xp",
    "xp_for_level",
    "xp_to_next_level",
    "level_progress",
    # Validators
    "validate_user_id",
    "validate_non_negative_int",
    "validate_positive_int",
]
