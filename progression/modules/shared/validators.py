"""
Progression Domain Validators

Purpose
-------
Validation helpers that raise structured domain exceptions. Validators
return None on success (raise-on-error pattern) and never touch a store.

Usage
-----
    from progression.modules.shared.validators import validate_user_id

    validate_user_id("")
    # Raises: ValidationError
"""

from __future__ import annotations

from typing import Any

MAX_USER_ID_LENGTH = 64


def validate_user_id(user_id: Any) -> None:
    """
    Validate an opaque user identifier.

    Args:
        user_id: Identifier supplied by the caller

    Raises:
        ValidationError: If it is not a non-empty string of at most 64 characters
    """
    from .exceptions import ValidationError

    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError("user_id", f"user_id must be a non-empty string, got {user_id!r}")

    if len(user_id) > MAX_USER_ID_LENGTH:
        raise ValidationError(
            "user_id",
            f"user_id must be at most {MAX_USER_ID_LENGTH} characters, got {len(user_id)}",
        )


def validate_non_negative_int(value: Any, name: str) -> None:
    """
    Validate that a value is a non-negative integer (bools rejected).

    Raises:
        ValidationError: If value is not an int or is negative
    """
    from .exceptions import ValidationError

    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(name, f"{name} must be a non-negative integer, got {value!r}")


def validate_positive_int(value: Any, name: str) -> None:
    """
    Validate that a value is a positive integer (bools rejected).

    Raises:
        ValidationError: If value is not an int or is not positive
    """
    from .exceptions import ValidationError

    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(name, f"{name} must be a positive integer, got {value!r}")
