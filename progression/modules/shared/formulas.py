"""
Progression Formulas

Purpose
-------
Pure calculation functions for the level curve. Level thresholds grow
geometrically with ratio 1.5: reaching level L needs
`ceil(100 * (1.5^(L-1) - 1))` total XP.

Design Notes
------------
- Pure functions only (no side effects, no config access)
- Thresholds use exact integer arithmetic (`1.5^n == 3^n / 2^n`), so the
  round trip `level_for_xp(xp_for_level(L)) == L` holds for any level
- `level_for_xp` starts from the floating-point log estimate and corrects
  it against the exact thresholds

Usage
-----
    from progression.modules.shared.formulas import level_for_xp

    level_for_xp(245)  # 4
"""

from __future__ import annotations

import math

from .validators import validate_non_negative_int, validate_positive_int

BASE_XP = 100
LEVEL_RATIO = 1.5


def xp_for_level(level: int) -> int:
    """
    Calculate total XP required to reach `level`.

    Args:
        level: Target level (>= 1)

    Returns:
        Minimum accumulated XP at which the level is reached

    Raises:
        ValidationError: If level is below 1

    Example:
        >>> xp_for_level(1)
        0
        >>> xp_for_level(4)
        238
    """
    validate_positive_int(level, "level")

    n = level - 1
    numerator = BASE_XP * (3**n - 2**n)
    denominator = 2**n
    # Integer ceiling division
    return -(-numerator // denominator)


def level_for_xp(xp: int) -> int:
    """
    Calculate the level reached with `xp` accumulated XP.

    Equivalent to `floor(log(xp / 100 + 1) / log(1.5)) + 1`.

    Args:
        xp: Total XP accumulated (>= 0)

    Returns:
        Current level (minimum 1)

    Example:
        >>> level_for_xp(0)
        1
        >>> level_for_xp(220)
        3
        >>> level_for_xp(245)
        4
    """
    validate_non_negative_int(xp, "xp")

    # log(xp + 100) - log(100) stays finite for arbitrarily large ints
    estimate = (math.log(xp + BASE_XP) - math.log(BASE_XP)) / math.log(LEVEL_RATIO)
    level = max(1, int(math.floor(estimate)) + 1)

    while xp_for_level(level + 1) <= xp:
        level += 1
    while level > 1 and xp_for_level(level) > xp:
        level -= 1

    return level


def xp_to_next_level(xp: int) -> int:
    """
    XP still needed to reach the next level.

    Example:
        >>> xp_to_next_level(245)
        162
    """
    return xp_for_level(level_for_xp(xp) + 1) - xp


def level_progress(xp: int) -> float:
    """
    Fraction of the current level already completed, in [0, 1).

    Example:
        >>> level_progress(0)
        0.0
        >>> level_progress(25)
        0.5
    """
    level = level_for_xp(xp)
    floor_xp = xp_for_level(level)
    ceiling_xp = xp_for_level(level + 1)
    return (xp - floor_xp) / (ceiling_xp - floor_xp)
