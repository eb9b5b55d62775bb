# File: utils/math_utils.py
"""Math and calculation utilities for CareScheduler.

Pure Python math functions with ZERO Home Assistant dependencies.

Functions:
    - round_value: Consistent rounding to configured precision
    - clamp: Bound a value to a range
    - calculate_percentage: Ratio as a percentage with proper rounding
    - clamped_percentage: Percentage bounded to [0, 100]
"""

from __future__ import annotations

import logging

_LOGGER = logging.getLogger(__name__)

# Default float precision for workload percentages
DATA_FLOAT_PRECISION = 2


def round_value(value: float, precision: int = DATA_FLOAT_PRECISION) -> float:
    """Round a value to the configured precision.

    Examples:
        round_value(10.456) -> 10.46
        round_value(10.0) -> 10.0
    """
    return round(value, precision)


def clamp(value: float, min_val: float, max_val: float) -> float:
    """Clamp a value between minimum and maximum bounds.

    Examples:
        clamp(150, 0, 100) -> 100
        clamp(-10, 0, 100) -> 0
    """
    return max(min_val, min(value, max_val))


def calculate_percentage(
    current: float,
    target: float,
    precision: int = DATA_FLOAT_PRECISION,
) -> float:
    """Calculate a percentage with proper rounding.

    Returns 0.0 if target is 0 or negative (division by zero protection).

    Examples:
        calculate_percentage(1, 3) -> 33.33
        calculate_percentage(5, 0) -> 0.0
    """
    if target <= 0:
        return 0.0
    return round_value((current / target) * 100, precision)


def clamped_percentage(
    current: float,
    target: float,
    precision: int = DATA_FLOAT_PRECISION,
) -> float:
    """Calculate a percentage of capacity bounded to [0, 100].

    A non-positive target means there is no capacity at all: any demand is
    reported as fully consumed (100) and no demand as 0.

    Examples:
        clamped_percentage(60, 120) -> 50.0
        clamped_percentage(300, 120) -> 100.0
        clamped_percentage(30, 0) -> 100.0
        clamped_percentage(0, 0) -> 0.0
    """
    if target <= 0:
        if current > 0:
            _LOGGER.debug(
                "clamped_percentage: demand %s with no capacity, reporting 100",
                current,
            )
            return 100.0
        return 0.0
    return clamp(calculate_percentage(current, target, precision), 0.0, 100.0)
