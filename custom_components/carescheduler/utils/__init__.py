# File: utils/__init__.py
"""Pure Python utilities for CareScheduler.

This module contains pure Python functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Submodules:
    - dt_utils: Date/time parsing, timezone normalization, day boundaries
    - math_utils: Rounding, clamping, percentage calculations

Usage:
    from . import dt_utils
    from .math_utils import clamped_percentage
"""

from . import dt_utils, math_utils

__all__ = ["dt_utils", "math_utils"]
