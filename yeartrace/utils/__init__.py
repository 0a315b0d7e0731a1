# File: utils/__init__.py
"""Pure Python utilities for YearTrace.

Submodules:
    - dt_utils: Day keys, calendar periods and task activity windows

Usage:
    from .utils import dt_utils
"""

from . import dt_utils

__all__ = ["dt_utils"]
