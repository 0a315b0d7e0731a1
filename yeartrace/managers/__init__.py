"""Manager modules for YearTrace.

Managers own mutable state, apply one operation at a time and persist
through the store. They delegate all derivation to the engines.
"""

from .base_manager import BaseManager, InvalidDateError, TaskNotFoundError
from .day_record_manager import DayRecordManager
from .habit_manager import HabitManager

__all__ = [
    "BaseManager",
    "DayRecordManager",
    "HabitManager",
    "InvalidDateError",
    "TaskNotFoundError",
]
