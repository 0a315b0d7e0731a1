"""Test helpers for YearTrace unit tests.

This module re-exports the data builders for convenient imports:

    from tests.helpers import (
        make_task, make_log, make_habit_task,
        make_day, make_record, logs_for_days,
    )

See builders.py for full documentation.
"""

from tests.helpers.builders import (
    logs_for_days,
    make_day,
    make_habit_task,
    make_log,
    make_record,
    make_task,
)

__all__ = [
    "logs_for_days",
    "make_day",
    "make_habit_task",
    "make_log",
    "make_record",
    "make_task",
]
