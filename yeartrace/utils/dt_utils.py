# File: utils/dt_utils.py
"""Calendar math for YearTrace.

Pure Python date functions shared by every engine. Day keys are ISO
"YYYY-MM-DD" strings of the LOCAL calendar day in the configured default
timezone; nothing here derives a day key from a UTC timestamp.

Functions:
    - set_default_timezone / get_default_timezone: Process-wide day-key timezone
    - dt_today_local / dt_today_iso / dt_now_iso: Current local day and time
    - day_key / parse_day_key / is_valid_day_key: Day-key formatting and parsing
    - as_day: Normalize an injected "today" (date, datetime, str or None)
    - day_diff / yesterday: Day arithmetic
    - week_range / month_range / year_range: Calendar period bounds
    - iter_days / add_months: Period iteration and month arithmetic
    - is_task_active_on / active_tasks_for_day: Task activity window
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
import logging
import re
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

# Third-party date utilities
from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, rrule

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

# Module-level logger
_LOGGER = logging.getLogger(__name__)

# ==============================================================================
# Constants (local copies to avoid circular imports)
# ==============================================================================

# Default timezone - can be overridden by caller
DEFAULT_TIME_ZONE: ZoneInfo = ZoneInfo("UTC")

DAY_KEY_FORMAT = "%Y-%m-%d"
DAY_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

TASK_START_DATE = "startDate"
TASK_END_DATE = "endDate"


# ==============================================================================
# Timezone Configuration
# ==============================================================================


def set_default_timezone(tz: ZoneInfo) -> None:
    """Set the timezone that defines which calendar day "today" is.

    Args:
        tz: ZoneInfo object representing the user's timezone
    """
    global DEFAULT_TIME_ZONE  # noqa: PLW0603
    DEFAULT_TIME_ZONE = tz


def get_default_timezone() -> ZoneInfo:
    """Get the current default timezone."""
    return DEFAULT_TIME_ZONE


# ==============================================================================
# Current Date/Time Functions
# ==============================================================================


def dt_today_local(tz: ZoneInfo | None = None) -> date:
    """Return today's date in local timezone as a `datetime.date`.

    Args:
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.

    Example:
        datetime.date(2025, 4, 7)
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    return datetime.now(tz_info).date()


def dt_today_iso(tz: ZoneInfo | None = None) -> str:
    """Return today's local date as a day key ("2025-04-07")."""
    return dt_today_local(tz).isoformat()


def dt_now_iso(tz: ZoneInfo | None = None) -> str:
    """Return the current local datetime as an ISO 8601 string.

    Used for `completedAt` stamps.

    Example:
        "2025-04-07T14:30:00-05:00"
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    return datetime.now(tz_info).isoformat()


# ==============================================================================
# Day Keys
# ==============================================================================


def day_key(day: date) -> str:
    """Format a date as a day key."""
    return day.strftime(DAY_KEY_FORMAT)


def is_valid_day_key(value: Any) -> bool:
    """Return True for a strict "YYYY-MM-DD" string naming a real calendar day.

    Example:
        is_valid_day_key("2024-02-29") → True
        is_valid_day_key("2023-02-29") → False
        is_valid_day_key("2024-2-9") → False
    """
    if not isinstance(value, str) or not DAY_KEY_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_day_key(value: str | None) -> date | None:
    """Parse a day key into a `datetime.date`.

    Longer ISO strings ("2024-01-03T08:00:00") are truncated to their date
    part, which is already the local day they were written for.

    Returns:
        datetime.date or None if parsing fails.
    """
    if not value or not isinstance(value, str):
        return None
    candidate = value[:10]
    if not is_valid_day_key(candidate):
        _LOGGER.debug("parse_day_key: Unparseable day key %r", value)
        return None
    return date.fromisoformat(candidate)


def as_day(value: date | datetime | str | None = None) -> date:
    """Normalize an injected "today" reference to a local `datetime.date`.

    Args:
        value: date, datetime (aware values are converted to the default
            timezone first), day key string, or None for the system clock.

    Raises:
        ValueError: If a string is not a valid day key. Callers pass
            well-formed references; user-typed dates are validated at the
            manager boundary.
    """
    if value is None:
        return dt_today_local()
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(DEFAULT_TIME_ZONE)
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_day_key(value)
    if parsed is None:
        raise ValueError(f"Invalid day reference: {value!r}")
    return parsed


# ==============================================================================
# Day Arithmetic
# ==============================================================================


def day_diff(later: date, earlier: date) -> int:
    """Return the number of calendar days from `earlier` to `later`."""
    return (later - earlier).days


def yesterday(day: date) -> date:
    """Return the calendar day before `day`."""
    return day - timedelta(days=1)


def add_months(day: date, months: int) -> date:
    """Shift a date by whole months, clamping to the end of shorter months.

    Example:
        add_months(date(2024, 3, 31), -1) → date(2024, 2, 29)
    """
    return day + relativedelta(months=months)


# ==============================================================================
# Calendar Periods
# ==============================================================================


def week_range(day: date) -> tuple[date, date]:
    """Return (Monday, Sunday) of the week containing `day`."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def month_range(day: date) -> tuple[date, date]:
    """Return (first day, last day) of the month containing `day`."""
    first = day.replace(day=1)
    last = first + relativedelta(months=1, days=-1)
    return first, last


def year_range(year: int) -> tuple[date, date]:
    """Return (Jan 1, Dec 31) of `year`."""
    return date(year, 1, 1), date(year, 12, 31)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from `start` to `end` inclusive.

    Yields nothing when `end` is before `start`.
    """
    if end < start:
        return
    for occurrence in rrule(DAILY, dtstart=start, until=end):
        yield occurrence.date()


# ==============================================================================
# Task Activity Window
# ==============================================================================


def _window_bound(task: Mapping[str, Any], key: str) -> str | None:
    """Return the day-key part of a task window bound, or None if unset."""
    value = task.get(key)
    if not value or not isinstance(value, str):
        return None
    return value[:10]


def is_task_active_on(task: Mapping[str, Any], day: date | str) -> bool:
    """Return True if `day` falls inside the task's [startDate, endDate] window.

    Both bounds are inclusive. A task without a start date is active from the
    beginning of time; one without an end date stays active.
    """
    key = day if isinstance(day, str) else day_key(day)
    start = _window_bound(task, TASK_START_DATE)
    end = _window_bound(task, TASK_END_DATE)
    if start is not None and key < start:
        return False
    if end is not None and key > end:
        return False
    return True


def active_tasks_for_day(
    tasks: Iterable[Mapping[str, Any]], day: date | str
) -> list[Mapping[str, Any]]:
    """Return the tasks whose activity window includes `day`."""
    return [task for task in tasks if is_task_active_on(task, day)]
