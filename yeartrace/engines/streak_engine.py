"""Streak Engine - Continuous-completion streaks for both tracker models.

Three strategies coexist on purpose and are kept separate:

1. Day-record per-task streak (`task_streaks_from_history`)
   Current streak only starts if the most recent completed day is today or
   yesterday; best streak is the longest run anywhere in history.

2. Aggregate streak over heterogeneous tasks (`calculate_overall_streak`)
   A day counts only when every active non-violation task has a log. A day
   with no active task breaks the streak.

3. Per-task flat-log streak (`calculate_task_streak`)
   Consecutive logged days walking back from an arbitrary anchor date.

The cached `YTTask.streak` is maintained incrementally with
`increment_streak` / `decrement_streak` for writes to today, and rebuilt with
`recalculate_all_streaks` for anything else.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from .. import const
from ..utils.dt_utils import as_day, day_key, is_task_active_on, parse_day_key

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ..type_defs import LogData, StreakResult, YTDayRecord, YTTaskData


DayRef = date | datetime | str | None


class StreakEngine:
    """Stateless streak calculations.

    Every method takes an injectable `today` / `anchor`; omitting it uses the
    local calendar day of the configured default timezone.
    """

    # =========================================================================
    # DAY-RECORD MODEL
    # =========================================================================

    @staticmethod
    def completed_days(task_id: str, history: Iterable[YTDayRecord]) -> set[date]:
        """Return the days on which `task_id` has a completed record."""
        days: set[date] = set()
        for day_record in history:
            day = parse_day_key(day_record.get(const.DATA_DAY_DATE))
            if day is None:
                continue
            for record in day_record.get(const.DATA_DAY_RECORDS) or []:
                if (
                    record.get(const.DATA_RECORD_TASK_ID) == task_id
                    and record.get(const.DATA_RECORD_COMPLETED) is True
                ):
                    days.add(day)
                    break
        return days

    @classmethod
    def task_streaks_from_history(
        cls,
        task_id: str,
        history: Iterable[YTDayRecord],
        today: DayRef = None,
    ) -> StreakResult:
        """Compute the current and best streak of one task.

        A day without a record for the task, or with `completed: false`,
        breaks both scans. Records after `today` are ignored for the current
        streak.

        Returns:
            StreakResult with `current` and `best`, both >= 0.
        """
        reference = as_day(today)
        days = cls.completed_days(task_id, history)

        current = cls.current_run(days, reference)
        return {"current": current, "best": max(cls.longest_run(days), current)}

    @classmethod
    def recalculate_all_streaks(
        cls,
        tasks: Iterable[YTTaskData],
        history: list[YTDayRecord],
        today: DayRef = None,
    ) -> list[YTTaskData]:
        """Return copies of `tasks` with `streak` recomputed from `history`."""
        reference = as_day(today)
        recalculated: list[YTTaskData] = []
        for task in tasks:
            result = cls.task_streaks_from_history(
                task[const.DATA_TASK_ID], history, reference
            )
            recalculated.append({**task, const.DATA_TASK_STREAK: result["current"]})
        return recalculated

    @staticmethod
    def increment_streak(streak: int) -> int:
        """Cache update for completing a task today."""
        return max(streak, 0) + 1

    @staticmethod
    def decrement_streak(streak: int) -> int:
        """Cache update for uncompleting a task today. Never below zero."""
        return max(streak - 1, 0)

    # =========================================================================
    # HABIT-LOG MODEL
    # =========================================================================

    @staticmethod
    def logged_tasks_by_day(logs: Iterable[LogData]) -> dict[str, set[str]]:
        """Group logged task ids by day key."""
        by_day: dict[str, set[str]] = defaultdict(set)
        for log in logs:
            by_day[log[const.DATA_LOG_DATE]].add(log[const.DATA_LOG_TASK_ID])
        return by_day

    @classmethod
    def calculate_overall_streak(
        cls,
        logs: Iterable[LogData],
        tasks: Iterable[Mapping[str, Any]],
        today: DayRef = None,
    ) -> int:
        """Count whole-discipline days walking back from `today`.

        A day counts iff at least one non-violation task is active on it and
        every such task has a log that day. The first failing day ends the
        scan; today included.
        """
        regular_tasks = [
            task
            for task in tasks
            if task.get(const.DATA_TASK_TYPE) != const.TASK_TYPE_VIOLATION
        ]
        if not regular_tasks:
            return 0

        by_day = cls.logged_tasks_by_day(logs)
        cursor = as_day(today)
        streak = 0
        while True:
            key = day_key(cursor)
            active = [task for task in regular_tasks if is_task_active_on(task, key)]
            logged = by_day.get(key, set())
            if not active or any(task[const.DATA_TASK_ID] not in logged for task in active):
                break
            streak += 1
            cursor -= timedelta(days=1)
        return streak

    @staticmethod
    def calculate_task_streak(
        task_id: str, logs: Iterable[LogData], anchor: DayRef = None
    ) -> int:
        """Count consecutive logged days for one task ending at `anchor`.

        Example:
            logs on 2024-01-01..03, anchor 2024-01-03 → 3
            same logs, anchor 2024-01-05 → 0
        """
        logged = {
            log[const.DATA_LOG_DATE]
            for log in logs
            if log[const.DATA_LOG_TASK_ID] == task_id
        }
        cursor = as_day(anchor)
        streak = 0
        while day_key(cursor) in logged:
            streak += 1
            cursor -= timedelta(days=1)
        return streak

    @classmethod
    def calculate_longest_streak(cls, logs: Iterable[LogData]) -> int:
        """Return the longest run of consecutive days having any log."""
        days = {
            parsed
            for parsed in (parse_day_key(log.get(const.DATA_LOG_DATE)) for log in logs)
            if parsed is not None
        }
        return cls.longest_run(days)

    @staticmethod
    def is_milestone_streak(streak: int) -> bool:
        """Return True for the celebrated streak lengths (3, 7, 14, ...)."""
        return streak in const.MILESTONE_STREAKS

    # =========================================================================
    # RUN HELPERS
    # =========================================================================

    @staticmethod
    def current_run(days: set[date], today: date) -> int:
        """Length of the run ending today, or yesterday if today is not in `days`."""
        cursor = today if today in days else today - timedelta(days=1)
        run = 0
        while cursor in days:
            run += 1
            cursor -= timedelta(days=1)
        return run

    @staticmethod
    def longest_run(days: set[date]) -> int:
        """Length of the longest run of consecutive days in `days`."""
        longest = 0
        run = 0
        previous: date | None = None
        for day in sorted(days):
            if previous is not None and day - previous == timedelta(days=1):
                run += 1
            else:
                run = 1
            longest = max(longest, run)
            previous = day
        return longest


task_streaks_from_history = StreakEngine.task_streaks_from_history
recalculate_all_streaks = StreakEngine.recalculate_all_streaks
calculate_overall_streak = StreakEngine.calculate_overall_streak
calculate_task_streak = StreakEngine.calculate_task_streak
calculate_longest_streak = StreakEngine.calculate_longest_streak
is_milestone_streak = StreakEngine.is_milestone_streak
increment_streak = StreakEngine.increment_streak
decrement_streak = StreakEngine.decrement_streak
