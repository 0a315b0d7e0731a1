"""Statistics Engine - Calendar and trend aggregation for the habit-log model.

This engine turns flat habit logs into what the statistics views show:
- Year heat map cells with a fixed color step function
- Monthly trend series keyed by task id for multi-series charts
- Week / month / year period comparisons with an up/down/flat trend
- Year summary, top tasks and per-task detail statistics

Design Principles:
    - Stateless: Operates only on the tasks and logs passed in
    - Orphan logs (task no longer exists) are silently excluded
    - Violation logs never count as completions; they only raise flags
    - "today" is injectable on every method that depends on it
"""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from .. import const
from ..utils.dt_utils import (
    add_months,
    as_day,
    day_diff,
    day_key,
    is_task_active_on,
    iter_days,
    month_range,
    parse_day_key,
    week_range,
    year_range,
)
from .streak_engine import StreakEngine

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ..type_defs import (
        HeatMapCell,
        LogData,
        MonthlyTrendPoint,
        NumberTaskStats,
        PeriodComparison,
        TaskData,
        TaskDetailStatistics,
        TimelineDot,
        TopTaskItem,
        ViolationStats,
        YearStatistics,
    )


DayRef = date | datetime | str | None


class StatisticsEngine:
    """Aggregations over habit tasks and logs.

    All methods are stateless - they operate on data structures passed as
    arguments and never persist anything.

    Example:
        stats = StatisticsEngine()
        cells = stats.generate_heat_map_cells(2024, logs, tasks)
        weekly = stats.compare_periods(logs, tasks, "week", today="2024-03-06")
    """

    # ────────────────────────────────────────────────────────────────
    # Shared Helpers
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def _tasks_by_id(tasks: Iterable[Mapping[str, Any]]) -> dict[str, Mapping[str, Any]]:
        return {task[const.DATA_TASK_ID]: task for task in tasks}

    @staticmethod
    def _is_violation(task: Mapping[str, Any]) -> bool:
        return task.get(const.DATA_TASK_TYPE) == const.TASK_TYPE_VIOLATION

    def _resolved_logs(
        self,
        logs: Iterable[LogData],
        tasks_by_id: Mapping[str, Mapping[str, Any]],
        *,
        include_violations: bool = True,
    ) -> list[LogData]:
        """Return the logs whose task exists, optionally without violations."""
        resolved = []
        for log in logs:
            task = tasks_by_id.get(log[const.DATA_LOG_TASK_ID])
            if task is None:
                continue
            if not include_violations and self._is_violation(task):
                continue
            resolved.append(log)
        return resolved

    @staticmethod
    def _in_range(logs: Iterable[LogData], start: date, end: date) -> list[LogData]:
        """Return the logs dated within [start, end]."""
        start_key, end_key = day_key(start), day_key(end)
        return [log for log in logs if start_key <= log[const.DATA_LOG_DATE] <= end_key]

    # ────────────────────────────────────────────────────────────────
    # Heat Map
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def heat_map_color(count: int) -> str:
        """Map a distinct completion count to its heat map shade.

        Buckets: 0, 1-2, 3-4, 5+.
        """
        for minimum, color in const.HEAT_MAP_COLOR_STEPS:
            if count >= minimum:
                return color
        return const.HEAT_MAP_COLOR_EMPTY

    def generate_heat_map_cells(
        self,
        year: int,
        logs: Iterable[LogData],
        tasks: Iterable[TaskData],
        filter_task_id: str | None = None,
    ) -> list[HeatMapCell]:
        """Build one cell per calendar day of `year`.

        Args:
            year: Calendar year.
            logs: Habit logs (orphans ignored).
            tasks: Habit tasks.
            filter_task_id: Restrict counts and perfect-day checks to one task.

        Returns:
            365 or 366 HeatMapCell dicts in date order.
        """
        tasks_by_id = self._tasks_by_id(tasks)
        if filter_task_id is not None:
            tasks_by_id = {
                task_id: task
                for task_id, task in tasks_by_id.items()
                if task_id == filter_task_id
            }

        logged_by_day: dict[str, list[str]] = defaultdict(list)
        for log in self._resolved_logs(logs, tasks_by_id):
            task_ids = logged_by_day[log[const.DATA_LOG_DATE]]
            if log[const.DATA_LOG_TASK_ID] not in task_ids:
                task_ids.append(log[const.DATA_LOG_TASK_ID])

        regular_tasks = [
            task for task in tasks_by_id.values() if not self._is_violation(task)
        ]

        cells: list[HeatMapCell] = []
        for day in iter_days(*year_range(year)):
            key = day_key(day)
            task_ids = logged_by_day.get(key, [])
            completed = [
                task_id for task_id in task_ids if not self._is_violation(tasks_by_id[task_id])
            ]
            active = [task for task in regular_tasks if is_task_active_on(task, key)]
            cells.append(
                {
                    "date": key,
                    "logCount": len(completed),
                    "taskIds": list(task_ids),
                    "hasViolation": len(completed) < len(task_ids),
                    "isPerfectDay": bool(active)
                    and all(task[const.DATA_TASK_ID] in task_ids for task in active),
                    "color": self.heat_map_color(len(completed)),
                }
            )
        return cells

    # ────────────────────────────────────────────────────────────────
    # Trends and Period Comparison
    # ────────────────────────────────────────────────────────────────

    def calculate_monthly_trend(
        self,
        year: int,
        logs: Iterable[LogData],
        tasks: Iterable[TaskData],
        task_ids: Iterable[str] | None = None,
        today: DayRef = None,
    ) -> list[MonthlyTrendPoint]:
        """Build 12 monthly points: total completions plus one count per task id.

        Months after the current month of the current year are all zero.
        """
        reference = as_day(today)
        tasks_by_id = self._tasks_by_id(tasks)
        resolved = self._resolved_logs(logs, tasks_by_id)
        series_ids = list(task_ids or [])

        points: list[MonthlyTrendPoint] = []
        for month, month_name in enumerate(const.MONTH_NAMES, start=1):
            point: MonthlyTrendPoint = {"month": month, "monthName": month_name, "total": 0}
            for task_id in series_ids:
                point[task_id] = 0
            points.append(point)

            if year == reference.year and month > reference.month:
                continue

            month_logs = self._in_range(resolved, *month_range(date(year, month, 1)))
            point["total"] = sum(
                1
                for log in month_logs
                if not self._is_violation(tasks_by_id[log[const.DATA_LOG_TASK_ID]])
            )
            counts = Counter(log[const.DATA_LOG_TASK_ID] for log in month_logs)
            for task_id in series_ids:
                point[task_id] = counts.get(task_id, 0)
        return points

    @staticmethod
    def period_bounds(period: str, today: date) -> tuple[date, date, date, date]:
        """Return (current start, current end, previous start, previous end).

        Raises:
            ValueError: If `period` is not week, month or year.
        """
        if period == const.PERIOD_WEEK:
            start, end = week_range(today)
            return start, end, start - timedelta(days=7), end - timedelta(days=7)
        if period == const.PERIOD_MONTH:
            start, end = month_range(today)
            previous_start, previous_end = month_range(add_months(start, -1))
            return start, end, previous_start, previous_end
        if period == const.PERIOD_YEAR:
            start, end = year_range(today.year)
            previous_start, previous_end = year_range(today.year - 1)
            return start, end, previous_start, previous_end
        raise ValueError(f"Unknown period: {period!r}")

    @staticmethod
    def trend_direction(current: int, previous: int) -> str:
        """Classify a change; flat only on exact equality."""
        if current > previous:
            return const.TREND_UP
        if current < previous:
            return const.TREND_DOWN
        return const.TREND_FLAT

    def compare_periods(
        self,
        logs: Iterable[LogData],
        tasks: Iterable[TaskData],
        period: str,
        today: DayRef = None,
    ) -> PeriodComparison:
        """Compare completions in the current calendar period with the previous one.

        Weeks start on Monday. Violation and orphan logs are not completions.
        """
        reference = as_day(today)
        start, end, previous_start, previous_end = self.period_bounds(period, reference)
        completions = self._resolved_logs(
            logs, self._tasks_by_id(tasks), include_violations=False
        )
        current = len(self._in_range(completions, start, end))
        previous = len(self._in_range(completions, previous_start, previous_end))
        return {
            "period": period,  # type: ignore[typeddict-item]
            "currentStart": day_key(start),
            "currentEnd": day_key(end),
            "previousStart": day_key(previous_start),
            "previousEnd": day_key(previous_end),
            "current": current,
            "previous": previous,
            "delta": current - previous,
            "trend": self.trend_direction(current, previous),  # type: ignore[typeddict-item]
        }

    # ────────────────────────────────────────────────────────────────
    # Year Summary
    # ────────────────────────────────────────────────────────────────

    def calculate_year_statistics(
        self,
        year: int,
        logs: Iterable[LogData],
        tasks: Iterable[TaskData],
        filter_task_id: str | None = None,
        today: DayRef = None,
    ) -> YearStatistics:
        """Summarize one year of logs.

        `monthlyCompletionRate` is only computed for the current year.
        """
        reference = as_day(today)
        task_list = list(tasks)
        tasks_by_id = self._tasks_by_id(task_list)
        resolved = self._resolved_logs(logs, tasks_by_id)
        start, end = year_range(year)
        year_logs = [
            log
            for log in self._in_range(resolved, start, end)
            if filter_task_id is None or log[const.DATA_LOG_TASK_ID] == filter_task_id
        ]

        days_with_logs = len({log[const.DATA_LOG_DATE] for log in year_logs})
        total_days = day_diff(end, start) + 1

        monthly_rate = 0.0
        if year == reference.year:
            monthly_rate = self.calculate_monthly_completion_rate(
                year, reference.month, resolved, task_list, filter_task_id, reference
            )

        return {
            "totalLogs": len(year_logs),
            "daysWithLogs": days_with_logs,
            "completionRate": round(
                days_with_logs / total_days * 100, const.DATA_FLOAT_PRECISION
            ),
            "longestStreak": StreakEngine.calculate_longest_streak(year_logs),
            "monthlyCompletionRate": monthly_rate,
            "topTasks": self.calculate_top_tasks(year_logs, task_list),
        }

    def calculate_monthly_completion_rate(
        self,
        year: int,
        month: int,
        logs: Iterable[LogData],
        tasks: Iterable[TaskData],
        filter_task_id: str | None = None,
        today: DayRef = None,
    ) -> float:
        """Percentage of expected completions achieved in a month (1-12).

        Expected = eligible tasks x elapsed days, where eligibility is judged
        on the 15th and the current month only counts up to today.
        """
        reference = as_day(today)
        start, end = month_range(date(year, month, 1))
        if (reference.year, reference.month) == (year, month):
            end = reference
        eligibility_day = date(year, month, const.MONTHLY_PERFECT_REFERENCE_DAY)

        task_list = list(tasks)
        eligible = [
            task
            for task in task_list
            if not self._is_violation(task)
            and is_task_active_on(task, eligibility_day)
            and (filter_task_id is None or task[const.DATA_TASK_ID] == filter_task_id)
        ]
        if not eligible:
            return 0.0

        expected = len(eligible) * (day_diff(end, start) + 1)
        completions = [
            log
            for log in self._resolved_logs(
                logs, self._tasks_by_id(task_list), include_violations=False
            )
            if filter_task_id is None or log[const.DATA_LOG_TASK_ID] == filter_task_id
        ]
        actual = len(self._in_range(completions, start, end))
        return round(actual / expected * 100, const.DATA_FLOAT_PRECISION)

    def calculate_top_tasks(
        self,
        logs: Iterable[LogData],
        tasks: Iterable[TaskData],
        limit: int = const.TOP_TASKS_LIMIT,
    ) -> list[TopTaskItem]:
        """Rank tasks by log count, most logged first. Ties keep first-seen order."""
        tasks_by_id = self._tasks_by_id(tasks)
        counts = Counter(
            log[const.DATA_LOG_TASK_ID] for log in self._resolved_logs(logs, tasks_by_id)
        )
        ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
        return [
            {
                "taskId": task_id,
                "taskName": tasks_by_id[task_id].get(const.DATA_TASK_NAME)
                or const.UNKNOWN_TASK_NAME,
                "count": count,
                "color": tasks_by_id[task_id].get(const.DATA_TASK_COLOR)
                or const.UNKNOWN_TASK_COLOR,
            }
            for task_id, count in ranked[:limit]
        ]

    # ────────────────────────────────────────────────────────────────
    # Per-task Statistics
    # ────────────────────────────────────────────────────────────────

    def calculate_task_detail_statistics(
        self,
        task: TaskData,
        year: int,
        month: int,
        logs: Iterable[LogData],
        today: DayRef = None,
    ) -> TaskDetailStatistics:
        """Statistics for one task over one year.

        Number tasks also get `trendData`; check+text tasks get `textEntries`
        (newest first) and `ratingDistribution`.
        """
        task_id = task[const.DATA_TASK_ID]
        start, end = year_range(year)
        year_logs = [
            log
            for log in self._in_range(logs, start, end)
            if log[const.DATA_LOG_TASK_ID] == task_id
        ]
        month_start, month_end = month_range(date(year, month, 1))

        result: TaskDetailStatistics = {
            "totalCompletions": len(year_logs),
            "avgWeeklyCompletions": round(
                len(year_logs) / const.WEEKS_PER_YEAR, const.DATA_FLOAT_PRECISION
            ),
            "longestStreak": StreakEngine.calculate_longest_streak(year_logs),
            "currentStreak": StreakEngine.calculate_task_streak(task_id, year_logs, today),
            "monthlyCompletions": len(self._in_range(year_logs, month_start, month_end)),
        }

        task_type = task.get(const.DATA_TASK_TYPE)
        if task_type == const.TASK_TYPE_NUMBER:
            result["trendData"] = sorted(
                (
                    {"date": log[const.DATA_LOG_DATE], "value": log[const.DATA_LOG_VALUE]}
                    for log in year_logs
                    if log.get(const.DATA_LOG_VALUE) is not None
                ),
                key=lambda point: point["date"],
            )
        elif task_type == const.TASK_TYPE_CHECK_TEXT:
            entries = []
            for log in year_logs:
                if not log.get(const.DATA_LOG_TEXT):
                    continue
                entry = {"date": log[const.DATA_LOG_DATE], "text": log[const.DATA_LOG_TEXT]}
                if log.get(const.DATA_LOG_RATING):
                    entry["rating"] = log[const.DATA_LOG_RATING]
                entries.append(entry)
            result["textEntries"] = sorted(
                entries, key=lambda entry: entry["date"], reverse=True
            )  # type: ignore[typeddict-item]

            ratings = Counter(
                log[const.DATA_LOG_RATING]
                for log in year_logs
                if log.get(const.DATA_LOG_RATING)
            )
            result["ratingDistribution"] = [
                {"rating": rating, "count": count} for rating, count in sorted(ratings.items())
            ]
        return result

    @staticmethod
    def calculate_weekly_completion(
        task_id: str, logs: Iterable[LogData], anchor: DayRef = None
    ) -> list[bool]:
        """Seven flags for the week ending at `anchor`, oldest first."""
        reference = as_day(anchor)
        logged = {
            log[const.DATA_LOG_DATE]
            for log in logs
            if log[const.DATA_LOG_TASK_ID] == task_id
        }
        return [
            day_key(day) in logged
            for day in iter_days(reference - timedelta(days=6), reference)
        ]

    def generate_timeline(
        self,
        tasks: Iterable[TaskData],
        logs: Iterable[LogData],
        start: DayRef,
        end: DayRef,
    ) -> list[TimelineDot]:
        """Place every resolved log within [start, end] on a date-sorted timeline."""
        tasks_by_id = self._tasks_by_id(tasks)
        in_range = self._in_range(
            self._resolved_logs(logs, tasks_by_id), as_day(start), as_day(end)
        )
        dots: list[TimelineDot] = []
        for log in in_range:
            task = tasks_by_id[log[const.DATA_LOG_TASK_ID]]
            dots.append(
                {
                    "date": log[const.DATA_LOG_DATE],
                    "taskId": log[const.DATA_LOG_TASK_ID],
                    "color": task.get(const.DATA_TASK_COLOR) or const.UNKNOWN_TASK_COLOR,
                    "isViolation": self._is_violation(task),
                }
            )
        return sorted(dots, key=lambda dot: dot["date"])

    @staticmethod
    def number_task_stats(task_id: str, logs: Iterable[LogData]) -> NumberTaskStats:
        """Latest, minimum and maximum value of a number task plus its trend."""
        trend = sorted(
            (
                {"date": log[const.DATA_LOG_DATE], "value": log[const.DATA_LOG_VALUE]}
                for log in logs
                if log[const.DATA_LOG_TASK_ID] == task_id
                and log.get(const.DATA_LOG_VALUE) is not None
            ),
            key=lambda point: point["date"],
        )
        if not trend:
            return {"currentValue": None, "minValue": None, "maxValue": None, "trend": []}
        values = [point["value"] for point in trend]
        return {
            "currentValue": values[-1],
            "minValue": min(values),
            "maxValue": max(values),
            "trend": trend,  # type: ignore[typeddict-item]
        }

    @staticmethod
    def violation_stats(task_id: str, logs: Iterable[LogData]) -> ViolationStats:
        """Count and sorted dates of a violation task's logs."""
        dates = sorted(
            log[const.DATA_LOG_DATE]
            for log in logs
            if log[const.DATA_LOG_TASK_ID] == task_id
        )
        return {"count": len(dates), "dates": dates}

    @staticmethod
    def calculate_persisted_days(task: Mapping[str, Any], today: DayRef = None) -> int:
        """Days since the task started, today included; 0 if it starts later."""
        start = parse_day_key(task.get(const.DATA_TASK_START_DATE))
        reference = as_day(today)
        if start is None or start > reference:
            return 0
        return day_diff(reference, start) + 1


_ENGINE = StatisticsEngine()

heat_map_color = _ENGINE.heat_map_color
generate_heat_map_cells = _ENGINE.generate_heat_map_cells
calculate_monthly_trend = _ENGINE.calculate_monthly_trend
compare_periods = _ENGINE.compare_periods
calculate_year_statistics = _ENGINE.calculate_year_statistics
calculate_monthly_completion_rate = _ENGINE.calculate_monthly_completion_rate
calculate_top_tasks = _ENGINE.calculate_top_tasks
calculate_task_detail_statistics = _ENGINE.calculate_task_detail_statistics
calculate_weekly_completion = _ENGINE.calculate_weekly_completion
generate_timeline = _ENGINE.generate_timeline
number_task_stats = _ENGINE.number_task_stats
violation_stats = _ENGINE.violation_stats
calculate_persisted_days = _ENGINE.calculate_persisted_days
