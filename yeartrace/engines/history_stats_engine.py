"""History Statistics Engine - Aggregation for the day-record model.

Works on YTDayRecord history (one entry per calendar day) instead of flat
logs. A day "has completions" when any of its records is completed; records
whose task no longer exists are ignored.
"""

from __future__ import annotations

import copy
from collections import Counter
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from .. import const
from ..utils.dt_utils import as_day, day_key, iter_days, parse_day_key, year_range
from .statistics_engine import StatisticsEngine
from .streak_engine import StreakEngine

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ..type_defs import (
        ByTypeStatistics,
        CalendarHeatmapEntry,
        DailyRecord,
        DetailedStatistics,
        PeriodComparison,
        TaskStatItem,
        YearlySummary,
        YTDayRecord,
        YTTaskData,
    )


DayRef = date | datetime | str | None

# Task type -> ByTypeStatistics key
_BY_TYPE_KEYS = {
    const.TASK_TYPE_CHECK: "check",
    const.TASK_TYPE_CHECK_TEXT: "checkText",
    const.TASK_TYPE_NUMBER: "number",
    const.TASK_TYPE_VIOLATION: "violation",
}


class HistoryStatisticsEngine:
    """Stateless statistics over a day-record history."""

    @staticmethod
    def completed_task_ids(
        day_record: Mapping[str, Any], known_ids: Iterable[str] | None = None
    ) -> list[str]:
        """Return the task ids with a completed record on this day."""
        known = set(known_ids) if known_ids is not None else None
        return [
            record[const.DATA_RECORD_TASK_ID]
            for record in day_record.get(const.DATA_DAY_RECORDS) or []
            if record.get(const.DATA_RECORD_COMPLETED) is True
            and (known is None or record.get(const.DATA_RECORD_TASK_ID) in known)
        ]

    # =========================================================================
    # DETAILED STATISTICS
    # =========================================================================

    @classmethod
    def calculate_detailed_statistics(
        cls,
        history: list[YTDayRecord],
        tasks: list[YTTaskData],
        today: DayRef = None,
    ) -> DetailedStatistics:
        """Build the full statistics page for the day-record tracker.

        Args:
            history: Day records (any order).
            tasks: Current tasks; their cached `streak` is reported as-is.
            today: Reference day, defaults to the local calendar day.
        """
        reference = as_day(today)
        known_ids = [task[const.DATA_TASK_ID] for task in tasks]

        completions_by_day: dict[date, int] = {}
        for day_record in history:
            day = parse_day_key(day_record.get(const.DATA_DAY_DATE))
            if day is None:
                continue
            completions_by_day[day] = len(cls.completed_task_ids(day_record, known_ids))

        active_days = {day for day, count in completions_by_day.items() if count}

        return {
            "totalDays": len(history),
            "longestStreak": StreakEngine.longest_run(active_days),
            "currentStreak": StreakEngine.current_run(active_days, reference),
            "weekly": cls._compare(completions_by_day, const.PERIOD_WEEK, reference),
            "monthly": cls._compare(completions_by_day, const.PERIOD_MONTH, reference),
            "yearly": cls._yearly_summary(history, tasks, reference),
            "yearComparison": cls._compare(completions_by_day, const.PERIOD_YEAR, reference),
            "byType": cls._by_type(history, tasks),
            "taskStats": cls._task_stats(history, tasks, reference),
            "dailyRecords": cls._daily_records(history, tasks),
        }

    @staticmethod
    def _compare(
        completions_by_day: Mapping[date, int], period: str, today: date
    ) -> PeriodComparison:
        start, end, previous_start, previous_end = StatisticsEngine.period_bounds(
            period, today
        )
        current = sum(
            count for day, count in completions_by_day.items() if start <= day <= end
        )
        previous = sum(
            count
            for day, count in completions_by_day.items()
            if previous_start <= day <= previous_end
        )
        return {
            "period": period,  # type: ignore[typeddict-item]
            "currentStart": day_key(start),
            "currentEnd": day_key(end),
            "previousStart": day_key(previous_start),
            "previousEnd": day_key(previous_end),
            "current": current,
            "previous": previous,
            "delta": current - previous,
            "trend": StatisticsEngine.trend_direction(current, previous),  # type: ignore[typeddict-item]
        }

    @classmethod
    def _yearly_summary(
        cls, history: list[YTDayRecord], tasks: list[YTTaskData], today: date
    ) -> YearlySummary:
        """Completion rate and best month of the current year.

        The rate is completed records over (recorded days x task count),
        rounded to a whole percent. Ties for best month go to the earlier month.
        """
        start, end = year_range(today.year)
        known_ids = [task[const.DATA_TASK_ID] for task in tasks]

        recorded_days = 0
        completed = 0
        by_month: Counter[int] = Counter()
        for day_record in history:
            day = parse_day_key(day_record.get(const.DATA_DAY_DATE))
            if day is None or not start <= day <= end:
                continue
            count = len(cls.completed_task_ids(day_record, known_ids))
            recorded_days += 1
            completed += count
            by_month[day.month] += count

        possible = recorded_days * len(tasks)
        best_month = const.NO_DATA_LABEL
        best_count = 0
        for month in sorted(by_month):
            if by_month[month] > best_count:
                best_month, best_count = const.MONTH_NAMES[month - 1], by_month[month]

        return {
            "totalTasks": len(tasks),
            "completionRate": round(completed / possible * 100) if possible else 0,
            "bestMonth": best_month,
        }

    @staticmethod
    def _by_type(history: list[YTDayRecord], tasks: list[YTTaskData]) -> ByTypeStatistics:
        """Count completed records per task type."""
        types_by_id = {
            task[const.DATA_TASK_ID]: task.get(const.DATA_TASK_TYPE) for task in tasks
        }
        stats: dict[str, int] = dict.fromkeys(_BY_TYPE_KEYS.values(), 0)
        for day_record in history:
            for record in day_record.get(const.DATA_DAY_RECORDS) or []:
                if record.get(const.DATA_RECORD_COMPLETED) is not True:
                    continue
                key = _BY_TYPE_KEYS.get(types_by_id.get(record.get(const.DATA_RECORD_TASK_ID)))
                if key is not None:
                    stats[key] += 1
        return stats  # type: ignore[return-value]

    @staticmethod
    def _task_stats(
        history: list[YTDayRecord], tasks: list[YTTaskData], today: date
    ) -> list[TaskStatItem]:
        items: list[TaskStatItem] = []
        for task in tasks:
            task_id = task[const.DATA_TASK_ID]
            completed_days = len(StreakEngine.completed_days(task_id, history))
            streaks = StreakEngine.task_streaks_from_history(task_id, history, today)
            items.append(
                {
                    "taskId": task_id,
                    "taskName": task.get(const.DATA_TASK_NAME, ""),
                    "taskType": task.get(const.DATA_TASK_TYPE, const.TASK_TYPE_CHECK),
                    "completedDays": completed_days,
                    "currentStreak": task.get(const.DATA_TASK_STREAK, 0),
                    "bestStreak": streaks["best"],
                    "completionRate": round(
                        completed_days / len(history) * 100, const.DATA_FLOAT_PRECISION
                    )
                    if history
                    else 0.0,
                }
            )
        return items

    @classmethod
    def _daily_records(
        cls, history: list[YTDayRecord], tasks: list[YTTaskData]
    ) -> list[DailyRecord]:
        known_ids = [task[const.DATA_TASK_ID] for task in tasks]
        records: list[DailyRecord] = []
        for day_record in history:
            completed_count = len(cls.completed_task_ids(day_record, known_ids))
            records.append(
                {
                    "date": day_record.get(const.DATA_DAY_DATE, ""),
                    "completedCount": completed_count,
                    "totalCount": len(tasks),
                    "completionRate": round(
                        completed_count / len(tasks) * 100, const.DATA_FLOAT_PRECISION
                    )
                    if tasks
                    else 0.0,
                    "taskIds": list(day_record.get(const.DATA_DAY_COMPLETED_TASK_IDS) or []),
                    "records": copy.deepcopy(day_record.get(const.DATA_DAY_RECORDS) or []),
                }
            )
        return records

    # =========================================================================
    # ROLLING CALENDAR HEAT MAP
    # =========================================================================

    @classmethod
    def calendar_heatmap(
        cls,
        history: list[YTDayRecord],
        tasks: list[YTTaskData],
        days: int = const.DEFAULT_HEATMAP_DAYS,
        today: DayRef = None,
    ) -> list[CalendarHeatmapEntry]:
        """Level 0-4 for each of the last `days` days, oldest first.

        Level comes from completed / task count: 1.0 → 4, 0.75 → 3, 0.5 → 2,
        any other completion → 1, none → 0.
        """
        reference = as_day(today)
        known_ids = [task[const.DATA_TASK_ID] for task in tasks]
        counts = {
            day_record.get(const.DATA_DAY_DATE): len(
                cls.completed_task_ids(day_record, known_ids)
            )
            for day_record in history
        }

        entries: list[CalendarHeatmapEntry] = []
        if days <= 0:
            return entries
        for day in iter_days(reference - timedelta(days=days - 1), reference):
            key = day_key(day)
            count = counts.get(key, 0)
            entries.append({"date": key, "level": cls._level(count, len(tasks)), "count": count})
        return entries

    @staticmethod
    def _level(count: int, task_count: int) -> int:
        if count <= 0:
            return 0
        ratio = count / task_count if task_count else 0.0
        for minimum, level in const.HEATMAP_LEVEL_RATIOS:
            if ratio >= minimum:
                return level
        return 1


calculate_detailed_statistics = HistoryStatisticsEngine.calculate_detailed_statistics
calendar_heatmap = HistoryStatisticsEngine.calendar_heatmap
