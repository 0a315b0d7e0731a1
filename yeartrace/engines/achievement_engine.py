"""Achievement Engine - Pure evaluation of the achievement catalog.

Achievements are static catalog entries; only their status (unlocked, unlock
date, progress) is derived, fresh on every read, from tasks and logs.

Condition types:
- streak: overall whole-discipline streak of at least `days`
- total: at least `count` non-violation logs
- monthly_perfect: every eligible task logged on every elapsed day of a month
  (`month` is 0-based, 0 is January)

ARCHITECTURE: Handlers are registered per condition type, the same way badge
criteria are routed. Unknown condition types evaluate as locked.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import TYPE_CHECKING, Any

from .. import const
from ..utils.dt_utils import (
    as_day,
    day_key,
    is_task_active_on,
    iter_days,
    month_range,
)
from .streak_engine import StreakEngine

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ..type_defs import AchievementData, AchievementStatus, LogData, TaskData


# Handler signature: (context, condition) -> partial status fields
ConditionHandler = Callable[[dict[str, Any], dict[str, Any]], dict[str, Any]]


class AchievementEngine:
    """Stateless evaluator for achievement conditions.

    PURITY CONTRACT:
    - Inputs are never mutated
    - The same inputs and `today` always give the same statuses
    - Each entry is evaluated independently, so a filtered catalog gives the
      same per-entry result as the full catalog
    """

    _CONDITION_HANDLERS: dict[str, ConditionHandler] = {}

    @classmethod
    def _register_handlers(cls) -> None:
        """Populate the condition handler registry once."""
        if cls._CONDITION_HANDLERS:
            return

        cls._CONDITION_HANDLERS = {
            const.ACHIEVEMENT_CONDITION_STREAK: cls._evaluate_streak,
            const.ACHIEVEMENT_CONDITION_TOTAL: cls._evaluate_total,
            const.ACHIEVEMENT_CONDITION_MONTHLY_PERFECT: cls._evaluate_monthly_perfect,
        }

    # =========================================================================
    # MAIN EVALUATION
    # =========================================================================

    @classmethod
    def evaluate(
        cls,
        catalog: Iterable[AchievementData],
        logs: Iterable[LogData],
        tasks: Iterable[TaskData],
        today: date | str | None = None,
    ) -> list[AchievementStatus]:
        """Evaluate every catalog entry against tasks and logs.

        Args:
            catalog: Achievement definitions (full or filtered by the caller).
            logs: Habit logs; orphans are ignored.
            tasks: Habit task definitions.
            today: Reference day, defaults to the local calendar day.

        Returns:
            One AchievementStatus per catalog entry, in catalog order.
        """
        cls._register_handlers()

        context: dict[str, Any] = {
            "logs": list(logs),
            "tasks": list(tasks),
            "today": as_day(today),
        }
        context["tasks_by_id"] = {
            task[const.DATA_TASK_ID]: task for task in context["tasks"]
        }

        statuses: list[AchievementStatus] = []
        for achievement in catalog:
            condition = achievement.get("condition") or {}
            condition_type = condition.get("type")
            handler = cls._CONDITION_HANDLERS.get(condition_type)

            if handler is None:
                const.LOGGER.warning(
                    "WARNING: Unknown achievement condition type: %s for achievement %s",
                    condition_type,
                    achievement.get("id"),
                )
                fields: dict[str, Any] = {"isUnlocked": False}
            else:
                fields = handler(context, dict(condition))

            statuses.append({"achievement": achievement, **fields})  # type: ignore[typeddict-item]
        return statuses

    @staticmethod
    def unlocked_count(statuses: Iterable[AchievementStatus]) -> int:
        """Return how many statuses are unlocked."""
        return sum(1 for status in statuses if status["isUnlocked"])

    # =========================================================================
    # CONDITION HANDLERS
    # =========================================================================

    @staticmethod
    def _overall_streak(context: dict[str, Any]) -> int:
        """Compute the overall streak once per evaluation."""
        if "overall_streak" not in context:
            context["overall_streak"] = StreakEngine.calculate_overall_streak(
                context["logs"], context["tasks"], context["today"]
            )
        return context["overall_streak"]

    @classmethod
    def _evaluate_streak(
        cls, context: dict[str, Any], condition: dict[str, Any]
    ) -> dict[str, Any]:
        """Unlocked once the overall streak reaches `days`. Progress is not clamped."""
        days = condition.get("days", 0)
        streak = cls._overall_streak(context)
        return {
            "isUnlocked": streak >= days,
            "progress": streak,
            "progressMax": days,
        }

    @staticmethod
    def _evaluate_total(
        context: dict[str, Any], condition: dict[str, Any]
    ) -> dict[str, Any]:
        """Count non-violation logs; unlock date is the date of the N-th one."""
        count_needed = condition.get("count", 0)
        tasks_by_id: Mapping[str, Mapping[str, Any]] = context["tasks_by_id"]

        counted = [
            log
            for log in context["logs"]
            if log[const.DATA_LOG_TASK_ID] in tasks_by_id
            and tasks_by_id[log[const.DATA_LOG_TASK_ID]].get(const.DATA_TASK_TYPE)
            != const.TASK_TYPE_VIOLATION
        ]

        fields: dict[str, Any] = {
            "isUnlocked": len(counted) >= count_needed,
            "progress": len(counted),
            "progressMax": count_needed,
        }
        if fields["isUnlocked"] and 0 < count_needed <= len(counted):
            # sorted() is stable: ties keep their original order
            ordered = sorted(counted, key=lambda log: log[const.DATA_LOG_DATE])
            fields["unlockedDate"] = ordered[count_needed - 1][const.DATA_LOG_DATE]
        return fields

    @staticmethod
    def _evaluate_monthly_perfect(
        context: dict[str, Any], condition: dict[str, Any]
    ) -> dict[str, Any]:
        """Every eligible task logged on every day of the month up to today.

        `month` is 0-based (0 is January).

        Eligibility for the whole month is decided on the 15th: tasks that
        start or end mid-month are judged by their window on that day.
        """
        month = condition.get("month")
        year = condition.get("year")
        if not isinstance(month, int) or not isinstance(year, int) or not 0 <= month <= 11:
            const.LOGGER.warning(
                "WARNING: Invalid monthly_perfect condition month=%s year=%s",
                month,
                year,
            )
            return {"isUnlocked": False}

        reference = date(year, month + 1, const.MONTHLY_PERFECT_REFERENCE_DAY)
        eligible_ids = [
            task[const.DATA_TASK_ID]
            for task in context["tasks"]
            if task.get(const.DATA_TASK_TYPE) != const.TASK_TYPE_VIOLATION
            and is_task_active_on(task, reference)
        ]
        if not eligible_ids:
            return {"isUnlocked": False}

        logged = StreakEngine.logged_tasks_by_day(context["logs"])
        first, last = month_range(reference)
        checked_days = [day_key(day) for day in iter_days(first, min(last, context["today"]))]
        perfect_days = sum(
            1
            for key in checked_days
            if all(task_id in logged.get(key, ()) for task_id in eligible_ids)
        )

        return {
            "isUnlocked": perfect_days == len(checked_days) and len(checked_days) > 0,
            "progress": perfect_days,
            "progressMax": len(checked_days),
        }


# =============================================================================
# DEFAULT CATALOG
# =============================================================================


def build_achievement_catalog(year: int | None = None) -> list[AchievementData]:
    """Build the default catalog: streak and total thresholds plus 12 months.

    Args:
        year: Year of the monthly-perfect entries, defaults to the current year.
    """
    if year is None:
        year = as_day().year

    catalog: list[AchievementData] = [
        {
            "id": achievement_id,
            "name": name,
            "description": description,
            "icon": icon,
            "category": const.ACHIEVEMENT_CATEGORY_STREAK,
            "condition": {"type": const.ACHIEVEMENT_CONDITION_STREAK, "days": days},
        }
        for achievement_id, name, description, icon, days in const.ACHIEVEMENT_STREAK_THRESHOLDS
    ]
    catalog.extend(
        {
            "id": achievement_id,
            "name": name,
            "description": description,
            "icon": icon,
            "category": const.ACHIEVEMENT_CATEGORY_TOTAL,
            "condition": {"type": const.ACHIEVEMENT_CONDITION_TOTAL, "count": count},
        }
        for achievement_id, name, description, icon, count in const.ACHIEVEMENT_TOTAL_THRESHOLDS
    )
    for month, month_name in enumerate(const.MONTH_NAMES):
        catalog.append(
            {
                "id": f"perfect_{month_name.lower()}",
                "name": f"Perfect {month_name}",
                "description": f"Log every task on every day of {month_name}",
                "icon": const.ACHIEVEMENT_PERFECT_ICON,
                "category": const.ACHIEVEMENT_CATEGORY_PERFECT,
                "condition": {
                    "type": const.ACHIEVEMENT_CONDITION_MONTHLY_PERFECT,
                    "month": month,
                    "year": year,
                },
            }
        )
    return catalog


check_achievement_status = AchievementEngine.evaluate
