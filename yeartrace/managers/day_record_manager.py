"""Day Record Manager - Stateful operations for the day-record tracker.

Owns `tasks`, `user` and `history` loaded from `YearTraceStore` and persists
after every mutation.

Streak cache:
    `task.streak` is a derived value cached for one calendar day. While the
    cache is valid for today, completing or uncompleting a task *today*
    adjusts it by one. Any write to another date, and any day change since
    the last validation, invalidates the cache and triggers a full
    `recalculate_all_streaks`.
"""

from __future__ import annotations

import copy
from datetime import date
from typing import TYPE_CHECKING, Any

import voluptuous as vol

from .. import const
from ..engines.streak_engine import StreakEngine
from ..utils.dt_utils import day_key, dt_now_iso, is_valid_day_key
from .base_manager import BaseManager, generate_id

if TYPE_CHECKING:
    from datetime import datetime

    from ..store import YearTraceStore
    from ..type_defs import (
        OperationResult,
        StreakChange,
        TodayProgress,
        YTDayRecord,
        YTTaskData,
        YTTaskRecord,
        YTUser,
    )


def _day_key_validator(value: Any) -> str:
    if not is_valid_day_key(value):
        raise vol.Invalid(const.ERROR_INVALID_DATE)
    return value


RECORD_DETAIL_SCHEMA = vol.Schema(
    {
        vol.Optional(const.DATA_RECORD_VALUE): vol.Coerce(float),
        vol.Optional(const.DATA_RECORD_TEXT): str,
        vol.Optional(const.DATA_RECORD_RATING): vol.All(int, vol.Range(min=1, max=5)),
    }
)

BACKFILL_RECORD_SCHEMA = RECORD_DETAIL_SCHEMA.extend(
    {
        vol.Required(const.DATA_RECORD_TASK_ID): str,
        vol.Required(const.DATA_RECORD_COMPLETED): bool,
        vol.Optional(const.DATA_RECORD_COMPLETED_AT): str,
    }
)

BACKFILL_SCHEMA = vol.Schema(
    {
        vol.Required(const.DATA_DAY_DATE): _day_key_validator,
        vol.Required(const.DATA_DAY_RECORDS): [BACKFILL_RECORD_SCHEMA],
    }
)

TASK_UPDATE_SCHEMA = vol.Schema(
    {
        vol.Optional(const.DATA_TASK_NAME): vol.All(str, vol.Length(min=1)),
        vol.Optional(const.DATA_TASK_TYPE): vol.In(const.TASK_TYPES),
        vol.Optional(const.DATA_TASK_COLOR): str,
        vol.Optional(const.DATA_TASK_UNIT): str,
        vol.Optional(const.DATA_TASK_TARGET_VALUE): vol.Coerce(float),
        vol.Optional(const.DATA_TASK_METADATA): dict,
    }
)


class DayRecordManager(BaseManager):
    """Complete, backfill and manage day-record tasks."""

    def __init__(self, store: YearTraceStore) -> None:
        """Initialize manager.

        Args:
            store: YearTraceStore holding the day-record document
        """
        self._store = store
        self.tasks: list[YTTaskData] = []
        self.user: YTUser = {"streak": 0}
        self.history: list[YTDayRecord] = []
        # Calendar day the cached task streaks were last validated for
        self._streaks_valid_for: date | None = None

    # =========================================================================
    # LOAD / PERSIST
    # =========================================================================

    def load(self, today: date | datetime | str | None = None) -> None:
        """Load canonical state (migrated and rolled over) from the store."""
        data = self._store.load(today)
        self.tasks = data[const.DATA_TASKS]
        self.user = data[const.DATA_USER]
        self.history = sorted(
            data[const.DATA_HISTORY],
            key=lambda record: record.get(const.DATA_DAY_DATE, ""),
            reverse=True,
        )
        self._streaks_valid_for = None

    def _persist(self) -> None:
        self._store.save(
            {
                const.DATA_TASKS: self.tasks,
                const.DATA_USER: self.user,
                const.DATA_HISTORY: self.history,
            }
        )

    # =========================================================================
    # STREAK CACHE
    # =========================================================================

    def recalculate_streaks(self, today: date | datetime | str | None = None) -> None:
        """Rebuild every cached streak from history and revalidate the cache."""
        reference = self._today(today)
        self.tasks = StreakEngine.recalculate_all_streaks(self.tasks, self.history, reference)
        self._sync_user_streak()
        self._streaks_valid_for = reference
        const.LOGGER.debug(
            "DEBUG: Recalculated streaks for %s tasks as of %s",
            len(self.tasks),
            reference,
        )

    def _ensure_streaks_fresh(self, today: date) -> None:
        if self._streaks_valid_for != today:
            self.recalculate_streaks(today)

    def _sync_user_streak(self) -> None:
        self.user = {
            **self.user,
            const.DATA_USER_STREAK: max(
                (task.get(const.DATA_TASK_STREAK, 0) for task in self.tasks), default=0
            ),
        }

    # =========================================================================
    # COMPLETION
    # =========================================================================

    def complete_task(
        self,
        task_id: str,
        record: dict[str, Any] | None = None,
        target_date: str | None = None,
        today: date | datetime | str | None = None,
    ) -> StreakChange | None:
        """Mark a task completed on `target_date` (default today).

        Args:
            task_id: Task to complete.
            record: Optional detail (`value`, `text`, `rating`).
            target_date: Day key of the completion; past days recompute streaks.
            today: Reference day, defaults to the local calendar day.

        Returns:
            Streak before/after, or None if the task is unknown or already
            completed that day.

        Raises:
            InvalidDateError: If `target_date` is not a valid day key.
            vol.Invalid: If `record` detail is malformed.
        """
        index = self._task_index(task_id)
        if index is None:
            return None

        reference = self._today(today)
        day = self._validate_day(target_date) if target_date is not None else day_key(reference)
        existing = self.get_task_record(day, task_id)
        if existing is not None and existing.get(const.DATA_RECORD_COMPLETED):
            return None

        task_record: dict[str, Any] = {
            const.DATA_RECORD_TASK_ID: task_id,
            const.DATA_RECORD_COMPLETED: True,
            **RECORD_DETAIL_SCHEMA(record or {}),
            const.DATA_RECORD_COMPLETED_AT: dt_now_iso(),
        }

        self._ensure_streaks_fresh(reference)
        before = self.tasks[index].get(const.DATA_TASK_STREAK, 0)
        if day == day_key(reference):
            self._write_record(day, task_record)
            after = StreakEngine.increment_streak(before)
            self.tasks[index] = {
                **self.tasks[index],
                const.DATA_TASK_STATUS: const.TASK_STATUS_COMPLETED,
                const.DATA_TASK_STREAK: after,
            }
            self._sync_user_streak()
        else:
            self._write_record(day, task_record)
            self.recalculate_streaks(reference)
            after = self.tasks[index].get(const.DATA_TASK_STREAK, 0)

        self._persist()
        return {"streakBefore": before, "streakAfter": after}

    def uncomplete_task(
        self,
        task_id: str,
        target_date: str | None = None,
        today: date | datetime | str | None = None,
    ) -> StreakChange | None:
        """Undo a completion on `target_date` (default today).

        Returns:
            Streak before/after, or None if the task is unknown or was not
            completed that day.

        Raises:
            InvalidDateError: If `target_date` is not a valid day key.
        """
        index = self._task_index(task_id)
        if index is None:
            return None

        reference = self._today(today)
        day = self._validate_day(target_date) if target_date is not None else day_key(reference)
        existing = self.get_task_record(day, task_id)
        if existing is None or not existing.get(const.DATA_RECORD_COMPLETED):
            return None

        self._ensure_streaks_fresh(reference)
        before = self.tasks[index].get(const.DATA_TASK_STREAK, 0)
        if day == day_key(reference):
            self._remove_record(day, task_id)
            after = StreakEngine.decrement_streak(before)
            self.tasks[index] = {
                **self.tasks[index],
                const.DATA_TASK_STATUS: const.TASK_STATUS_PENDING,
                const.DATA_TASK_STREAK: after,
            }
            self._sync_user_streak()
        else:
            self._remove_record(day, task_id)
            self.recalculate_streaks(reference)
            after = self.tasks[index].get(const.DATA_TASK_STREAK, 0)

        self._persist()
        return {"streakBefore": before, "streakAfter": after}

    def backfill_history(
        self,
        day: Any,
        records: Any,
        today: date | datetime | str | None = None,
    ) -> OperationResult:
        """Replace or insert the day record for a (usually past) day.

        This is the boundary that accepts user-typed dates: malformed input
        is rejected with an error result instead of entering history.
        """
        try:
            validated = BACKFILL_SCHEMA(
                {const.DATA_DAY_DATE: day, const.DATA_DAY_RECORDS: records}
            )
        except vol.Invalid as err:
            path = getattr(err, "path", [])
            error = (
                const.ERROR_INVALID_DATE
                if path and path[0] == const.DATA_DAY_DATE
                else str(err)
            )
            const.LOGGER.warning("WARNING: Rejected backfill for %r: %s", day, err)
            return {"success": False, "error": error}

        known_ids = {task[const.DATA_TASK_ID] for task in self.tasks}
        day_records = validated[const.DATA_DAY_RECORDS]
        new_day: YTDayRecord = {
            "date": validated[const.DATA_DAY_DATE],
            "completedTaskIds": [
                record[const.DATA_RECORD_TASK_ID]
                for record in day_records
                if record[const.DATA_RECORD_COMPLETED]
                and record[const.DATA_RECORD_TASK_ID] in known_ids
            ],
            "records": day_records,
        }
        self.history = [
            existing
            for existing in self.history
            if existing.get(const.DATA_DAY_DATE) != new_day["date"]
        ]
        self.history.append(new_day)
        self._sort_history()

        reference = self._today(today)
        if new_day["date"] == day_key(reference):
            completed_today = set(new_day["completedTaskIds"])
            self.tasks = [
                {
                    **task,
                    const.DATA_TASK_STATUS: const.TASK_STATUS_COMPLETED
                    if task[const.DATA_TASK_ID] in completed_today
                    else const.TASK_STATUS_PENDING,
                }
                for task in self.tasks
            ]

        # Inserting into the middle of history can raise or lower any streak
        self.recalculate_streaks(reference)
        self._persist()
        return {"success": True}

    # =========================================================================
    # TASK MANAGEMENT
    # =========================================================================

    def add_task(
        self,
        name: str,
        task_type: str = const.TASK_TYPE_CHECK,
        **options: Any,
    ) -> OperationResult:
        """Create a task at the end of the order (at most MAX_TASKS)."""
        if len(self.tasks) >= const.MAX_TASKS:
            return {"success": False, "error": const.ERROR_MAX_TASKS}
        try:
            fields = TASK_UPDATE_SCHEMA(
                {const.DATA_TASK_NAME: name, const.DATA_TASK_TYPE: task_type, **options}
            )
        except vol.Invalid as err:
            return {"success": False, "error": str(err)}

        task_id = generate_id()
        max_order = max(
            (task.get(const.DATA_TASK_ORDER, 0) for task in self.tasks), default=0
        )
        self.tasks.append(
            {
                const.DATA_TASK_ID: task_id,
                const.DATA_TASK_STATUS: const.TASK_STATUS_PENDING,
                const.DATA_TASK_STREAK: 0,
                const.DATA_TASK_ORDER: max_order + 1,
                **fields,
            }
        )
        const.LOGGER.info("INFO: Added day-record task '%s' (%s)", name, task_id)
        self._persist()
        return {"success": True, "taskId": task_id}

    def update_task(self, task_id: str, **updates: Any) -> bool:
        """Update display and type fields of a task.

        Raises:
            vol.Invalid: If an update field is unknown or malformed.
        """
        index = self._task_index(task_id)
        if index is None:
            return False
        self.tasks[index] = {**self.tasks[index], **TASK_UPDATE_SCHEMA(updates)}
        self._persist()
        return True

    def delete_task(self, task_id: str) -> OperationResult:
        """Delete a task, its records in every day, and renumber the order."""
        if self._task_index(task_id) is None:
            return {"success": False, "error": const.ERROR_TASK_NOT_FOUND}

        self.history = [
            {
                **day_record,
                const.DATA_DAY_COMPLETED_TASK_IDS: [
                    other
                    for other in day_record.get(const.DATA_DAY_COMPLETED_TASK_IDS, [])
                    if other != task_id
                ],
                const.DATA_DAY_RECORDS: [
                    record
                    for record in day_record.get(const.DATA_DAY_RECORDS, [])
                    if record.get(const.DATA_RECORD_TASK_ID) != task_id
                ],
            }
            for day_record in self.history
        ]
        remaining = [task for task in self.tasks if task[const.DATA_TASK_ID] != task_id]
        self.tasks = [
            {**task, const.DATA_TASK_ORDER: position}
            for position, task in enumerate(remaining, start=1)
        ]
        self._sync_user_streak()
        const.LOGGER.info("INFO: Deleted day-record task %s", task_id)
        self._persist()
        return {"success": True}

    def reorder_tasks(self, from_index: int, to_index: int) -> bool:
        """Move a task to a new position and renumber the order."""
        count = len(self.tasks)
        if not (0 <= from_index < count and 0 <= to_index < count):
            return False
        tasks = list(self.tasks)
        tasks.insert(to_index, tasks.pop(from_index))
        self.tasks = [
            {**task, const.DATA_TASK_ORDER: position}
            for position, task in enumerate(tasks, start=1)
        ]
        self._persist()
        return True

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_task_record(self, day: str, task_id: str) -> YTTaskRecord | None:
        """Return the record of `task_id` on `day`, if any."""
        day_record = self._day_record(day)
        if day_record is None:
            return None
        for record in day_record.get(const.DATA_DAY_RECORDS, []):
            if record.get(const.DATA_RECORD_TASK_ID) == task_id:
                return record
        return None

    def get_task_history(self, task_id: str) -> list[dict[str, Any]]:
        """Return `{date, record}` for every day holding a record of the task, newest first."""
        entries = []
        for day_record in self.history:
            for record in day_record.get(const.DATA_DAY_RECORDS, []):
                if record.get(const.DATA_RECORD_TASK_ID) == task_id:
                    entries.append(
                        {"date": day_record[const.DATA_DAY_DATE], "record": copy.deepcopy(record)}
                    )
                    break
        return sorted(entries, key=lambda entry: entry["date"], reverse=True)

    def today_progress(self) -> TodayProgress:
        """Completed / total tasks for today."""
        completed = sum(
            1
            for task in self.tasks
            if task.get(const.DATA_TASK_STATUS) == const.TASK_STATUS_COMPLETED
        )
        total = len(self.tasks)
        return {
            "completed": completed,
            "total": total,
            "percentage": round(completed / total * 100, const.DATA_FLOAT_PRECISION)
            if total
            else 0.0,
        }

    def is_all_completed(self) -> bool:
        """Return True when there is at least one task and all are completed."""
        return bool(self.tasks) and all(
            task.get(const.DATA_TASK_STATUS) == const.TASK_STATUS_COMPLETED
            for task in self.tasks
        )

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _task_index(self, task_id: str) -> int | None:
        for index, task in enumerate(self.tasks):
            if task[const.DATA_TASK_ID] == task_id:
                return index
        return None

    def _day_record(self, day: str) -> YTDayRecord | None:
        for day_record in self.history:
            if day_record.get(const.DATA_DAY_DATE) == day:
                return day_record
        return None

    def _sort_history(self) -> None:
        self.history.sort(key=lambda record: record.get(const.DATA_DAY_DATE, ""), reverse=True)

    def _write_record(self, day: str, task_record: dict[str, Any]) -> None:
        """Store a completed record, replacing any earlier record of the task."""
        task_id = task_record["taskId"]
        day_record = self._day_record(day)
        if day_record is None:
            self.history.append(
                {"date": day, "completedTaskIds": [task_id], "records": [task_record]}
            )
            self._sort_history()
            return

        records = [
            record
            for record in day_record.get(const.DATA_DAY_RECORDS, [])
            if record.get(const.DATA_RECORD_TASK_ID) != task_id
        ]
        completed_ids = [
            other
            for other in day_record.get(const.DATA_DAY_COMPLETED_TASK_IDS, [])
            if other != task_id
        ]
        day_record[const.DATA_DAY_RECORDS] = [*records, task_record]
        day_record[const.DATA_DAY_COMPLETED_TASK_IDS] = [*completed_ids, task_id]

    def _remove_record(self, day: str, task_id: str) -> None:
        """Drop the task's record; a day left without completions is removed."""
        day_record = self._day_record(day)
        if day_record is None:
            return
        completed_ids = [
            other
            for other in day_record.get(const.DATA_DAY_COMPLETED_TASK_IDS, [])
            if other != task_id
        ]
        if not completed_ids:
            self.history = [
                other for other in self.history if other.get(const.DATA_DAY_DATE) != day
            ]
            return
        day_record[const.DATA_DAY_COMPLETED_TASK_IDS] = completed_ids
        day_record[const.DATA_DAY_RECORDS] = [
            record
            for record in day_record.get(const.DATA_DAY_RECORDS, [])
            if record.get(const.DATA_RECORD_TASK_ID) != task_id
        ]

