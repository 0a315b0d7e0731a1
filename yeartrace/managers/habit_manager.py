"""Habit Manager - Stateful task and log operations for the habit tracker.

Enforces the invariants the statistics rely on:
- at most one log per (taskId, date), by upsert and by load-time cleanup
- deleting a task deletes its logs
- only valid YYYY-MM-DD days enter the log store
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any

import voluptuous as vol

from .. import const
from ..utils.dt_utils import day_key, is_valid_day_key
from .base_manager import BaseManager, TaskNotFoundError, creation_time, generate_id

if TYPE_CHECKING:
    from datetime import datetime

    from ..store import HabitStore
    from ..type_defs import LogData, TaskData


def _optional_day_key(value: Any) -> Any:
    if value is not None and not is_valid_day_key(value):
        raise vol.Invalid(const.ERROR_INVALID_DATE)
    return value


TASK_FIELDS_SCHEMA = vol.Schema(
    {
        vol.Optional(const.DATA_TASK_NAME): vol.All(str, vol.Length(min=1)),
        vol.Optional(const.DATA_TASK_TYPE): vol.In(const.TASK_TYPES),
        vol.Optional(const.DATA_TASK_STATUS): vol.In(const.TASK_LIFECYCLES),
        vol.Optional(const.DATA_TASK_START_DATE): _optional_day_key,
        vol.Optional(const.DATA_TASK_END_DATE): _optional_day_key,
        vol.Optional(const.DATA_TASK_COLOR): str,
        vol.Optional(const.DATA_TASK_UNIT): str,
        vol.Optional(const.DATA_TASK_INITIAL_VALUE): vol.Coerce(float),
        vol.Optional(const.DATA_TASK_TARGET_VALUE): vol.Coerce(float),
    }
)

LOG_DETAIL_SCHEMA = vol.Schema(
    {
        vol.Optional(const.DATA_LOG_VALUE): vol.Any(None, vol.Coerce(float)),
        vol.Optional(const.DATA_LOG_TEXT): vol.Any(None, str),
        vol.Optional(const.DATA_LOG_RATING): vol.Any(
            None, vol.All(int, vol.Range(min=1, max=5))
        ),
    }
)


class HabitManager(BaseManager):
    """Own habit tasks and logs and keep them consistent."""

    def __init__(self, store: HabitStore) -> None:
        """Initialize manager.

        Args:
            store: HabitStore holding the task and log lists
        """
        self._store = store
        self.tasks: list[TaskData] = []
        self.logs: list[LogData] = []

    # =========================================================================
    # LOAD
    # =========================================================================

    def load(self, today: date | datetime | str | None = None) -> None:
        """Load tasks and logs, dropping malformed entries and collapsing duplicates.

        Tasks need a string `id`. Logs need a string `taskId` and a valid
        `date`. Duplicate tasks (same name and type) keep the earliest-created
        id. Duplicate logs (same taskId and date) keep the last one written.
        Storage is rewritten whenever anything was dropped or collapsed.
        """
        raw_tasks = self._store.load_tasks()
        raw_logs = self._store.load_logs()

        valid_tasks = self.valid_tasks(raw_tasks)
        self.tasks = self.dedupe_tasks(valid_tasks)
        if len(valid_tasks) != len(raw_tasks):
            const.LOGGER.warning(
                "WARNING: Dropped %s habit tasks without an id",
                len(raw_tasks) - len(valid_tasks),
            )
        if len(self.tasks) != len(valid_tasks):
            const.LOGGER.info(
                "INFO: Collapsed %s duplicate habit tasks",
                len(valid_tasks) - len(self.tasks),
            )
        if len(self.tasks) != len(raw_tasks):
            self._store.save_tasks(self.tasks)

        valid_logs = self.valid_logs(raw_logs)
        self.logs = self.dedupe_logs(valid_logs)
        if len(valid_logs) != len(raw_logs):
            const.LOGGER.warning(
                "WARNING: Dropped %s habit logs without a taskId or valid date",
                len(raw_logs) - len(valid_logs),
            )
        if len(self.logs) != len(valid_logs):
            const.LOGGER.info(
                "INFO: Collapsed %s duplicate habit logs",
                len(valid_logs) - len(self.logs),
            )
        if len(self.logs) != len(raw_logs):
            self._store.save_logs(self.logs)

    @staticmethod
    def valid_tasks(tasks: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Keep tasks that carry a string id."""
        return [task for task in tasks if isinstance(task.get(const.DATA_TASK_ID), str)]

    @staticmethod
    def valid_logs(logs: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Keep logs with a string taskId and a real YYYY-MM-DD date."""
        return [
            log
            for log in logs
            if isinstance(log.get(const.DATA_LOG_TASK_ID), str)
            and is_valid_day_key(log.get(const.DATA_LOG_DATE))
        ]

    @staticmethod
    def dedupe_tasks(tasks: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Keep one task per (name, type): the one with the earliest id timestamp."""
        kept: dict[tuple[Any, Any], dict[str, Any]] = {}
        for task in tasks:
            key = (task.get(const.DATA_TASK_NAME), task.get(const.DATA_TASK_TYPE))
            existing = kept.get(key)
            if existing is None or creation_time(task.get(const.DATA_TASK_ID)) < creation_time(
                existing.get(const.DATA_TASK_ID)
            ):
                kept[key] = task
        return list(kept.values())

    @staticmethod
    def dedupe_logs(logs: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Keep one log per (taskId, date): the last one in the list."""
        kept: dict[tuple[Any, Any], dict[str, Any]] = {}
        for log in logs:
            kept[(log.get(const.DATA_LOG_TASK_ID), log.get(const.DATA_LOG_DATE))] = log
        return list(kept.values())

    # =========================================================================
    # TASKS
    # =========================================================================

    def get_task(self, task_id: str) -> TaskData | None:
        for task in self.tasks:
            if task[const.DATA_TASK_ID] == task_id:
                return task
        return None

    def add_task(
        self,
        name: str,
        task_type: str = const.TASK_TYPE_CHECK,
        today: date | datetime | str | None = None,
        **fields: Any,
    ) -> TaskData:
        """Create an active habit task.

        `startDate` defaults to today and `color` to the first palette color
        not used by another task.

        Raises:
            vol.Invalid: If a field is unknown or malformed, including a
                startDate or endDate that is not a valid day key.
        """
        validated = TASK_FIELDS_SCHEMA(
            {const.DATA_TASK_NAME: name, const.DATA_TASK_TYPE: task_type, **fields}
        )
        used_colors = {task.get(const.DATA_TASK_COLOR) for task in self.tasks}
        default_color = next(
            (color for color in const.DEFAULT_TASK_COLORS if color not in used_colors),
            const.DEFAULT_TASK_COLORS[0],
        )
        task: dict[str, Any] = {
            const.DATA_TASK_ID: generate_id(),
            const.DATA_TASK_STATUS: const.TASK_LIFECYCLE_ACTIVE,
            const.DATA_TASK_START_DATE: day_key(self._today(today)),
            const.DATA_TASK_COLOR: default_color,
            **{key: value for key, value in validated.items() if value is not None},
        }
        self.tasks.append(task)  # type: ignore[arg-type]
        self._store.save_tasks(self.tasks)
        const.LOGGER.info("INFO: Added habit task '%s' (%s)", name, task[const.DATA_TASK_ID])
        return task  # type: ignore[return-value]

    def update_task(self, task_id: str, **updates: Any) -> TaskData | None:
        """Apply field updates. Passing `endDate=None` clears the end date.

        Raises:
            vol.Invalid: If a field is unknown or malformed.
        """
        task = self.get_task(task_id)
        if task is None:
            return None
        validated = TASK_FIELDS_SCHEMA(updates)
        updated = {**task, **validated}
        for key, value in validated.items():
            if value is None:
                updated.pop(key, None)
        self.tasks = [
            updated if other[const.DATA_TASK_ID] == task_id else other  # type: ignore[misc]
            for other in self.tasks
        ]
        self._store.save_tasks(self.tasks)
        return updated  # type: ignore[return-value]

    def delete_task(self, task_id: str) -> bool:
        """Delete a task and every log that belongs to it."""
        remaining = [task for task in self.tasks if task[const.DATA_TASK_ID] != task_id]
        if len(remaining) == len(self.tasks):
            return False
        self.tasks = remaining
        self._store.save_tasks(self.tasks)

        kept_logs = [log for log in self.logs if log[const.DATA_LOG_TASK_ID] != task_id]
        const.LOGGER.info(
            "INFO: Deleted habit task %s and %s logs",
            task_id,
            len(self.logs) - len(kept_logs),
        )
        self.logs = kept_logs
        self._store.save_logs(self.logs)
        return True

    # =========================================================================
    # LOGS
    # =========================================================================

    def get_log(self, task_id: str, day: str) -> LogData | None:
        for log in self.logs:
            if log[const.DATA_LOG_TASK_ID] == task_id and log[const.DATA_LOG_DATE] == day:
                return log
        return None

    def upsert_log(
        self,
        task_id: str,
        day: Any,
        value: float | None = None,
        text: str | None = None,
        rating: int | None = None,
    ) -> LogData:
        """Create or replace the single log of a task on a day.

        Raises:
            InvalidDateError: If `day` is not a valid YYYY-MM-DD day.
            TaskNotFoundError: If the task does not exist.
            vol.Invalid: If value, text or rating is malformed.
        """
        day = self._validate_day(day)
        if self.get_task(task_id) is None:
            raise TaskNotFoundError(task_id)
        detail = LOG_DETAIL_SCHEMA(
            {
                const.DATA_LOG_VALUE: value,
                const.DATA_LOG_TEXT: text,
                const.DATA_LOG_RATING: rating,
            }
        )

        existing = self.get_log(task_id, day)
        log: dict[str, Any] = {
            const.DATA_LOG_ID: existing[const.DATA_LOG_ID] if existing else generate_id(),
            const.DATA_LOG_TASK_ID: task_id,
            const.DATA_LOG_DATE: day,
            **{key: item for key, item in detail.items() if item is not None},
        }
        if existing is None:
            self.logs.append(log)  # type: ignore[arg-type]
        else:
            self.logs = [
                log if other is existing else other  # type: ignore[misc]
                for other in self.logs
            ]
        self._store.save_logs(self.logs)
        return log  # type: ignore[return-value]

    def delete_log(self, log_id: str) -> bool:
        remaining = [log for log in self.logs if log[const.DATA_LOG_ID] != log_id]
        if len(remaining) == len(self.logs):
            return False
        self.logs = remaining
        self._store.save_logs(self.logs)
        return True

    def logs_for_day(self, day: str) -> list[LogData]:
        """Return the logs dated `day`."""
        return [log for log in self.logs if log[const.DATA_LOG_DATE] == day]

    def logs_for_task(self, task_id: str) -> list[LogData]:
        """Return the logs of one task."""
        return [log for log in self.logs if log[const.DATA_LOG_TASK_ID] == task_id]
