"""Migration Engine - Schema detection and upgrade for day-record state.

Persisted day-record state carries no version field. The version is decided
by trying one decoder per schema, newest first:

- V3 (current): tasks have no `expValue`, day records have `records`, the user
  has no `level` / `currentExp` / `maxExp`
- V2: tasks have `type`, day records have `records`, XP fields may remain
- V1: anything else that is a mapping (plain `completedTaskIds`, XP/leveling)

Each decoder is a voluptuous schema that inspects the first element of
`tasks` / `history` and the `user` object, and either returns a
`DetectedSchema` or raises `vol.Invalid`.

The V1 upgrade is lossy by nature: per-record text, rating and value were
never stored and stay absent.

ARCHITECTURE: Pure logic, no I/O. The store persists the result immediately
whenever `migrated` is True so the lossy V1 synthesis never runs twice.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import copy
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

import voluptuous as vol

from .. import const
from ..utils.dt_utils import as_day, day_key, dt_now_iso, is_valid_day_key

if TYPE_CHECKING:
    from ..type_defs import (
        MigrationResult,
        YTDayRecord,
        YTTaskData,
        YTTaskRecord,
        YTUser,
    )


# Optional V1 task fields that were written as falsy placeholders
_V1_OPTIONAL_TASK_FIELDS = (
    const.DATA_TASK_COLOR,
    const.DATA_TASK_UNIT,
    const.DATA_TASK_TARGET_VALUE,
    const.DATA_TASK_METADATA,
)


@dataclass(frozen=True)
class DetectedSchema:
    """Result of a successful schema decode."""

    version: int
    data: Mapping[str, Any]


# =============================================================================
# STRUCTURAL VALIDATORS
# =============================================================================


def _first_item_lacks(*keys: str) -> Callable[[list[Any]], list[Any]]:
    """Fail when the first list element is a mapping holding any of `keys`."""

    def validator(value: list[Any]) -> list[Any]:
        if value and isinstance(value[0], Mapping):
            present = [key for key in keys if key in value[0]]
            if present:
                raise vol.Invalid(f"first item has legacy fields {present}")
        return value

    return validator


def _first_item_has(key: str) -> Callable[[list[Any]], list[Any]]:
    """Fail unless the list is empty or its first element holds `key`."""

    def validator(value: list[Any]) -> list[Any]:
        if value and not (isinstance(value[0], Mapping) and key in value[0]):
            raise vol.Invalid(f"first item lacks {key!r}")
        return value

    return validator


def _lacks(*keys: str) -> Callable[[Mapping[str, Any]], Mapping[str, Any]]:
    """Fail when the mapping holds any of `keys`."""

    def validator(value: Mapping[str, Any]) -> Mapping[str, Any]:
        present = [key for key in keys if key in value]
        if present:
            raise vol.Invalid(f"legacy fields present {present}")
        return value

    return validator


_HISTORY_WITH_RECORDS = vol.Any(
    None, vol.All(list, _first_item_has(const.DATA_DAY_RECORDS))
)

V3_SCHEMA = vol.Schema(
    {
        vol.Required(const.DATA_TASKS): vol.All(
            list, _first_item_lacks(const.LEGACY_TASK_EXP_VALUE)
        ),
        vol.Optional(const.DATA_HISTORY): _HISTORY_WITH_RECORDS,
        vol.Optional(const.DATA_USER): vol.Any(
            None, vol.All(dict, _lacks(*const.LEGACY_USER_FIELDS))
        ),
    },
    extra=vol.ALLOW_EXTRA,
)

V2_SCHEMA = vol.Schema(
    {
        vol.Required(const.DATA_TASKS): vol.All(
            list, _first_item_has(const.DATA_TASK_TYPE)
        ),
        vol.Optional(const.DATA_HISTORY): _HISTORY_WITH_RECORDS,
    },
    extra=vol.ALLOW_EXTRA,
)

V1_SCHEMA = vol.Schema({}, extra=vol.ALLOW_EXTRA)


# =============================================================================
# MIGRATION ENGINE
# =============================================================================


class MigrationEngine:
    """Pure logic engine for day-record schema detection and upgrade.

    All methods are static - no instance state.

    Contract:
    - `detect_and_migrate` never raises and always returns canonical V3 state
    - V3 input comes back unchanged (deep copy) with `migrated` False
    - Running it on its own output is a no-op
    """

    # =========================================================================
    # DECODERS
    # =========================================================================

    @staticmethod
    def decode_v3(raw: Any) -> DetectedSchema:
        """Decode `raw` as V3 or raise `vol.Invalid`."""
        return DetectedSchema(const.SCHEMA_VERSION_V3, V3_SCHEMA(raw))

    @staticmethod
    def decode_v2(raw: Any) -> DetectedSchema:
        """Decode `raw` as V2 or raise `vol.Invalid`."""
        return DetectedSchema(const.SCHEMA_VERSION_V2, V2_SCHEMA(raw))

    @staticmethod
    def decode_v1(raw: Any) -> DetectedSchema:
        """Decode `raw` as V1 (any mapping) or raise `vol.Invalid`."""
        return DetectedSchema(const.SCHEMA_VERSION_V1, V1_SCHEMA(raw))

    @classmethod
    def detect_schema(cls, raw: Any) -> DetectedSchema | None:
        """Try the V3, V2 and V1 decoders in order.

        Returns:
            The first successful decode, or None when `raw` is not a mapping.
        """
        for decoder in (cls.decode_v3, cls.decode_v2, cls.decode_v1):
            try:
                return decoder(raw)
            except vol.Invalid as err:
                const.LOGGER.debug(
                    "DEBUG: %s rejected state: %s", decoder.__name__, err
                )
        return None

    # =========================================================================
    # MAIN ENTRY POINT
    # =========================================================================

    @classmethod
    def detect_and_migrate(cls, raw: Any) -> MigrationResult:
        """Detect the schema of `raw` and upgrade it to V3.

        Args:
            raw: Deserialized persisted state (any shape, including None).

        Returns:
            MigrationResult with canonical tasks/history/user, whether an
            upgrade happened and the detected source version.
        """
        detected = cls.detect_schema(raw)
        if detected is None:
            const.LOGGER.warning(
                "WARNING: Unrecognizable day-record state (%s), using fresh state",
                type(raw).__name__,
            )
            fresh = cls.create_initial_state()
            return cls._result(
                fresh[const.DATA_TASKS],
                fresh[const.DATA_HISTORY],
                fresh[const.DATA_USER],
                migrated=False,
                version=const.SCHEMA_VERSION_CURRENT,
            )

        if detected.version == const.SCHEMA_VERSION_V3:
            return cls._passthrough_v3(detected.data)

        if detected.version == const.SCHEMA_VERSION_V2:
            result = cls._migrate_v2_to_v3(detected.data)
        else:
            result = cls._migrate_v1_to_v3(detected.data)

        const.LOGGER.info(
            "INFO: Migrated day-record state from schema V%s to V%s "
            "(%s tasks, %s day records)",
            detected.version,
            const.SCHEMA_VERSION_CURRENT,
            len(result[const.DATA_TASKS]),
            len(result[const.DATA_HISTORY]),
        )
        return result

    # =========================================================================
    # VERSION HANDLERS
    # =========================================================================

    @classmethod
    def _passthrough_v3(cls, data: Mapping[str, Any]) -> MigrationResult:
        """Return V3 state as a deep copy, dropping entries that cannot be placed.

        Detection only inspects the first element, so later entries are
        checked here: tasks need a string `id` and day records a valid
        `date`. Dropped entries and defaulted `history` / `user` count as
        a migration so the store writes the cleaned state back once.
        """
        raw_tasks = data[const.DATA_TASKS]
        tasks = [
            copy.deepcopy(dict(task))
            for task in cls._mappings(raw_tasks)
            if isinstance(task.get(const.DATA_TASK_ID), str)
        ]

        raw_history = data.get(const.DATA_HISTORY)
        history: list[dict[str, Any]] = []
        dropped_records = 0
        for raw_record in cls._mappings(raw_history):
            if not is_valid_day_key(raw_record.get(const.DATA_DAY_DATE)):
                continue
            record = copy.deepcopy(dict(raw_record))
            records = record.get(const.DATA_DAY_RECORDS)
            if isinstance(records, list):
                record[const.DATA_DAY_RECORDS] = cls._mappings(records)
                dropped_records += len(records) - len(record[const.DATA_DAY_RECORDS])
            history.append(record)

        dropped_tasks = len(raw_tasks) - len(tasks)
        dropped_days = len(raw_history) - len(history) if isinstance(raw_history, list) else 0
        if dropped_tasks or dropped_days or dropped_records:
            const.LOGGER.warning(
                "WARNING: Dropped malformed V3 entries: %s tasks, %s day records, "
                "%s task records",
                dropped_tasks,
                dropped_days,
                dropped_records,
            )

        user = data.get(const.DATA_USER)
        defaulted = not isinstance(raw_history, list) or not user
        return cls._result(
            tasks,
            history,
            copy.deepcopy(user) if user else cls._default_user(),
            migrated=bool(dropped_tasks or dropped_days or dropped_records or defaulted),
            version=const.SCHEMA_VERSION_V3,
        )

    @classmethod
    def _migrate_v2_to_v3(cls, data: Mapping[str, Any]) -> MigrationResult:
        """Strip the XP fields and keep everything else as-is."""
        tasks = [
            cls._without(task, const.LEGACY_TASK_EXP_VALUE)
            for task in cls._mappings(data.get(const.DATA_TASKS))
        ]
        history = [
            cls._without(record, const.LEGACY_DAY_TOTAL_EXP)
            for record in cls._mappings(data.get(const.DATA_HISTORY))
        ]

        raw_user = data.get(const.DATA_USER)
        if isinstance(raw_user, Mapping):
            user = cls._without(raw_user, *const.LEGACY_USER_FIELDS)
            user.setdefault(const.DATA_USER_STREAK, 0)
        else:
            user = cls._default_user()

        return cls._result(
            tasks, history, user, migrated=True, version=const.SCHEMA_VERSION_V2
        )

    @classmethod
    def _migrate_v1_to_v3(cls, data: Mapping[str, Any]) -> MigrationResult:
        """Add task types, synthesize per-record detail and drop leveling."""
        tasks: list[dict[str, Any]] = []
        for index, raw_task in enumerate(cls._mappings(data.get(const.DATA_TASKS))):
            task = cls._without(raw_task, const.LEGACY_TASK_EXP_VALUE)
            if not task.get(const.DATA_TASK_TYPE):
                task[const.DATA_TASK_TYPE] = const.TASK_TYPE_CHECK
            for field in _V1_OPTIONAL_TASK_FIELDS:
                if field in task and not task[field]:
                    del task[field]
            task.setdefault(const.DATA_TASK_STATUS, const.TASK_STATUS_PENDING)
            task.setdefault(const.DATA_TASK_STREAK, 0)
            task.setdefault(const.DATA_TASK_ORDER, index + 1)
            tasks.append(task)

        history: list[dict[str, Any]] = []
        for raw_record in cls._mappings(data.get(const.DATA_HISTORY)):
            if not isinstance(raw_record.get(const.DATA_DAY_DATE), str):
                const.LOGGER.warning(
                    "WARNING: Dropping V1 day record without a date: %s",
                    raw_record,
                )
                continue
            record = cls._without(raw_record, const.LEGACY_DAY_TOTAL_EXP)
            completed_ids = raw_record.get(const.DATA_DAY_COMPLETED_TASK_IDS)
            if not isinstance(completed_ids, list):
                completed_ids = []
            record[const.DATA_DAY_COMPLETED_TASK_IDS] = list(completed_ids)
            # Text, rating and value were never stored in V1
            record[const.DATA_DAY_RECORDS] = [
                {const.DATA_RECORD_TASK_ID: task_id, const.DATA_RECORD_COMPLETED: True}
                for task_id in completed_ids
            ]
            history.append(record)

        raw_user = data.get(const.DATA_USER)
        streak = raw_user.get(const.DATA_USER_STREAK) if isinstance(raw_user, Mapping) else 0
        user = {const.DATA_USER_STREAK: streak if isinstance(streak, int) else 0}

        return cls._result(
            tasks, history, user, migrated=True, version=const.SCHEMA_VERSION_V1
        )

    # =========================================================================
    # DAY ROLLOVER
    # =========================================================================

    @staticmethod
    def apply_day_rollover(
        tasks: list[YTTaskData],
        history: list[YTDayRecord],
        today: date | datetime | str | None = None,
    ) -> tuple[list[YTTaskData], bool]:
        """Reset daily task status when the newest day record is not today.

        Streaks are untouched; only `status` goes back to pending. Nothing
        happens while the history is empty.

        Returns:
            (tasks, reset) where tasks are new dicts when reset is True.
        """
        dates = [
            record[const.DATA_DAY_DATE]
            for record in history
            if isinstance(record, Mapping)
            and isinstance(record.get(const.DATA_DAY_DATE), str)
        ]
        if not dates or max(dates) == day_key(as_day(today)):
            return tasks, False

        reset_tasks = [
            {**task, const.DATA_TASK_STATUS: const.TASK_STATUS_PENDING}
            for task in tasks
            if isinstance(task, Mapping)
        ]
        const.LOGGER.debug(
            "DEBUG: New day since %s, reset %s task statuses to pending",
            max(dates),
            len(reset_tasks),
        )
        return reset_tasks, True  # type: ignore[return-value]

    # =========================================================================
    # FACTORIES
    # =========================================================================

    @classmethod
    def create_initial_state(cls) -> dict[str, Any]:
        """Return the fresh V3 state used when nothing usable is stored."""
        tasks = [
            {
                **task,
                const.DATA_TASK_STATUS: const.TASK_STATUS_PENDING,
                const.DATA_TASK_STREAK: 0,
            }
            for task in const.DEFAULT_DAY_RECORD_TASKS
        ]
        return {
            const.DATA_TASKS: tasks,
            const.DATA_HISTORY: [],
            const.DATA_USER: cls._default_user(),
        }

    @staticmethod
    def create_task_record(task_id: str) -> YTTaskRecord:
        """Return an uncompleted record for a new task."""
        return {"taskId": task_id, "completed": False}

    @staticmethod
    def create_check_text_record(
        task_id: str, text: str, rating: int, completed_at: str | None = None
    ) -> YTTaskRecord:
        """Return a completed record for a check+text task."""
        return {
            "taskId": task_id,
            "completed": True,
            "text": text,
            "rating": rating,
            "completedAt": completed_at or dt_now_iso(),
        }

    @staticmethod
    def create_number_record(
        task_id: str, value: float, completed_at: str | None = None
    ) -> YTTaskRecord:
        """Return a completed record for a number task."""
        return {
            "taskId": task_id,
            "completed": True,
            "value": value,
            "completedAt": completed_at or dt_now_iso(),
        }

    @staticmethod
    def create_violation_record(
        task_id: str, completed_at: str | None = None
    ) -> YTTaskRecord:
        """Return a record marking a violation as logged."""
        return {
            "taskId": task_id,
            "completed": True,
            "completedAt": completed_at or dt_now_iso(),
        }

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    @staticmethod
    def _mappings(value: Any) -> list[Mapping[str, Any]]:
        """Return the mapping items of a list; anything else counts as empty."""
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, Mapping)]

    @staticmethod
    def _without(item: Mapping[str, Any], *keys: str) -> dict[str, Any]:
        """Deep-copy a mapping without `keys`."""
        return {
            key: copy.deepcopy(value) for key, value in item.items() if key not in keys
        }

    @staticmethod
    def _default_user() -> YTUser:
        return {"streak": 0}

    @staticmethod
    def _result(
        tasks: list[Any],
        history: list[Any],
        user: Any,
        *,
        migrated: bool,
        version: int,
    ) -> MigrationResult:
        return {
            "tasks": tasks,
            "history": history,
            "user": user,
            "migrated": migrated,
            "version": version,
        }


detect_and_migrate = MigrationEngine.detect_and_migrate
apply_day_rollover = MigrationEngine.apply_day_rollover
