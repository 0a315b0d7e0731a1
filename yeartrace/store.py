# File: store.py
"""Handles persistent data storage for YearTrace.

The storage medium is an external key-value collaborator that stores opaque
strings (`get(key) -> str | None`, `set(key, value)`). This module owns the
JSON encoding, the load-time migration of day-record state and the day
rollover, so callers only ever see canonical data.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from . import const
from .engines.migration_engine import MigrationEngine

if TYPE_CHECKING:
    from datetime import date, datetime


class KeyValueBackend(Protocol):
    """Minimal string key-value store."""

    def get(self, key: str) -> str | None:
        """Return the stored string or None when the key is unset."""

    def set(self, key: str, value: str) -> None:
        """Store `value` under `key`."""


class MemoryBackend:
    """In-memory backend, mostly for tests and previews."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value


class JsonFileBackend:
    """Stores each key as `<directory>/<key>.json`."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        """Return the file path backing `key`."""
        return self.directory / f"{key}{const.STORAGE_FILE_SUFFIX}"

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self.path_for(key).write_text(value, encoding="utf-8")


# ------------------------------------------------------------------------------------------------
# Shared read/write helpers
# ------------------------------------------------------------------------------------------------


def _read_json(backend: KeyValueBackend, key: str) -> tuple[bool, Any]:
    """Read and decode one key.

    Returns:
        (found, value): found is False when the key is unset; value is None
        when the stored text is not valid JSON.
    """
    text = backend.get(key)
    if text is None:
        return False, None
    try:
        return True, json.loads(text)
    except (TypeError, ValueError) as err:
        const.LOGGER.warning(
            "WARNING: Stored data for '%s' is not valid JSON (%s), using defaults",
            key,
            err,
        )
        return True, None


def _write_json(backend: KeyValueBackend, key: str, data: Any) -> bool:
    """Encode and store one key.

    Raises:
        No exceptions raised - errors are logged but do not stop execution.
        OSError: Logged when the backend cannot write.
        TypeError: Logged when data contains non-serializable types.
        ValueError: Logged when data is invalid for JSON serialization.

    Returns:
        True when the data was written.
    """
    try:
        backend.set(key, json.dumps(data, ensure_ascii=False))
    except OSError as err:
        const.LOGGER.error(
            "ERROR: Failed to save '%s' due to storage error: %s. "
            "Check disk space and file permissions",
            key,
            err,
        )
    except TypeError as err:
        const.LOGGER.error(
            "ERROR: Failed to save '%s' due to non-serializable data: %s",
            key,
            err,
        )
    except ValueError as err:
        const.LOGGER.error(
            "ERROR: Failed to save '%s' due to invalid data format: %s",
            key,
            err,
        )
    else:
        const.LOGGER.debug("DEBUG: Data saved successfully to '%s'", key)
        return True
    return False


# ------------------------------------------------------------------------------------------------
# Day-record tracker store
# ------------------------------------------------------------------------------------------------


class YearTraceStore:
    """Persistent storage for the day-record tracker.

    A single JSON document `{tasks, history, user}` under one key. Loading
    always yields canonical (V3) state; a migrated document is written back
    before anything else happens.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        storage_key: str = const.STORAGE_KEY_DAY_RECORDS,
    ) -> None:
        """Initialize the store.

        Args:
            backend: Key-value collaborator holding the JSON document.
            storage_key: Key of the document (default: const.STORAGE_KEY_DAY_RECORDS).
        """
        self._backend = backend
        self._storage_key = storage_key
        self._data: dict[str, Any] = {}

    @staticmethod
    def get_default_structure() -> dict[str, Any]:
        """Return the canonical state for a fresh installation."""
        return MigrationEngine.create_initial_state()

    @property
    def data(self) -> dict[str, Any]:
        """Retrieve the in-memory data cache."""
        return self._data

    def load(self, today: date | datetime | str | None = None) -> dict[str, Any]:
        """Load, migrate and roll over the stored state.

        Args:
            today: Reference day for the rollover, defaults to the local day.

        Returns:
            dict with `tasks`, `history` and `user`.
        """
        found, raw = _read_json(self._backend, self._storage_key)

        if not found:
            const.LOGGER.info("INFO: No existing storage found. Initializing new data")
            data = self.get_default_structure()
        else:
            result = MigrationEngine.detect_and_migrate(raw)
            data = {
                const.DATA_TASKS: result["tasks"],
                const.DATA_HISTORY: result["history"],
                const.DATA_USER: result["user"],
            }
            if result["migrated"]:
                # Persist now so the lossy upgrade or cleanup never runs again
                self.save(data)

        tasks, reset = MigrationEngine.apply_day_rollover(
            data[const.DATA_TASKS], data[const.DATA_HISTORY], today
        )
        if reset:
            data[const.DATA_TASKS] = tasks

        self._data = data
        const.LOGGER.debug(
            "DEBUG: Loaded day-record state: %s tasks, %s day records",
            len(data[const.DATA_TASKS]),
            len(data[const.DATA_HISTORY]),
        )
        return data

    def save(self, data: dict[str, Any] | None = None) -> bool:
        """Write the state (or the in-memory cache) to the backend."""
        if data is not None:
            self._data = data
        return _write_json(self._backend, self._storage_key, self._data)


# ------------------------------------------------------------------------------------------------
# Habit tracker store
# ------------------------------------------------------------------------------------------------


class HabitStore:
    """Persistent storage for habit tasks and logs, one key each."""

    def __init__(
        self,
        backend: KeyValueBackend,
        tasks_key: str = const.STORAGE_KEY_TASKS,
        logs_key: str = const.STORAGE_KEY_LOGS,
    ) -> None:
        self._backend = backend
        self._tasks_key = tasks_key
        self._logs_key = logs_key

    def _load_list(self, key: str) -> list[dict[str, Any]]:
        found, value = _read_json(self._backend, key)
        if not found or value is None:
            return []
        if not isinstance(value, list):
            const.LOGGER.warning(
                "WARNING: Stored data for '%s' is not a list (%s), using empty list",
                key,
                type(value).__name__,
            )
            return []
        items = [item for item in value if isinstance(item, dict)]
        if len(items) != len(value):
            const.LOGGER.warning(
                "WARNING: Dropped %s malformed entries from '%s'",
                len(value) - len(items),
                key,
            )
        return items

    def load_tasks(self) -> list[dict[str, Any]]:
        """Return the stored habit tasks (empty when unset or malformed)."""
        return self._load_list(self._tasks_key)

    def load_logs(self) -> list[dict[str, Any]]:
        """Return the stored habit logs (empty when unset or malformed)."""
        return self._load_list(self._logs_key)

    def save_tasks(self, tasks: list[dict[str, Any]]) -> bool:
        return _write_json(self._backend, self._tasks_key, tasks)

    def save_logs(self, logs: list[dict[str, Any]]) -> bool:
        return _write_json(self._backend, self._logs_key, logs)
