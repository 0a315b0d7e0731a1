"""Tests for YearTraceStore and HabitStore persistence.

Test Categories:
- Backends (memory, JSON file)
- Day-record store load: fresh install, migration write-back, rollover
- Save error handling
- Habit store list loading and malformed data
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from yeartrace import const
from yeartrace.store import HabitStore, JsonFileBackend, MemoryBackend, YearTraceStore

from tests.conftest import stored_json
from tests.helpers import make_day, make_log, make_task

# =============================================================================
# BACKENDS
# =============================================================================


class TestBackends:
    """Tests for the bundled key-value backends."""

    def test_memory_backend(self) -> None:
        """Unset keys read as None."""
        backend = MemoryBackend({"a": "1"})
        assert backend.get("a") == "1"
        assert backend.get("b") is None
        backend.set("b", "2")
        assert backend.values == {"a": "1", "b": "2"}

    def test_json_file_backend(self, tmp_path: Path) -> None:
        """Each key is one file under the directory, created on first write."""
        backend = JsonFileBackend(tmp_path / "data")
        assert backend.get("tasks") is None
        backend.set("tasks", "[]")
        assert backend.path_for("tasks") == tmp_path / "data" / "tasks.json"
        assert backend.get("tasks") == "[]"


# =============================================================================
# DAY-RECORD STORE
# =============================================================================


class TestYearTraceStoreLoad:
    """Tests for loading day-record state."""

    def test_fresh_install(self, year_trace_store: YearTraceStore) -> None:
        """Nothing stored gives the default structure."""
        data = year_trace_store.load(today="2024-01-01")
        assert data == YearTraceStore.get_default_structure()
        assert year_trace_store.data is data

    def test_v3_not_rewritten(self, memory_backend: MemoryBackend) -> None:
        """Canonical state is loaded without a write."""
        raw = json.dumps({"tasks": [make_task("1")], "history": [], "user": {"streak": 0}})
        memory_backend.set(const.STORAGE_KEY_DAY_RECORDS, raw)
        YearTraceStore(memory_backend).load(today="2024-01-01")
        assert memory_backend.values[const.STORAGE_KEY_DAY_RECORDS] == raw

    def test_migrated_state_written_back(self, memory_backend: MemoryBackend) -> None:
        """A V1 document is upgraded and persisted immediately."""
        memory_backend.set(
            const.STORAGE_KEY_DAY_RECORDS,
            json.dumps(
                {
                    "tasks": [{"id": "a", "name": "Read", "expValue": 10}],
                    "history": [{"date": "2024-01-01", "completedTaskIds": ["a"]}],
                    "user": {"level": 3, "streak": 1},
                }
            ),
        )
        YearTraceStore(memory_backend).load(today="2024-01-01")
        stored = stored_json(memory_backend)
        assert stored["user"] == {"streak": 1}
        assert stored["tasks"][0]["type"] == const.TASK_TYPE_CHECK
        assert stored["history"][0]["records"] == [{"taskId": "a", "completed": True}]

    def test_malformed_v3_entries_dropped_and_written_back(
        self, memory_backend: MemoryBackend
    ) -> None:
        """Stray entries after a valid first element are dropped, not trusted."""
        memory_backend.set(
            const.STORAGE_KEY_DAY_RECORDS,
            json.dumps(
                {
                    "tasks": [{"id": "1", "type": "check"}, "junk"],
                    "history": [make_day("2024-01-01", "1"), None],
                    "user": {"streak": 1},
                }
            ),
        )
        data = YearTraceStore(memory_backend).load(today="2024-01-02")
        assert data["tasks"] == [{"id": "1", "type": "check", "status": const.TASK_STATUS_PENDING}]
        assert data["history"] == [make_day("2024-01-01", "1")]
        stored = stored_json(memory_backend)
        assert stored["tasks"] == [{"id": "1", "type": "check"}]
        assert stored["history"] == [make_day("2024-01-01", "1")]

    def test_defaulted_v3_fields_written_back(self, memory_backend: MemoryBackend) -> None:
        """Missing history and user are filled in once and persisted."""
        memory_backend.set(const.STORAGE_KEY_DAY_RECORDS, json.dumps({"tasks": [make_task("1")]}))
        YearTraceStore(memory_backend).load(today="2024-01-01")
        stored = stored_json(memory_backend)
        assert stored["history"] == []
        assert stored["user"] == {"streak": 0}

    def test_rollover_on_new_day(self, memory_backend: MemoryBackend) -> None:
        """Yesterday's completed status is pending today."""
        memory_backend.set(
            const.STORAGE_KEY_DAY_RECORDS,
            json.dumps(
                {
                    "tasks": [make_task("1", status=const.TASK_STATUS_COMPLETED, streak=1)],
                    "history": [make_day("2024-01-01", "1")],
                    "user": {"streak": 1},
                }
            ),
        )
        data = YearTraceStore(memory_backend).load(today="2024-01-02")
        assert data["tasks"][0]["status"] == const.TASK_STATUS_PENDING
        assert data["tasks"][0]["streak"] == 1

    def test_invalid_json_uses_fresh_state(
        self, memory_backend: MemoryBackend, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Corrupt text is logged and replaced by defaults."""
        memory_backend.set(const.STORAGE_KEY_DAY_RECORDS, "{not json")
        with caplog.at_level(logging.WARNING):
            data = YearTraceStore(memory_backend).load(today="2024-01-01")
        assert len(data["tasks"]) == 4
        assert "not valid JSON" in caplog.text

    def test_custom_storage_key(self, memory_backend: MemoryBackend) -> None:
        """The document key is configurable."""
        store = YearTraceStore(memory_backend, storage_key="other")
        store.load(today="2024-01-01")
        assert store.save() is True
        assert "other" in memory_backend.values


class FailingBackend(MemoryBackend):
    """Backend whose writes always fail."""

    def set(self, key: str, value: str) -> None:
        raise OSError("disk full")


class TestYearTraceStoreSave:
    """Tests for save error handling."""

    def test_storage_error_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """An OSError is logged and reported as False, not raised."""
        store = YearTraceStore(FailingBackend())
        with caplog.at_level(logging.ERROR):
            assert store.save({"tasks": [], "history": [], "user": {"streak": 0}}) is False
        assert "disk full" in caplog.text

    def test_non_serializable_logged(self, year_trace_store: YearTraceStore) -> None:
        """Data json cannot encode is reported as False."""
        assert year_trace_store.save({"tasks": [object()]}) is False


# =============================================================================
# HABIT STORE
# =============================================================================


class TestHabitStore:
    """Tests for habit task and log lists."""

    def test_empty_when_unset(self, habit_store: HabitStore) -> None:
        """Unset keys load as empty lists."""
        assert habit_store.load_tasks() == []
        assert habit_store.load_logs() == []

    def test_round_trip(self, habit_store: HabitStore) -> None:
        """Saved logs load back equal."""
        logs = [make_log("a", "2024-01-01", value=2.5)]
        assert habit_store.save_logs(logs) is True
        assert habit_store.load_logs() == logs

    def test_non_list_is_empty(self, memory_backend: MemoryBackend, habit_store: HabitStore) -> None:
        """A stored object instead of a list loads as empty."""
        memory_backend.set(const.STORAGE_KEY_TASKS, json.dumps({"id": "a"}))
        assert habit_store.load_tasks() == []

    def test_malformed_entries_dropped(self, memory_backend: MemoryBackend, habit_store: HabitStore) -> None:
        """Non-object entries are dropped."""
        memory_backend.set(const.STORAGE_KEY_LOGS, json.dumps([make_log("a", "2024-01-01"), 3, "x"]))
        assert habit_store.load_logs() == [make_log("a", "2024-01-01")]
