"""Shared fixtures for YearTrace tests."""

from __future__ import annotations

import json
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from yeartrace import const
from yeartrace.managers import DayRecordManager, HabitManager
from yeartrace.store import HabitStore, MemoryBackend, YearTraceStore
from yeartrace.utils import dt_utils


@pytest.fixture(autouse=True)
def reset_default_timezone() -> Any:
    """Keep the process-wide day-key timezone at UTC between tests."""
    dt_utils.set_default_timezone(ZoneInfo("UTC"))
    yield
    dt_utils.set_default_timezone(ZoneInfo("UTC"))


@pytest.fixture
def memory_backend() -> MemoryBackend:
    """Return an empty in-memory key-value backend."""
    return MemoryBackend()


@pytest.fixture
def year_trace_store(memory_backend: MemoryBackend) -> YearTraceStore:
    """Return a day-record store over the memory backend."""
    return YearTraceStore(memory_backend)


@pytest.fixture
def habit_store(memory_backend: MemoryBackend) -> HabitStore:
    """Return a habit store over the memory backend."""
    return HabitStore(memory_backend)


@pytest.fixture
def day_record_manager(year_trace_store: YearTraceStore) -> DayRecordManager:
    """Return a manager loaded with the default state as of 2024-01-10."""
    manager = DayRecordManager(year_trace_store)
    manager.load(today="2024-01-10")
    return manager


@pytest.fixture
def habit_manager(habit_store: HabitStore) -> HabitManager:
    """Return a loaded manager with no tasks or logs."""
    manager = HabitManager(habit_store)
    manager.load()
    return manager


def stored_json(backend: MemoryBackend, key: str = const.STORAGE_KEY_DAY_RECORDS) -> Any:
    """Decode the JSON stored under `key`."""
    return json.loads(backend.values[key])
