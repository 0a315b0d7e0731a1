"""Tests for DayRecordManager - completion, backfill and task management.

Test Categories:
- Completing and uncompleting today (incremental streak cache)
- Completing a past day (full recalculation)
- Backfill validation and history replacement
- Task add / update / delete / reorder
- Queries (task record, task history, today progress)
"""

from __future__ import annotations

from datetime import date
import json

from freezegun import freeze_time
import pytest
import voluptuous as vol

from yeartrace import const
from yeartrace.engines.streak_engine import StreakEngine
from yeartrace.managers import DayRecordManager, InvalidDateError
from yeartrace.store import MemoryBackend, YearTraceStore

from tests.conftest import stored_json
from tests.helpers import make_day, make_record, make_task

TODAY = "2024-01-10"

# =============================================================================
# TEST FIXTURES
# =============================================================================


def make_manager(history: list[dict] | None = None, tasks: list[dict] | None = None) -> DayRecordManager:
    """Build a manager over stored canonical state, loaded as of TODAY."""
    backend = MemoryBackend()
    backend.set(
        const.STORAGE_KEY_DAY_RECORDS,
        json.dumps(
            {
                "tasks": tasks or [make_task("1"), make_task("2", order=2)],
                "history": history or [],
                "user": {"streak": 0},
            }
        ),
    )
    manager = DayRecordManager(YearTraceStore(backend))
    manager.load(today=TODAY)
    return manager


def two_day_run() -> list[dict]:
    """Task 1 completed on the two days before TODAY."""
    return [make_day("2024-01-08", "1"), make_day("2024-01-09", "1")]


def recomputed_streak(manager: DayRecordManager, task_id: str) -> int:
    """Streak of a task as a full recalculation would give it."""
    return StreakEngine.task_streaks_from_history(task_id, manager.history, TODAY)["current"]


# =============================================================================
# COMPLETION TODAY
# =============================================================================


class TestCompleteToday:
    """Tests for completing and uncompleting on the current day."""

    def test_complete_extends_run(self) -> None:
        """Completing today after a two-day run gives 2 → 3."""
        manager = make_manager(two_day_run())
        assert manager.complete_task("1", today=TODAY) == {"streakBefore": 2, "streakAfter": 3}
        task = manager.tasks[0]
        assert task["status"] == const.TASK_STATUS_COMPLETED
        assert task["streak"] == 3
        assert manager.user["streak"] == 3

    def test_complete_writes_record(self) -> None:
        """The record carries detail and a completion stamp."""
        manager = make_manager()
        manager.complete_task("1", record={"text": "great", "rating": 5}, today=TODAY)
        record = manager.get_task_record(TODAY, "1")
        assert record["completed"] is True
        assert record["text"] == "great"
        assert record["rating"] == 5
        assert record["completedAt"]
        assert manager.history[0]["completedTaskIds"] == ["1"]

    def test_complete_persists(self) -> None:
        """The stored document has the new day."""
        manager = make_manager()
        manager.complete_task("1", today=TODAY)
        stored = stored_json(manager._store._backend)
        assert stored["history"][0]["date"] == TODAY

    def test_complete_twice_is_rejected(self) -> None:
        """A second completion of the same day returns None."""
        manager = make_manager()
        manager.complete_task("1", today=TODAY)
        assert manager.complete_task("1", today=TODAY) is None
        assert manager.tasks[0]["streak"] == 1

    def test_unknown_task(self) -> None:
        """An unknown task id returns None."""
        assert make_manager().complete_task("nope", today=TODAY) is None

    def test_complete_then_uncomplete_restores(self) -> None:
        """Uncompleting restores the streak and matches a recalculation."""
        manager = make_manager(two_day_run())
        manager.complete_task("1", today=TODAY)
        assert manager.uncomplete_task("1", today=TODAY) == {"streakBefore": 3, "streakAfter": 2}
        assert manager.tasks[0]["streak"] == recomputed_streak(manager, "1") == 2
        assert manager.tasks[0]["status"] == const.TASK_STATUS_PENDING
        assert manager.get_task_record(TODAY, "1") is None

    def test_uncomplete_removes_empty_day(self) -> None:
        """A day left without completions disappears from history."""
        manager = make_manager()
        manager.complete_task("1", today=TODAY)
        manager.uncomplete_task("1", today=TODAY)
        assert manager.history == []

    def test_uncomplete_keeps_other_completions(self) -> None:
        """Other tasks of the day stay completed."""
        manager = make_manager()
        manager.complete_task("1", today=TODAY)
        manager.complete_task("2", today=TODAY)
        manager.uncomplete_task("1", today=TODAY)
        assert manager.history[0]["completedTaskIds"] == ["2"]
        assert [record["taskId"] for record in manager.history[0]["records"]] == ["2"]

    def test_uncomplete_not_completed(self) -> None:
        """Uncompleting a task that was not done returns None."""
        assert make_manager().uncomplete_task("1", today=TODAY) is None

    def test_incremental_cache_matches_recalculation(self) -> None:
        """After a series of today-writes the cache equals a full recompute."""
        manager = make_manager(two_day_run())
        manager.complete_task("1", today=TODAY)
        manager.complete_task("2", today=TODAY)
        manager.uncomplete_task("2", today=TODAY)
        for task in manager.tasks:
            assert task["streak"] == recomputed_streak(manager, task["id"])

    def test_stale_cache_recalculated_on_new_day(self) -> None:
        """A cache from an earlier day is rebuilt before incrementing."""
        manager = make_manager(two_day_run())
        manager.tasks[0]["streak"] = 40
        assert manager.complete_task("1", today=TODAY)["streakAfter"] == 3

    @freeze_time("2024-01-10 09:00:00", tz_offset=0)
    def test_default_today(self) -> None:
        """Without a reference the local day is used."""
        manager = make_manager(two_day_run())
        manager.complete_task("1")
        assert manager.get_task_record("2024-01-10", "1")["completedAt"].startswith("2024-01-10T09:00:00")


# =============================================================================
# COMPLETION ON ANOTHER DAY
# =============================================================================


class TestCompletePastDay:
    """Tests for writes to a date other than today."""

    def test_filling_gap_recalculates(self) -> None:
        """Completing the missing day joins two runs."""
        history = [make_day("2024-01-07", "1"), make_day("2024-01-09", "1")]
        manager = make_manager(history)
        result = manager.complete_task("1", target_date="2024-01-08", today=TODAY)
        assert result == {"streakBefore": 1, "streakAfter": 3}
        assert [day["date"] for day in manager.history] == ["2024-01-09", "2024-01-08", "2024-01-07"]

    def test_past_write_keeps_today_status(self) -> None:
        """Backdated completions do not change today's status."""
        manager = make_manager()
        manager.complete_task("1", target_date="2024-01-05", today=TODAY)
        assert manager.tasks[0]["status"] == const.TASK_STATUS_PENDING

    def test_uncomplete_past_day_breaks_run(self) -> None:
        """Removing a day in the middle shortens the streak."""
        manager = make_manager(two_day_run())
        assert manager.uncomplete_task("1", target_date="2024-01-08", today=TODAY) == {
            "streakBefore": 2,
            "streakAfter": 1,
        }

    def test_invalid_target_date(self) -> None:
        """A malformed date raises InvalidDateError and writes nothing."""
        manager = make_manager()
        with pytest.raises(InvalidDateError):
            manager.complete_task("1", target_date="2024-02-30", today=TODAY)
        assert manager.history == []

    def test_invalid_record_detail(self) -> None:
        """A rating outside 1-5 is rejected."""
        with pytest.raises(vol.Invalid):
            make_manager().complete_task("1", record={"rating": 9}, today=TODAY)


# =============================================================================
# BACKFILL
# =============================================================================


class TestBackfill:
    """Tests for backfill_history."""

    def test_inserts_and_recalculates(self) -> None:
        """A backfilled day extends the streak."""
        manager = make_manager([make_day("2024-01-09", "1")])
        result = manager.backfill_history(
            "2024-01-08", [make_record("1"), make_record("2", completed=False)], today=TODAY
        )
        assert result == {"success": True}
        assert manager.tasks[0]["streak"] == 2
        day = manager._day_record("2024-01-08")
        assert day["completedTaskIds"] == ["1"]
        assert len(day["records"]) == 2

    def test_replaces_existing_day(self) -> None:
        """Backfilling an existing date replaces it."""
        manager = make_manager(two_day_run())
        manager.backfill_history("2024-01-08", [make_record("2")], today=TODAY)
        assert manager._day_record("2024-01-08")["completedTaskIds"] == ["2"]
        assert manager.tasks[0]["streak"] == 1
        assert len(manager.history) == 2

    @pytest.mark.parametrize("day", ["2024-13-01", "01/08/2024", "", None])
    def test_rejects_invalid_date(self, day: object) -> None:
        """Malformed dates never enter history."""
        manager = make_manager()
        result = manager.backfill_history(day, [make_record("1")], today=TODAY)
        assert result == {"success": False, "error": const.ERROR_INVALID_DATE}
        assert manager.history == []

    def test_rejects_malformed_records(self) -> None:
        """Records without taskId are rejected with an error."""
        result = make_manager().backfill_history("2024-01-08", [{"completed": True}], today=TODAY)
        assert result["success"] is False
        assert result["error"]

    def test_unknown_task_not_counted(self) -> None:
        """Records of unknown tasks are kept but not listed as completed."""
        manager = make_manager()
        manager.backfill_history("2024-01-08", [make_record("ghost")], today=TODAY)
        assert manager._day_record("2024-01-08")["completedTaskIds"] == []

    def test_backfill_today_syncs_status(self) -> None:
        """Backfilling today updates today's statuses."""
        manager = make_manager()
        manager.backfill_history(TODAY, [make_record("2")], today=TODAY)
        assert [task["status"] for task in manager.tasks] == [
            const.TASK_STATUS_PENDING,
            const.TASK_STATUS_COMPLETED,
        ]


# =============================================================================
# TASK MANAGEMENT
# =============================================================================


class TestTaskManagement:
    """Tests for add, update, delete and reorder."""

    def test_add_task(self) -> None:
        """New tasks go last with a fresh id."""
        manager = make_manager()
        result = manager.add_task("Stretch", const.TASK_TYPE_NUMBER, unit="min", targetValue=10)
        assert result["success"] is True
        task = manager.tasks[-1]
        assert task["id"] == result["taskId"]
        assert task["order"] == 3
        assert task["unit"] == "min"
        assert task["targetValue"] == 10.0
        assert task["streak"] == 0

    def test_add_task_limit(self) -> None:
        """At most MAX_TASKS tasks exist."""
        manager = make_manager(tasks=[make_task(str(index), order=index) for index in range(1, 9)])
        assert manager.add_task("Ninth") == {"success": False, "error": const.ERROR_MAX_TASKS}

    def test_add_task_invalid_type(self) -> None:
        """Unknown task types are rejected."""
        assert make_manager().add_task("Bad", "weird")["success"] is False

    def test_update_task(self) -> None:
        """Updates merge into the task."""
        manager = make_manager()
        assert manager.update_task("1", name="Reading", color="#ff0000") is True
        assert manager.tasks[0]["name"] == "Reading"
        assert manager.update_task("nope", name="x") is False

    def test_delete_task_cascades(self) -> None:
        """Deleting removes the task's records and renumbers order."""
        history = [make_day("2024-01-09", "1", "2")]
        manager = make_manager(history)
        assert manager.delete_task("1") == {"success": True}
        assert [task["id"] for task in manager.tasks] == ["2"]
        assert manager.tasks[0]["order"] == 1
        day = manager.history[0]
        assert day["completedTaskIds"] == ["2"]
        assert [record["taskId"] for record in day["records"]] == ["2"]

    def test_delete_unknown_task(self) -> None:
        """Deleting an unknown task reports an error."""
        assert make_manager().delete_task("nope")["success"] is False

    def test_reorder(self) -> None:
        """Moving the last task first renumbers everything."""
        manager = make_manager()
        assert manager.reorder_tasks(1, 0) is True
        assert [(task["id"], task["order"]) for task in manager.tasks] == [("2", 1), ("1", 2)]
        assert manager.reorder_tasks(0, 5) is False


# =============================================================================
# QUERIES
# =============================================================================


class TestQueries:
    """Tests for read-only helpers."""

    def test_task_history_newest_first(self) -> None:
        """Entries are copies, newest first."""
        manager = make_manager(two_day_run())
        entries = manager.get_task_history("1")
        assert [entry["date"] for entry in entries] == ["2024-01-09", "2024-01-08"]
        entries[0]["record"]["completed"] = False
        assert manager.get_task_record("2024-01-09", "1")["completed"] is True

    def test_today_progress(self) -> None:
        """Completed over total tasks."""
        manager = make_manager()
        assert manager.today_progress() == {"completed": 0, "total": 2, "percentage": 0.0}
        manager.complete_task("1", today=TODAY)
        assert manager.today_progress()["percentage"] == 50.0
        assert manager.is_all_completed() is False
        manager.complete_task("2", today=TODAY)
        assert manager.is_all_completed() is True

    def test_load_sorts_history_newest_first(self) -> None:
        """History is kept newest first."""
        manager = make_manager([make_day("2024-01-01", "1"), make_day("2024-01-05", "1")])
        assert [day["date"] for day in manager.history] == ["2024-01-05", "2024-01-01"]

    def test_recalculate_streaks(self, day_record_manager: DayRecordManager) -> None:
        """Default state has no streaks."""
        day_record_manager.recalculate_streaks(date(2024, 1, 10))
        assert all(task["streak"] == 0 for task in day_record_manager.tasks)
        assert day_record_manager.user["streak"] == 0
