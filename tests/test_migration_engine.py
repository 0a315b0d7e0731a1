"""Unit tests for MigrationEngine - schema detection and V1/V2 → V3 upgrades.

Test Categories:
- Structural schema detection (V3, V2, V1, non-mapping)
- V3 passthrough and idempotence
- V2 upgrade (strip XP fields)
- V1 upgrade (task types, synthesized records, falsy placeholders)
- Day rollover
- Initial state and record factories
"""

from __future__ import annotations

import copy
from typing import Any

import pytest

from yeartrace import const
from yeartrace.engines.migration_engine import MigrationEngine, detect_and_migrate

from tests.helpers import make_day, make_task

# =============================================================================
# TEST FIXTURES - Persisted documents per schema version
# =============================================================================


def make_v3_state() -> dict[str, Any]:
    """Canonical state with one completed day."""
    return {
        "tasks": [make_task("1", streak=2), make_task("2", task_type="number", order=2)],
        "history": [make_day("2024-01-02", "1")],
        "user": {"streak": 2},
    }


def make_v2_state() -> dict[str, Any]:
    """Typed tasks and per-record history, still carrying XP fields."""
    return {
        "tasks": [{**make_task("1"), "expValue": 10}],
        "history": [{**make_day("2024-01-02", "1"), "totalExp": 10}],
        "user": {"streak": 4, "level": 3, "currentExp": 40, "maxExp": 100},
    }


def make_v1_state() -> dict[str, Any]:
    """Untyped tasks, completedTaskIds only and a leveling user."""
    return {
        "tasks": [
            {"id": "a", "name": "Read", "expValue": 10, "color": "", "unit": None},
            {"id": "b", "name": "Run", "expValue": 20, "targetValue": 0},
        ],
        "history": [
            {"date": "2024-01-01", "completedTaskIds": ["a", "b"], "totalExp": 30},
            {"date": "2024-01-02", "completedTaskIds": ["b"], "totalExp": 20},
        ],
        "user": {"level": 2, "currentExp": 30, "maxExp": 100, "streak": 5},
    }


# =============================================================================
# SCHEMA DETECTION
# =============================================================================


class TestDetectSchema:
    """Tests for structural version detection."""

    def test_detects_v3(self) -> None:
        """Canonical state decodes as V3."""
        assert MigrationEngine.detect_schema(make_v3_state()).version == 3

    def test_detects_v2(self) -> None:
        """Typed tasks with expValue decode as V2."""
        assert MigrationEngine.detect_schema(make_v2_state()).version == 2

    def test_detects_v1(self) -> None:
        """Untyped tasks with plain completedTaskIds decode as V1."""
        assert MigrationEngine.detect_schema(make_v1_state()).version == 1

    def test_mapping_without_tasks_is_v1(self) -> None:
        """A mapping without tasks is still a (V1) mapping."""
        assert MigrationEngine.detect_schema({}).version == 1

    @pytest.mark.parametrize("raw", [None, [], "state", 42])
    def test_non_mapping_is_undetected(self, raw: Any) -> None:
        """Nothing decodes a non-mapping."""
        assert MigrationEngine.detect_schema(raw) is None

    def test_v3_requires_records_in_history(self) -> None:
        """History without `records` is never V3."""
        state = make_v3_state()
        state["history"] = [{"date": "2024-01-02", "completedTaskIds": ["1"]}]
        assert MigrationEngine.detect_schema(state).version == 1


# =============================================================================
# V3 PASSTHROUGH
# =============================================================================


class TestV3Passthrough:
    """Tests for canonical input."""

    def test_returns_equal_copy(self) -> None:
        """V3 input comes back unchanged and not migrated."""
        state = make_v3_state()
        result = detect_and_migrate(state)
        assert result["migrated"] is False
        assert result["version"] == 3
        assert result["tasks"] == state["tasks"]
        assert result["history"] == state["history"]
        assert result["user"] == state["user"]

    def test_returns_deep_copy(self) -> None:
        """Mutating the result leaves the input alone."""
        state = make_v3_state()
        snapshot = copy.deepcopy(state)
        result = detect_and_migrate(state)
        result["tasks"][0]["streak"] = 99
        result["history"][0]["records"].clear()
        assert state == snapshot

    def test_defaults_missing_history_and_user(self) -> None:
        """Absent history and user become [] and {streak: 0} and are reported."""
        result = detect_and_migrate({"tasks": [make_task("1")]})
        assert result["history"] == []
        assert result["user"] == {"streak": 0}
        assert result["migrated"] is True
        assert result["version"] == 3

    def test_empty_user_is_defaulted(self) -> None:
        """A falsy user object is replaced and reported as changed."""
        state = {**make_v3_state(), "user": {}}
        result = detect_and_migrate(state)
        assert result["user"] == {"streak": 0}
        assert result["migrated"] is True

    def test_drops_malformed_later_entries(self) -> None:
        """Entries after a valid first element are checked one by one."""
        state = make_v3_state()
        state["tasks"] += ["junk", {"name": "no id"}]
        state["history"] += [None, {"date": "2024-13-40", "records": []}]
        state["history"][0]["records"].append(7)
        result = detect_and_migrate(state)
        assert result["migrated"] is True
        assert [task["id"] for task in result["tasks"]] == ["1", "2"]
        assert [record["date"] for record in result["history"]] == ["2024-01-02"]
        assert result["history"][0]["records"] == make_v3_state()["history"][0]["records"]

    def test_cleaned_output_is_stable(self) -> None:
        """Migrating the cleaned state again is a no-op."""
        state = make_v3_state()
        state["history"].append(None)
        first = detect_and_migrate(state)
        canonical = {key: first[key] for key in ("tasks", "history", "user")}
        assert detect_and_migrate(canonical)["migrated"] is False

    @pytest.mark.parametrize("factory", [make_v1_state, make_v2_state, make_v3_state])
    def test_idempotent(self, factory: Any) -> None:
        """Migrating the output again changes nothing."""
        first = detect_and_migrate(factory())
        canonical = {key: first[key] for key in ("tasks", "history", "user")}
        second = detect_and_migrate(canonical)
        assert second["migrated"] is False
        assert {key: second[key] for key in ("tasks", "history", "user")} == canonical


# =============================================================================
# V2 UPGRADE
# =============================================================================


class TestV2Upgrade:
    """Tests for stripping XP fields."""

    def test_strips_xp_fields(self) -> None:
        """expValue, totalExp and leveling fields are removed."""
        result = detect_and_migrate(make_v2_state())
        assert result["migrated"] is True
        assert result["version"] == 2
        assert "expValue" not in result["tasks"][0]
        assert "totalExp" not in result["history"][0]
        assert result["user"] == {"streak": 4}

    def test_keeps_records(self) -> None:
        """Per-record detail survives untouched."""
        state = make_v2_state()
        state["history"][0]["records"][0]["text"] = "note"
        result = detect_and_migrate(state)
        assert result["history"][0]["records"][0]["text"] == "note"


# =============================================================================
# V1 UPGRADE
# =============================================================================


class TestV1Upgrade:
    """Tests for the lossy V1 upgrade."""

    def test_adds_task_defaults(self) -> None:
        """Tasks gain type check, pending status, zero streak and order."""
        result = detect_and_migrate(make_v1_state())
        assert result["migrated"] is True
        assert result["version"] == 1
        first, second = result["tasks"]
        assert first["type"] == const.TASK_TYPE_CHECK
        assert first["status"] == const.TASK_STATUS_PENDING
        assert first["streak"] == 0
        assert (first["order"], second["order"]) == (1, 2)
        assert "expValue" not in first

    def test_removes_falsy_optional_fields(self) -> None:
        """Empty color, None unit and zero targetValue are dropped."""
        first, second = detect_and_migrate(make_v1_state())["tasks"]
        assert "color" not in first
        assert "unit" not in first
        assert "targetValue" not in second

    def test_synthesizes_records(self) -> None:
        """Each completed id gets a bare completed record."""
        history = detect_and_migrate(make_v1_state())["history"]
        assert history[0]["records"] == [
            {"taskId": "a", "completed": True},
            {"taskId": "b", "completed": True},
        ]
        assert history[0]["completedTaskIds"] == ["a", "b"]
        assert "totalExp" not in history[0]

    def test_keeps_only_user_streak(self) -> None:
        """Leveling fields are dropped from the user."""
        assert detect_and_migrate(make_v1_state())["user"] == {"streak": 5}

    def test_drops_day_records_without_date(self) -> None:
        """A day record without a string date cannot be placed and is dropped."""
        state = make_v1_state()
        state["history"].append({"completedTaskIds": ["a"]})
        assert len(detect_and_migrate(state)["history"]) == 2

    def test_non_list_completed_ids(self) -> None:
        """A malformed completedTaskIds becomes an empty day."""
        state = make_v1_state()
        state["history"] = [{"date": "2024-01-01", "completedTaskIds": "a"}]
        day = detect_and_migrate(state)["history"][0]
        assert day["completedTaskIds"] == []
        assert day["records"] == []


# =============================================================================
# UNRECOGNIZABLE INPUT
# =============================================================================


class TestUnrecognizableInput:
    """Tests for input that is not a mapping."""

    @pytest.mark.parametrize("raw", [None, [], "garbage"])
    def test_returns_fresh_state(self, raw: Any) -> None:
        """Fresh default state, never raising."""
        result = detect_and_migrate(raw)
        assert result["migrated"] is False
        assert result["version"] == const.SCHEMA_VERSION_CURRENT
        assert [task["id"] for task in result["tasks"]] == ["1", "2", "3", "4"]
        assert result["history"] == []


# =============================================================================
# DAY ROLLOVER
# =============================================================================


class TestDayRollover:
    """Tests for resetting daily status on a new day."""

    def test_resets_status_on_new_day(self) -> None:
        """Completed tasks go back to pending; streaks stay."""
        tasks = [make_task("1", status=const.TASK_STATUS_COMPLETED, streak=3)]
        history = [make_day("2024-01-02", "1")]
        reset_tasks, reset = MigrationEngine.apply_day_rollover(tasks, history, "2024-01-03")
        assert reset is True
        assert reset_tasks[0]["status"] == const.TASK_STATUS_PENDING
        assert reset_tasks[0]["streak"] == 3
        assert tasks[0]["status"] == const.TASK_STATUS_COMPLETED

    def test_same_day_is_untouched(self) -> None:
        """Nothing changes while the newest record is today."""
        tasks = [make_task("1", status=const.TASK_STATUS_COMPLETED)]
        history = [make_day("2024-01-01", "1"), make_day("2024-01-03", "1")]
        reset_tasks, reset = MigrationEngine.apply_day_rollover(tasks, history, "2024-01-03")
        assert reset is False
        assert reset_tasks is tasks

    def test_empty_history_is_untouched(self) -> None:
        """No history means no rollover."""
        tasks = [make_task("1", status=const.TASK_STATUS_COMPLETED)]
        assert MigrationEngine.apply_day_rollover(tasks, [], "2024-01-03") == (tasks, False)

    def test_skips_non_mapping_entries(self) -> None:
        """Stray non-mapping entries neither raise nor survive a reset."""
        tasks = [make_task("1", status=const.TASK_STATUS_COMPLETED), "junk"]
        history = [make_day("2024-01-02", "1"), None]
        reset_tasks, reset = MigrationEngine.apply_day_rollover(tasks, history, "2024-01-03")  # type: ignore[arg-type]
        assert reset is True
        assert [task["id"] for task in reset_tasks] == ["1"]


# =============================================================================
# FACTORIES
# =============================================================================


class TestFactories:
    """Tests for the initial state and record factories."""

    def test_initial_state(self) -> None:
        """Four default check tasks, empty history, zero streak."""
        state = MigrationEngine.create_initial_state()
        assert len(state["tasks"]) == 4
        assert all(task["streak"] == 0 for task in state["tasks"])
        assert all(task["status"] == const.TASK_STATUS_PENDING for task in state["tasks"])
        assert state["history"] == []
        assert state["user"] == {"streak": 0}

    def test_initial_state_is_fresh_each_call(self) -> None:
        """Mutating one initial state does not leak into the next."""
        first = MigrationEngine.create_initial_state()
        first["tasks"][0]["name"] = "Changed"
        assert MigrationEngine.create_initial_state()["tasks"][0]["name"] != "Changed"

    def test_record_factories(self) -> None:
        """Records carry the detail of their task type."""
        assert MigrationEngine.create_task_record("1") == {"taskId": "1", "completed": False}
        text = MigrationEngine.create_check_text_record("2", "good", 4, "2024-01-01T10:00:00")
        assert text == {
            "taskId": "2",
            "completed": True,
            "text": "good",
            "rating": 4,
            "completedAt": "2024-01-01T10:00:00",
        }
        number = MigrationEngine.create_number_record("3", 12.5)
        assert number["value"] == 12.5
        assert number["completedAt"]
        violation = MigrationEngine.create_violation_record("4")
        assert violation["completed"] is True
