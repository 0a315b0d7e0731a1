"""YearTrace core: habit tracking, streaks, achievements and statistics.

The engines derive everything from tasks and their log history; managers and
stores keep that history consistent and persisted through a key-value
backend.
"""

from .engines.achievement_engine import (
    AchievementEngine,
    build_achievement_catalog,
    check_achievement_status,
)
from .engines.history_stats_engine import (
    HistoryStatisticsEngine,
    calculate_detailed_statistics,
    calendar_heatmap,
)
from .engines.migration_engine import (
    DetectedSchema,
    MigrationEngine,
    apply_day_rollover,
    detect_and_migrate,
)
from .engines.statistics_engine import (
    StatisticsEngine,
    calculate_monthly_trend,
    compare_periods,
    generate_heat_map_cells,
)
from .engines.streak_engine import (
    StreakEngine,
    calculate_overall_streak,
    calculate_task_streak,
    recalculate_all_streaks,
)
from .managers import DayRecordManager, HabitManager, InvalidDateError, TaskNotFoundError
from .store import HabitStore, JsonFileBackend, KeyValueBackend, MemoryBackend, YearTraceStore

__all__ = [
    "AchievementEngine",
    "DayRecordManager",
    "DetectedSchema",
    "HabitManager",
    "HabitStore",
    "HistoryStatisticsEngine",
    "InvalidDateError",
    "JsonFileBackend",
    "KeyValueBackend",
    "MemoryBackend",
    "MigrationEngine",
    "StatisticsEngine",
    "StreakEngine",
    "TaskNotFoundError",
    "YearTraceStore",
    "apply_day_rollover",
    "build_achievement_catalog",
    "calculate_detailed_statistics",
    "calculate_monthly_trend",
    "calculate_overall_streak",
    "calculate_task_streak",
    "calendar_heatmap",
    "check_achievement_status",
    "compare_periods",
    "detect_and_migrate",
    "generate_heat_map_cells",
    "recalculate_all_streaks",
]
