"""Pure logic engines for YearTrace.

Engines are stateless and never touch storage; managers own state and
persistence.
"""

from .achievement_engine import AchievementEngine, build_achievement_catalog
from .history_stats_engine import HistoryStatisticsEngine
from .migration_engine import DetectedSchema, MigrationEngine
from .statistics_engine import StatisticsEngine
from .streak_engine import StreakEngine

__all__ = [
    "AchievementEngine",
    "DetectedSchema",
    "HistoryStatisticsEngine",
    "MigrationEngine",
    "StatisticsEngine",
    "StreakEngine",
    "build_achievement_catalog",
]
