"""Type definitions for YearTrace data structures.

ARCHITECTURE DECISION: HYBRID APPROACH (TypedDict + dict[str, Any])
===================================================================

1. **TypedDict for STATIC structures** (fixed keys known at design time):
   - Persisted records: TaskData, LogData, YTTaskData, YTDayRecord, ...
   - Derived results: AchievementStatus, HeatMapCell, PeriodComparison, ...

2. **dict[str, Any] for DYNAMIC structures** (keys determined at runtime):
   - Monthly trend points carry one count per requested task id
   - Raw persisted state before migration has no trustworthy shape

Keys use the persisted camelCase names so that records round-trip through
JSON without renaming.

NOTE: TypedDict is STATIC ANALYSIS ONLY. Runtime defaulting (.get() with
defaults) stays in the engines and the migration layer.
"""

from typing import Any, Literal, NotRequired, TypedDict

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

TaskId = str
ISODate = str  # "2026-01-18"
ISODatetime = str  # "2026-01-18T12:30:00+00:00"

TaskType = Literal["check", "check+text", "number", "violation"]
TrendDirection = Literal["up", "down", "flat"]

# Monthly trend point: {"month", "monthName", "total", <task_id>: count, ...}
MonthlyTrendPoint = dict[str, Any]


# =============================================================================
# Habit Tracker Model
# =============================================================================


class TaskData(TypedDict):
    """A habit definition."""

    id: TaskId
    name: str
    type: TaskType
    status: Literal["active", "paused", "ended"]
    startDate: ISODate
    color: str
    endDate: NotRequired[ISODate]
    unit: NotRequired[str]
    initialValue: NotRequired[float]
    targetValue: NotRequired[float]


class LogData(TypedDict):
    """One completion of one task on one calendar day."""

    id: str
    taskId: TaskId
    date: ISODate
    value: NotRequired[float]
    text: NotRequired[str]
    rating: NotRequired[int]


# =============================================================================
# Day-record Tracker Model
# =============================================================================


class YTTaskRecord(TypedDict):
    """Completion detail for one task inside a day record."""

    taskId: TaskId
    completed: bool
    value: NotRequired[float]
    text: NotRequired[str]
    rating: NotRequired[int]
    completedAt: NotRequired[ISODatetime]


class YTTaskData(TypedDict):
    """A day-record task with its cached streak."""

    id: TaskId
    name: str
    type: TaskType
    status: Literal["pending", "completed"]
    streak: int
    order: int
    color: NotRequired[str]
    unit: NotRequired[str]
    targetValue: NotRequired[float]
    metadata: NotRequired[dict[str, Any]]


class YTDayRecord(TypedDict):
    """Everything recorded on one calendar day."""

    date: ISODate
    completedTaskIds: list[TaskId]
    records: list[YTTaskRecord]


class YTUser(TypedDict):
    """Day-record tracker user state."""

    streak: int


class MigrationResult(TypedDict):
    """Canonical (V3) state produced by the migration engine."""

    tasks: list[YTTaskData]
    history: list[YTDayRecord]
    user: YTUser
    migrated: bool
    version: int


class StreakResult(TypedDict):
    """Current and best streak of one task."""

    current: int
    best: int


class StreakChange(TypedDict):
    """Streak before and after a completion toggle."""

    streakBefore: int
    streakAfter: int


class OperationResult(TypedDict):
    """Outcome of a boundary operation that validates user input."""

    success: bool
    error: NotRequired[str]
    taskId: NotRequired[TaskId]


class TodayProgress(TypedDict):
    """Completed/total tasks for today."""

    completed: int
    total: int
    percentage: float


# =============================================================================
# Achievements
# =============================================================================


class StreakCondition(TypedDict):
    """Overall streak of at least `days`."""

    type: Literal["streak"]
    days: int


class TotalCondition(TypedDict):
    """At least `count` non-violation logs."""

    type: Literal["total"]
    count: int


class MonthlyPerfectCondition(TypedDict):
    """Every eligible task logged on every elapsed day of `month` (0-11, 0 is January)."""

    type: Literal["monthly_perfect"]
    month: int
    year: int


AchievementCondition = StreakCondition | TotalCondition | MonthlyPerfectCondition


class AchievementData(TypedDict):
    """Static catalog entry."""

    id: str
    name: str
    description: str
    icon: str
    category: Literal["streak", "total", "perfect", "special"]
    condition: AchievementCondition


class AchievementStatus(TypedDict):
    """Evaluation result for one catalog entry, derived on every read."""

    achievement: AchievementData
    isUnlocked: bool
    unlockedDate: NotRequired[ISODate]
    progress: NotRequired[int]
    progressMax: NotRequired[int]


# =============================================================================
# Statistics
# =============================================================================


class HeatMapCell(TypedDict):
    """One calendar day on the year heat map."""

    date: ISODate
    logCount: int
    taskIds: list[TaskId]
    hasViolation: bool
    isPerfectDay: bool
    color: str


class PeriodComparison(TypedDict):
    """Totals for a period and the one immediately before it."""

    period: Literal["week", "month", "year"]
    currentStart: ISODate
    currentEnd: ISODate
    previousStart: ISODate
    previousEnd: ISODate
    current: int
    previous: int
    delta: int
    trend: TrendDirection


class TopTaskItem(TypedDict):
    """Task ranked by log count."""

    taskId: TaskId
    taskName: str
    count: int
    color: str


class YearStatistics(TypedDict):
    """Year summary for the habit tracker."""

    totalLogs: int
    daysWithLogs: int
    completionRate: float
    longestStreak: int
    monthlyCompletionRate: float
    topTasks: list[TopTaskItem]


class TrendValue(TypedDict):
    """Numeric value logged on a day."""

    date: ISODate
    value: float


class TextEntry(TypedDict):
    """Text logged on a day."""

    date: ISODate
    text: str
    rating: NotRequired[int]


class RatingCount(TypedDict):
    """Number of logs carrying a rating."""

    rating: int
    count: int


class TaskDetailStatistics(TypedDict):
    """Per-task statistics for one year."""

    totalCompletions: int
    avgWeeklyCompletions: float
    longestStreak: int
    currentStreak: int
    monthlyCompletions: int
    trendData: NotRequired[list[TrendValue]]
    textEntries: NotRequired[list[TextEntry]]
    ratingDistribution: NotRequired[list[RatingCount]]


class TimelineDot(TypedDict):
    """A log placed on the timeline."""

    date: ISODate
    taskId: TaskId
    color: str
    isViolation: bool


class NumberTaskStats(TypedDict):
    """Value summary for a numeric task."""

    currentValue: float | None
    minValue: float | None
    maxValue: float | None
    trend: list[TrendValue]


class ViolationStats(TypedDict):
    """Dates on which a violation was logged."""

    count: int
    dates: list[ISODate]


class ByTypeStatistics(TypedDict):
    """Completed records per task type."""

    check: int
    checkText: int
    number: int
    violation: int


class TaskStatItem(TypedDict):
    """Per-task statistics for the day-record tracker."""

    taskId: TaskId
    taskName: str
    taskType: TaskType
    completedDays: int
    currentStreak: int
    bestStreak: int
    completionRate: float


class DailyRecord(TypedDict):
    """Per-day summary for the day-record tracker."""

    date: ISODate
    completedCount: int
    totalCount: int
    completionRate: float
    taskIds: list[TaskId]
    records: list[YTTaskRecord]


class YearlySummary(TypedDict):
    """Year summary for the day-record tracker."""

    totalTasks: int
    completionRate: int
    bestMonth: str


class DetailedStatistics(TypedDict):
    """Full statistics for the day-record tracker."""

    totalDays: int
    longestStreak: int
    currentStreak: int
    weekly: PeriodComparison
    monthly: PeriodComparison
    yearly: YearlySummary
    yearComparison: PeriodComparison
    byType: ByTypeStatistics
    taskStats: list[TaskStatItem]
    dailyRecords: list[DailyRecord]


class CalendarHeatmapEntry(TypedDict):
    """Completion level (0-4) for one day of the rolling heat map."""

    date: ISODate
    level: int
    count: int
