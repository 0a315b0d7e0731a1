# File: const.py
"""Constants for the YearTrace core.

This file centralizes storage keys, persisted field names, task types, colors
and defaults so that engines, managers and the store agree on one vocabulary.
"""

import logging

# ------------------------------------------------------------------------------------------------
# General
# ------------------------------------------------------------------------------------------------
YEARTRACE_TITLE = "YearTrace"

# Logger
LOGGER = logging.getLogger(__package__)

# ------------------------------------------------------------------------------------------------
# Storage
# ------------------------------------------------------------------------------------------------
STORAGE_KEY_DAY_RECORDS = "yeartrove_data"
STORAGE_KEY_TASKS = "yeartrace_tasks"
STORAGE_KEY_LOGS = "yeartrace_logs"

STORAGE_FILE_SUFFIX = ".json"

# ------------------------------------------------------------------------------------------------
# Schema Versions (detected structurally, never stored)
# ------------------------------------------------------------------------------------------------
SCHEMA_VERSION_V1 = 1
SCHEMA_VERSION_V2 = 2
SCHEMA_VERSION_V3 = 3
SCHEMA_VERSION_CURRENT = SCHEMA_VERSION_V3

# Legacy gamification fields removed by the V3 migration
LEGACY_TASK_EXP_VALUE = "expValue"
LEGACY_DAY_TOTAL_EXP = "totalExp"
LEGACY_USER_LEVEL = "level"
LEGACY_USER_CURRENT_EXP = "currentExp"
LEGACY_USER_MAX_EXP = "maxExp"
LEGACY_USER_FIELDS = (LEGACY_USER_LEVEL, LEGACY_USER_CURRENT_EXP, LEGACY_USER_MAX_EXP)

# ------------------------------------------------------------------------------------------------
# Persisted Field Names
# ------------------------------------------------------------------------------------------------
DATA_TASKS = "tasks"
DATA_LOGS = "logs"
DATA_HISTORY = "history"
DATA_USER = "user"

DATA_TASK_ID = "id"
DATA_TASK_NAME = "name"
DATA_TASK_TYPE = "type"
DATA_TASK_STATUS = "status"
DATA_TASK_START_DATE = "startDate"
DATA_TASK_END_DATE = "endDate"
DATA_TASK_COLOR = "color"
DATA_TASK_UNIT = "unit"
DATA_TASK_INITIAL_VALUE = "initialValue"
DATA_TASK_TARGET_VALUE = "targetValue"
DATA_TASK_STREAK = "streak"
DATA_TASK_ORDER = "order"
DATA_TASK_METADATA = "metadata"

DATA_LOG_ID = "id"
DATA_LOG_TASK_ID = "taskId"
DATA_LOG_DATE = "date"
DATA_LOG_VALUE = "value"
DATA_LOG_TEXT = "text"
DATA_LOG_RATING = "rating"

DATA_DAY_DATE = "date"
DATA_DAY_COMPLETED_TASK_IDS = "completedTaskIds"
DATA_DAY_RECORDS = "records"

DATA_RECORD_TASK_ID = "taskId"
DATA_RECORD_COMPLETED = "completed"
DATA_RECORD_VALUE = "value"
DATA_RECORD_TEXT = "text"
DATA_RECORD_RATING = "rating"
DATA_RECORD_COMPLETED_AT = "completedAt"

DATA_USER_STREAK = "streak"

# ------------------------------------------------------------------------------------------------
# Task Types and Statuses
# ------------------------------------------------------------------------------------------------
TASK_TYPE_CHECK = "check"
TASK_TYPE_CHECK_TEXT = "check+text"
TASK_TYPE_NUMBER = "number"
TASK_TYPE_VIOLATION = "violation"
TASK_TYPES = (
    TASK_TYPE_CHECK,
    TASK_TYPE_CHECK_TEXT,
    TASK_TYPE_NUMBER,
    TASK_TYPE_VIOLATION,
)

# Habit-tracker lifecycle
TASK_LIFECYCLE_ACTIVE = "active"
TASK_LIFECYCLE_PAUSED = "paused"
TASK_LIFECYCLE_ENDED = "ended"
TASK_LIFECYCLES = (TASK_LIFECYCLE_ACTIVE, TASK_LIFECYCLE_PAUSED, TASK_LIFECYCLE_ENDED)

# Day-record tracker daily status
TASK_STATUS_PENDING = "pending"
TASK_STATUS_COMPLETED = "completed"

# ------------------------------------------------------------------------------------------------
# Day-record Tracker Limits and Defaults
# ------------------------------------------------------------------------------------------------
MAX_TASKS = 8

# Habit task colors, assigned in order to new tasks without one
DEFAULT_TASK_COLORS = (
    "#f59e0b",
    "#3b82f6",
    "#10b981",
    "#8b5cf6",
    "#6366f1",
    "#ef4444",
    "#14b8a6",
    "#f97316",
    "#ec4899",
    "#06b6d4",
)

DEFAULT_DAY_RECORD_TASKS = [
    {"id": "1", "name": "Daily reading", "type": TASK_TYPE_CHECK, "order": 1},
    {"id": "2", "name": "Daily exercise", "type": TASK_TYPE_CHECK, "order": 2},
    {"id": "3", "name": "Daily meditation", "type": TASK_TYPE_CHECK, "order": 3},
    {"id": "4", "name": "Daily study", "type": TASK_TYPE_CHECK, "order": 4},
]

# ------------------------------------------------------------------------------------------------
# Streaks
# ------------------------------------------------------------------------------------------------
MILESTONE_STREAKS = (3, 7, 14, 21, 30, 50, 66, 100)

# ------------------------------------------------------------------------------------------------
# Achievements
# ------------------------------------------------------------------------------------------------
ACHIEVEMENT_CATEGORY_STREAK = "streak"
ACHIEVEMENT_CATEGORY_TOTAL = "total"
ACHIEVEMENT_CATEGORY_PERFECT = "perfect"
ACHIEVEMENT_CATEGORY_SPECIAL = "special"

ACHIEVEMENT_CONDITION_STREAK = "streak"
ACHIEVEMENT_CONDITION_TOTAL = "total"
ACHIEVEMENT_CONDITION_MONTHLY_PERFECT = "monthly_perfect"

# Task eligibility for a whole month is judged on this day of the month
MONTHLY_PERFECT_REFERENCE_DAY = 15

ACHIEVEMENT_STREAK_THRESHOLDS = (
    ("streak_7", "Rising Star", "Check in 7 days in a row", "⭐", 7),
    ("streak_30", "Monthly Champion", "Check in 30 days in a row", "🏆", 30),
    ("streak_100", "Hundred Day Journey", "Check in 100 days in a row", "👑", 100),
)

ACHIEVEMENT_TOTAL_THRESHOLDS = (
    ("books_10", "Avid Reader", "Finish 10 books", "📚", 10),
    ("total_100", "Milestone", "Complete 100 tasks in total", "🎯", 100),
    ("total_365", "Year of Attendance", "Complete 365 tasks in total", "💎", 365),
)

ACHIEVEMENT_PERFECT_ICON = "🌟"

# ------------------------------------------------------------------------------------------------
# Statistics
# ------------------------------------------------------------------------------------------------
PERIOD_WEEK = "week"
PERIOD_MONTH = "month"
PERIOD_YEAR = "year"
PERIODS = (PERIOD_WEEK, PERIOD_MONTH, PERIOD_YEAR)

TREND_UP = "up"
TREND_DOWN = "down"
TREND_FLAT = "flat"

# Heat map color step function: (minimum distinct completions, color)
HEAT_MAP_COLOR_EMPTY = "#f3f4f6"
HEAT_MAP_COLOR_LOW = "#dbeafe"
HEAT_MAP_COLOR_MEDIUM = "#93c5fd"
HEAT_MAP_COLOR_HIGH = "#3b82f6"
HEAT_MAP_COLOR_STEPS = (
    (5, HEAT_MAP_COLOR_HIGH),
    (3, HEAT_MAP_COLOR_MEDIUM),
    (1, HEAT_MAP_COLOR_LOW),
)

MONTH_NAMES = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)

TOP_TASKS_LIMIT = 3
WEEKS_PER_YEAR = 52
UNKNOWN_TASK_NAME = "Unknown task"
UNKNOWN_TASK_COLOR = "#ccc"
NO_DATA_LABEL = "No data"

DEFAULT_HEATMAP_DAYS = 365
HEATMAP_LEVEL_RATIOS = ((1.0, 4), (0.75, 3), (0.5, 2))

# Float precision for rates
DATA_FLOAT_PRECISION = 2

# ------------------------------------------------------------------------------------------------
# Validation Messages
# ------------------------------------------------------------------------------------------------
ERROR_INVALID_DATE = "Invalid date format, use YYYY-MM-DD"
ERROR_TASK_NOT_FOUND = "Task not found"
ERROR_MAX_TASKS = f"At most {MAX_TASKS} tasks can be created"
