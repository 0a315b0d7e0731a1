"""Base manager class for YearTrace managers."""

from __future__ import annotations

from abc import ABC, abstractmethod
import time
from typing import TYPE_CHECKING, Any
import uuid

from .. import const
from ..utils.dt_utils import as_day, is_valid_day_key

if TYPE_CHECKING:
    from datetime import date, datetime


class InvalidDateError(ValueError):
    """Raised when a user-typed date is not a valid YYYY-MM-DD day.

    Attributes:
        value: The rejected input
    """

    def __init__(self, value: Any) -> None:
        """Initialize InvalidDateError.

        Args:
            value: The rejected input
        """
        self.value = value
        super().__init__(f"{const.ERROR_INVALID_DATE}: {value!r}")


class TaskNotFoundError(LookupError):
    """Raised when an operation names a task that does not exist."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"{const.ERROR_TASK_NOT_FOUND}: {task_id}")


def generate_id() -> str:
    """Return a new id of the form "<epoch ms>-<random>".

    The millisecond prefix records creation order, which load-time task
    de-duplication relies on.
    """
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def creation_time(item_id: Any) -> int:
    """Return the epoch-ms prefix of an id, or 0 when there is none."""
    prefix = str(item_id).split("-", 1)[0]
    return int(prefix) if prefix.isdigit() else 0


class BaseManager(ABC):
    """Base class for stateful managers.

    Managers hold the in-memory snapshot, apply one operation at a time and
    persist after every mutation. Engines do the math.

    Subclasses must implement:
    - load(): Read state from the store
    """

    @abstractmethod
    def load(self, today: date | datetime | str | None = None) -> None:
        """Load state from the store."""

    @staticmethod
    def _today(today: date | datetime | str | None) -> date:
        return as_day(today)

    @staticmethod
    def _validate_day(value: Any) -> str:
        """Return `value` if it is a valid day key, else raise InvalidDateError."""
        if not is_valid_day_key(value):
            raise InvalidDateError(value)
        return value
