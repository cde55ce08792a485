"""
Clock -- injectable time source.

Responsibility:
    Domain, engine and service code never call ``datetime.now()``.  Stage
    timestamps, audit ``occurred_at``, expiry instants and generated codes
    all read time from the Clock handed to the service constructor.

Architecture position:
    Kernel > Domain -- zero I/O, except SystemClock, the one sanctioned
    boundary for wall-clock time.

Failure modes:
    - DeterministicClock rejects naive datetimes with ValueError.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError("DeterministicClock requires a timezone-aware datetime")
    return value


class Clock(ABC):
    """``now()`` returns a timezone-aware UTC datetime."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen time for tests and replays.

    ``now()`` repeats until ``advance``, ``tick`` or ``set_time`` moves it.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._base = _require_aware(fixed_time or DEFAULT_TEST_TIME)
        self._offset = timedelta(0)

    def now(self) -> datetime:
        return (self._base + self._offset).astimezone(timezone.utc)

    def set_time(self, time: datetime) -> None:
        self._base = _require_aware(time)
        self._offset = timedelta(0)

    def advance(self, seconds: int = 1) -> None:
        self._offset += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Advance one second and return the new reading."""
        self.advance(1)
        return self.now()
