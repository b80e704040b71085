"""
Injectable time source.

Services take the current time from a Clock rather than the system: voucher
and admission numbers take their year from it, soft deletes stamp
``deleted_at`` with it and the retry queue records failure times with it.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone

# 2024-01-01 12:00 UTC; the date every test fixture assumes.
DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """``now()`` is timezone-aware; ``today()`` and ``current_year()`` derive from it."""

    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        return self.now().date()

    def current_year(self) -> int:
        return self.now().year


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Frozen clock for tests.  Moves only when told to."""

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or DEFAULT_TEST_TIME

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time
