"""
Core Module - Decision Clock.

============================================================
RESPONSIBILITY
============================================================
Single time source for every decision the engines make.

- Rule effective windows are checked against this clock
- Evidence, audit entries and evaluations are stamped by it
- TTL caches and rate limiters expire against it

Tests install a MockClock so wall time and monotonic time move
together under test control.

============================================================
TIME RULES
============================================================
- Every datetime handed out is timezone-aware UTC
- Naive datetimes coming back from storage or parsing are
  taken as UTC (ensure_utc)
- Effective windows are half-open: [start, end)

============================================================
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Generator, Optional
import threading
import time


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes. SQLite drops tzinfo on the way back."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def within_window(
    now: datetime,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> bool:
    """True when start <= now < end. Open bounds always match."""
    if start is not None and ensure_utc(start) > now:
        return False
    if end is not None and ensure_utc(end) <= now:
        return False
    return True


# ============================================================
# CLOCKS
# ============================================================

class ClockProtocol(ABC):
    """What the engines need from a clock."""

    @abstractmethod
    def now(self) -> datetime:
        """Current UTC wall time."""

    @abstractmethod
    def monotonic(self) -> float:
        """Monotonic seconds, for TTLs and latency."""


class SystemClock(ClockProtocol):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()


class MockClock(ClockProtocol):
    """
    Deterministic clock for tests.

    advance() moves wall time and the monotonic reading by the same
    delta, so a cached KYC lookup and a rule effective window
    expire together. set_time() only moves wall time.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._time = ensure_utc(initial_time or datetime.now(timezone.utc))
        self._monotonic = 0.0
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._time

    def monotonic(self) -> float:
        with self._lock:
            return self._monotonic

    def set_time(self, new_time: datetime) -> None:
        with self._lock:
            self._time = ensure_utc(new_time)

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """
        Advance time.

        Args:
            seconds: Seconds to advance
            **kwargs: Extra timedelta fields (minutes, hours, days)
        """
        delta = timedelta(seconds=seconds, **kwargs)
        with self._lock:
            self._time = self._time + delta
            self._monotonic += delta.total_seconds()


# ============================================================
# CLOCK FACTORY
# ============================================================

class ClockFactory:
    """Process-wide default clock for engines built without one."""

    _instance: Optional[ClockProtocol] = None
    _lock = threading.Lock()

    @classmethod
    def get_clock(cls) -> ClockProtocol:
        with cls._lock:
            if cls._instance is None:
                cls._instance = SystemClock()
            return cls._instance

    @classmethod
    def set_clock(cls, clock: ClockProtocol) -> None:
        with cls._lock:
            cls._instance = clock

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = SystemClock()

    @classmethod
    @contextmanager
    def use_mock(
        cls,
        initial_time: Optional[datetime] = None,
    ) -> Generator[MockClock, None, None]:
        """Install a MockClock for the duration of the block."""
        original = cls._instance
        mock = MockClock(initial_time)
        cls.set_clock(mock)
        try:
            yield mock
        finally:
            cls._instance = original


# ============================================================
# ISO 8601
# ============================================================

def to_iso8601(dt: datetime) -> str:
    return ensure_utc(dt).isoformat()


def from_iso8601(iso_string: str) -> datetime:
    """Parse a snapshot timestamp; naive values are UTC."""
    return ensure_utc(datetime.fromisoformat(iso_string))


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "ClockFactory",
    "ensure_utc",
    "within_window",
    "to_iso8601",
    "from_iso8601",
]
