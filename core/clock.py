"""
Core Module - Clock.

============================================================
RESPONSIBILITY
============================================================
Provides a testable clock abstraction and the timestamp
helpers shared by adapters and the ledger writer.

- The default sync window is computed from this clock
- Source epochs (seconds or milliseconds) become UTC datetimes here
- The ledger's display format is produced here

============================================================
DESIGN PRINCIPLES
============================================================
- UTC only
- Mockable for testing

============================================================
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Generator, Optional
import threading


# Epoch values below this are seconds, at or above are milliseconds.
MILLISECOND_EPOCH_THRESHOLD = 1_000_000_000_000

LEDGER_TIME_FORMAT = "%Y-%m-%d %H:%M"


# ============================================================
# CLOCK PROTOCOL
# ============================================================

class ClockProtocol(ABC):
    """Abstract interface for the sync clock."""

    @abstractmethod
    def now(self) -> datetime:
        """Get current UTC datetime."""
        pass

    def days_ago(self, days: int) -> datetime:
        """Get the UTC datetime ``days`` days before now."""
        return self.now() - timedelta(days=days)


# ============================================================
# SYSTEM CLOCK (PRODUCTION)
# ============================================================

class SystemClock(ClockProtocol):
    """Production clock using actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


# ============================================================
# MOCK CLOCK (TESTING)
# ============================================================

class MockClock(ClockProtocol):
    """
    Mock clock for testing.

    Allows time manipulation for deterministic tests.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._time = ensure_utc(initial_time or datetime.now(timezone.utc))
        self._lock = threading.Lock()

    def now(self) -> datetime:
        """Get current (mocked) datetime."""
        with self._lock:
            return self._time

    def set_time(self, new_time: datetime) -> None:
        """Set the current time."""
        with self._lock:
            self._time = ensure_utc(new_time)

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """
        Advance time by the specified amount.

        Args:
            seconds: Number of seconds to advance
            **kwargs: Passed to timedelta (hours, minutes, days, etc.)
        """
        with self._lock:
            self._time = self._time + timedelta(seconds=seconds, **kwargs)


# ============================================================
# CLOCK FACTORY
# ============================================================

class ClockFactory:
    """Factory for the process-wide clock instance."""

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
        """Reset to default system clock."""
        with cls._lock:
            cls._instance = SystemClock()

    @classmethod
    @contextmanager
    def use_mock(
        cls,
        initial_time: Optional[datetime] = None,
    ) -> Generator[MockClock, None, None]:
        """
        Context manager to use mock clock temporarily.

        Args:
            initial_time: Initial time for mock clock
        """
        original = cls._instance
        mock = MockClock(initial_time)
        cls.set_clock(mock)
        try:
            yield mock
        finally:
            cls._instance = original


# ============================================================
# TIMESTAMP UTILITIES
# ============================================================

def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def from_epoch(value: Any) -> Optional[datetime]:
    """
    Convert a source epoch to a UTC datetime.

    Accepts ints, floats and numeric strings in either seconds or
    milliseconds. Returns None for missing or unparseable values.
    """
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number <= 0:
        return None
    if number >= MILLISECOND_EPOCH_THRESHOLD:
        number = number / 1000
    return datetime.fromtimestamp(number, tz=timezone.utc)


def parse_event_time(value: Any) -> Optional[datetime]:
    """
    Parse a source event time.

    Accepts epochs (seconds or milliseconds, numeric or string) and
    date-time strings such as "2024-01-01 10:00:00" or ISO 8601.
    Naive date-times are taken as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        return from_epoch(value)
    text = str(value).strip()
    if text.replace(".", "", 1).isdigit():
        return from_epoch(text)
    try:
        return parse_start_date(text)
    except ValueError:
        return None


def to_epoch_ms(dt: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds."""
    return int(ensure_utc(dt).timestamp() * 1000)


def format_ledger_time(dt: datetime) -> str:
    """Render a timestamp the way ledger rows display it."""
    return ensure_utc(dt).strftime(LEDGER_TIME_FORMAT)


def parse_start_date(value: str) -> datetime:
    """Parse a YYYY-MM-DD or ISO 8601 string into a UTC datetime."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def now_utc() -> datetime:
    """Get current UTC time using global clock."""
    return ClockFactory.get_clock().now()


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "ClockFactory",
    "MILLISECOND_EPOCH_THRESHOLD",
    "LEDGER_TIME_FORMAT",
    "ensure_utc",
    "from_epoch",
    "parse_event_time",
    "to_epoch_ms",
    "format_ledger_time",
    "parse_start_date",
    "now_utc",
]
