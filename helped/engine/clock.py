"""
helped.engine.clock — Current Time & Calendar Days
====================================================

Everything that needs "now" or needs to know which calendar day a
timestamp falls on goes through a :class:`Clock`.  Production code uses
:class:`SystemClock`; tests pin time with :class:`FrozenClock`.

Naive datetimes (SQLite drops tzinfo on read) are treated as UTC.
"""

from __future__ import annotations

import threading
from datetime import UTC, date, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Clock:
    """Wall clock plus day truncation in one reference timezone."""

    def __init__(self, tz: str | tzinfo = "UTC") -> None:
        self.tz: tzinfo = ZoneInfo(tz) if isinstance(tz, str) else tz

    def now(self) -> datetime:
        raise NotImplementedError

    def day_of(self, value: datetime) -> date:
        """Calendar day *value* falls on in the reference timezone."""
        return as_utc(value).astimezone(self.tz).date()

    def today(self) -> date:
        return self.day_of(self.now())

    def days_between(self, earlier: datetime, later: datetime) -> int:
        """Whole elapsed days from *earlier* to *later* (floored, never negative)."""
        elapsed = as_utc(later) - as_utc(earlier)
        return max(0, elapsed // timedelta(days=1))


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(UTC)


class FrozenClock(Clock):
    """A clock that only moves when told to.  Thread-safe."""

    def __init__(self, start: datetime, tz: str | tzinfo = "UTC") -> None:
        super().__init__(tz)
        self._now = as_utc(start)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = as_utc(value)

    def advance(self, **delta: float) -> datetime:
        """Move forward by ``timedelta(**delta)`` and return the new time."""
        with self._lock:
            self._now += timedelta(**delta)
            return self._now
