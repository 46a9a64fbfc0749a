"""
Time sources.

Every staleness and window computation reads the current time from a
``Clock`` passed in at construction, never from ``datetime.now()`` directly.
"""
from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Supplies the current time as a timezone-aware UTC datetime"""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC"""

    def now(self) -> datetime:
        return datetime.now(UTC)


class ManualClock:
    """
    Clock that only moves when told to.

    Usage:
        clock = ManualClock(datetime(2026, 1, 1, tzinfo=UTC))
        clock.advance(minutes=31)
    """

    def __init__(self, start: datetime | None = None):
        self._now = ensure_utc(start) if start else datetime.now(UTC)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = ensure_utc(value)

    def advance(self, delta: timedelta | None = None, **kwargs: float) -> datetime:
        """Move forward by ``delta`` or by timedelta keyword arguments"""
        step = delta if delta is not None else timedelta(**kwargs)
        self._now = self._now + step
        return self._now


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


__all__ = [
    "Clock",
    "SystemClock",
    "ManualClock",
    "ensure_utc",
]
