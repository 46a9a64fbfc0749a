"""
Shared time-window helpers.

Activity windows are closed intervals ``[now - length, now]``: an event exactly
``length`` old is inside the window. Staleness is strict: an instance is stale
only when its last heartbeat is earlier than ``now - threshold``.
"""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TypeVar

from .clock import ensure_utc
from .errors import InvalidRequestError, OperationTimeoutError

T = TypeVar("T")

DEFAULT_STALENESS = timedelta(minutes=30)
DEFAULT_ACTIVITY_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class TimeWindow:
    """Closed time interval"""

    start: datetime
    end: datetime

    def contains(self, ts: datetime) -> bool:
        return self.start <= ensure_utc(ts) <= self.end

    @property
    def length(self) -> timedelta:
        return self.end - self.start


def require_positive(duration: timedelta, name: str) -> timedelta:
    if duration <= timedelta(0):
        raise InvalidRequestError(f"{name} must be a positive duration, got {duration}")
    return duration


def trailing_window(now: datetime, length: timedelta) -> TimeWindow:
    """Window of ``length`` ending at ``now`` (both ends included)"""
    require_positive(length, "window")
    now = ensure_utc(now)
    return TimeWindow(start=now - length, end=now)


def staleness_cutoff(now: datetime, threshold: timedelta) -> datetime:
    """Heartbeats strictly before the returned instant are stale"""
    require_positive(threshold, "staleness threshold")
    return ensure_utc(now) - threshold


async def run_with_deadline(awaitable: Awaitable[T], timeout: float | None, operation: str) -> T:
    """
    Await ``awaitable`` under an optional deadline.

    On expiry the inner task is cancelled (so the store can abort its
    outstanding call) and ``OperationTimeoutError`` is raised.
    """
    if timeout is None:
        return await awaitable
    try:
        async with asyncio.timeout(timeout):
            return await awaitable
    except TimeoutError as exc:
        raise OperationTimeoutError(operation, timeout) from exc


__all__ = [
    "DEFAULT_STALENESS",
    "DEFAULT_ACTIVITY_WINDOW",
    "TimeWindow",
    "require_positive",
    "trailing_window",
    "staleness_cutoff",
    "run_with_deadline",
]
