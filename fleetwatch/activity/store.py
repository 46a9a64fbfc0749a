"""
Activity event log.

Events are append-only; the core only counts them. Retention is left to the
storage backend.
"""
from __future__ import annotations

from typing import Protocol

from ..window import TimeWindow
from .types import ActivityEvent, ActivityKind


class ActivityLog(Protocol):
    async def record(self, event: ActivityEvent) -> None: ...

    async def count_events(self, instance_id: str, kind: ActivityKind, window: TimeWindow) -> int: ...


class InMemoryActivityLog:
    """List-backed activity log for tests and database-less runs"""

    def __init__(self):
        self._events: dict[str, list[ActivityEvent]] = {}  # instance_id -> events

    async def record(self, event: ActivityEvent) -> None:
        self._events.setdefault(event.instance_id, []).append(event)

    async def count_events(self, instance_id: str, kind: ActivityKind, window: TimeWindow) -> int:
        kind = ActivityKind(kind)
        return sum(
            1
            for event in self._events.get(instance_id, ())
            if event.kind is kind and window.contains(event.created_at)
        )


__all__ = [
    "ActivityLog",
    "InMemoryActivityLog",
]
