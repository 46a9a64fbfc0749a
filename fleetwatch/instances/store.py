"""
Instance storage.

``InstanceStore`` is the interface the sweeper, the aggregator and the
heartbeat handler consume. ``InMemoryInstanceStore`` keeps records in a dict
and is used for tests and for running without a database; the SQLite
implementation lives in ``fleetwatch.storage.sqlite``.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Protocol

from .types import Instance, InstanceStatus, heartbeat_transition, sweep_transition

StatusCategoryCount = tuple[InstanceStatus, str, int]


class InstanceStore(Protocol):
    async def upsert(self, instance: Instance) -> Instance: ...

    async def get(self, instance_id: str) -> Instance | None: ...

    async def list_instances(self, limit: int = 500, offset: int = 0) -> list[Instance]: ...

    async def record_heartbeat(self, instance_id: str, at: datetime) -> Instance | None: ...

    async def set_status(self, instance_id: str, status: InstanceStatus) -> Instance | None: ...

    async def mark_stale_offline(self, cutoff: datetime) -> int: ...

    async def count_by_status_and_category(self) -> list[StatusCategoryCount]: ...


class InMemoryInstanceStore:
    """
    Dict-backed instance store.

    Each method completes without yielding to the event loop, so every call
    is atomic with respect to other coroutines.

    Usage:
        store = InMemoryInstanceStore()
        await store.upsert(Instance(id="a", last_heartbeat=now))
        marked = await store.mark_stale_offline(now - timedelta(minutes=30))
    """

    def __init__(self):
        self._instances: dict[str, Instance] = {}  # id -> Instance

    async def upsert(self, instance: Instance) -> Instance:
        existing = self._instances.get(instance.id)
        if existing is not None:
            # Identity and registration time are immutable once created
            instance = replace(instance, registered_at=existing.registered_at)
        stored = replace(instance, metadata=dict(instance.metadata))
        self._instances[instance.id] = stored
        return replace(stored, metadata=dict(stored.metadata))

    async def get(self, instance_id: str) -> Instance | None:
        instance = self._instances.get(instance_id)
        return replace(instance) if instance else None

    async def list_instances(self, limit: int = 500, offset: int = 0) -> list[Instance]:
        ordered = sorted(
            self._instances.values(),
            key=lambda i: (i.registered_at, i.id),
            reverse=True,
        )
        return [replace(i) for i in ordered[offset:offset + limit]]

    async def record_heartbeat(self, instance_id: str, at: datetime) -> Instance | None:
        instance = self._instances.get(instance_id)
        if instance is None:
            return None
        instance.last_heartbeat = at
        instance.status = heartbeat_transition(instance.status)
        return replace(instance)

    async def set_status(self, instance_id: str, status: InstanceStatus) -> Instance | None:
        instance = self._instances.get(instance_id)
        if instance is None:
            return None
        instance.status = InstanceStatus(status)
        return replace(instance)

    async def mark_stale_offline(self, cutoff: datetime) -> int:
        marked = 0
        for instance in self._instances.values():
            new_status = sweep_transition(instance.status, instance.last_heartbeat, cutoff)
            if new_status is not instance.status:
                instance.status = new_status
                marked += 1
        return marked

    async def count_by_status_and_category(self) -> list[StatusCategoryCount]:
        counts: dict[tuple[InstanceStatus, str], int] = {}
        for instance in self._instances.values():
            key = (instance.status, instance.category)
            counts[key] = counts.get(key, 0) + 1
        return [(status, category, n) for (status, category), n in counts.items()]


__all__ = [
    "StatusCategoryCount",
    "InstanceStore",
    "InMemoryInstanceStore",
]
