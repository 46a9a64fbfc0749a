"""
Fleet service: wires stores, sweeper, aggregator and rate gate together for
the administrative and agent-facing entry points.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from .activity.gate import ActivityRateGate
from .activity.store import ActivityLog
from .activity.types import RateWindowResult
from .clock import Clock
from .config.settings import FleetSettings
from .errors import InstanceNotFoundError, InvalidRequestError
from .instances.stats import StatsAggregator, StatsSnapshot
from .instances.store import InstanceStore
from .instances.sweeper import PresenceSweeper
from .instances.types import DEFAULT_CATEGORY, Instance, InstanceStatus
from .window import run_with_deadline

logger = logging.getLogger(__name__)


@dataclass
class FleetSnapshot:
    """Instances plus fresh stats, as returned to the admin dashboard"""

    instances: list[Instance]
    stats: StatsSnapshot
    marked_offline: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "instances": [instance.to_dict() for instance in self.instances],
            "stats": self.stats.to_dict(),
        }


class FleetService:
    """
    Entry points used by the HTTP surface and the CLI.

    Usage:
        service = FleetService(instance_store, activity_log, clock, settings)
        snapshot = await service.snapshot()
        counts = await service.rate_check("inst_123")
    """

    def __init__(
        self,
        instances: InstanceStore,
        activity: ActivityLog,
        clock: Clock,
        settings: FleetSettings | None = None,
    ):
        self.settings = settings or FleetSettings()
        self.instances = instances
        self.activity = activity
        self.clock = clock
        self.sweeper = PresenceSweeper(instances, clock, self.settings.staleness_threshold)
        self.aggregator = StatsAggregator(instances, clock)
        self.gate = ActivityRateGate(activity, clock)

    @property
    def timeout(self) -> float | None:
        return self.settings.operation_timeout_seconds

    async def sweep(self) -> int:
        return await self.sweeper.sweep(self.settings.staleness_threshold, timeout=self.timeout)

    async def aggregate(self) -> StatsSnapshot:
        return await self.aggregator.aggregate(timeout=self.timeout)

    async def snapshot(self, limit: int | None = None) -> FleetSnapshot:
        """
        Sweep stale instances, then list instances and compute stats.

        The sweep and the reads are separate store calls; a heartbeat landing
        between them is reflected in whichever read sees it.
        """
        limit = limit or self.settings.admin_list_limit
        marked = await self.sweep()
        listing, stats = await asyncio.gather(
            run_with_deadline(self.instances.list_instances(limit, 0), self.timeout, "instance listing"),
            self.aggregate(),
        )
        return FleetSnapshot(instances=listing, stats=stats, marked_offline=marked)

    async def rate_check(self, instance_id: str) -> RateWindowResult:
        return await self.gate.check(instance_id, self.settings.rate_window, timeout=self.timeout)

    async def register(
        self,
        instance_id: str,
        nickname: str = "",
        category: str | None = DEFAULT_CATEGORY,
        metadata: dict[str, Any] | None = None,
    ) -> Instance:
        """Create or refresh an instance record as online with a fresh heartbeat"""
        if not instance_id:
            raise InvalidRequestError("instance_id required")
        now = self.clock.now()
        instance = Instance(
            id=instance_id,
            last_heartbeat=now,
            status=InstanceStatus.ONLINE,
            category=category or DEFAULT_CATEGORY,
            nickname=nickname,
            registered_at=now,
            metadata=metadata or {},
        )
        stored = await run_with_deadline(self.instances.upsert(instance), self.timeout, "register")
        logger.info(f"Registered instance {instance_id} (category={stored.category})")
        return stored

    async def heartbeat(self, instance_id: str) -> Instance:
        if not instance_id:
            raise InvalidRequestError("instance_id required")
        instance = await run_with_deadline(
            self.instances.record_heartbeat(instance_id, self.clock.now()), self.timeout, "heartbeat"
        )
        if instance is None:
            raise InstanceNotFoundError(instance_id)
        return instance

    async def override_status(self, instance_id: str, status: InstanceStatus | str) -> Instance:
        """Manual override of an instance's status (admin only)"""
        try:
            status = InstanceStatus(status)
        except ValueError as e:
            raise InvalidRequestError(f"Unknown status: {status}") from e
        instance = await run_with_deadline(
            self.instances.set_status(instance_id, status), self.timeout, "status override"
        )
        if instance is None:
            raise InstanceNotFoundError(instance_id)
        logger.info(f"Status of {instance_id} overridden to {status.value}")
        return instance


__all__ = [
    "FleetService",
    "FleetSnapshot",
]
