"""
Tests for FleetService
"""
import asyncio
from datetime import timedelta

import pytest

from fleetwatch.activity.types import ActivityEvent, ActivityKind
from fleetwatch.config.settings import FleetSettings
from fleetwatch.errors import InstanceNotFoundError, InvalidRequestError
from fleetwatch.instances.types import InstanceStatus
from fleetwatch.service import FleetService


class TestFleetService:

    @pytest.mark.asyncio
    async def test_register_creates_online_instance(self, service, clock):
        instance = await service.register("A", nickname="jarvis", category="github", metadata={"v": 1})

        assert instance.online
        assert instance.last_heartbeat == clock.now()
        assert instance.category == "github"

    @pytest.mark.asyncio
    async def test_register_blank_category_uses_default(self, service):
        instance = await service.register("A", category="")
        assert instance.category == "uncategorized"

    @pytest.mark.asyncio
    async def test_register_requires_id(self, service):
        with pytest.raises(InvalidRequestError):
            await service.register("")

    @pytest.mark.asyncio
    async def test_heartbeat_unknown_instance(self, service):
        with pytest.raises(InstanceNotFoundError) as exc_info:
            await service.heartbeat("ghost")
        assert exc_info.value.error_code.value == "not_found"

    @pytest.mark.asyncio
    async def test_heartbeat_refreshes(self, service, clock):
        await service.register("A")
        clock.advance(minutes=45)
        await service.sweep()

        instance = await service.heartbeat("A")

        assert instance.online
        assert instance.last_heartbeat == clock.now()

    @pytest.mark.asyncio
    async def test_override_status(self, service):
        await service.register("A")

        assert (await service.override_status("A", "offline")).status is InstanceStatus.OFFLINE
        with pytest.raises(InvalidRequestError):
            await service.override_status("A", "sleeping")
        with pytest.raises(InstanceNotFoundError):
            await service.override_status("ghost", InstanceStatus.ONLINE)

    @pytest.mark.asyncio
    async def test_snapshot_sweeps_then_reads(self, service, clock):
        await service.register("old")
        clock.advance(minutes=40)
        await service.register("new")

        snapshot = await service.snapshot()

        assert snapshot.marked_offline == 1
        assert {i.id: i.status for i in snapshot.instances} == {
            "old": InstanceStatus.OFFLINE,
            "new": InstanceStatus.ONLINE,
        }
        assert (snapshot.stats.online, snapshot.stats.offline) == (1, 1)
        assert set(snapshot.to_dict()) == {"instances", "stats"}

    @pytest.mark.asyncio
    async def test_snapshot_respects_limit(self, service, clock):
        for i in range(5):
            await service.register(f"i{i}")
            clock.advance(seconds=1)

        snapshot = await service.snapshot(limit=2)

        assert [i.id for i in snapshot.instances] == ["i4", "i3"]
        assert snapshot.stats.total == 5

    @pytest.mark.asyncio
    async def test_configured_staleness(self, instance_store, activity_log, clock):
        service = FleetService(instance_store, activity_log, clock, FleetSettings(staleness_minutes=5))
        await service.register("A")
        clock.advance(minutes=6)

        assert await service.sweep() == 1

    @pytest.mark.asyncio
    async def test_rate_check(self, service, activity_log, clock):
        await activity_log.record(
            ActivityEvent(instance_id="A", kind=ActivityKind.VOTE, created_at=clock.now() - timedelta(hours=3))
        )

        result = await service.rate_check("A")

        assert (result.posts_in_window, result.votes_in_window) == (0, 1)

    @pytest.mark.asyncio
    async def test_concurrent_snapshots_agree(self, service, clock):
        await service.register("A")
        clock.advance(hours=1)

        first, second = await asyncio.gather(service.snapshot(), service.snapshot())

        assert first.marked_offline + second.marked_offline == 1
        assert first.stats.offline == second.stats.offline == 1
