"""
Component wiring from settings.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .activity.store import ActivityLog, InMemoryActivityLog
from .auth import AdminGate
from .clock import Clock, SystemClock
from .config.settings import FleetSettings
from .instances.store import InMemoryInstanceStore, InstanceStore
from .releases import InMemoryReleaseStore, ReleaseStore
from .service import FleetService
from .storage.sqlite import SqliteFleetStore

logger = logging.getLogger(__name__)


@dataclass
class FleetComponents:
    settings: FleetSettings
    clock: Clock
    instances: InstanceStore
    activity: ActivityLog
    releases: ReleaseStore
    service: FleetService
    admin_gate: AdminGate
    _closers: list = field(default_factory=list, repr=False)

    def close(self) -> None:
        for closer in self._closers:
            closer()
        self._closers.clear()


def build_components(
    settings: FleetSettings,
    clock: Clock | None = None,
    instances: InstanceStore | None = None,
    activity: ActivityLog | None = None,
    releases: ReleaseStore | None = None,
) -> FleetComponents:
    """
    Build stores and services.

    Stores passed in explicitly win; the rest come from ``settings.database_path``
    (one SQLite database) or fall back to in-memory stores.
    """
    clock = clock or SystemClock()
    closers = []

    if settings.database_path is not None and None in (instances, activity, releases):
        sqlite_store = SqliteFleetStore(settings.database_path, clock)
        closers.append(sqlite_store.close)
        logger.info(f"Using SQLite storage at {sqlite_store.db_path}")
        instances = instances or sqlite_store
        activity = activity or sqlite_store
        releases = releases or sqlite_store
    else:
        if None in (instances, activity, releases):
            logger.info("No database configured, using in-memory storage")
        instances = instances or InMemoryInstanceStore()
        activity = activity or InMemoryActivityLog()
        releases = releases or InMemoryReleaseStore(clock)

    if not settings.admin_key:
        logger.warning("No admin key configured; admin routes will reject every request")

    return FleetComponents(
        settings=settings,
        clock=clock,
        instances=instances,
        activity=activity,
        releases=releases,
        service=FleetService(instances, activity, clock, settings),
        admin_gate=AdminGate(settings.admin_key),
        _closers=closers,
    )


__all__ = [
    "FleetComponents",
    "build_components",
]
