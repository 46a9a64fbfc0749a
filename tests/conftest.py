"""
Pytest configuration for fleetwatch tests

Shared clocks, stores and service fixtures
"""
from datetime import UTC, datetime

import pytest

from fleetwatch.activity.store import InMemoryActivityLog
from fleetwatch.clock import ManualClock
from fleetwatch.config.settings import FleetSettings
from fleetwatch.instances.store import InMemoryInstanceStore
from fleetwatch.service import FleetService
from fleetwatch.storage.sqlite import SqliteFleetStore

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)
ADMIN_KEY = "test-admin-key"


@pytest.fixture
def clock():
    """Manual clock starting at T0"""
    return ManualClock(T0)


@pytest.fixture
def instance_store():
    return InMemoryInstanceStore()


@pytest.fixture
def activity_log():
    return InMemoryActivityLog()


@pytest.fixture
def sqlite_store(tmp_path, clock):
    """SQLite store in a temporary directory"""
    store = SqliteFleetStore(tmp_path / "fleet.db", clock)
    yield store
    store.close()


@pytest.fixture
def settings():
    return FleetSettings(admin_key=ADMIN_KEY)


@pytest.fixture
def service(instance_store, activity_log, clock, settings):
    return FleetService(instance_store, activity_log, clock, settings)
