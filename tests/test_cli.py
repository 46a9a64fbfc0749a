"""
CLI commands against a SQLite database in a temporary directory
"""
import asyncio
import json
from datetime import timedelta

import pytest
from typer.testing import CliRunner

from fleetwatch.activity.types import ActivityEvent, ActivityKind
from fleetwatch.cli import app
from fleetwatch.clock import SystemClock
from fleetwatch.instances.types import Instance, InstanceStatus
from fleetwatch.logging_setup import reset_logging
from fleetwatch.storage.sqlite import SqliteFleetStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "fleet.db"


@pytest.fixture
def config_path(tmp_path, db_path):
    path = tmp_path / "fleetwatch.json"
    path.write_text(json.dumps({"database_path": str(db_path)}), encoding="utf-8")
    return path


def seed(db_path, *items):
    store = SqliteFleetStore(db_path, SystemClock())

    async def write():
        for item in items:
            if isinstance(item, Instance):
                await store.upsert(item)
            else:
                await store.record(item)

    try:
        asyncio.run(write())
    finally:
        store.close()


def invoke(config_path, *args):
    return runner.invoke(app, ["--config", str(config_path), *args])


def test_sweep_marks_stale_instances(config_path, db_path):
    now = SystemClock().now()
    seed(
        db_path,
        Instance(id="stale", last_heartbeat=now - timedelta(hours=2)),
        Instance(id="fresh", last_heartbeat=now),
    )

    result = invoke(config_path, "sweep")

    assert result.exit_code == 0, result.output
    assert "Marked 1 instance(s) offline" in result.output


def test_stats_json(config_path, db_path):
    seed(db_path, Instance(id="a", last_heartbeat=SystemClock().now(), category="github"))

    result = invoke(config_path, "--log-level", "ERROR", "stats", "--json", "--no-sweep")

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["total"] == 1
    assert data["by_category"]["github"]["online"] == 1


def test_rate_check_limit_reached(config_path, db_path):
    now = SystemClock().now()
    seed(db_path, *[ActivityEvent(instance_id="A", kind=ActivityKind.POST, created_at=now) for _ in range(5)])

    result = invoke(config_path, "rate-check", "A", "--kind", "post")

    assert result.exit_code == 3
    assert "Posts: 5/5" in result.output


def test_rate_check_under_limit(config_path):
    result = invoke(config_path, "rate-check", "A", "--kind", "vote")

    assert result.exit_code == 0, result.output
    assert "Votes: 0/20" in result.output


def test_invalid_config(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"staleness_minutes": -1}), encoding="utf-8")

    result = runner.invoke(app, ["--config", str(path), "sweep"])

    assert result.exit_code == 2


def test_stats_json_is_plain_json(config_path, db_path):
    category = "[b]x" + "c" * 120
    seed(db_path, Instance(id="a", last_heartbeat=SystemClock().now(), category=category))

    result = invoke(config_path, "--log-level", "ERROR", "stats", "--json", "--no-sweep")

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["by_category"][category]["total"] == 1


def test_sweep_rejects_zero_minutes(config_path, db_path):
    seed(db_path, Instance(id="A", last_heartbeat=SystemClock().now() - timedelta(minutes=5)))

    result = invoke(config_path, "sweep", "--minutes", "0")

    assert result.exit_code == 1
    assert "positive" in result.output


def test_register_creates_online_instance(config_path, db_path):
    result = invoke(config_path, "register", "A", "--nickname", "jarvis", "--category", "github")

    assert result.exit_code == 0, result.output
    assert "Registered A (github)" in result.output

    store = SqliteFleetStore(db_path, SystemClock())
    try:
        instance = asyncio.run(store.get("A"))
    finally:
        store.close()
    assert instance.status is InstanceStatus.ONLINE
    assert instance.nickname == "jarvis"
