"""
SQLite-backed storage for instances, activity events and releases.

Each public method runs one transaction on a worker thread. If the awaiting
task is cancelled (caller deadline or disconnect) before its transaction
commits, the running statement is interrupted and the transaction rolls back
instead of finishing unobserved.
"""
from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import TypeVar

from ..activity.types import ActivityEvent, ActivityKind
from ..clock import Clock, ensure_utc
from ..errors import StorageUnavailableError
from ..instances.store import StatusCategoryCount
from ..instances.types import Instance, InstanceStatus
from ..releases import Release
from ..window import TimeWindow

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS instances (
        id              TEXT PRIMARY KEY,
        nickname        TEXT NOT NULL DEFAULT '',
        category        TEXT NOT NULL,
        status          TEXT NOT NULL DEFAULT 'online',
        last_heartbeat  REAL NOT NULL,
        registered_at   REAL NOT NULL,
        metadata        TEXT NOT NULL DEFAULT '{}'
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_instances_status_heartbeat ON instances(status, last_heartbeat)",
    """
    CREATE TABLE IF NOT EXISTS activity_events (
        id           INTEGER PRIMARY KEY AUTOINCREMENT,
        instance_id  TEXT NOT NULL,
        kind         TEXT NOT NULL,
        created_at   REAL NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_activity_lookup ON activity_events(instance_id, kind, created_at)",
    """
    CREATE TABLE IF NOT EXISTS releases (
        version      TEXT PRIMARY KEY,
        changelog    TEXT NOT NULL,
        released_at  REAL NOT NULL
    )
    """,
)

_INSTANCE_COLUMNS = "id, nickname, category, status, last_heartbeat, registered_at, metadata"


def _ts(value: datetime) -> float:
    return ensure_utc(value).timestamp()


def _dt(value: float) -> datetime:
    return datetime.fromtimestamp(value, UTC)


def _row_to_instance(row: tuple) -> Instance:
    return Instance(
        id=row[0],
        nickname=row[1],
        category=row[2],
        status=InstanceStatus(row[3]),
        last_heartbeat=_dt(row[4]),
        registered_at=_dt(row[5]),
        metadata=json.loads(row[6]) if row[6] else {},
    )


class _Call:
    __slots__ = ("cancelled",)

    def __init__(self):
        self.cancelled = False


class _CancelledCall(Exception):
    pass


class SqliteFleetStore:
    """
    Implements ``InstanceStore``, ``ActivityLog`` and ``ReleaseStore`` on one
    SQLite database.

    Usage:
        store = SqliteFleetStore("~/.fleetwatch/fleet.db", clock)
        await store.upsert(Instance(id="a", last_heartbeat=clock.now()))
        store.close()
    """

    def __init__(self, db_path: str | Path, clock: Clock):
        in_memory = str(db_path) == ":memory:"
        self.db_path = str(db_path) if in_memory else Path(db_path).expanduser()
        if not in_memory:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock
        self._lock = threading.Lock()
        # Guards _active and _Call.cancelled between the worker and the event loop
        self._state = threading.Lock()
        self._active: _Call | None = None
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        if not in_memory:
            self._conn.execute("PRAGMA journal_mode=WAL;")
        self._ensure_tables()

    def _ensure_tables(self) -> None:
        with self._lock, self._conn:
            for statement in _SCHEMA:
                self._conn.execute(statement)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------ #
    # Execution

    def _execute(self, call: _Call, fn: Callable[[sqlite3.Connection], T]) -> T | None:
        with self._lock:
            with self._state:
                if call.cancelled:
                    return None
                self._active = call
            try:
                with self._conn:
                    result = fn(self._conn)
                    # Past this point a cancellation can no longer stop the commit
                    with self._state:
                        self._active = None
                        if call.cancelled:
                            raise _CancelledCall()
                return result
            except _CancelledCall:
                logger.debug(f"Rolled back cancelled SQLite call on {self.db_path}")
                return None
            except sqlite3.Error as exc:
                raise StorageUnavailableError(f"SQLite error: {exc}") from exc
            finally:
                with self._state:
                    self._active = None

    async def _run(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        call = _Call()
        try:
            return await asyncio.to_thread(self._execute, call, fn)
        except asyncio.CancelledError:
            with self._state:
                call.cancelled = True
                if self._active is call:
                    logger.debug(f"Interrupting SQLite statement on {self.db_path}")
                    self._conn.interrupt()
            raise

    # ------------------------------------------------------------------ #
    # InstanceStore

    async def upsert(self, instance: Instance) -> Instance:
        def op(conn: sqlite3.Connection) -> Instance:
            conn.execute(
                f"""
                INSERT INTO instances ({_INSTANCE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    nickname = excluded.nickname,
                    category = excluded.category,
                    status = excluded.status,
                    last_heartbeat = excluded.last_heartbeat,
                    metadata = excluded.metadata
                """,
                (
                    instance.id,
                    instance.nickname,
                    instance.category,
                    instance.status.value,
                    _ts(instance.last_heartbeat),
                    _ts(instance.registered_at or instance.last_heartbeat),
                    json.dumps(instance.metadata),
                ),
            )
            row = conn.execute(
                f"SELECT {_INSTANCE_COLUMNS} FROM instances WHERE id = ?", (instance.id,)
            ).fetchone()
            return _row_to_instance(row)

        return await self._run(op)

    async def get(self, instance_id: str) -> Instance | None:
        def op(conn: sqlite3.Connection) -> Instance | None:
            row = conn.execute(
                f"SELECT {_INSTANCE_COLUMNS} FROM instances WHERE id = ?", (instance_id,)
            ).fetchone()
            return _row_to_instance(row) if row else None

        return await self._run(op)

    async def list_instances(self, limit: int = 500, offset: int = 0) -> list[Instance]:
        def op(conn: sqlite3.Connection) -> list[Instance]:
            rows = conn.execute(
                f"""
                SELECT {_INSTANCE_COLUMNS} FROM instances
                ORDER BY registered_at DESC, id DESC
                LIMIT ? OFFSET ?
                """,
                (limit, offset),
            ).fetchall()
            return [_row_to_instance(row) for row in rows]

        return await self._run(op)

    async def record_heartbeat(self, instance_id: str, at: datetime) -> Instance | None:
        def op(conn: sqlite3.Connection) -> Instance | None:
            cur = conn.execute(
                "UPDATE instances SET last_heartbeat = ?, status = ? WHERE id = ?",
                (_ts(at), InstanceStatus.ONLINE.value, instance_id),
            )
            if cur.rowcount == 0:
                return None
            row = conn.execute(
                f"SELECT {_INSTANCE_COLUMNS} FROM instances WHERE id = ?", (instance_id,)
            ).fetchone()
            return _row_to_instance(row)

        return await self._run(op)

    async def set_status(self, instance_id: str, status: InstanceStatus) -> Instance | None:
        def op(conn: sqlite3.Connection) -> Instance | None:
            cur = conn.execute(
                "UPDATE instances SET status = ? WHERE id = ?",
                (InstanceStatus(status).value, instance_id),
            )
            if cur.rowcount == 0:
                return None
            row = conn.execute(
                f"SELECT {_INSTANCE_COLUMNS} FROM instances WHERE id = ?", (instance_id,)
            ).fetchone()
            return _row_to_instance(row)

        return await self._run(op)

    async def mark_stale_offline(self, cutoff: datetime) -> int:
        # Same rule as instances.types.sweep_transition, as one UPDATE
        def op(conn: sqlite3.Connection) -> int:
            cur = conn.execute(
                "UPDATE instances SET status = ? WHERE status = ? AND last_heartbeat < ?",
                (InstanceStatus.OFFLINE.value, InstanceStatus.ONLINE.value, _ts(cutoff)),
            )
            return cur.rowcount

        return await self._run(op)

    async def count_by_status_and_category(self) -> list[StatusCategoryCount]:
        def op(conn: sqlite3.Connection) -> list[StatusCategoryCount]:
            rows = conn.execute(
                "SELECT status, category, COUNT(*) FROM instances GROUP BY status, category"
            ).fetchall()
            return [(InstanceStatus(status), category, int(n)) for status, category, n in rows]

        return await self._run(op)

    # ------------------------------------------------------------------ #
    # ActivityLog

    async def record(self, event: ActivityEvent) -> None:
        def op(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT INTO activity_events (instance_id, kind, created_at) VALUES (?, ?, ?)",
                (event.instance_id, event.kind.value, _ts(event.created_at)),
            )

        await self._run(op)

    async def count_events(self, instance_id: str, kind: ActivityKind, window: TimeWindow) -> int:
        def op(conn: sqlite3.Connection) -> int:
            row = conn.execute(
                """
                SELECT COUNT(*) FROM activity_events
                WHERE instance_id = ? AND kind = ?
                AND created_at >= ? AND created_at <= ?
                """,
                (instance_id, ActivityKind(kind).value, _ts(window.start), _ts(window.end)),
            ).fetchone()
            return int(row[0]) if row else 0

        return await self._run(op)

    # ------------------------------------------------------------------ #
    # ReleaseStore

    async def list_releases(self) -> list[Release]:
        def op(conn: sqlite3.Connection) -> list[Release]:
            rows = conn.execute(
                "SELECT version, changelog, released_at FROM releases ORDER BY released_at DESC"
            ).fetchall()
            return [Release(version=v, changelog=c, released_at=_dt(t)) for v, c, t in rows]

        return await self._run(op)

    async def latest_release(self) -> Release | None:
        releases = await self.list_releases()
        return releases[0] if releases else None

    async def upsert_release(self, version: str, changelog: str) -> Release:
        released_at = self._clock.now()

        def op(conn: sqlite3.Connection) -> Release:
            conn.execute(
                """
                INSERT INTO releases (version, changelog, released_at) VALUES (?, ?, ?)
                ON CONFLICT(version) DO UPDATE SET
                    changelog = excluded.changelog,
                    released_at = excluded.released_at
                """,
                (version, changelog, _ts(released_at)),
            )
            return Release(version=version, changelog=changelog, released_at=released_at)

        return await self._run(op)

    async def delete_release(self, version: str) -> bool:
        def op(conn: sqlite3.Connection) -> bool:
            cur = conn.execute("DELETE FROM releases WHERE version = ?", (version,))
            return cur.rowcount > 0

        return await self._run(op)


__all__ = ["SqliteFleetStore"]
