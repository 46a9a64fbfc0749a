"""
Instance records and the online/offline state machine.

Two states, two transitions:
- online -> offline when the last heartbeat is older than the staleness cutoff
  (applied by the presence sweeper)
- offline -> online on a fresh heartbeat (applied by the heartbeat handler)

A manual override may set either state.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ..clock import ensure_utc

DEFAULT_CATEGORY = "uncategorized"


class InstanceStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


def is_stale(last_heartbeat: datetime, cutoff: datetime) -> bool:
    """True when the heartbeat is strictly earlier than the cutoff"""
    return ensure_utc(last_heartbeat) < ensure_utc(cutoff)


def sweep_transition(
    status: InstanceStatus, last_heartbeat: datetime, cutoff: datetime
) -> InstanceStatus:
    """Status after a sweep with the given cutoff. Offline stays offline."""
    if status is InstanceStatus.ONLINE and is_stale(last_heartbeat, cutoff):
        return InstanceStatus.OFFLINE
    return status


def heartbeat_transition(status: InstanceStatus) -> InstanceStatus:
    """Status after a fresh heartbeat"""
    return InstanceStatus.ONLINE


@dataclass
class Instance:
    """Registered agent instance"""

    id: str
    last_heartbeat: datetime
    status: InstanceStatus = InstanceStatus.ONLINE
    category: str = DEFAULT_CATEGORY
    nickname: str = ""
    registered_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("instance id must be non-empty")
        self.last_heartbeat = ensure_utc(self.last_heartbeat)
        if self.registered_at is None:
            self.registered_at = self.last_heartbeat
        else:
            self.registered_at = ensure_utc(self.registered_at)
        self.status = InstanceStatus(self.status)

    @property
    def online(self) -> bool:
        return self.status is InstanceStatus.ONLINE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "nickname": self.nickname,
            "category": self.category,
            "status": self.status.value,
            "online": self.online,
            "last_heartbeat": self.last_heartbeat.isoformat(),
            "registered_at": self.registered_at.isoformat() if self.registered_at else None,
            "metadata": self.metadata,
        }


__all__ = [
    "DEFAULT_CATEGORY",
    "InstanceStatus",
    "Instance",
    "is_stale",
    "sweep_transition",
    "heartbeat_transition",
]
