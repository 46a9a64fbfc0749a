"""Instance presence tracking: records, storage, sweeping and statistics."""
from __future__ import annotations

from .stats import CategoryCounts, StatsAggregator, StatsSnapshot
from .store import InMemoryInstanceStore, InstanceStore
from .sweeper import PresenceSweeper
from .types import DEFAULT_CATEGORY, Instance, InstanceStatus

__all__ = [
    "DEFAULT_CATEGORY",
    "Instance",
    "InstanceStatus",
    "InstanceStore",
    "InMemoryInstanceStore",
    "PresenceSweeper",
    "StatsAggregator",
    "StatsSnapshot",
    "CategoryCounts",
]
