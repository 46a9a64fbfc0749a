"""
Population statistics over the instance store.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ..clock import Clock
from ..window import run_with_deadline
from .store import InstanceStore, StatusCategoryCount
from .types import InstanceStatus


class CategoryCounts(BaseModel):
    total: int = 0
    online: int = 0
    offline: int = 0


class StatsSnapshot(BaseModel):
    """Instance counts computed fresh for one request"""

    total: int = 0
    online: int = 0
    offline: int = 0
    by_category: dict[str, CategoryCounts] = Field(default_factory=dict)
    generated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def fold_counts(rows: list[StatusCategoryCount], generated_at: datetime) -> StatsSnapshot:
    """Build a snapshot from ``(status, category, count)`` rows in one pass"""
    snapshot = StatsSnapshot(generated_at=generated_at)
    for status, category, count in rows:
        bucket = snapshot.by_category.setdefault(category, CategoryCounts())
        bucket.total += count
        snapshot.total += count
        if InstanceStatus(status) is InstanceStatus.ONLINE:
            bucket.online += count
            snapshot.online += count
        else:
            bucket.offline += count
            snapshot.offline += count
    return snapshot


class StatsAggregator:
    """Read-only aggregation; safe to run alongside sweeps and other aggregations"""

    def __init__(self, store: InstanceStore, clock: Clock):
        self._store = store
        self._clock = clock

    async def aggregate(self, timeout: float | None = None) -> StatsSnapshot:
        rows = await run_with_deadline(
            self._store.count_by_status_and_category(), timeout, "stats aggregation"
        )
        return fold_counts(rows, self._clock.now())


__all__ = [
    "CategoryCounts",
    "StatsSnapshot",
    "StatsAggregator",
    "fold_counts",
]
