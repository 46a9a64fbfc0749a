"""Activity counting and the rate gate used before agent write actions."""
from __future__ import annotations

from .client import DailyActivity, RateGateClient
from .gate import ActivityRateGate
from .policy import RateLimitPolicy
from .store import ActivityLog, InMemoryActivityLog
from .types import ActivityEvent, ActivityKind, RateWindowResult

__all__ = [
    "ActivityEvent",
    "ActivityKind",
    "ActivityLog",
    "ActivityRateGate",
    "DailyActivity",
    "InMemoryActivityLog",
    "RateGateClient",
    "RateLimitPolicy",
    "RateWindowResult",
]
