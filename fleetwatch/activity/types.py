from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ..clock import ensure_utc


class ActivityKind(str, Enum):
    POST = "post"
    VOTE = "vote"


@dataclass(frozen=True)
class ActivityEvent:
    """One rate-limited action attributed to an instance"""

    instance_id: str
    kind: ActivityKind
    created_at: datetime

    def __post_init__(self) -> None:
        if not self.instance_id:
            raise ValueError("instance_id must be non-empty")
        object.__setattr__(self, "kind", ActivityKind(self.kind))
        object.__setattr__(self, "created_at", ensure_utc(self.created_at))


@dataclass(frozen=True)
class RateWindowResult:
    """Post and vote counts for one instance over a closed trailing window"""

    instance_id: str
    posts_in_window: int
    votes_in_window: int
    window_start: datetime
    window_end: datetime

    def count_for(self, kind: ActivityKind) -> int:
        if ActivityKind(kind) is ActivityKind.POST:
            return self.posts_in_window
        return self.votes_in_window


__all__ = [
    "ActivityKind",
    "ActivityEvent",
    "RateWindowResult",
]
