"""
Daily write limits applied by the agent on top of the rate gate's counts.
"""
from __future__ import annotations

from pydantic import BaseModel, Field

from .types import ActivityKind, RateWindowResult

DEFAULT_POST_LIMIT_PER_DAY = 5
DEFAULT_VOTE_LIMIT_PER_DAY = 20


class RateLimitPolicy(BaseModel):
    """Per-instance limits over the rolling window"""

    post_limit_per_day: int = Field(default=DEFAULT_POST_LIMIT_PER_DAY, ge=0)
    vote_limit_per_day: int = Field(default=DEFAULT_VOTE_LIMIT_PER_DAY, ge=0)

    def limit_for(self, kind: ActivityKind) -> int:
        if ActivityKind(kind) is ActivityKind.POST:
            return self.post_limit_per_day
        return self.vote_limit_per_day

    def allows(self, result: RateWindowResult, kind: ActivityKind) -> bool:
        """True when one more action of ``kind`` stays within the limit"""
        return result.count_for(kind) < self.limit_for(kind)

    def remaining(self, result: RateWindowResult, kind: ActivityKind) -> int:
        return max(0, self.limit_for(kind) - result.count_for(kind))


__all__ = [
    "DEFAULT_POST_LIMIT_PER_DAY",
    "DEFAULT_VOTE_LIMIT_PER_DAY",
    "RateLimitPolicy",
]
