"""
Activity rate gate.

Counts an instance's posts and votes over a trailing window so an agent can
decide, before doing any expensive work, whether it may still act. The gate
reports exact counts; the numeric limit is the caller's policy.

Window convention: closed interval ``[now - window, now]`` for both kinds.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from ..clock import Clock
from ..errors import InvalidRequestError, OperationTimeoutError, RateCheckUnavailableError, StorageUnavailableError
from ..window import DEFAULT_ACTIVITY_WINDOW, run_with_deadline, trailing_window
from .policy import RateLimitPolicy
from .store import ActivityLog
from .types import ActivityKind, RateWindowResult

logger = logging.getLogger(__name__)


class ActivityRateGate:
    """
    Pre-flight activity counter.

    Usage:
        gate = ActivityRateGate(activity_log, clock)
        result = await gate.check("inst_123")
        if result.posts_in_window < 5:
            ...

        # Or let the gate apply a policy (fails closed)
        if await gate.permits("inst_123", ActivityKind.POST, RateLimitPolicy()):
            ...
    """

    def __init__(self, log: ActivityLog, clock: Clock):
        self._log = log
        self._clock = clock

    async def check(
        self,
        instance_id: str,
        window: timedelta = DEFAULT_ACTIVITY_WINDOW,
        timeout: float | None = None,
    ) -> RateWindowResult:
        """
        Count posts and votes for ``instance_id`` within the trailing window.

        Unknown instances have no events and yield zero counts.

        Raises:
            InvalidRequestError: Empty instance id or non-positive window
            RateCheckUnavailableError: Counts could not be read in time
        """
        if not instance_id or not instance_id.strip():
            raise InvalidRequestError("instance_id required")

        span = trailing_window(self._clock.now(), window)

        counts = asyncio.gather(
            self._log.count_events(instance_id, ActivityKind.POST, span),
            self._log.count_events(instance_id, ActivityKind.VOTE, span),
        )
        try:
            posts, votes = await run_with_deadline(counts, timeout, "rate check")
        except (StorageUnavailableError, OperationTimeoutError) as exc:
            raise RateCheckUnavailableError(f"Rate check failed for {instance_id}: {exc}") from exc

        return RateWindowResult(
            instance_id=instance_id,
            posts_in_window=posts,
            votes_in_window=votes,
            window_start=span.start,
            window_end=span.end,
        )

    async def permits(
        self,
        instance_id: str,
        kind: ActivityKind,
        policy: RateLimitPolicy,
        window: timedelta = DEFAULT_ACTIVITY_WINDOW,
        timeout: float | None = None,
    ) -> bool:
        """
        Pass/fail decision for one more action of ``kind``.

        Returns False when the counts are unavailable.
        """
        try:
            result = await self.check(instance_id, window=window, timeout=timeout)
        except RateCheckUnavailableError as exc:
            logger.warning(f"Denying {ActivityKind(kind).value} for {instance_id}: {exc}")
            return False
        return policy.allows(result, kind)


__all__ = ["ActivityRateGate"]
