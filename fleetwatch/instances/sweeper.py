"""
Presence sweeper: demotes instances with stale heartbeats to offline.
"""
from __future__ import annotations

import logging
from datetime import timedelta

from ..clock import Clock
from ..window import DEFAULT_STALENESS, run_with_deadline, staleness_cutoff
from .store import InstanceStore

logger = logging.getLogger(__name__)


class PresenceSweeper:
    """
    Marks online instances offline once their heartbeat is older than the
    staleness threshold.

    The whole sweep is judged against a single ``now`` captured on entry and
    sent to the store as one batch update.

    Usage:
        sweeper = PresenceSweeper(store, clock)
        marked = await sweeper.sweep(timedelta(minutes=30))
    """

    def __init__(
        self,
        store: InstanceStore,
        clock: Clock,
        default_threshold: timedelta = DEFAULT_STALENESS,
    ):
        self._store = store
        self._clock = clock
        self._default_threshold = default_threshold

    async def sweep(
        self,
        staleness_threshold: timedelta | None = None,
        timeout: float | None = None,
    ) -> int:
        """
        Run one sweep.

        Args:
            staleness_threshold: Maximum heartbeat age before an instance is offline
            timeout: Optional deadline in seconds for the storage call

        Returns:
            Number of instances transitioned online -> offline
        """
        threshold = staleness_threshold if staleness_threshold is not None else self._default_threshold
        now = self._clock.now()
        cutoff = staleness_cutoff(now, threshold)

        marked = await run_with_deadline(
            self._store.mark_stale_offline(cutoff), timeout, "presence sweep"
        )

        if marked:
            logger.info(f"Presence sweep marked {marked} instance(s) offline (cutoff={cutoff.isoformat()})")
        else:
            logger.debug(f"Presence sweep found no stale instances (cutoff={cutoff.isoformat()})")
        return marked


__all__ = ["PresenceSweeper"]
