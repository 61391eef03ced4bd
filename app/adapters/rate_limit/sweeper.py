"""Periodic removal of expired rate limit records.

Admission decisions already ignore expired records, so the sweep only bounds
memory held by identifiers that stopped sending requests.
"""

from __future__ import annotations

import asyncio
import logging

from app.adapters.rate_limit.base import AbstractRateLimiter

logger = logging.getLogger(__name__)


class RateLimitSweeper:
    """Runs ``limiter.sweep_expired()`` on a fixed interval.

    The interval should be shorter than the shortest window in use, otherwise
    expired records linger for up to one extra interval.
    """

    def __init__(self, limiter: AbstractRateLimiter, *, interval_seconds: float = 60.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._limiter = limiter
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        """Sweep once and return the number of removed records."""
        removed = self._limiter.sweep_expired()
        logger.debug(
            "rate_limit.sweep_completed",
            extra={"removed": removed, "tracked": len(self._limiter)},
        )
        return removed

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info("rate_limit.sweeper_started", extra={"interval_s": self._interval})

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("rate_limit.sweeper_stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.run_once()
            except Exception:
                logger.exception("rate_limit.sweep_failed")
