"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state, since FastAPI runs sync
  dependencies in a thread pool and the sweep shares the same map.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import replace
from typing import Callable

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitOptions,
    RateLimitRecord,
    RateLimitResult,
)

logger = logging.getLogger(__name__)


def epoch_millis() -> float:
    """Current UNIX time in milliseconds."""
    return time.time() * 1000


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per identifier in fixed windows.

    A window starts with the first request of an identifier and lasts
    ``window_ms``. Every request in the window increments the counter,
    including rejected ones. Once the window has ended the next request
    starts a new one, so bursts straddling a boundary can reach twice the
    limit.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        options: RateLimitOptions | None = None,
        clock: Callable[[], float] = epoch_millis,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            options: Default policy used when a check passes no options.
            clock: Time source returning UNIX time in milliseconds.
        """
        self._options = options or RateLimitOptions()
        self._clock = clock
        self._lock = threading.RLock()
        self._records: dict[str, RateLimitRecord] = {}

    @property
    def options(self) -> RateLimitOptions:
        return self._options

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _get_or_reset_record(self, identifier: str, now: float, window_ms: int) -> RateLimitRecord:
        record = self._records.get(identifier)
        if record is None or record.is_expired(now):
            record = RateLimitRecord(count=0, reset_time=now + window_ms)
            self._records[identifier] = record
        return record

    def check_limit(
        self,
        identifier: str,
        options: RateLimitOptions | None = None,
    ) -> RateLimitResult:
        """Count one request for ``identifier`` and decide admission.

        Args:
            identifier: Opaque rate limiting key.
            options: Policy for this call; limiter defaults when omitted.

        Returns:
            RateLimitResult with the decision and window metadata.
        """
        config = options or self._options

        with self._lock:
            now = self._clock()
            record = self._get_or_reset_record(identifier, now, config.window_ms)
            record.count += 1
            count = record.count
            reset_time = record.reset_time

        remaining = max(0, config.max_requests - count)
        reset_seconds = math.ceil((reset_time - now) / 1000)

        if count > config.max_requests:
            return RateLimitResult(
                success=False,
                remaining=remaining,
                reset=reset_seconds,
                limit=config.max_requests,
                message=config.message,
                status_code=config.status_code,
            )

        return RateLimitResult(
            success=True,
            remaining=remaining,
            reset=reset_seconds,
            limit=config.max_requests,
        )

    def sweep_expired(self, now: float | None = None) -> int:
        """Delete records whose ``reset_time`` is strictly before ``now``.

        Args:
            now: Sweep timestamp in epoch milliseconds; the clock when omitted.

        Returns:
            Number of removed records.
        """
        with self._lock:
            cutoff = self._clock() if now is None else now
            expired = [key for key, record in self._records.items() if record.reset_time < cutoff]
            for key in expired:
                del self._records[key]
            remaining = len(self._records)

        if expired:
            logger.debug(
                "rate_limit.sweep",
                extra={"removed": len(expired), "tracked": remaining},
            )
        return len(expired)

    def get_record(self, identifier: str) -> RateLimitRecord | None:
        with self._lock:
            record = self._records.get(identifier)
            return replace(record) if record is not None else None

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
