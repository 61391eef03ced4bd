"""Rate limiter interfaces.

The API should depend on this abstraction (not the concrete implementation)
so we can swap storage backends later (e.g., Redis) with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any

DEFAULT_WINDOW_MS = 60 * 1000
DEFAULT_MAX_REQUESTS = 60
DEFAULT_MESSAGE = "Te veel verzoeken, probeer het later opnieuw."
DEFAULT_STATUS_CODE = 429


@dataclass(frozen=True)
class RateLimitOptions:
    """Fixed-window policy applied to a single check.

    Attributes:
        window_ms: Length of the counting window in milliseconds.
        max_requests: Maximum admitted requests per window.
        message: Human-readable rejection reason.
        status_code: Status code reported to the caller on rejection.
    """

    window_ms: int = DEFAULT_WINDOW_MS
    max_requests: int = DEFAULT_MAX_REQUESTS
    message: str = DEFAULT_MESSAGE
    status_code: int = DEFAULT_STATUS_CODE

    def __post_init__(self) -> None:
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if not 400 <= self.status_code <= 599:
            raise ValueError("status_code must be an HTTP error status (400-599)")

    def with_overrides(self, **overrides: Any) -> RateLimitOptions:
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        if not changes:
            return self
        return replace(self, **changes)


@dataclass
class RateLimitRecord:
    """Per-identifier counter for the current window."""

    count: int
    reset_time: float

    def is_expired(self, now: float) -> bool:
        return self.reset_time <= now


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        success: Whether the request is admitted.
        remaining: Requests left in the current window (0 when rejected).
        reset: Seconds until the current window resets.
        limit: Max requests per window.
        message: Rejection reason, set only when rejected.
        status_code: Status to report, set only when rejected.
    """

    success: bool
    remaining: int
    reset: int
    limit: int
    message: str | None = None
    status_code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire shape consumed by HTTP callers."""
        data: dict[str, Any] = {
            "success": self.success,
            "remaining": self.remaining,
            "reset": self.reset,
            "limit": self.limit,
        }
        if self.message is not None:
            data["message"] = self.message
        if self.status_code is not None:
            data["statusCode"] = self.status_code
        return data


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check_limit(
        self,
        identifier: str,
        options: RateLimitOptions | None = None,
    ) -> RateLimitResult:
        """Count one request for an identifier and decide admission.

        Args:
            identifier: Opaque rate limiting key (e.g., IP address, user id).
            options: Policy for this call; limiter defaults when omitted.

        Returns:
            RateLimitResult describing the decision.
        """
        raise NotImplementedError

    @abstractmethod
    def sweep_expired(self, now: float | None = None) -> int:
        """Remove records whose window ended before ``now``.

        Returns:
            Number of records removed.
        """
        raise NotImplementedError

    @abstractmethod
    def get_record(self, identifier: str) -> RateLimitRecord | None:
        """Return a copy of the stored record for an identifier, if any."""
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        """Drop every stored record."""
        raise NotImplementedError

    @abstractmethod
    def __len__(self) -> int:
        raise NotImplementedError
