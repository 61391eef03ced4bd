"""Application-level exception types.

This module defines domain errors used across adapters and the HTTP layer,
enabling consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TypedDict


class ErrorDetails(TypedDict, total=False):
    """Rate limit context attached to rejection responses."""

    limit: int
    remaining: int
    reset: int


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


@dataclass
class RateLimitExceededError(AppError):
    """Raised by the HTTP layer when a client exceeds its rate limit.

    Attributes:
        status_code: HTTP status to respond with (429 unless configured).
        headers: Retry-After / X-RateLimit-* headers for the response.
    """

    status_code: int = 429
    headers: dict[str, str] = field(default_factory=dict)
