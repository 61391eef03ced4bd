"""Pydantic schemas for the rate limit API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from app.adapters.rate_limit.base import RateLimitResult


class RateLimitCheckRequest(BaseModel):
    """Count one request for an identifier under an optional policy."""

    identifier: str = Field(
        ...,
        max_length=256,
        description="Opaque client key (e.g., IP address or user id).",
    )
    window_ms: int | None = Field(
        default=None, ge=1, description="Window length in milliseconds (default from config)."
    )
    max_requests: int | None = Field(
        default=None, ge=1, description="Maximum requests per window (default from config)."
    )
    message: str | None = Field(
        default=None, max_length=500, description="Rejection message override."
    )
    status_code: int | None = Field(
        default=None, ge=400, le=599, description="Rejection status override."
    )


class RateLimitCheckResponse(BaseModel):
    """Decision for a single check, in the camelCase wire shape."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(..., description="Whether the request is admitted.")
    message: str | None = Field(default=None, description="Rejection reason.")
    remaining: int = Field(..., description="Requests left in the current window.")
    reset: int = Field(..., description="Seconds until the window resets.")
    limit: int = Field(..., description="Maximum requests per window.")
    status_code: int | None = Field(
        default=None,
        alias="statusCode",
        description="Status the caller should respond with, present when rejected.",
    )

    @classmethod
    def from_result(cls, result: RateLimitResult) -> "RateLimitCheckResponse":
        return cls.model_validate(result.to_dict())


class RateLimitPolicy(BaseModel):
    window_ms: int
    max_requests: int
    status_code: int


class RateLimitStatusResponse(BaseModel):
    """Limiter state without consuming any budget."""

    enabled: bool
    tracked_identifiers: int = Field(..., description="Records currently held in memory.")
    sweep_interval_seconds: float
    default_policy: RateLimitPolicy
