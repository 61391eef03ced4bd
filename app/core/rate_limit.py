"""Rate limiting dependencies for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: storage backend can be replaced (e.g., Redis) behind an
  abstract interface.
- Explicit ownership: the limiter lives on ``app.state`` and is created by
  the application factory, so tests can inject their own instance.

Rate limiting strategy:
- Fixed-window limit per client address.
- Routes may override window, limit, message and status per route.
- Rejections become RateLimitExceededError, rendered by the exception
  handlers as 429 with Retry-After and X-RateLimit-* headers.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import Request, Response

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitOptions, RateLimitResult
from app.core.config import AppSettings, settings
from app.core.errors import RateLimitExceededError
from app.core.logging import hash_for_logging

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown_ip"


def default_options(app_settings: AppSettings | None = None) -> RateLimitOptions:
    """Build the default limiter policy from settings."""

    cfg = app_settings or settings.app
    return RateLimitOptions(
        window_ms=cfg.rate_limit_window_ms,
        max_requests=cfg.rate_limit_max_requests,
        message=cfg.rate_limit_message,
        status_code=cfg.rate_limit_status_code,
    )


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """Return the limiter owned by the running application.

    Raises:
        RuntimeError: If the application was built without a limiter.
    """

    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise RuntimeError("rate limiter not configured on app.state")
    return limiter


def get_client_address(request: Request) -> str:
    """Best-effort client address, honoring proxy headers when trusted.

    Order: first X-Forwarded-For entry, X-Real-IP, socket peer, then
    ``unknown_ip``.
    """

    if settings.app.trust_forwarded_headers:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            first = forwarded_for.split(",")[0].strip()
            if first:
                return first
        real_ip = request.headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def get_client_identifier(request: Request) -> str:
    """Build the namespaced limiter key for the current request."""

    return f"ip:{get_client_address(request)}"


def build_rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Translate a limiter result into HTTP headers.

    Retry-After is only present on rejections.
    """

    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset),
    }
    if not result.success:
        headers["Retry-After"] = str(result.reset)
    return headers


def rate_limit(
    *,
    window_ms: int | None = None,
    max_requests: int | None = None,
    message: str | None = None,
    status_code: int | None = None,
    scope: str | None = None,
) -> Callable[[Request, Response], Awaitable[None]]:
    """Create a dependency enforcing a rate limit policy on a route.

    Overrides left as None fall back to the configured defaults. Routes with
    their own policy should pass a ``scope`` so their counters are kept apart
    from the default budget of the same client.

    Usage:
        @router.get("/items", dependencies=[Depends(rate_limit(max_requests=10, scope="items"))])

    Returns:
        An async FastAPI dependency.
    """

    async def dependency(request: Request, response: Response) -> None:
        if not settings.app.rate_limit_enabled:
            return

        limiter = get_rate_limiter(request)
        options = default_options().with_overrides(
            window_ms=window_ms,
            max_requests=max_requests,
            message=message,
            status_code=status_code,
        )
        identifier = get_client_identifier(request)
        if scope:
            identifier = f"{scope}:{identifier}"
        result = limiter.check_limit(identifier, options)

        include_headers = settings.app.rate_limit_include_headers
        log_fields = {
            "key_hash": hash_for_logging(identifier),
            "limit": result.limit,
            "remaining": result.remaining,
            "reset_s": result.reset,
            "window_ms": options.window_ms,
            "path": request.url.path,
        }

        if result.success:
            logger.debug("rate_limit.allowed", extra=log_fields)
            if include_headers:
                response.headers.update(build_rate_limit_headers(result))
            return

        logger.warning("rate_limit.exceeded", extra=log_fields)
        raise RateLimitExceededError(
            code="rate_limit_exceeded",
            message=result.message or options.message,
            details={
                "limit": result.limit,
                "remaining": result.remaining,
                "reset": result.reset,
            },
            status_code=result.status_code or options.status_code,
            headers=build_rate_limit_headers(result) if include_headers else {},
        )

    return dependency


enforce_rate_limit = rate_limit()
