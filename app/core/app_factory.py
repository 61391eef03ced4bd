"""Application factory for the FastAPI app.

Centralizes app construction (metadata, limiter ownership, lifespan,
middleware, handlers, routers) so tests can build isolated instances with
their own limiter.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.adapters.rate_limit.sweeper import RateLimitSweeper
from app.api.routes import health_router, rate_limit_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware, security_headers_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import default_options


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the expired-record sweep for as long as the app serves requests."""
    sweeper: RateLimitSweeper = app.state.rate_limit_sweeper
    await sweeper.start()
    try:
        yield
    finally:
        await sweeper.stop()


def create_app(limiter: AbstractRateLimiter | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        limiter: Limiter to own; an in-memory one built from settings when
            omitted.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="FibroGuardian Rate Limit API",
        description=(
            "Fixed-window request rate limiting for the FibroGuardian Pro API: "
            "per-client admission checks with X-RateLimit-* and Retry-After "
            "headers, and periodic cleanup of expired counters."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )

    if limiter is None:
        limiter = InMemoryFixedWindowRateLimiter(options=default_options())
    app.state.rate_limiter = limiter
    app.state.rate_limit_sweeper = RateLimitSweeper(
        app.state.rate_limiter,
        interval_seconds=settings.app.rate_limit_sweep_interval_seconds,
    )

    # Middleware (last registered runs first)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(rate_limit_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
