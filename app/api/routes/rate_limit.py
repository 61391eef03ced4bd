from fastapi import APIRouter, Depends, Request

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.core.config import settings
from app.core.rate_limit import default_options, enforce_rate_limit, get_rate_limiter, rate_limit
from app.schemas.rate_limit import (
    RateLimitCheckRequest,
    RateLimitCheckResponse,
    RateLimitPolicy,
    RateLimitStatusResponse,
)

router = APIRouter(tags=["Rate limit"])

# Keys submitted through the check API live in their own namespace so they
# can never collide with the per-address keys of the HTTP layer.
CHECK_KEY_PREFIX = "check:"


@router.post(
    "/rate-limit/check",
    response_model=RateLimitCheckResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(enforce_rate_limit)],
)
async def check_rate_limit(
    payload: RateLimitCheckRequest,
    limiter: AbstractRateLimiter = Depends(get_rate_limiter),
) -> RateLimitCheckResponse:
    """Count one request for ``payload.identifier`` and return the decision.

    The response is 200 for both admissions and rejections; callers map
    ``success = false`` to their own error response using ``reset``,
    ``limit`` and ``remaining``. Callers should not retry the check.
    """
    options = default_options().with_overrides(
        window_ms=payload.window_ms,
        max_requests=payload.max_requests,
        message=payload.message,
        status_code=payload.status_code,
    )
    result = limiter.check_limit(f"{CHECK_KEY_PREFIX}{payload.identifier}", options)
    return RateLimitCheckResponse.from_result(result)


@router.get("/rate-limit/status", response_model=RateLimitStatusResponse)
async def rate_limit_status(
    limiter: AbstractRateLimiter = Depends(get_rate_limiter),
) -> RateLimitStatusResponse:
    """Report limiter state without consuming any budget."""
    options = default_options()
    return RateLimitStatusResponse(
        enabled=settings.app.rate_limit_enabled,
        tracked_identifiers=len(limiter),
        sweep_interval_seconds=settings.app.rate_limit_sweep_interval_seconds,
        default_policy=RateLimitPolicy(
            window_ms=options.window_ms,
            max_requests=options.max_requests,
            status_code=options.status_code,
        ),
    )


@router.get(
    "/ping",
    dependencies=[
        Depends(
            rate_limit(
                window_ms=settings.app.ping_rate_limit_window_ms,
                max_requests=settings.app.ping_rate_limit_max_requests,
                scope="ping",
            )
        )
    ],
)
async def ping(request: Request) -> dict:
    """Example protected route.

    Admitted requests carry ``X-RateLimit-*`` headers; the 429 response for
    exhausted clients is produced by the exception handlers.
    """
    return {"message": "pong", "path": request.url.path}
