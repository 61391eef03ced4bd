from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness check, never rate limited.

    Reports whether the background sweep of expired rate limit records is
    running, so monitoring can tell a degraded (unbounded memory) instance
    apart from a healthy one.
    """

    sweeper = getattr(request.app.state, "rate_limit_sweeper", None)
    return {
        "status": "ok",
        "sweeper": "running" if sweeper is not None and sweeper.running else "stopped",
    }
