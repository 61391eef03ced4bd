"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- A shared ``RateLimited`` response documenting 429 and its headers,
  referenced by every rate limited operation

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

RATE_LIMITED_PATHS = ("/v1/rate-limit/check", "/v1/ping")


def _integer_header(description: str) -> Dict[str, Any]:
    return {"description": description, "schema": {"type": "integer"}}


def _rate_limited_response() -> Dict[str, Any]:
    return {
        "description": "Too many requests from this client in the current window.",
        "headers": {
            "Retry-After": _integer_header("Seconds until the window resets."),
            "X-RateLimit-Limit": _integer_header("Maximum requests per window."),
            "X-RateLimit-Remaining": _integer_header("Requests left in the current window."),
            "X-RateLimit-Reset": _integer_header("Seconds until the window resets."),
        },
        "content": {
            "application/json": {
                "example": {
                    "error": {
                        "code": "rate_limit_exceeded",
                        "message": "Te veel verzoeken, probeer het later opnieuw.",
                        "request_id": "3f0c1f9e-8c1b-4a57-9d55-0d6c2b1e7a10",
                        "details": {"limit": 60, "remaining": 0, "reset": 42},
                    }
                }
            }
        },
    }


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and 429 documentation."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        responses = components.setdefault("responses", {})
        responses.setdefault("RateLimited", _rate_limited_response())

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Rate limit",
                "description": "Fixed-window rate limit checks and limiter status.",
            },
            {
                "name": "Health",
                "description": "Liveness checks.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        paths = schema.get("paths", {})
        for path, methods in paths.items():
            if path not in RATE_LIMITED_PATHS:
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj.setdefault("responses", {}).setdefault(
                        "429", {"$ref": "#/components/responses/RateLimited"}
                    )

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
