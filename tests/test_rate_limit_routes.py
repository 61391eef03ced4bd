"""Tests for the rate limit API routes and the HTTP caller layer.

The app under test owns a limiter driven by a fake clock (see conftest.py),
so window expiry is simulated by advancing the clock.
"""

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from app.adapters.rate_limit.base import RateLimitResult
from app.core.app_factory import create_app
from app.core.config import settings
from app.core.rate_limit import (
    build_rate_limit_headers,
    get_client_address,
    get_client_identifier,
)


def _request(headers: dict[str, str] | None = None, client: tuple[str, int] | None = ("10.0.0.9", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestCheckEndpoint:
    """POST /v1/rate-limit/check exposes the limiter as a service."""

    def test_documented_scenario(self, client: TestClient, fake_clock):
        body = {"identifier": "ip1", "max_requests": 3, "window_ms": 1000}

        remaining = []
        for _ in range(3):
            resp = client.post("/v1/rate-limit/check", json=body)
            assert resp.status_code == 200
            assert resp.json()["success"] is True
            remaining.append(resp.json()["remaining"])
            fake_clock.advance(10)
        assert remaining == [2, 1, 0]

        rejected = client.post("/v1/rate-limit/check", json=body)
        assert rejected.status_code == 200
        data = rejected.json()
        assert data == {
            "success": False,
            "message": "Te veel verzoeken, probeer het later opnieuw.",
            "remaining": 0,
            "reset": 1,
            "limit": 3,
            "statusCode": 429,
        }

        fake_clock.advance(1020)
        fresh = client.post("/v1/rate-limit/check", json=body)
        assert fresh.json()["success"] is True
        assert fresh.json()["remaining"] == 2

    def test_admission_omits_rejection_fields(self, client: TestClient):
        resp = client.post("/v1/rate-limit/check", json={"identifier": "user-1"})

        data = resp.json()
        assert data == {"success": True, "remaining": 59, "reset": 60, "limit": 60}

    def test_identifiers_do_not_affect_each_other(self, client: TestClient):
        body = {"max_requests": 1}
        client.post("/v1/rate-limit/check", json={"identifier": "ip1", **body})
        exhausted = client.post("/v1/rate-limit/check", json={"identifier": "ip1", **body})
        other = client.post("/v1/rate-limit/check", json={"identifier": "ip2", **body})

        assert exhausted.json()["success"] is False
        assert other.json()["success"] is True

    def test_custom_message_and_status(self, client: TestClient):
        body = {"identifier": "x", "max_requests": 1, "message": "slow down", "status_code": 503}
        client.post("/v1/rate-limit/check", json=body)

        data = client.post("/v1/rate-limit/check", json=body).json()
        assert data["message"] == "slow down"
        assert data["statusCode"] == 503

    def test_submitted_identifiers_are_namespaced(self, client: TestClient, limiter):
        client.post("/v1/rate-limit/check", json={"identifier": "ip:testclient", "max_requests": 1})

        assert limiter.get_record("check:ip:testclient").count == 1
        # the caller's own budget is tracked separately
        assert limiter.get_record("ip:testclient").count == 1

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"identifier": "a", "max_requests": 0},
            {"identifier": "a", "window_ms": 0},
            {"identifier": "a", "status_code": 200},
        ],
    )
    def test_invalid_payload_returns_422(self, client: TestClient, body: dict):
        resp = client.post("/v1/rate-limit/check", json=body)

        assert resp.status_code == 422


class TestEnforcement:
    """Protected routes map rejections to 429 with rate limit headers."""

    def test_admitted_response_carries_headers(self, client: TestClient):
        resp = client.get("/v1/ping")

        assert resp.status_code == 200
        assert resp.json()["message"] == "pong"
        assert resp.headers["X-RateLimit-Limit"] == str(settings.app.ping_rate_limit_max_requests)
        assert resp.headers["X-RateLimit-Remaining"] == str(settings.app.ping_rate_limit_max_requests - 1)
        assert resp.headers["X-RateLimit-Reset"] == str(settings.app.ping_rate_limit_window_ms // 1000)
        assert "Retry-After" not in resp.headers

    def test_scoped_route_keeps_its_own_counter(self, client: TestClient, limiter):
        client.get("/v1/ping")
        client.post("/v1/rate-limit/check", json={"identifier": "a"})

        assert limiter.get_record("ping:ip:testclient").count == 1
        assert limiter.get_record("ip:testclient").count == 1

    def test_exceeding_limit_returns_429(self, client: TestClient, monkeypatch):
        monkeypatch.setattr(settings.app, "rate_limit_max_requests", 2)
        body = {"identifier": "a"}

        assert client.post("/v1/rate-limit/check", json=body).status_code == 200
        assert client.post("/v1/rate-limit/check", json=body).status_code == 200
        resp = client.post("/v1/rate-limit/check", json=body)

        assert resp.status_code == 429
        assert resp.headers["Retry-After"] == "60"
        assert resp.headers["X-RateLimit-Limit"] == "2"
        assert resp.headers["X-RateLimit-Remaining"] == "0"
        assert resp.headers["X-RateLimit-Reset"] == "60"
        error = resp.json()["error"]
        assert error["code"] == "rate_limit_exceeded"
        assert error["message"] == "Te veel verzoeken, probeer het later opnieuw."
        assert error["details"] == {"limit": 2, "remaining": 0, "reset": 60}
        assert "request_id" in error

    def test_configured_status_code_is_used(self, client: TestClient, monkeypatch):
        monkeypatch.setattr(settings.app, "rate_limit_max_requests", 1)
        monkeypatch.setattr(settings.app, "rate_limit_status_code", 503)
        body = {"identifier": "a"}

        client.post("/v1/rate-limit/check", json=body)
        resp = client.post("/v1/rate-limit/check", json=body)

        assert resp.status_code == 503

    def test_window_expiry_readmits_client(self, client: TestClient, monkeypatch, fake_clock):
        monkeypatch.setattr(settings.app, "rate_limit_max_requests", 1)
        body = {"identifier": "a"}

        client.post("/v1/rate-limit/check", json=body)
        assert client.post("/v1/rate-limit/check", json=body).status_code == 429

        fake_clock.advance(settings.app.rate_limit_window_ms)
        assert client.post("/v1/rate-limit/check", json=body).status_code == 200

    def test_clients_are_limited_separately(self, client: TestClient, monkeypatch):
        monkeypatch.setattr(settings.app, "rate_limit_max_requests", 1)
        body = {"identifier": "a"}
        first = {"X-Forwarded-For": "203.0.113.1"}
        second = {"X-Forwarded-For": "203.0.113.2"}

        assert client.post("/v1/rate-limit/check", json=body, headers=first).status_code == 200
        assert client.post("/v1/rate-limit/check", json=body, headers=first).status_code == 429
        assert client.post("/v1/rate-limit/check", json=body, headers=second).status_code == 200

    def test_headers_can_be_disabled(self, client: TestClient, monkeypatch):
        monkeypatch.setattr(settings.app, "rate_limit_max_requests", 1)
        monkeypatch.setattr(settings.app, "rate_limit_include_headers", False)
        body = {"identifier": "a"}

        ok = client.post("/v1/rate-limit/check", json=body)
        blocked = client.post("/v1/rate-limit/check", json=body)

        assert "X-RateLimit-Remaining" not in ok.headers
        assert blocked.status_code == 429
        assert "Retry-After" not in blocked.headers

    def test_disabled_limiting_never_rejects(self, client: TestClient, monkeypatch, limiter):
        monkeypatch.setattr(settings.app, "rate_limit_enabled", False)

        for _ in range(3):
            resp = client.get("/v1/ping")
            assert resp.status_code == 200
            assert "X-RateLimit-Limit" not in resp.headers

        assert len(limiter) == 0


class TestStatusEndpoint:
    def test_reports_tracked_identifiers_without_consuming(self, client: TestClient, limiter):
        client.post("/v1/rate-limit/check", json={"identifier": "a"})

        resp = client.get("/v1/rate-limit/status")
        data = resp.json()

        assert resp.status_code == 200
        assert data["enabled"] is True
        assert data["tracked_identifiers"] == 2
        assert data["default_policy"] == {
            "window_ms": settings.app.rate_limit_window_ms,
            "max_requests": settings.app.rate_limit_max_requests,
            "status_code": settings.app.rate_limit_status_code,
        }
        assert limiter.get_record("ip:testclient").count == 1


class TestClientIdentification:
    def test_uses_first_forwarded_for_entry(self):
        request = _request({"X-Forwarded-For": " 198.51.100.7 , 10.0.0.1"})

        assert get_client_address(request) == "198.51.100.7"
        assert get_client_identifier(request) == "ip:198.51.100.7"

    def test_falls_back_to_real_ip(self):
        request = _request({"X-Real-IP": "198.51.100.8"})

        assert get_client_address(request) == "198.51.100.8"

    def test_falls_back_to_socket_peer(self):
        assert get_client_address(_request()) == "10.0.0.9"

    def test_unknown_when_nothing_available(self):
        assert get_client_address(_request(client=None)) == "unknown_ip"

    def test_ignores_proxy_headers_when_untrusted(self, monkeypatch):
        monkeypatch.setattr(settings.app, "trust_forwarded_headers", False)
        request = _request({"X-Forwarded-For": "198.51.100.7"})

        assert get_client_address(request) == "10.0.0.9"


def test_build_headers_only_adds_retry_after_on_rejection():
    admitted = RateLimitResult(success=True, remaining=4, reset=12, limit=5)
    rejected = RateLimitResult(success=False, remaining=0, reset=12, limit=5, message="m", status_code=429)

    assert build_rate_limit_headers(admitted) == {
        "X-RateLimit-Limit": "5",
        "X-RateLimit-Remaining": "4",
        "X-RateLimit-Reset": "12",
    }
    assert build_rate_limit_headers(rejected)["Retry-After"] == "12"


def test_health_reports_running_sweeper():
    app = create_app()

    with TestClient(app) as client:
        resp = client.get("/health")
        assert resp.json() == {"status": "ok", "sweeper": "running"}

    assert app.state.rate_limit_sweeper.running is False


def test_health_is_not_rate_limited(client: TestClient, monkeypatch, limiter):
    monkeypatch.setattr(settings.app, "rate_limit_max_requests", 1)

    for _ in range(3):
        assert client.get("/health").status_code == 200

    assert len(limiter) == 0


def test_openapi_documents_429(client: TestClient):
    schema = client.get("/openapi.json").json()

    assert "RateLimited" in schema["components"]["responses"]
    assert "429" in schema["paths"]["/v1/ping"]["get"]["responses"]
    assert "429" in schema["paths"]["/v1/rate-limit/check"]["post"]["responses"]
