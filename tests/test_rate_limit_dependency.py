"""Tests for the FastAPI rate limit dependencies and 429 mapping."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from app.adapters.rate_limit import PolicyConfig, create_limiter
from app.core.app_factory import create_app
from app.core.config import settings
from app.core.rate_limit import (
    RateLimiterRegistry,
    UNKNOWN_CLIENT_KEY,
    enforce_ai_rate_limit,
    enforce_general_rate_limit,
    enforce_transcription_rate_limit,
    get_client_key,
)


@pytest.fixture
def clock() -> Mock:
    return Mock(return_value=1_000_000.0)


@pytest.fixture
def registry(clock: Mock) -> RateLimiterRegistry:
    def build(name: str, max_requests: int) -> object:
        return create_limiter(
            PolicyConfig(
                window_duration_ms=60_000,
                max_requests_per_window=max_requests,
                rejection_message=f"{name} limit hit",
                name=name,
            ),
            clock=clock,
        )

    return RateLimiterRegistry(
        {
            "general": build("general", 5),
            "ai": build("ai", 1),
            "transcription": build("transcription", 2),
        }
    )


@pytest.fixture
def limited_app(registry: RateLimiterRegistry) -> FastAPI:
    app = create_app(registry=registry)

    @app.post(
        "/api/generate-note",
        dependencies=[Depends(enforce_general_rate_limit), Depends(enforce_ai_rate_limit)],
    )
    def generate_note() -> dict:
        return {"note": "generated"}

    @app.post(
        "/api/transcription",
        dependencies=[
            Depends(enforce_general_rate_limit),
            Depends(enforce_transcription_rate_limit),
        ],
    )
    def transcribe() -> dict:
        return {"transcript": "ok"}

    return app


@pytest.fixture
def limited_client(limited_app: FastAPI) -> TestClient:
    return TestClient(limited_app)


def test_general_limit_returns_429_with_retry_after(
    limited_client: TestClient, clock: Mock
) -> None:
    for _ in range(5):
        assert limited_client.get("/api/rate-limits").status_code == 200

    clock.return_value = 1_000_000.0 + 15_500
    resp = limited_client.get("/api/rate-limits")

    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "45"
    body = resp.json()
    assert body["error"]["code"] == "rate_limit_exceeded"
    assert body["error"]["message"] == "general limit hit"
    assert body["error"]["details"] == {"retry_after": 45}
    assert "request_id" in body["error"]


def test_rejection_does_not_disclose_counters(limited_client: TestClient) -> None:
    for _ in range(6):
        resp = limited_client.get("/api/rate-limits")

    assert resp.status_code == 429
    assert set(resp.json()["error"]["details"]) == {"retry_after"}
    assert "X-RateLimit-Remaining" not in resp.headers


def test_window_rollover_admits_again(limited_client: TestClient, clock: Mock) -> None:
    for _ in range(6):
        limited_client.get("/api/rate-limits")

    clock.return_value = 1_000_000.0 + 60_001
    assert limited_client.get("/api/rate-limits").status_code == 200


def test_rejected_request_never_reaches_route(limited_app: FastAPI) -> None:
    calls: list[int] = []

    @limited_app.get("/api/counted", dependencies=[Depends(enforce_general_rate_limit)])
    def counted() -> dict:
        calls.append(1)
        return {}

    client = TestClient(limited_app)
    responses = [client.get("/api/counted").status_code for _ in range(7)]

    assert responses == [200] * 5 + [429] * 2
    assert len(calls) == 5


def test_ai_limit_uses_its_own_message(limited_client: TestClient) -> None:
    first = limited_client.post("/api/generate-note")
    second = limited_client.post("/api/generate-note")

    assert first.status_code == 200
    assert second.status_code == 429
    assert second.json()["error"]["message"] == "ai limit hit"


def test_ai_route_also_counts_against_general_budget(limited_client: TestClient) -> None:
    for _ in range(5):
        assert limited_client.get("/api/rate-limits").status_code == 200

    resp = limited_client.post("/api/generate-note")

    assert resp.status_code == 429
    assert resp.json()["error"]["message"] == "general limit hit"


def test_policies_are_independent(limited_client: TestClient) -> None:
    assert limited_client.post("/api/generate-note").status_code == 200
    assert limited_client.post("/api/generate-note").status_code == 429

    assert limited_client.post("/api/transcription").status_code == 200
    assert limited_client.post("/api/transcription").status_code == 200
    assert limited_client.post("/api/transcription").status_code == 429


def test_health_is_not_rate_limited(limited_client: TestClient) -> None:
    for _ in range(20):
        assert limited_client.get("/health").status_code == 200


def test_apps_do_not_share_limiter_state() -> None:
    first = TestClient(create_app())
    second = TestClient(create_app())

    limit = settings.rate_limit.general_max_requests
    for _ in range(limit):
        first.get("/api/rate-limits")

    assert first.get("/api/rate-limits").status_code == 429
    assert second.get("/api/rate-limits").status_code == 200


def test_disabled_rate_limiting_admits_everything(
    limited_client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings.rate_limit, "enabled", False)

    for _ in range(10):
        assert limited_client.post("/api/generate-note").status_code == 200


def test_retry_after_header_can_be_disabled(
    limited_client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings.rate_limit, "include_headers", False)

    limited_client.post("/api/generate-note")
    resp = limited_client.post("/api/generate-note")

    assert resp.status_code == 429
    assert "Retry-After" not in resp.headers
    assert resp.json()["error"]["details"]["retry_after"] == 60


class TestClientKey:
    def _request(self, *, client=("10.0.0.1", 1234), headers=None):
        request = Mock()
        request.client = Mock(host=client[0], port=client[1]) if client else None
        request.headers = headers or {}
        return request

    def test_uses_peer_address(self) -> None:
        assert get_client_key(self._request()) == "10.0.0.1"

    def test_falls_back_to_unknown(self) -> None:
        assert get_client_key(self._request(client=None)) == UNKNOWN_CLIENT_KEY
        assert UNKNOWN_CLIENT_KEY == "unknown"

    def test_ignores_forwarded_for_by_default(self) -> None:
        request = self._request(headers={"x-forwarded-for": "203.0.113.9"})

        assert get_client_key(request) == "10.0.0.1"

    def test_uses_first_forwarded_hop_when_trusted(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings.rate_limit, "trust_forwarded_for", True)
        request = self._request(headers={"x-forwarded-for": "203.0.113.9, 10.0.0.2"})

        assert get_client_key(request) == "203.0.113.9"

    def test_trusted_but_missing_header_uses_peer(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings.rate_limit, "trust_forwarded_for", True)

        assert get_client_key(self._request()) == "10.0.0.1"

    def test_forwarded_clients_get_separate_budgets(
        self, limited_app: FastAPI, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings.rate_limit, "trust_forwarded_for", True)
        client = TestClient(limited_app)

        a = client.post("/api/generate-note", headers={"X-Forwarded-For": "198.51.100.1"})
        b = client.post("/api/generate-note", headers={"X-Forwarded-For": "198.51.100.2"})
        a_again = client.post("/api/generate-note", headers={"X-Forwarded-For": "198.51.100.1"})

        assert (a.status_code, b.status_code, a_again.status_code) == (200, 200, 429)
