from __future__ import annotations

import pytest
from fastapi import HTTPException
from starlette.requests import Request
from starlette.responses import Response

from shuguridan.apps.api import rate_limit
from shuguridan.core.config import get_settings


def _make_request(headers: dict[str, str] | None = None, client: tuple[str, int] | None = ("10.0.0.1", 1234)) -> Request:
    # Construct a minimal ASGI scope for client-key tests.
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/compile",
        "scheme": "http",
        "server": ("test", 80),
        "client": client,
        "headers": [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()],
        "query_string": b"",
    }
    return Request(scope)


def test_client_ip_prefers_forwarded_headers() -> None:
    assert rate_limit.client_ip(_make_request({"X-Forwarded-For": "1.1.1.1, 2.2.2.2"})) == "1.1.1.1"
    assert rate_limit.client_ip(_make_request({"X-Real-IP": "3.3.3.3"})) == "3.3.3.3"
    assert rate_limit.client_ip(_make_request()) == "10.0.0.1"
    assert rate_limit.client_ip(_make_request(client=None)) == "unknown"


@pytest.mark.asyncio
async def test_in_memory_fixed_window() -> None:
    now = {"t": 100.0}
    limiter = rate_limit.InMemoryRateLimiter(time_provider=lambda: now["t"])

    decisions = [
        await limiter.check(key="ip", route_class="compile", limit=3, window_s=60) for _ in range(3)
    ]
    assert [decision.remaining for decision in decisions] == [2, 1, 0]
    assert all(decision.allowed for decision in decisions)

    now["t"] = 130.0
    blocked = await limiter.check(key="ip", route_class="compile", limit=3, window_s=60)
    assert not blocked.allowed
    assert blocked.retry_after_ms == 30_000

    # Other clients have their own window.
    other = await limiter.check(key="other", route_class="compile", limit=3, window_s=60)
    assert other.allowed

    now["t"] = 160.0
    reopened = await limiter.check(key="ip", route_class="compile", limit=3, window_s=60)
    assert reopened.allowed
    assert reopened.remaining == 2


def test_throttle_exception_carries_retry_hints() -> None:
    decision = rate_limit.RateLimitDecision(False, "compile", 10, 0, 1500)
    exc = rate_limit._throttle_exception(decision=decision, window_s=60)

    assert exc.status_code == 429
    assert exc.headers["Retry-After"] == "2"
    assert exc.detail["code"] == "RATE_LIMITED"
    assert exc.detail["retryAfterMs"] == 1500


@pytest.mark.asyncio
async def test_enforce_compile_rate_limit_blocks_after_limit(monkeypatch) -> None:
    monkeypatch.setenv("COMPILE_RATE_LIMIT_REQUESTS", "2")
    get_settings.cache_clear()
    rate_limit.reset_rate_limiter_state()
    request = _make_request({"X-Forwarded-For": "9.9.9.9"})

    for _ in range(2):
        response = Response()
        await rate_limit.enforce_compile_rate_limit(request, response)
    assert response.headers["X-RateLimit-Remaining"] == "0"

    with pytest.raises(HTTPException) as excinfo:
        await rate_limit.enforce_compile_rate_limit(request, Response())
    assert excinfo.value.status_code == 429


@pytest.mark.asyncio
async def test_enforce_compile_rate_limit_can_be_disabled(monkeypatch) -> None:
    monkeypatch.setenv("COMPILE_RATE_LIMIT_ENABLED", "false")
    monkeypatch.setenv("COMPILE_RATE_LIMIT_REQUESTS", "1")
    get_settings.cache_clear()
    request = _make_request()

    for _ in range(3):
        await rate_limit.enforce_compile_rate_limit(request, Response())


@pytest.mark.asyncio
async def test_redis_failure_fails_open(monkeypatch) -> None:
    class BrokenLimiter:
        async def check(self, **_kwargs):
            raise ConnectionRefusedError("redis down")

    monkeypatch.setattr(rate_limit, "_get_rate_limiter", lambda: BrokenLimiter())
    response = Response()
    await rate_limit.enforce_compile_rate_limit(_make_request(), response)

    assert response.headers["X-RateLimit-Status"] == "degraded"
