from __future__ import annotations

import asyncio

import httpx
import pytest

from shuguridan.services.resilience import RetryPolicy, is_transient_http_error, retry_async


@pytest.mark.asyncio
async def test_retry_async_retries_transient() -> None:
    calls = {"count": 0}

    async def flaky() -> str:
        calls["count"] += 1
        if calls["count"] < 2:
            raise TimeoutError("timeout")
        return "ok"

    result = await retry_async(
        flaky,
        policy=RetryPolicy(timeout_ms=100, max_attempts=2, backoff_ms=1),
    )
    assert result == "ok"
    assert calls["count"] == 2


@pytest.mark.asyncio
async def test_retry_async_does_not_retry_client_errors() -> None:
    calls = {"count": 0}

    async def rejected() -> None:
        calls["count"] += 1
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        await retry_async(rejected, policy=RetryPolicy(timeout_ms=100, max_attempts=3, backoff_ms=1))
    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_retry_async_enforces_timeout() -> None:
    async def slow() -> None:
        await asyncio.sleep(1)

    with pytest.raises(TimeoutError):
        await retry_async(slow, policy=RetryPolicy(timeout_ms=10, max_attempts=1, backoff_ms=1))


def test_is_transient_http_error() -> None:
    request = httpx.Request("POST", "https://api.test/embeddings")
    server_error = httpx.HTTPStatusError("boom", request=request, response=httpx.Response(502, request=request))
    client_error = httpx.HTTPStatusError("nope", request=request, response=httpx.Response(400, request=request))

    assert is_transient_http_error(httpx.ConnectError("refused", request=request))
    assert is_transient_http_error(server_error)
    assert not is_transient_http_error(client_error)
