from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import math
import time
from typing import Callable, Protocol

from fastapi import HTTPException, Request, Response, status
from redis.asyncio import Redis
from redis.exceptions import RedisError

from shuguridan.core.config import get_settings


logger = logging.getLogger(__name__)

ROUTE_CLASS_COMPILE = "compile"


@dataclass(frozen=True)
class RateLimitDecision:
    # Capture the outcome and retry hints for a rate-limited request.
    allowed: bool
    route_class: str
    limit: int
    remaining: int
    retry_after_ms: int


class RateLimiter(Protocol):
    async def check(self, *, key: str, route_class: str, limit: int, window_s: int) -> RateLimitDecision:
        ...


def client_ip(request: Request) -> str:
    # Trust proxy headers first; the left-most forwarded address is the caller.
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


class InMemoryRateLimiter:
    """Fixed-window counters held in process memory."""

    def __init__(self, *, time_provider: Callable[[], float] | None = None) -> None:
        # Allow injecting time for deterministic tests.
        self._time_provider = time_provider or time.monotonic
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = asyncio.Lock()

    def _sweep(self, now: float) -> None:
        expired = [key for key, (reset_at, _count) in self._windows.items() if reset_at <= now]
        for key in expired:
            del self._windows[key]

    async def check(self, *, key: str, route_class: str, limit: int, window_s: int) -> RateLimitDecision:
        async with self._lock:
            now = self._time_provider()
            self._sweep(now)
            bucket = f"{route_class}:{key}"
            record = self._windows.get(bucket)
            if record is None:
                # First request opens a new window.
                self._windows[bucket] = (now + window_s, 1)
                return RateLimitDecision(True, route_class, limit, max(limit - 1, 0), 0)

            reset_at, count = record
            if count >= limit:
                retry_after_ms = int(math.ceil((reset_at - now) * 1000))
                return RateLimitDecision(False, route_class, limit, 0, max(retry_after_ms, 0))

            self._windows[bucket] = (reset_at, count + 1)
            return RateLimitDecision(True, route_class, limit, max(limit - count - 1, 0), 0)


_redis_pool: Redis | None = None
_redis_loop: asyncio.AbstractEventLoop | None = None
_redis_lock = asyncio.Lock()


async def _get_redis() -> Redis:
    # Cache Redis connections to avoid reconnecting per request.
    global _redis_pool, _redis_loop
    current_loop = asyncio.get_running_loop()
    if _redis_pool is not None and _redis_loop == current_loop:
        return _redis_pool
    if _redis_pool is not None and _redis_loop != current_loop:
        _redis_pool = None
    async with _redis_lock:
        if _redis_pool is None:
            settings = get_settings()
            _redis_pool = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            _redis_loop = current_loop
    return _redis_pool


class RedisRateLimiter:
    """Fixed-window counters shared across workers through Redis INCR."""

    async def check(self, *, key: str, route_class: str, limit: int, window_s: int) -> RateLimitDecision:
        settings = get_settings()
        bucket = f"{settings.rl_redis_prefix}:{route_class}:{key}"
        redis = await _get_redis()
        async with redis.pipeline(transaction=True) as pipe:
            pipe.incr(bucket)
            pipe.pttl(bucket)
            count, ttl_ms = await pipe.execute()
        count = int(count)
        ttl_ms = int(ttl_ms)
        if count == 1 or ttl_ms < 0:
            # The window starts with the first request and expires on its own.
            await redis.pexpire(bucket, window_s * 1000)
            ttl_ms = window_s * 1000
        if count > limit:
            return RateLimitDecision(False, route_class, limit, 0, ttl_ms)
        return RateLimitDecision(True, route_class, limit, limit - count, 0)


_rate_limiter: RateLimiter | None = None


def _get_rate_limiter() -> RateLimiter:
    # Cache the limiter so every request shares the same counters.
    global _rate_limiter
    if _rate_limiter is None:
        backend = get_settings().rate_limit_backend.lower()
        _rate_limiter = RedisRateLimiter() if backend == "redis" else InMemoryRateLimiter()
    return _rate_limiter


def reset_rate_limiter_state() -> None:
    # Reset counters and cached Redis connections for deterministic test setup.
    global _rate_limiter, _redis_pool, _redis_loop
    _rate_limiter = None
    _redis_pool = None
    _redis_loop = None


def _throttle_exception(*, decision: RateLimitDecision, window_s: int) -> HTTPException:
    # Construct a stable 429 response with retry hints.
    retry_after_s = max(1, int(math.ceil(decision.retry_after_ms / 1000.0)))
    headers = {
        "Retry-After": str(retry_after_s),
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": "0",
        "X-RateLimit-Route-Class": decision.route_class,
    }
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail={
            "code": "RATE_LIMITED",
            "message": "Rate limit exceeded. Please try again later.",
            "limit": decision.limit,
            "windowS": window_s,
            "retryAfterMs": decision.retry_after_ms,
        },
        headers=headers,
    )


async def enforce_compile_rate_limit(request: Request, response: Response) -> None:
    """Dependency guarding the compiler endpoints with a per-IP fixed window."""
    settings = get_settings()
    if not settings.compile_rate_limit_enabled:
        return

    limit = settings.compile_rate_limit_requests
    window_s = settings.compile_rate_limit_window_s
    limiter = _get_rate_limiter()
    key = client_ip(request)
    try:
        decision = await limiter.check(key=key, route_class=ROUTE_CLASS_COMPILE, limit=limit, window_s=window_s)
    except (RedisError, OSError):
        # Fail open when the shared store is unreachable.
        response.headers["X-RateLimit-Status"] = "degraded"
        logger.warning("rate_limit_degraded path=%s", request.url.path)
        return

    if not decision.allowed:
        logger.info("rate_limited path=%s client=%s", request.url.path, key)
        raise _throttle_exception(decision=decision, window_s=window_s)
    response.headers["X-RateLimit-Limit"] = str(decision.limit)
    response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
