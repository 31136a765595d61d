# src/hospital_api/api/rate_limit.py
"""Per-client rate limiting for the guarded endpoints.

The OAuth endpoints run before any user exists, so callers are bucketed by
client address rather than by account. Each bucket is a sliding window of
request timestamps.

Set REDIS_URL to share windows across workers. The Redis limiter fails
open: when Redis errors, the request is let through and a warning logged.
"""

from __future__ import annotations

import logging
import os
import time
from collections import deque
from dataclasses import dataclass

from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    requests: int
    window_seconds: int


RATE_LIMITS = {
    "oauth": RateLimitRule(requests=20, window_seconds=60),
    "mfa": RateLimitRule(requests=10, window_seconds=60),
    "appointments_write": RateLimitRule(requests=60, window_seconds=60),
    "default": RateLimitRule(requests=100, window_seconds=60),
}

SWEEP_INTERVAL_SECONDS = 60


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float
    limit: int

    @classmethod
    def from_count(cls, seen: int, rule: RateLimitRule, now: float) -> RateLimitResult:
        """Build the result for a window that already held ``seen`` requests."""
        allowed = seen < rule.requests
        return cls(
            allowed=allowed,
            remaining=max(0, rule.requests - seen - 1) if allowed else 0,
            reset_at=now + rule.window_seconds,
            limit=rule.requests,
        )


def bucket_key(client_key: str, endpoint: str) -> str:
    return f"{endpoint}:{client_key}"


def _expire(window: deque[float], now: float, window_seconds: int) -> None:
    while window and window[0] <= now - window_seconds:
        window.popleft()


class InMemoryRateLimiter:
    """Process-local sliding windows, one deque of timestamps per bucket.

    Buckets whose window has emptied are dropped, either when they are hit
    again or by a periodic sweep, so idle clients do not accumulate.
    """

    def __init__(self):
        self._windows: dict[str, deque[float]] = {}
        self._spans: dict[str, int] = {}
        self._last_sweep = time.time()

    def __len__(self) -> int:
        return len(self._windows)

    def hit(self, bucket: str, rule: RateLimitRule) -> RateLimitResult:
        now = time.time()
        if now - self._last_sweep >= SWEEP_INTERVAL_SECONDS:
            self.sweep(now)

        window = self._windows.get(bucket, deque())
        _expire(window, now, rule.window_seconds)

        result = RateLimitResult.from_count(len(window), rule, now)
        if result.allowed:
            window.append(now)

        if window:
            self._windows[bucket] = window
            self._spans[bucket] = rule.window_seconds
        else:
            self._drop(bucket)
        return result

    def sweep(self, now: float | None = None) -> None:
        """Drop every bucket with no requests left inside its window."""
        now = time.time() if now is None else now
        self._last_sweep = now
        for bucket in list(self._windows):
            _expire(self._windows[bucket], now, self._spans[bucket])
            if not self._windows[bucket]:
                self._drop(bucket)

    def _drop(self, bucket: str) -> None:
        self._windows.pop(bucket, None)
        self._spans.pop(bucket, None)


class RedisRateLimiter:
    """Sliding windows kept in Redis sorted sets, shared by all workers."""

    def __init__(self, redis_client):
        self._redis = redis_client

    def hit(self, bucket: str, rule: RateLimitRule) -> RateLimitResult:
        now = time.time()
        key = f"ratelimit:{bucket}"
        member = str(now)

        try:
            pipe = self._redis.pipeline()
            pipe.zremrangebyscore(key, 0, now - rule.window_seconds)
            pipe.zcard(key)
            pipe.zadd(key, {member: now})
            pipe.expire(key, rule.window_seconds + 1)
            seen = pipe.execute()[1]

            result = RateLimitResult.from_count(seen, rule, now)
            if not result.allowed:
                # Rejected requests do not occupy the window
                self._redis.zrem(key, member)
            return result
        except Exception as e:
            logger.warning(f"Redis rate limit error, allowing request: {e}")
            return RateLimitResult(
                allowed=True,
                remaining=rule.requests,
                reset_at=now + rule.window_seconds,
                limit=rule.requests,
            )


_rate_limiter: InMemoryRateLimiter | RedisRateLimiter | None = None


def _connect_limiter() -> InMemoryRateLimiter | RedisRateLimiter:
    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        logger.info("Using in-memory rate limiter (no REDIS_URL)")
        return InMemoryRateLimiter()

    try:
        import redis

        client = redis.from_url(redis_url)
        client.ping()
    except Exception as e:
        logger.warning(f"Redis unavailable, using in-memory rate limiter: {e}")
        return InMemoryRateLimiter()

    logger.info("Using Redis rate limiter")
    return RedisRateLimiter(client)


def get_rate_limiter() -> InMemoryRateLimiter | RedisRateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = _connect_limiter()
    return _rate_limiter


def reset_rate_limiter() -> None:
    """Drop the limiter and every window it holds (for testing)."""
    global _rate_limiter
    _rate_limiter = None


def check_rate_limit(client_key: str, endpoint: str = "default") -> RateLimitResult:
    """Record one request from ``client_key`` against an endpoint's rule.

    Unknown endpoint names fall back to the ``default`` rule.
    """
    rule = RATE_LIMITS.get(endpoint, RATE_LIMITS["default"])
    return get_rate_limiter().hit(bucket_key(client_key, endpoint), rule)


def rate_limit_response(result: RateLimitResult) -> HTTPException:
    """429 with Retry-After and X-RateLimit-* headers."""
    retry_after = max(0, int(result.reset_at - time.time()))
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
        headers={
            "Retry-After": str(retry_after),
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(int(result.reset_at)),
        },
    )


def require_rate_limit(endpoint: str = "default"):
    """Route dependency that limits requests per client address.

    Usage:
        @router.get("/oauth/login", dependencies=[Depends(require_rate_limit("oauth"))])
    """

    def limit_by_client(request: Request) -> None:
        client_key = request.client.host if request.client else "unknown"
        result = check_rate_limit(client_key, endpoint)
        if not result.allowed:
            logger.warning(f"Rate limit exceeded for {endpoint} from {client_key}")
            raise rate_limit_response(result)

    return limit_by_client
