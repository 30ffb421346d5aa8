"""Rate limiting for login attempts and API calls.

``RateLimiter`` is an in-process fixed-window counter keyed by an arbitrary
string (client IP, principal id or a composite). It is an explicitly
constructed instance owned by the hosting process, never a module-level
singleton, so tests get isolated state and deployments can swap in
``RedisRateLimiter`` to share counters between workers.

Expired windows are swept opportunistically on every check once the sweep
interval has elapsed, and on demand via ``sweep()``. Between sweeps memory
grows with the number of distinct keys seen in that interval.
"""

import asyncio
import hashlib
import logging
import threading
import time
import uuid
from typing import Callable, Dict, NamedTuple, Optional

import redis.asyncio as redis

from gsos.core.audit.models import AuditSeverity
from gsos.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def hash_identifier(identifier: str) -> str:
    """Short stable digest of a rate limit key, so identifiers are never stored raw."""
    return hashlib.sha256(identifier.encode()).hexdigest()[:16]


class RateLimitResult(NamedTuple):
    """Outcome of one rate limit check.

    ``reset_time`` is the epoch time in milliseconds at which the current
    window ends.
    """
    allowed: bool
    reset_time: Optional[int]
    remaining: int
    limit: int


def _audit_lockout(audit_logger, identifier: str, result: RateLimitResult) -> None:
    # ip_address is truncated by the audit logger; the full key survives only as a digest
    audit_logger.record_security_event(
        "login_rate_limited",
        AuditSeverity.CRITICAL,
        reason="too many login attempts",
        ip_address=identifier,
        identifier_hash=hash_identifier(identifier),
        reset_time=result.reset_time,
    )


class _Window:
    __slots__ = ("count", "reset_time")

    def __init__(self, count: int, reset_time: int):
        self.count = count
        self.reset_time = reset_time


class RateLimiter:
    """Fixed-window rate limiter held in memory."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], int]] = None,
        audit_logger=None,
    ):
        self.settings = settings or get_settings()
        self.clock = clock or _now_ms
        self.audit_logger = audit_logger

        self.api_limit = self.settings.rate_limit_api
        self.api_window_ms = self.settings.rate_limit_api_window_ms
        self.login_limit = self.settings.rate_limit_login
        self.login_window_ms = self.settings.rate_limit_login_window_ms
        self.sweep_interval_ms = self.settings.rate_limit_sweep_interval_ms

        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._last_sweep = self.clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def check_rate_limit(
        self,
        key: str,
        window_ms: Optional[int] = None,
        max_requests: Optional[int] = None,
    ) -> RateLimitResult:
        """Count one request against ``key``.

        The first request for a key, or the first after its window expired,
        opens a new window with count 1. Once ``max_requests`` have been
        counted, further requests are denied until the window resets.
        """
        window_ms = window_ms if window_ms is not None else self.api_window_ms
        max_requests = max_requests if max_requests is not None else self.api_limit
        now = self.clock()

        with self._lock:
            if now - self._last_sweep >= self.sweep_interval_ms:
                self._sweep_locked(now)

            window = self._windows.get(key)
            if window is None or now > window.reset_time:
                window = _Window(count=1, reset_time=now + window_ms)
                self._windows[key] = window
                return RateLimitResult(True, window.reset_time, max(0, max_requests - 1), max_requests)

            if window.count >= max_requests:
                return RateLimitResult(False, window.reset_time, 0, max_requests)

            window.count += 1
            return RateLimitResult(True, window.reset_time, max_requests - window.count, max_requests)

    def check_login_attempt(self, identifier: str) -> RateLimitResult:
        """Login attempts: 5 per 15 minutes by default."""
        result = self.check_rate_limit(
            f"login:{identifier}", self.login_window_ms, self.login_limit
        )
        if not result.allowed:
            logger.warning("Login attempts rate limited")
            if self.audit_logger is not None:
                _audit_lockout(self.audit_logger, identifier, result)
        return result

    def check_api_request(self, identifier: str) -> RateLimitResult:
        """API requests: 100 per minute by default."""
        return self.check_rate_limit(f"api:{identifier}", self.api_window_ms, self.api_limit)

    def sweep(self) -> int:
        """Drop expired windows; returns how many were removed."""
        with self._lock:
            return self._sweep_locked(self.clock())

    def _sweep_locked(self, now: int) -> int:
        expired = [key for key, window in self._windows.items() if now > window.reset_time]
        for key in expired:
            del self._windows[key]
        self._last_sweep = now
        if expired:
            logger.debug("Swept %d expired rate limit windows", len(expired))
        return len(expired)


class RedisRateLimiter:
    """
    Sliding-window rate limiter using Redis.

    Each counted request is a member of a sorted set scored by its arrival
    time. Denied requests are not counted, and ``reset_time`` is when the
    oldest counted request leaves the window. Shares counters between
    processes; falls back to allowing requests if Redis is unavailable.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], int]] = None,
        audit_logger=None,
    ):
        self.settings = settings or get_settings()
        self.redis_url = redis_url or self.settings.redis_url
        self.clock = clock or _now_ms
        self.audit_logger = audit_logger
        self._redis: Optional[redis.Redis] = None

        self.api_limit = self.settings.rate_limit_api
        self.api_window_ms = self.settings.rate_limit_api_window_ms
        self.login_limit = self.settings.rate_limit_login
        self.login_window_ms = self.settings.rate_limit_login_window_ms

    async def get_redis(self) -> Optional[redis.Redis]:
        """Get or create Redis connection."""
        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                )
                await self._redis.ping()
            except (redis.RedisError, OSError) as e:
                logger.warning("Redis unavailable for rate limiting: %s", type(e).__name__)
                self._redis = None
        return self._redis

    def _get_key(self, key: str) -> str:
        # Hash the identifier so no PII lands in Redis
        return f"ratelimit:{hash_identifier(key)}"

    async def check_rate_limit(
        self,
        key: str,
        window_ms: Optional[int] = None,
        max_requests: Optional[int] = None,
    ) -> RateLimitResult:
        window_ms = window_ms if window_ms is not None else self.api_window_ms
        max_requests = max_requests if max_requests is not None else self.api_limit

        r = await self.get_redis()
        if r is None:
            # Redis unavailable - allow request but don't count it
            return RateLimitResult(True, None, max_requests, max_requests)

        redis_key = self._get_key(key)
        member = uuid.uuid4().hex
        now = self.clock()

        try:
            # Add first, then take it back if over the limit, so concurrent
            # checks can only under-admit.
            async with r.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(redis_key, 0, now - window_ms)
                pipe.zadd(redis_key, {member: now})
                pipe.zcard(redis_key)
                pipe.zrange(redis_key, 0, 0, withscores=True)
                pipe.pexpire(redis_key, window_ms)
                _, _, count, oldest, _ = await pipe.execute()

            if count > max_requests:
                await r.zrem(redis_key, member)
        except redis.RedisError as e:
            logger.warning("Rate limit check failed open: %s", type(e).__name__)
            return RateLimitResult(True, None, max_requests, max_requests)

        oldest_score = int(oldest[0][1]) if oldest else now
        reset_time = oldest_score + window_ms
        if count > max_requests:
            return RateLimitResult(False, reset_time, 0, max_requests)
        return RateLimitResult(True, reset_time, max_requests - count, max_requests)

    async def check_login_attempt(self, identifier: str) -> RateLimitResult:
        """Login attempts: 5 per 15 minutes by default."""
        result = await self.check_rate_limit(
            f"login:{identifier}", self.login_window_ms, self.login_limit
        )
        if not result.allowed:
            logger.warning("Login attempts rate limited")
            if self.audit_logger is not None:
                # Audit sinks block; keep them off the event loop
                await asyncio.to_thread(_audit_lockout, self.audit_logger, identifier, result)
        return result

    async def check_api_request(self, identifier: str) -> RateLimitResult:
        return await self.check_rate_limit(f"api:{identifier}", self.api_window_ms, self.api_limit)

    async def close(self):
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
