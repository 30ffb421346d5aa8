"""Rate limiting middleware for FastAPI.

Applies the process's injected rate limiter to every request:
- login endpoints use the strict login limits keyed by client IP
- authenticated principals are keyed by principal id
- anonymous requests are keyed by client IP

Denied requests get HTTP 429 with Retry-After and X-RateLimit-* headers.
Health check endpoints are excluded.
"""

import inspect
import time
from typing import Optional, Tuple

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from gsos.core.logger import log_security_event
from gsos.core.redaction import sanitize_ip

# Paths excluded from rate limiting
EXCLUDED_PATHS = {
    "/health",
    "/healthz",
}

LOGIN_PATH_SUFFIXES = ("/auth/login", "/auth/register")


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    # Check X-Forwarded-For header (set by reverse proxies)
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # Take the first IP (original client)
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware for rate limiting.

    Works with either the in-memory ``RateLimiter`` or the async
    ``RedisRateLimiter``.
    """

    def __init__(self, app, limiter, enabled: bool = True):
        super().__init__(app)
        self.limiter = limiter
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next) -> Response:
        if not self.enabled or request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        category, identifier = self._get_rate_params(request)
        if category == "login":
            check = self.limiter.check_login_attempt
        else:
            check = self.limiter.check_api_request
        if inspect.iscoroutinefunction(check):
            result = await check(identifier)
        else:
            # The in-memory limiter takes a lock and may write audit entries
            result = await run_in_threadpool(check, identifier)

        if not result.allowed:
            retry_after = 1
            if result.reset_time:
                retry_after = max(1, int((result.reset_time - time.time() * 1000) / 1000) + 1)
            log_security_event(
                "rate_limit_exceeded",
                "high" if category == "login" else "medium",
                category=category,
                path=request.url.path,
                ip_address=sanitize_ip(get_client_ip(request)),
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Rate limit exceeded. Please try again later."},
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(result.limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(result.reset_time or 0),
                },
            )

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        if result.reset_time:
            response.headers["X-RateLimit-Reset"] = str(result.reset_time)

        return response

    def _get_rate_params(self, request: Request) -> Tuple[str, str]:
        """
        Determine rate limit parameters based on request.

        Returns:
            Tuple of (category, identifier)
        """
        path = request.url.path

        if path.endswith(LOGIN_PATH_SUFFIXES):
            return "login", get_client_ip(request)

        principal = getattr(request.state, "principal", None)
        principal_id: Optional[str] = getattr(principal, "id", None)
        if principal_id:
            return "api", f"principal:{principal_id}"

        return "api", f"ip:{get_client_ip(request)}"
