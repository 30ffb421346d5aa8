"""Security headers middleware for FastAPI.

Adds the platform security headers to all responses. API responses also
get no-store cache headers since they may carry personal data. HSTS is
only sent outside debug mode.
"""

from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from gsos.core.config import Settings, get_settings
from gsos.core.headers import security_headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds security headers to all responses.

    Headers are configured based on production vs development mode.
    """

    def __init__(self, app, settings: Optional[Settings] = None, api_prefix: str = "/api"):
        super().__init__(app)
        self.settings = settings or get_settings()
        self.api_prefix = api_prefix

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        headers = security_headers(
            debug=self.settings.debug,
            include_cache_control=request.url.path.startswith(self.api_prefix),
            hsts_max_age=self.settings.hsts_max_age,
            csp_report_uri=self.settings.csp_report_uri,
        )
        for name, value in headers.items():
            response.headers[name] = value

        return response
