"""Request validation middleware for FastAPI.

Rejects requests before routing when:
- the declared body is larger than the configured maximum (413)
- the user agent is missing or implausibly short (400)
- the path or query string carries script-injection markers (400)

Responses stay generic; the reason goes to the security log.
"""

from typing import Callable, Optional
from urllib.parse import unquote

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from gsos.api.middleware.rate_limit import EXCLUDED_PATHS, get_client_ip
from gsos.core.config import Settings, get_settings
from gsos.core.logger import log_security_event
from gsos.core.redaction import sanitize_ip
from gsos.core.validation import validate_request

INVALID_REQUEST = "Invalid request"


class RequestValidationMiddleware(BaseHTTPMiddleware):

    def __init__(self, app, settings: Optional[Settings] = None):
        super().__init__(app)
        self.settings = settings or get_settings()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.settings.max_request_size_bytes:
            self._log_rejection(request, "request body too large")
            return JSONResponse(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                content={"detail": "Request body too large"},
            )

        result = validate_request(
            request.headers.get("user-agent"),
            unquote(request.url.path),
            unquote(request.url.query),
        )
        if not result.valid:
            self._log_rejection(request, result.error)
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": INVALID_REQUEST})

        return await call_next(request)

    def _log_rejection(self, request: Request, reason: Optional[str]) -> None:
        log_security_event(
            "request_rejected",
            "medium",
            reason=reason,
            method=request.method,
            ip_address=sanitize_ip(get_client_ip(request)),
        )
