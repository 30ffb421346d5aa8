from gsos.api.middleware.rate_limit import RateLimitMiddleware
from gsos.api.middleware.request_validation import RequestValidationMiddleware
from gsos.api.middleware.security_headers import SecurityHeadersMiddleware

__all__ = ["RateLimitMiddleware", "RequestValidationMiddleware", "SecurityHeadersMiddleware"]
