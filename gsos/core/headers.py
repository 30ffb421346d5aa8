"""Security response headers.

Pure function used by the HTTP layer; the values follow the platform
security configuration (HSTS with preload, a strict CSP, no framing).
"""

from typing import Dict, Optional

from gsos.core.config import get_settings

# Content Security Policy directives
CSP_DIRECTIVES: Dict[str, tuple] = {
    "default-src": ("'self'",),
    "script-src": ("'self'", "'unsafe-inline'", "https://js.stripe.com"),
    "style-src": ("'self'", "'unsafe-inline'", "https://fonts.googleapis.com"),
    "font-src": ("'self'", "https://fonts.gstatic.com"),
    "img-src": ("'self'", "data:", "https:"),
    "connect-src": ("'self'", "https://api.stripe.com", "https://*.amazonaws.com"),
    "frame-src": ("'none'",),
    "object-src": ("'none'",),
    "base-uri": ("'self'",),
    "form-action": ("'self'",),
}


def build_csp(report_uri: Optional[str] = None) -> str:
    parts = [f"{directive} {' '.join(values)}" for directive, values in CSP_DIRECTIVES.items()]
    if report_uri:
        parts.append(f"report-uri {report_uri}")
    return "; ".join(parts)


def security_headers(
    debug: Optional[bool] = None,
    include_cache_control: bool = True,
    hsts_max_age: Optional[int] = None,
    csp_report_uri: Optional[str] = None,
) -> Dict[str, str]:
    """Headers to attach to every response.

    HSTS is omitted in debug mode. Cache-control headers are for API
    responses, which may carry personal data and must never be cached.
    """
    settings = get_settings()
    debug = settings.debug if debug is None else debug
    hsts_max_age = settings.hsts_max_age if hsts_max_age is None else hsts_max_age
    csp_report_uri = csp_report_uri or settings.csp_report_uri

    headers = {
        "Content-Security-Policy": build_csp(csp_report_uri),
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "X-XSS-Protection": "1; mode=block",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    }

    if not debug:
        headers["Strict-Transport-Security"] = f"max-age={hsts_max_age}; includeSubDomains; preload"

    if include_cache_control:
        headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"
        headers["Pragma"] = "no-cache"
        headers["Expires"] = "0"
        headers["X-Robots-Tag"] = "noindex, nofollow"

    return headers
