from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from gsos import __version__
from gsos.api.deps import INTERNAL_ERROR
from gsos.api.middleware.rate_limit import RateLimitMiddleware
from gsos.api.middleware.request_validation import RequestValidationMiddleware
from gsos.api.middleware.security_headers import SecurityHeadersMiddleware
from gsos.api.routers import audit
from gsos.core.access.engine import AccessDecisionEngine
from gsos.core.audit.logger import AuditLogger
from gsos.core.audit.sinks import AuditSink, DatabaseAuditSink, InMemoryAuditSink, LoggingAuditSink
from gsos.core.config import Settings, get_settings
from gsos.core.exceptions import AuditPersistenceFailure
from gsos.core.logger import setup_logger
from gsos.core.ratelimit import RateLimiter, RedisRateLimiter
from gsos.db.session import create_db_engine, init_db, make_session_factory


def _build_audit_sink(settings: Settings) -> AuditSink:
    if settings.audit_store == "database":
        engine = create_db_engine(settings.database_url)
        init_db(engine)
        return DatabaseAuditSink(make_session_factory(engine))
    return InMemoryAuditSink()


def _build_rate_limiter(settings: Settings, audit_logger: AuditLogger):
    if settings.rate_limit_backend == "redis":
        return RedisRateLimiter(settings=settings, audit_logger=audit_logger)
    return RateLimiter(settings=settings, audit_logger=audit_logger)


def create_app(
    settings: Optional[Settings] = None,
    *,
    audit_sink: Optional[AuditSink] = None,
    rate_limiter=None,
) -> FastAPI:
    """Build the access-control API.

    The audit sink and rate limiter are owned by the app and can be injected
    for tests or alternative deployments.
    """
    settings = settings or get_settings()

    setup_logger(
        "gsos",
        log_dir=settings.log_dir,
        level=settings.log_level,
        file_logging=settings.log_to_file,
    )

    audit_sink = audit_sink if audit_sink is not None else _build_audit_sink(settings)
    audit_logger = AuditLogger(audit_sink, LoggingAuditSink(), settings=settings)
    if rate_limiter is None:
        rate_limiter = _build_rate_limiter(settings, audit_logger)

    app = FastAPI(
        title=settings.app_name,
        description="Role-based access control and compliance audit trail",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.state.settings = settings
    app.state.audit_sink = audit_sink
    app.state.audit_logger = audit_logger
    app.state.access_engine = AccessDecisionEngine(audit_logger)
    app.state.rate_limiter = rate_limiter

    if settings.request_validation_enabled:
        app.add_middleware(RequestValidationMiddleware, settings=settings)
    app.add_middleware(
        RateLimitMiddleware,
        limiter=rate_limiter,
        enabled=settings.rate_limit_enabled,
    )
    app.add_middleware(SecurityHeadersMiddleware, settings=settings)

    @app.exception_handler(AuditPersistenceFailure)
    async def audit_failure_handler(request: Request, exc: AuditPersistenceFailure):
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": INTERNAL_ERROR},
        )

    app.include_router(audit.router, prefix="/api")

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": __version__}

    return app
