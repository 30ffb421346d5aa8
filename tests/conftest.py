"""Pytest configuration and shared fixtures."""

import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from starlette.middleware.base import BaseHTTPMiddleware

from gsos.api.main import create_app
from gsos.core.access.engine import AccessDecisionEngine
from gsos.core.access.models import Principal
from gsos.core.audit.logger import AuditLogger
from gsos.core.audit.sinks import InMemoryAuditSink
from gsos.core.config import Settings
from gsos.core.ratelimit import RateLimiter
from gsos.db.session import init_db, make_session_factory


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FailingSink:
    """Audit sink whose writes always fail."""

    def __init__(self):
        self.attempts = 0

    def write(self, record):
        self.attempts += 1
        raise OSError("audit store unreachable")


@pytest.fixture
def settings():
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def make_principal():
    """Factory for principals with sensible defaults."""
    def _make(role="teacher", **overrides):
        data = {"id": f"user-{role}", "role": role, "school_id": "sch1"}
        data.update(overrides)
        return Principal(**data)
    return _make


@pytest.fixture
def audit_sink():
    return InMemoryAuditSink()


@pytest.fixture
def log_sink():
    return InMemoryAuditSink()


@pytest.fixture
def audit_logger(audit_sink, log_sink, settings):
    return AuditLogger(audit_sink, log_sink, settings=settings)


@pytest.fixture
def engine(audit_logger):
    return AccessDecisionEngine(audit_logger)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def failing_sink():
    return FailingSink()


@pytest.fixture
def db_session_factory():
    """SQLite in-memory audit store shared across sessions."""
    db_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(db_engine)
    yield make_session_factory(db_engine)
    db_engine.dispose()


class _TestIdentityMiddleware(BaseHTTPMiddleware):
    """Stands in for the upstream identity layer."""

    async def dispatch(self, request, call_next):
        raw = request.headers.get("x-test-principal")
        if raw:
            request.state.principal = Principal.model_validate(json.loads(raw))
        return await call_next(request)


@pytest.fixture
def make_app(settings, clock):
    """Factory for apps whose requests authenticate via X-Test-Principal."""
    def _make(audit_sink=None, settings=settings, rate_limiter=None):
        application = create_app(
            settings,
            audit_sink=audit_sink if audit_sink is not None else InMemoryAuditSink(),
            rate_limiter=rate_limiter or RateLimiter(settings=settings, clock=clock),
        )
        application.add_middleware(_TestIdentityMiddleware)
        return application
    return _make


@pytest.fixture
def app(make_app, audit_sink):
    return make_app(audit_sink)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def as_principal():
    """Headers that authenticate a request as the given principal."""
    def _headers(**fields):
        return {"X-Test-Principal": json.dumps(fields)}
    return _headers
