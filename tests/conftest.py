"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of greenguardian.api.deps which
# validates the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import UTC, datetime  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine, event  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively; render it as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from greenguardian.config import GreenGuardianConfig  # noqa: E402
from greenguardian.database.models import Base  # noqa: E402
from greenguardian.database.seed import seed_default_settings  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()

# Fixed instant used by time-dependent tests
NOW = datetime(2026, 6, 15, 12, 0, 0, tzinfo=UTC)


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy own BEGIN so SAVEPOINTs behave under pysqlite."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all tables and default settings.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used by ``run_db``).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    seed_default_settings(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


def make_token(
    sub: str = "user-1",
    username: str = "Drew",
    role: str = "citizen",
    email: str | None = None,
) -> str:
    """Create a user JWT.  Usable as a factory in any test."""
    import jwt

    from greenguardian.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "username": username, "role": role, "email": email},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def test_config() -> GreenGuardianConfig:
    return GreenGuardianConfig(
        community_name="Test Town",
        community_motto="Greener together",
        dashboard_port=8000,
    )


@pytest.fixture
def client(db_engine, test_config):
    """FastAPI TestClient bound to the in-memory database."""
    from fastapi.testclient import TestClient

    from greenguardian.api import main
    from greenguardian.api.routes import hub, notifications, presence, settings, swap

    # Route modules hold the dependency objects they were imported with,
    # which survive a reload of greenguardian.api.deps.
    app = main.app
    for module in (main, hub, notifications, presence, settings, swap):
        app.dependency_overrides[module.get_engine] = lambda: db_engine
        if hasattr(module, "get_config"):
            app.dependency_overrides[module.get_config] = lambda: test_config
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
