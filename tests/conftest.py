"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# JWT_SECRET must be set before chapterhub.api.deps is imported, because the
# secret is validated at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# SQLite has no JSONB; render it as TEXT (SQLAlchemy's JSON serialisation
# still applies).
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from chapterhub.config import ChapterHubConfig  # noqa: E402
from chapterhub.database.engine import enable_sqlite_foreign_keys  # noqa: E402
from chapterhub.database.models import Base, Member  # noqa: E402
from chapterhub.engine.policy import Actor  # noqa: E402

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


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with every ChapterHub table.

    StaticPool keeps one shared connection so worker threads started by
    ``run_db`` see the same database; foreign keys are switched on so
    member deletion cascades like it does on PostgreSQL.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def test_config() -> ChapterHubConfig:
    return ChapterHubConfig(organization_name="Test Chapter", dashboard_port=8000)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
def make_member(
    engine: Engine,
    member_id: str,
    *,
    role: str = "member",
    display_name: str | None = None,
    points: int = 0,
    validated: bool = True,
) -> Member:
    """Insert a member directly.  ``points`` bypasses the ledger, so only
    pass it when a test deliberately needs a cached total."""
    with Session(engine, expire_on_commit=False) as session:
        member = Member(
            id=member_id,
            display_name=display_name or member_id.title(),
            role=role,
            points=points,
            is_validated=validated,
        )
        session.add(member)
        session.commit()
        session.expunge(member)
        return member


def actor_for(member_id: str, role: str = "member") -> Actor:
    return Actor.from_role(member_id, role)


def make_token(sub: str, **claims) -> str:
    """Mint an HS256 JWT the way the identity provider would."""
    import jwt

    from chapterhub.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode({"sub": sub, **claims}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def auth_header(sub: str) -> dict:
    return {"Authorization": f"Bearer {make_token(sub)}"}


@pytest.fixture
def admin(db_engine) -> Actor:
    make_member(db_engine, "admin-1", role="admin", display_name="Admin One")
    return actor_for("admin-1", "admin")


@pytest.fixture
def alice(db_engine) -> Actor:
    make_member(db_engine, "alice", display_name="Alice")
    return actor_for("alice")


@pytest.fixture
def bob(db_engine) -> Actor:
    make_member(db_engine, "bob", display_name="Bob")
    return actor_for("bob")


@pytest.fixture
def client(db_engine, test_config):
    """TestClient bound to the in-memory database and test config."""
    from fastapi.testclient import TestClient

    from chapterhub.api.deps import get_config, get_engine
    from chapterhub.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: test_config
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
