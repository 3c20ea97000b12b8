"""
chapterhub.database.engine — Database Connection & Async Helper
================================================================

SQLAlchemy + psycopg2 is synchronous while the API routes are ``async``.
Rather than running an async engine, route handlers ship blocking service
calls to a worker thread through :func:`run_db`:

    1. A request arrives on the event loop.
    2. The route calls ``await run_db(some_service_fn, engine, ...)``.
    3. ``run_db`` hands the function to the default thread pool via
       ``asyncio.to_thread()``.
    4. The result is awaited back in the route and serialised.

Usage::

    from chapterhub.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    entry = await run_db(points_service.grant, engine, member_id=..., ...)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine, event

from sqlalchemy.orm import Session

from chapterhub.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine() -> Engine:
    """Build a SQLAlchemy :class:`Engine` from the ``DATABASE_URL`` env var.

    The pool is sized for a single chapter's dashboard traffic:
    * ``pool_size=5``: five persistent connections.
    * ``max_overflow=10``: up to 10 extra connections under load.
    * ``pool_timeout=10``: fail after 10 s if no connection is available.
    * ``pool_recycle=3600``: recycle connections after 1 hour.

    Raises
    ------
    RuntimeError
        If ``DATABASE_URL`` is not set.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    engine = create_engine(
        url,
        echo=False,        # Set True for SQL debugging
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_timeout=10,
        pool_recycle=3600,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """Turn on ``PRAGMA foreign_keys`` for every new SQLite connection.

    Member deletion relies on ``ON DELETE CASCADE`` / ``SET NULL``, which
    SQLite ignores unless the pragma is set per connection.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine, *, seed: bool = True) -> None:
    """Create all tables defined in :mod:`chapterhub.database.models`.

    Safe to call on every startup (``CREATE TABLE IF NOT EXISTS`` under the
    hood).  With *seed* the starter objective catalogue is inserted when the
    catalogue is empty.

    .. note::

        In production the schema is managed by Alembic (``alembic upgrade
        head``).  ``create_all`` is retained as a safety net for dev/test
        environments where Alembic may not have run.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")

    if seed:
        from chapterhub.database.seed import seed_objectives

        seed_objectives(engine)


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that auto-commits on success and rolls back
    on exception.

    Usage::

        with get_session(engine) as session:
            session.add(Member(id="u-1", display_name="Amira"))
            # commit happens automatically on block exit
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    Under the hood it calls :func:`asyncio.to_thread`, which schedules
    *func* on the default ``ThreadPoolExecutor`` so the event loop is never
    blocked by a query.

    Parameters
    ----------
    func:
        Any sync callable (typically a service function that opens a
        session and runs queries).
    *args, **kwargs:
        Forwarded to *func*.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
