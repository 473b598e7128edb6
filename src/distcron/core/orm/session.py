"""
SQLAlchemy engine factory, session factory and startup helpers.

Manifesto:
    Every scheduler node, API worker and CLI command opens the job store
    the same way: one engine per process, short sessions per operation,
    ``expire_on_commit=False`` so returned rows stay readable.

This module provides:

* ``create_distcron_engine`` -- engine with SQLite pragmas / pool settings.
* ``DistcronSession``        -- ``Session`` subclass with ``expire_on_commit=False``.
* ``session_factory``        -- ``sessionmaker`` bound to an engine.
* ``init_schema``            -- create ``jobs`` / ``job_history`` if absent.
* ``wait_for_database``      -- bounded connect retry used at startup.

Tags:
    distcron, orm, sqlalchemy, session, engine

Doc-Types:
    api-reference
"""

from __future__ import annotations

import time
from typing import Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from distcron.core.errors import StoreUnavailableError
from distcron.core.logging import get_logger
from distcron.core.orm.base import DistcronBase

logger = get_logger(__name__)

_MEMORY_URLS = {"sqlite://", "sqlite:///:memory:"}


def is_memory_url(url: str) -> bool:
    """Return whether *url* names a private in-memory SQLite database."""
    return url in _MEMORY_URLS


def create_distcron_engine(
    url: str = "sqlite:///distcron.db",
    *,
    echo: bool = False,
    pool_size: int | None = None,
    max_overflow: int | None = None,
    pool_timeout: int | None = None,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    Parameters
    ----------
    url:
        Database URL (``sqlite:///…``, ``postgresql+psycopg://…``).
    echo:
        If ``True``, log all SQL.
    pool_size, max_overflow, pool_timeout:
        Connection pool parameters (ignored for SQLite).
    **kwargs:
        Extra arguments forwarded to ``sqlalchemy.create_engine``.
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        if is_memory_url(url):
            # one shared connection, otherwise every checkout sees an empty database
            kwargs.setdefault("poolclass", StaticPool)

        engine = _sa_create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    pool_kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if pool_size is not None:
        pool_kwargs["pool_size"] = pool_size
    if max_overflow is not None:
        pool_kwargs["max_overflow"] = max_overflow
    if pool_timeout is not None:
        pool_kwargs["pool_timeout"] = pool_timeout

    return _sa_create_engine(url, echo=echo, **pool_kwargs, **kwargs)


class DistcronSession(Session):
    """Pre-configured session with ``expire_on_commit=False``."""

    def __init__(self, bind: Engine | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("expire_on_commit", False)
        super().__init__(bind=bind, **kwargs)


def session_factory(engine: Engine) -> sessionmaker[DistcronSession]:
    """Return a ``sessionmaker`` bound to *engine* that produces ``DistcronSession`` instances."""
    return sessionmaker(bind=engine, class_=DistcronSession)


def init_schema(engine: Engine) -> None:
    """Create the ``jobs`` and ``job_history`` tables if they do not exist."""
    from distcron.core.orm import tables  # noqa: F401  (registers the mappings)

    DistcronBase.metadata.create_all(engine)
    logger.info("schema_initialized", url=engine.url.render_as_string(hide_password=True))


def wait_for_database(
    engine: Engine,
    *,
    attempts: int = 5,
    delay_seconds: float = 2.0,
    sleep: Any = time.sleep,
) -> None:
    """Block until the database answers ``SELECT 1``.

    Makes up to *attempts* connection attempts, sleeping *delay_seconds*
    between them.

    Raises:
        StoreUnavailableError: when every attempt failed.
    """
    last_error: SQLAlchemyError | None = None
    for attempt in range(1, attempts + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            if attempt > 1:
                logger.info("database_connected", attempt=attempt)
            return
        except SQLAlchemyError as exc:
            last_error = exc
            logger.warning(
                "database_connect_failed",
                attempt=attempt,
                attempts=attempts,
                error=str(exc),
            )
            if attempt < attempts:
                sleep(delay_seconds)

    raise StoreUnavailableError(
        f"database unreachable after {attempts} attempts",
        cause=last_error,
    )
