"""Engine and session helpers for the statements database.

Usage
-----
from db.client import session_scope

with session_scope() as s:
    save_statement(s, meta, transactions)

The URL comes from ``DATABASE_URL`` unless a ``database_url`` override is
passed. One engine is bound per process; :func:`dispose_engine` releases it so
a later call (a test, or a CLI run pointed at another database) can bind a new
URL.

SQLite connections get ``PRAGMA foreign_keys = ON`` so deleting a statement
cascades to its transactions, access tokens and notifications the same way it
does on Postgres.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker


@dataclass(slots=True)
class _Bound:
    url: str
    engine: Engine
    sessions: sessionmaker[Session]


_BOUND: _Bound | None = None


def _database_url(override: str | None = None) -> str:
    url = override or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot open the statements database")
    return url


def _enable_sqlite_foreign_keys(dbapi_conn: Any, _record: Any) -> None:
    cur = dbapi_conn.cursor()
    try:
        cur.execute("PRAGMA foreign_keys = ON")
    finally:
        cur.close()


def _bind(url: str) -> _Bound:
    engine = create_engine(url, pool_pre_ping=True)
    if make_url(url).get_backend_name() == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return _Bound(
        url=url,
        engine=engine,
        sessions=sessionmaker(bind=engine, expire_on_commit=False, class_=Session),
    )


def get_engine(*, database_url: str | None = None) -> Engine:
    """Return the process-wide engine, creating it on first use.

    Raises ``RuntimeError`` when no URL is configured, or when a different URL
    is requested while an engine is already bound.
    """

    global _BOUND
    url = _database_url(database_url)
    if _BOUND is None:
        _BOUND = _bind(url)
    elif url != _BOUND.url:
        raise RuntimeError(
            "statements database already bound to a different URL; "
            "call dispose_engine() before switching"
        )
    return _BOUND.engine


def get_session(*, database_url: str | None = None) -> Session:
    get_engine(database_url=database_url)
    assert _BOUND is not None
    return _BOUND.sessions()


def dispose_engine() -> None:
    """Close pooled connections and forget the bound URL."""

    global _BOUND
    if _BOUND is not None:
        _BOUND.engine.dispose()
    _BOUND = None


@contextmanager
def session_scope(*, database_url: str | None = None) -> Iterator[Session]:
    """Commit on success, roll back on any exception, always close."""

    session = get_session(database_url=database_url)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "dispose_engine",
    "get_engine",
    "get_session",
    "session_scope",
]
