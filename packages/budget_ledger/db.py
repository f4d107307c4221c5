"""SQLAlchemy engine/session helpers.

Usage
-----
from budget_ledger.db import session_scope

with session_scope() as s:
    s.execute(...)
"""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

DEFAULT_DATABASE_URL = "sqlite:///budget_ledger.db"

_LOCK = threading.Lock()
_ENGINES: dict[str, Engine] = {}
_SESSION_MAKERS: dict[str, sessionmaker[Session]] = {}


class Base(DeclarativeBase):
    pass


def resolve_database_url(override: str | None = None) -> str:
    return override or os.getenv("BUDGET_LEDGER_DATABASE_URL") or DEFAULT_DATABASE_URL


def get_engine(*, database_url: str | None = None) -> Engine:
    """Return the engine for a URL, creating it (and the schema) on first use."""

    url = resolve_database_url(database_url)
    with _LOCK:
        engine = _ENGINES.get(url)
        if engine is None:
            engine = create_engine(url, pool_pre_ping=True)
            # Tables are registered on Base when the ORM module is imported.
            from . import persistence  # noqa: F401

            Base.metadata.create_all(engine)
            _SESSION_MAKERS[url] = sessionmaker(bind=engine, expire_on_commit=False, class_=Session)
            _ENGINES[url] = engine
        return engine


def get_session(*, database_url: str | None = None) -> Session:
    """Return a new SQLAlchemy session bound to the engine for the URL."""

    url = resolve_database_url(database_url)
    get_engine(database_url=url)
    return _SESSION_MAKERS[url]()


@contextmanager
def session_scope(*, database_url: str | None = None) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = get_session(database_url=database_url)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def dispose_engines() -> None:
    """Dispose every cached engine (used by tests and at CLI exit)."""

    with _LOCK:
        for engine in _ENGINES.values():
            engine.dispose()
        _ENGINES.clear()
        _SESSION_MAKERS.clear()


__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "resolve_database_url",
    "dispose_engines",
    "get_engine",
    "get_session",
    "session_scope",
]
