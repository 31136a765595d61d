# src/hospital_api/db/session.py
"""Engine and session lifecycle for the hospital database.

One engine per process, created by ``init_db`` during application startup
(or by tests). Request handlers receive sessions through ``get_session``.
"""

from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from .models import Base

_engine: Engine | None = None
_session_factory: sessionmaker | None = None

NOT_INITIALIZED = "Database not initialized. Call init_db() first."


def _to_url(target: str | Path) -> str:
    if isinstance(target, Path):
        target.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{target}"
    return target


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores REFERENCES clauses unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_db(target: str | Path) -> Engine:
    """Create the engine and any missing tables.

    Calling it again replaces the previous engine.

    Args:
        target: SQLAlchemy database URL, or a Path to a SQLite file
    """
    global _engine, _session_factory

    reset_engine()

    url = _to_url(target)
    is_sqlite = url.startswith("sqlite")
    engine = create_engine(
        url,
        connect_args={"check_same_thread": False} if is_sqlite else {},
    )
    if is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    Base.metadata.create_all(engine)

    _engine = engine
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    return engine


def reset_engine() -> None:
    """Dispose of the engine, if any (used at shutdown and in tests)."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(NOT_INITIALIZED)
    return _engine


def create_session() -> Session:
    """Open a session outside a request. The caller must close it."""
    if _session_factory is None:
        raise RuntimeError(NOT_INITIALIZED)
    return _session_factory()


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, always closed."""
    session = create_session()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session that commits on success and rolls back on error."""
    session = create_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
