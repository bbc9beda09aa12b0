"""Database connection and session management."""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ledger_engine.config import get_settings
from ledger_engine.errors import ConflictError

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(url: str | None = None, **kwargs: Any) -> Engine:
    """Create database engine."""
    url = url or get_settings().database_url
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
        kwargs.setdefault("pool_size", 10)
        kwargs.setdefault("max_overflow", 20)

    engine = create_engine(url, echo=False, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Build the session factory used by services and the API."""
    return sessionmaker(
        engine,
        class_=Session,
        expire_on_commit=False,
        autoflush=False,
    )


# Global engine and session factory
_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def init_db(create_schema: bool = True) -> tuple[Engine, sessionmaker[Session]]:
    """Initialize database engine and session factory."""
    global _engine, _session_factory
    if _engine is None:
        _engine = get_engine()
        _session_factory = create_session_factory(_engine)
        if create_schema:
            from ledger_engine.models import Base

            Base.metadata.create_all(_engine)
    assert _session_factory is not None
    return _engine, _session_factory


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Get a database session."""
    _, factory = init_db()
    with factory() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise


@contextmanager
def unit_of_work(session: Session, conflict_message: str | None = None) -> Generator[Session, None, None]:
    """Run one economic event as a single database transaction.

    Commits when the block exits cleanly and rolls back on any exception.
    Uniqueness violations surface as ConflictError so callers re-read before
    retrying.
    """
    try:
        yield session
        session.flush()
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        logger.warning("Unit of work rejected by store constraint: %s", exc.orig)
        raise ConflictError(conflict_message or "Record conflicts with existing data") from exc
    except Exception:
        session.rollback()
        raise
