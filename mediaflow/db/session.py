"""
MediaFlow Database Session Management.

Single entry point for DB initialisation plus a context manager for
transactional access. The session factory is returned to the caller and
passed explicitly to the stores; there is no module-level session.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from mediaflow.db.base import Base

logger = logging.getLogger("mediaflow.db.session")


def init_db(db_url: str, create_tables: bool = False, echo: bool = False) -> sessionmaker:
    """
    Create the engine and return a session factory.

    Args:
        db_url:        SQLAlchemy URL (sqlite:///mediaflow.db, postgresql://...).
        create_tables: Run Base.metadata.create_all() (dev / ``mediaflow init``).
        echo:          Log SQL statements.

    In-memory SQLite shares one connection across sessions (StaticPool) so every
    session sees the same database.
    """
    kwargs = {"echo": echo}
    is_sqlite = db_url.startswith("sqlite")
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

    engine = create_engine(db_url, **kwargs)

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def enable_foreign_keys(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    if create_tables:
        Base.metadata.create_all(engine)
        logger.info(f"Tables created on {engine.url.render_as_string(hide_password=True)}")

    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for DB sessions with auto-commit/rollback.

    Usage:
        with session_scope(factory) as session:
            folder = session.get(FolderRow, 3)
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def close_db(factory: sessionmaker) -> None:
    """Dispose the engine behind a session factory. Used during shutdown."""
    engine = factory.kw.get("bind")
    if engine is not None:
        engine.dispose()
