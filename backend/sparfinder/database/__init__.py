"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
import logging
from typing import Any, Callable, Generator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from ..core.config import settings

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def build_engine(db_url: str, *, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.

    SQLite gets cross-thread access (stores run in worker threads) and
    foreign-key enforcement, which it leaves off by default.
    """
    kwargs: dict[str, Any] = {"echo": echo, "future": True}
    if db_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update({"pool_pre_ping": True, "pool_recycle": 300})

    new_engine = create_engine(db_url, **kwargs)

    if new_engine.dialect.name == "sqlite":

        @event.listens_for(new_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    @event.listens_for(new_engine, "connect")
    def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
        connection_record.info["connect_time"] = datetime.now()
        logger.debug("Database connection established")

    return new_engine


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind, expire_on_commit=False)


engine: Engine = build_engine(settings.database_url, echo=settings.database_echo)

SessionLocal = build_session_factory(engine)

Base: DeclarativeMeta = declarative_base()


def get_db(request: Request) -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    factory: SessionFactory = getattr(request.app.state, "session_factory", SessionLocal)
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def session_scope(factory: SessionFactory) -> Generator[Session, None, None]:
    """Context manager that yields a session and guarantees cleanup."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bind: Engine) -> None:
    """Create all tables known to the metadata (idempotent)."""
    from .. import models  # noqa: F401  (register mappers)

    Base.metadata.create_all(bind=bind)
    logger.info("Database tables ensured")
