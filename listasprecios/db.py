from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from listasprecios.models import Base

logger = logging.getLogger(__name__)


def _unicode_lower(value):
    return value.casefold() if isinstance(value, str) else value


def create_engine_from_url(database_url: str) -> Engine:
    if database_url.startswith("sqlite:"):
        in_memory = ":memory:" in database_url or database_url.rstrip("/") == "sqlite:"
        kwargs = {"future": True, "connect_args": {"check_same_thread": False}}
        if in_memory:
            # One shared connection, otherwise every checkout sees an empty database.
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **kwargs)

        # foreign_keys is per-connection in SQLite, and so are user functions.
        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_conn, _record):
            # Built-in lower() only folds ASCII; "Ñandú" must match "ñandú".
            dbapi_conn.create_function("lower", 1, _unicode_lower, deterministic=True)
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON;")
            cur.close()

        if not in_memory:
            with engine.connect() as conn:
                conn.exec_driver_sql("PRAGMA journal_mode=WAL;")
        return engine

    return create_engine(database_url, future=True, pool_pre_ping=True)


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(engine)
    logger.debug("schema ready on %s", engine.url.render_as_string(hide_password=True))


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False)


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def check_connection(session_factory: sessionmaker[Session]) -> bool:
    try:
        with session_scope(session_factory) as session:
            session.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("database health check failed")
        return False
