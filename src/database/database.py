from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.config.settings import config
from src.core.logger import logger
from src.models.database import Base

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def get_db_url() -> str | None:
    return config.audit_database_url


def init_db(url: str | None = None) -> Engine | None:
    """Create the audit engine and tables. Returns None when auditing is disabled."""
    global _engine, _session_factory
    url = url or get_db_url()
    if not url:
        return None

    kwargs: dict = {}
    if url.startswith("sqlite") and ":memory:" in url:
        # one shared connection, otherwise every session sees an empty database
        kwargs = {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}

    _engine = create_engine(url, **kwargs)
    Base.metadata.create_all(_engine)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)
    logger.info("[Database] audit store ready: {}", _engine.url.render_as_string(hide_password=True))
    return _engine


def create_session() -> Session | None:
    if _session_factory is None:
        init_db()
    if _session_factory is None:
        return None
    return _session_factory()


@contextmanager
def get_db_context() -> Generator[Session | None, None, None]:
    db = create_session()
    try:
        yield db
    finally:
        if db is not None:
            db.close()
