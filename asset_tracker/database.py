from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import get_settings
from .models.base import Base

_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def engine_options(database_url: str, pool_size: int) -> dict[str, Any]:
    """Keyword arguments for ``create_engine`` for the given backend."""
    if database_url.startswith("sqlite"):
        return {"pool_pre_ping": True, "connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": pool_size}


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(
            settings.DATABASE_URL, **engine_options(settings.DATABASE_URL, settings.DB_POOL_SIZE)
        )
    return _engine


def get_sessionmaker() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), autoflush=False)
    return _session_factory


def reset_engine() -> None:
    """Drop the cached engine so the next call picks up fresh settings."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def init_db() -> None:
    # Importing the package registers every category table on Base.metadata.
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())


def get_db() -> Iterator[Session]:
    db = get_sessionmaker()()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(factory=None) -> Iterator[Session]:
    """Open a session for one unit of work; commit on success, roll back on error."""
    db = (factory or get_sessionmaker())()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
