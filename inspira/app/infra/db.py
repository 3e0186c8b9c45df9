"""Database engine and session utilities."""
from contextlib import contextmanager
import logging
import time
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session

# registers the documents table on SQLModel.metadata
from ..domain import models  # noqa: F401

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    kwargs = {}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(
        database_url, echo=False, future=True, connect_args=connect_args, **kwargs
    )


def init_db(engine: Engine, attempts: int = 30) -> None:
    """Create tables if they do not exist.

    Retries on startup to wait for a database service that is still booting.
    """
    last_err: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            SQLModel.metadata.create_all(engine)
            return
        except Exception as exc:  # pragma: no cover
            last_err = exc
            logger.warning(
                "waiting for database... (%s/%s) %s", attempt, attempts, exc,
                extra={"component": "init_db"},
            )
            time.sleep(1)
    if last_err:
        raise last_err


@contextmanager
def get_session(bind: Engine) -> Iterator[Session]:
    session = Session(bind, autoflush=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
