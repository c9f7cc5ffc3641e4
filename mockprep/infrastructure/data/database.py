"""
Engine creation and session handling.
"""
import logging
import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from ...config import DATABASE_URL

logger = logging.getLogger("database")


def create_db_engine(url: str = DATABASE_URL, echo: bool = False) -> Engine:
    """
    Create an engine for any SQLAlchemy URL.

    SQLite connections are shared with the upload threads, and in-memory
    databases use a single static connection so every session sees the same data.
    """
    kwargs = {}
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        database = parsed.database
        if not database or database == ":memory:":
            kwargs["poolclass"] = StaticPool
        else:
            directory = os.path.dirname(database)
            if directory:
                os.makedirs(directory, exist_ok=True)
    return create_engine(url, echo=echo, **kwargs)


def init_db(engine: Engine) -> None:
    # Import tables so they register with the metadata.
    from . import tables  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.debug(f"Database ready at {engine.url!r}")


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    """Session that commits on success and rolls back on error."""
    with Session(engine, expire_on_commit=False) as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
