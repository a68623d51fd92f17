"""Database engine and session management.

Settlement ticks run on worker threads (``asyncio.to_thread``) while the
engine is created on the main thread, so SQLite connections are opened
with ``check_same_thread=False``.  Server databases get ``pool_pre_ping``
so a connection dropped between ticks is replaced instead of failing the
next settlement.
"""

from __future__ import annotations

import structlog
from sqlalchemy import create_engine, make_url
from sqlalchemy.engine import Engine  # noqa: TCH002
from sqlalchemy.orm import Session, sessionmaker

from wallstreet.state.models import Base

logger = structlog.get_logger("wallstreet.state.database")


def create_db_engine(url: str = "sqlite:///wallstreet.db", echo: bool = False) -> Engine:
    """Create a SQLAlchemy engine for *url*."""
    if make_url(url).get_backend_name() == "sqlite":
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(url, echo=echo, pool_pre_ping=True)


def init_db(engine: Engine) -> None:
    """Create all settlement tables if they don't exist."""
    Base.metadata.create_all(engine)
    logger.info("database_initialized", url=engine.url.render_as_string(hide_password=True))


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory whose objects stay loaded after commit.

    Repository reads return detached rows to the orchestrator, so
    attributes must not be expired when the session closes.
    """
    return sessionmaker(bind=engine, expire_on_commit=False)
