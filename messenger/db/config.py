"""Database engine and session configuration."""
from typing import Generator
import logging

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

from messenger.config import DATABASE_URL

logger = logging.getLogger(__name__)


def build_engine(database_url: str = DATABASE_URL) -> Engine:
    """Create an engine for the given URL.

    SQLite needs cross-thread connections since sync routes run in the
    worker pool, plus foreign keys and WAL so readers never block the writer.
    """
    if database_url.startswith("postgresql"):
        logger.info("[DB CONFIG] Using PostgreSQL database")
    else:
        logger.info(f"[DB CONFIG] Using SQLite database: {database_url}")

    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=False, pool_pre_ping=True)

    engine = create_engine(
        database_url,
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


def get_session(request: Request) -> Generator[Session, None, None]:
    """Dependency for getting a session bound to the application's engine."""
    with Session(request.app.state.engine) as session:
        yield session
