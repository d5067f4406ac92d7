"""Initialize database tables."""
import logging

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

from messenger.models.conversation import Conversation  # noqa: F401
from messenger.models.message import Message  # noqa: F401
from messenger.models.message_status import MessageStatus  # noqa: F401

logger = logging.getLogger(__name__)


def init_db(engine: Engine) -> None:
    """Create all tables in the database."""
    logger.info("[DB INIT] Creating all tables...")
    SQLModel.metadata.create_all(engine)
    logger.info("[DB INIT] Tables created successfully.")


if __name__ == "__main__":
    from messenger.db.config import build_engine

    init_db(build_engine())
    print("Database tables created successfully.")
