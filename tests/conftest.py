"""Shared fixtures: a throwaway SQLite file database per test."""
import threading

import pytest
from sqlmodel import Session

from messenger.db.config import build_engine
from messenger.db.init import init_db
from messenger.services.conversation_directory import ConversationDirectory
from messenger.services.delivery_status import DeliveryStatusTracker
from messenger.services.message_ledger import MessageLedger
from messenger.services.publisher import NullPublisher
from messenger.utils.metrics import MetricsCollector

ALICE = "alice"
BOB = "bob"
CAROL = "carol"


class RecordingPublisher:
    """Publisher that remembers what it was asked to push."""

    def __init__(self):
        self.published = []
        self._lock = threading.Lock()

    def publish(self, conversation_id, message):
        with self._lock:
            self.published.append((conversation_id, message))
        return 1


def build_ledger(session, publisher=None, metrics=None, **options) -> MessageLedger:
    metrics = metrics or MetricsCollector()
    directory = ConversationDirectory(session, metrics)
    return MessageLedger(
        session,
        directory,
        DeliveryStatusTracker(session),
        publisher if publisher is not None else NullPublisher(),
        metrics=metrics,
        **options,
    )


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'messenger.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def conversation_id(engine):
    with Session(engine) as session:
        conversation, _ = ConversationDirectory(session).get_or_create(ALICE, BOB)
        return conversation.id
