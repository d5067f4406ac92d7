"""Conversation directory: pair identity, first-contact races, last-message pointer."""
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from sqlmodel import Session, select

from messenger.db.types import utc_now
from messenger.errors import ConversationNotFound, InvalidParticipants, NotParticipant
from messenger.models.conversation import Conversation
from messenger.services.conversation_directory import ConversationDirectory
from tests.conftest import ALICE, BOB, CAROL


def test_get_or_create_creates_once(session, metrics):
    directory = ConversationDirectory(session, metrics)

    first, created = directory.get_or_create(ALICE, BOB)
    second, created_again = directory.get_or_create(ALICE, BOB)

    assert created is True
    assert created_again is False
    assert first.id == second.id
    assert first.last_message_id is None
    assert metrics.get("conversations_created_total") == 1


def test_argument_order_does_not_matter(session):
    directory = ConversationDirectory(session)

    forward, _ = directory.get_or_create(ALICE, BOB)
    backward, created = directory.get_or_create(BOB, ALICE)

    assert created is False
    assert backward.id == forward.id
    assert sorted(forward.participant_ids) == [ALICE, BOB]


@pytest.mark.parametrize("user_a,user_b", [(ALICE, ALICE), (ALICE, ""), ("  ", BOB)])
def test_rejects_invalid_pairs(session, user_a, user_b):
    with pytest.raises(InvalidParticipants):
        ConversationDirectory(session).get_or_create(user_a, user_b)


def test_concurrent_first_contact_resolves_to_one_conversation(engine):
    def open_conversation(i):
        pair = (ALICE, BOB) if i % 2 == 0 else (BOB, ALICE)
        with Session(engine) as session:
            conversation, _ = ConversationDirectory(session).get_or_create(*pair)
            return conversation.id

    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = list(pool.map(open_conversation, range(16)))

    assert len(set(ids)) == 1
    with Session(engine) as session:
        assert len(session.exec(select(Conversation)).all()) == 1


def test_get_unknown_conversation(session):
    with pytest.raises(ConversationNotFound):
        ConversationDirectory(session).get(999)


def test_require_participant(session, conversation_id):
    directory = ConversationDirectory(session)

    assert directory.require_participant(conversation_id, BOB).id == conversation_id
    with pytest.raises(NotParticipant):
        directory.require_participant(conversation_id, CAROL)


def test_record_last_message_never_regresses(session, conversation_id):
    directory = ConversationDirectory(session)
    newer = utc_now() + timedelta(seconds=10)
    older = newer - timedelta(seconds=5)

    assert directory.record_last_message(conversation_id, 2, newer) is True
    assert directory.record_last_message(conversation_id, 1, older) is False

    conversation = directory.get(conversation_id)
    assert conversation.last_message_id == 2
    assert conversation.updated_at == newer


def test_list_for_user_most_recent_first(session):
    directory = ConversationDirectory(session)
    with_bob, _ = directory.get_or_create(ALICE, BOB)
    with_carol, _ = directory.get_or_create(CAROL, ALICE)
    directory.get_or_create(BOB, CAROL)

    directory.record_last_message(with_bob.id, 1, utc_now() + timedelta(seconds=1))

    listed = [c.id for c in directory.list_for_user(ALICE)]
    assert listed == [with_bob.id, with_carol.id]
