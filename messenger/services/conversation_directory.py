"""
Conversation Directory

Owns conversation identity (the unordered participant pair) and the
last-message pointer.

Concurrency:
- First contact is resolved by the pair's unique constraint: the loser of an
  insert race rolls back and reads the winner's row.
- The last-message pointer moves through a single guarded UPDATE, so a
  late-finishing older append can never overwrite a newer pointer.
"""

from typing import List, Tuple
from datetime import datetime
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, or_

from messenger.db.types import utc_now
from messenger.errors import (
    ConversationNotFound,
    DuplicateConversation,
    InvalidParticipants,
    NotParticipant,
    StoreUnavailable,
    store_errors,
)
from messenger.models.conversation import Conversation, canonical_pair
from messenger.utils.metrics import MetricsCollector, metrics_collector

import logging

logger = logging.getLogger(__name__)


class ConversationDirectory:
    """Service for conversation identity and summary state"""

    def __init__(self, db: Session, metrics: MetricsCollector = metrics_collector):
        self.db = db
        self.metrics = metrics

    def get_or_create(self, user_a: str, user_b: str) -> Tuple[Conversation, bool]:
        """Return the pair's conversation, creating it on first contact.

        The second element tells whether this call created the row.
        """
        if not user_a or not user_b or not user_a.strip() or not user_b.strip():
            raise InvalidParticipants("Both participants must be identified")
        if user_a == user_b:
            raise InvalidParticipants("A conversation needs two distinct users")

        low, high = canonical_pair(user_a, user_b)
        with store_errors("get_or_create"):
            existing = self._find_pair(low, high)
            if existing:
                return existing, False

            try:
                return self._insert_pair(low, high), True
            except DuplicateConversation:
                winner = self._find_pair(low, high)
                if winner is None:
                    raise StoreUnavailable("Conversation could not be resolved, please retry")
                logger.info(f"Conversation race for ({low}, {high}) resolved to {winner.id}")
                return winner, False

    def get(self, conversation_id: int) -> Conversation:
        with store_errors("get_conversation"):
            conversation = self.db.get(Conversation, conversation_id)
        if conversation is None:
            raise ConversationNotFound(f"Conversation {conversation_id} does not exist")
        return conversation

    def require_participant(self, conversation_id: int, user_id: str) -> Conversation:
        conversation = self.get(conversation_id)
        if not conversation.has_participant(user_id):
            raise NotParticipant("You are not a participant in this conversation")
        return conversation

    def list_for_user(self, user_id: str) -> List[Conversation]:
        """Get all conversations for a user, most recently active first"""
        statement = select(Conversation).where(
            or_(
                Conversation.participant_low_id == user_id,
                Conversation.participant_high_id == user_id,
            )
        ).order_by(Conversation.updated_at.desc(), Conversation.id.desc())

        with store_errors("list_conversations"):
            return list(self.db.exec(statement).all())

    def record_last_message(self, conversation_id: int, message_id: int, timestamp: datetime) -> bool:
        """Point the conversation at message_id unless it already holds a newer one.

        Returns True when the pointer moved.
        """
        statement = (
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .where(Conversation.updated_at <= timestamp)
            .values(last_message_id=message_id, updated_at=timestamp)
            .execution_options(synchronize_session=False)
        )
        with store_errors("record_last_message"):
            result = self.db.execute(statement)
            self.db.commit()

        moved = result.rowcount == 1
        if not moved:
            logger.debug(f"Kept newer last message on conversation {conversation_id}, skipped {message_id}")
        return moved

    def _find_pair(self, low: str, high: str):
        statement = select(Conversation).where(
            Conversation.participant_low_id == low,
            Conversation.participant_high_id == high,
        )
        return self.db.exec(statement).first()

    def _insert_pair(self, low: str, high: str) -> Conversation:
        now = utc_now()
        conversation = Conversation(
            participant_low_id=low,
            participant_high_id=high,
            created_at=now,
            updated_at=now,
        )
        self.db.add(conversation)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateConversation(f"Conversation for ({low}, {high}) already exists") from e

        self.db.refresh(conversation)
        self.metrics.conversation_created()
        logger.info(f"Created conversation {conversation.id} for ({low}, {high})")
        return conversation
