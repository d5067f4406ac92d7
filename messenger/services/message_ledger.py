"""
Message Ledger

Append-only, totally ordered message sequence per conversation.

Admission:
- A client nonce makes a send idempotent. A replay returns the message the
  first attempt admitted, with no new row and no push.
- Each message claims the next per-conversation sequence slot. Appends to one
  conversation are serialized by a write lock taken before the tail is read
  (BEGIN IMMEDIATE on SQLite, a row lock on the conversation elsewhere). The
  unique constraint on the slot still backs this up; a collision rolls back
  and retries against the new tail.
- created_at strictly increases along the sequence and never falls behind the
  conversation's updated_at, so ordering by (created_at, seq) is total and
  the last-message pointer always accepts the newest message.

After the message and its recipient status rows commit, the conversation's
last-message pointer is advanced and the publisher is notified. Neither step
can fail an append that is already durable.
"""

from typing import List, Optional, Tuple
from datetime import timedelta
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from messenger.config import APPEND_MAX_ATTEMPTS, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from messenger.db.types import utc_now
from messenger.errors import (
    EmptyBody,
    InvalidPage,
    MessageNotFound,
    NotParticipant,
    StoreUnavailable,
    store_errors,
)
from messenger.models.conversation import Conversation
from messenger.models.message import Message, MessageState
from messenger.schemas.message import MessageView
from messenger.services.conversation_directory import ConversationDirectory
from messenger.services.delivery_status import DeliveryStatusTracker
from messenger.services.publisher import MessagePublisher
from messenger.utils.logger import get_logger
from messenger.utils.metrics import MetricsCollector, metrics_collector

logger = get_logger("messenger.ledger")

# Smallest step that keeps timestamps strictly increasing within a conversation
TICK = timedelta(microseconds=1)


class MessageLedger:
    """Service for admitting and reading messages"""

    def __init__(
        self,
        db: Session,
        directory: ConversationDirectory,
        tracker: DeliveryStatusTracker,
        publisher: MessagePublisher,
        metrics: MetricsCollector = metrics_collector,
        max_attempts: int = APPEND_MAX_ATTEMPTS,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        self.db = db
        self.directory = directory
        self.tracker = tracker
        self.publisher = publisher
        self.metrics = metrics
        self.max_attempts = max_attempts
        self.max_page_size = max_page_size

    def append(
        self,
        conversation_id: int,
        sender_id: str,
        body: str,
        client_nonce: Optional[str] = None,
    ) -> Tuple[Message, bool]:
        """
        Admit a message, or return the one already admitted for client_nonce.

        Returns:
            (message, created) where created is False for a nonce replay

        Raises:
            ConversationNotFound, NotParticipant, EmptyBody, StoreUnavailable
        """
        conversation = self.directory.get(conversation_id)
        if not conversation.has_participant(sender_id):
            raise NotParticipant("You are not a participant in this conversation")
        if body is None or not body.strip():
            raise EmptyBody("Message body must not be empty")

        nonce = client_nonce or None
        recipients = [conversation.other_participant(sender_id)]

        with store_errors("append"):
            if nonce:
                existing = self._find_by_nonce(sender_id, nonce)
                if existing:
                    return self._replayed(existing), False

            message = None
            for attempt in range(1, self.max_attempts + 1):
                try:
                    message = self._insert(conversation_id, sender_id, body, nonce, recipients)
                    break
                except IntegrityError:
                    self.db.rollback()
                    if nonce:
                        existing = self._find_by_nonce(sender_id, nonce)
                        if existing:
                            return self._replayed(existing), False
                    self.metrics.append_conflict()
                    logger.debug(
                        "Sequence slot taken, retrying",
                        conversation_id=conversation_id,
                        attempt=attempt,
                    )

            if message is None:
                logger.warning(
                    "Append gave up under contention",
                    conversation_id=conversation_id,
                    attempts=self.max_attempts,
                )
                raise StoreUnavailable("Conversation is busy, please retry")

        self._record_last_message(conversation_id, message)
        self.metrics.message_admitted()
        logger.info(
            "Message admitted",
            conversation_id=conversation_id,
            message_id=message.id,
            seq=message.seq,
        )

        self._publish(conversation_id, message)
        return message, True

    def get(self, message_id: int) -> Message:
        with store_errors("get_message"):
            message = self.db.get(Message, message_id)
        if message is None:
            raise MessageNotFound(f"Message {message_id} does not exist")
        return message

    def list_by_conversation(
        self,
        conversation_id: int,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
        before_id: Optional[int] = None,
    ) -> List[Message]:
        """
        Get one page of a conversation's messages, oldest first.

        Page 0 holds the newest page_size messages and each following page
        steps further back. before_id restricts the window to messages
        admitted before that one, for "load older" cursoring.
        """
        if page < 0 or page_size < 1:
            raise InvalidPage("page must be >= 0 and size must be >= 1")
        page_size = min(page_size, self.max_page_size)

        self.directory.get(conversation_id)

        statement = select(Message).where(
            Message.conversation_id == conversation_id
        )
        if before_id is not None:
            anchor = self.get(before_id)
            if anchor.conversation_id != conversation_id:
                raise MessageNotFound(f"Message {before_id} is not in conversation {conversation_id}")
            statement = statement.where(Message.seq < anchor.seq)

        statement = statement.order_by(
            Message.created_at.desc(), Message.seq.desc()
        ).offset(page * page_size).limit(page_size)

        with store_errors("list_messages"):
            messages = list(self.db.exec(statement).all())
        messages.reverse()
        return messages

    def _insert(
        self,
        conversation_id: int,
        sender_id: str,
        body: str,
        nonce: Optional[str],
        recipients: List[str],
    ) -> Message:
        floor = self._lock_conversation(conversation_id)
        tail = self.db.exec(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.seq.desc())
            .limit(1)
        ).first()

        created_at = max(utc_now(), floor)
        if tail is None:
            seq = 1
        else:
            seq, created_at = tail.seq + 1, max(created_at, tail.created_at + TICK)

        message = Message(
            conversation_id=conversation_id,
            seq=seq,
            sender_id=sender_id,
            body=body,
            client_nonce=nonce,
            created_at=created_at,
            status=MessageState.SENT.value,
        )
        self.db.add(message)
        self.db.flush()

        self.tracker.seed(message.id, recipients)
        self.db.commit()
        self.db.refresh(message)
        return message

    def _lock_conversation(self, conversation_id: int):
        """Take the conversation's write lock and return its updated_at."""
        if self.db.get_bind().dialect.name == "sqlite":
            self.db.connection().exec_driver_sql("BEGIN IMMEDIATE")

        statement = select(Conversation.updated_at).where(
            Conversation.id == conversation_id
        ).with_for_update()
        return self.db.exec(statement).one()

    def _record_last_message(self, conversation_id: int, message: Message) -> None:
        try:
            self.directory.record_last_message(conversation_id, message.id, message.created_at)
        except StoreUnavailable:
            # Keep the committed message readable after the rollback
            self.db.expunge(message)
            self.db.rollback()
            self.metrics.pointer_update_failed()
            logger.error(
                "Last message pointer not updated",
                conversation_id=conversation_id,
                message_id=message.id,
            )

    def _find_by_nonce(self, sender_id: str, nonce: str) -> Optional[Message]:
        statement = select(Message).where(
            Message.sender_id == sender_id,
            Message.client_nonce == nonce,
        )
        return self.db.exec(statement).first()

    def _replayed(self, message: Message) -> Message:
        self.metrics.message_deduplicated()
        logger.info(
            "Nonce replay returned existing message",
            conversation_id=message.conversation_id,
            message_id=message.id,
        )
        return message

    def _publish(self, conversation_id: int, message: Message) -> None:
        try:
            self.publisher.publish(conversation_id, MessageView.model_validate(message))
        except Exception:
            # Already durable; live push is best effort
            self.metrics.push_failed()
            logger.exception("Publishing message failed", conversation_id=conversation_id, message_id=message.id)
