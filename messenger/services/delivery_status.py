"""
Delivery Status Tracker

Per-recipient delivery/read state. Rows are seeded at admission time only;
transitions are forward-only (delivered -> read). A request that would move a
row backwards is a no-op, which keeps out-of-order client acks harmless.
"""

from typing import Iterable, List, Optional

from sqlalchemy import func, update
from sqlmodel import Session, select

from messenger.db.types import utc_now
from messenger.errors import StatusNotFound, store_errors
from messenger.models.message import Message
from messenger.models.message_status import DeliveryState, MessageStatus


class DeliveryStatusTracker:
    """Service for recipient delivery state"""

    def __init__(self, db: Session):
        self.db = db

    def seed(self, message_id: int, recipient_ids: Iterable[str]) -> List[MessageStatus]:
        """Add delivered rows for a new message. Caller owns the transaction."""
        now = utc_now()
        rows = [
            MessageStatus(
                message_id=message_id,
                user_id=user_id,
                status=DeliveryState.DELIVERED.value,
                updated_at=now,
            )
            for user_id in recipient_ids
        ]
        self.db.add_all(rows)
        return rows

    def mark_delivered(self, message_id: int, user_id: str) -> MessageStatus:
        return self._advance(message_id, user_id, DeliveryState.DELIVERED)

    def mark_read(self, message_id: int, user_id: str) -> MessageStatus:
        return self._advance(message_id, user_id, DeliveryState.READ)

    def statuses_for(self, message_id: int) -> List[MessageStatus]:
        statement = select(MessageStatus).where(
            MessageStatus.message_id == message_id
        ).order_by(MessageStatus.user_id)

        with store_errors("statuses_for"):
            return list(self.db.exec(statement).all())

    def mark_conversation_read(self, conversation_id: int, user_id: str) -> int:
        """Mark every message the user received in a conversation as read.

        Returns the number of rows that changed.
        """
        message_ids = select(Message.id).where(Message.conversation_id == conversation_id)
        statement = (
            update(MessageStatus)
            .where(MessageStatus.user_id == user_id)
            .where(MessageStatus.message_id.in_(message_ids))
            .where(MessageStatus.status != DeliveryState.READ.value)
            .values(status=DeliveryState.READ.value, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        with store_errors("mark_conversation_read"):
            result = self.db.execute(statement)
            self.db.commit()
        return result.rowcount

    def unread_count(self, conversation_id: int, user_id: str) -> int:
        statement = (
            select(func.count())
            .select_from(MessageStatus)
            .join(Message, Message.id == MessageStatus.message_id)
            .where(Message.conversation_id == conversation_id)
            .where(MessageStatus.user_id == user_id)
            .where(MessageStatus.status != DeliveryState.READ.value)
        )
        with store_errors("unread_count"):
            return self.db.exec(statement).one()

    def _advance(self, message_id: int, user_id: str, target: DeliveryState) -> MessageStatus:
        # Conditional update: only rows still behind the target move
        earlier = target.earlier_states()
        with store_errors("status_transition"):
            if earlier:
                statement = (
                    update(MessageStatus)
                    .where(MessageStatus.message_id == message_id)
                    .where(MessageStatus.user_id == user_id)
                    .where(MessageStatus.status.in_(earlier))
                    .values(status=target.value, updated_at=utc_now())
                    .execution_options(synchronize_session=False)
                )
                self.db.execute(statement)
                self.db.commit()

            row = self._find(message_id, user_id)

        if row is None:
            raise StatusNotFound(f"No delivery status for message {message_id} and user {user_id}")
        return row

    def _find(self, message_id: int, user_id: str) -> Optional[MessageStatus]:
        statement = select(MessageStatus).where(
            MessageStatus.message_id == message_id,
            MessageStatus.user_id == user_id,
        ).execution_options(populate_existing=True)
        return self.db.exec(statement).first()
