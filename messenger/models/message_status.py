"""
MessageStatus Model

Per-recipient delivery state for a message. Rows are seeded when the message
is admitted and only ever move forward.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, TYPE_CHECKING
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import UniqueConstraint

from messenger.db.types import UTCDateTime, utc_now

if TYPE_CHECKING:
    from .message import Message


class DeliveryState(str, Enum):
    """Recipient-side progression"""
    DELIVERED = "delivered"
    READ = "read"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def earlier_states(self) -> list:
        """States a row may be in and still move to this one."""
        return [state.value for state in DeliveryState if state.rank < self.rank]


_RANKS = {DeliveryState.DELIVERED: 1, DeliveryState.READ: 2}


class MessageStatus(SQLModel, table=True):
    """Delivery/read state of one message for one recipient."""
    __tablename__ = "message_status"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_message_status_recipient"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    message_id: int = Field(foreign_key="messages.id", index=True)
    user_id: str = Field(max_length=255, index=True)
    status: str = Field(default=DeliveryState.DELIVERED.value, max_length=20)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)

    message: "Message" = Relationship(back_populates="statuses")
