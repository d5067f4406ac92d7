"""
Message Model

Individual messages in a conversation's ledger. Content is immutable once
admitted; only the coarse sender-facing status may change.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, TYPE_CHECKING
from sqlmodel import SQLModel, Field, Relationship, Column
from sqlalchemy import Text, UniqueConstraint

from messenger.db.types import UTCDateTime, utc_now

if TYPE_CHECKING:
    from .conversation import Conversation
    from .message_status import MessageStatus


class MessageState(str, Enum):
    """Sender-facing message status"""
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


class Message(SQLModel, table=True):
    """
    A message admitted to a conversation.

    seq is the per-conversation admission counter. Together with created_at
    it gives a total order that matches the order in which appends won
    their slot.
    """
    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("conversation_id", "seq", name="uq_message_conversation_seq"),
        UniqueConstraint("sender_id", "client_nonce", name="uq_message_sender_nonce"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    conversation_id: int = Field(foreign_key="conversations.id", index=True)
    seq: int = Field(default=1)
    sender_id: str = Field(max_length=255, index=True)
    body: str = Field(sa_column=Column(Text, nullable=False))
    client_nonce: Optional[str] = Field(default=None, max_length=100)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)
    status: str = Field(default=MessageState.SENT.value, max_length=20)

    conversation: "Conversation" = Relationship(
        back_populates="messages",
        sa_relationship_kwargs={"lazy": "select"}
    )
    statuses: List["MessageStatus"] = Relationship(
        back_populates="message",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "lazy": "select"}
    )
