"""
Conversation Model

A durable two-party thread. The participant pair is stored in sorted order
so that (A, B) and (B, A) resolve to the same row.
"""

from datetime import datetime
from typing import List, Optional, Tuple, TYPE_CHECKING
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import CheckConstraint, UniqueConstraint

from messenger.db.types import UTCDateTime, utc_now

if TYPE_CHECKING:
    from .message import Message


def canonical_pair(user_a: str, user_b: str) -> Tuple[str, str]:
    """Order two participant ids the way they are stored."""
    low, high = sorted([user_a, user_b])
    return low, high


class Conversation(SQLModel, table=True):
    """
    Conversation between exactly two users.

    Relationships:
    - Has many Messages

    last_message_id is a weak pointer into the message ledger; it is moved
    forward only by the directory's guarded update.
    """
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("participant_low_id", "participant_high_id", name="uq_conversation_pair"),
        CheckConstraint("participant_low_id < participant_high_id", name="ck_conversation_pair_order"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    participant_low_id: str = Field(max_length=255, index=True)
    participant_high_id: str = Field(max_length=255, index=True)
    last_message_id: Optional[int] = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)

    messages: List["Message"] = Relationship(
        back_populates="conversation",
        sa_relationship_kwargs={"lazy": "select"}
    )

    @property
    def participant_ids(self) -> List[str]:
        return [self.participant_low_id, self.participant_high_id]

    def has_participant(self, user_id: str) -> bool:
        return user_id in (self.participant_low_id, self.participant_high_id)

    def other_participant(self, user_id: str) -> str:
        if user_id == self.participant_low_id:
            return self.participant_high_id
        return self.participant_low_id
