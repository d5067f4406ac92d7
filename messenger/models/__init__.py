"""SQLModel tables for conversations, messages and delivery status."""

from .conversation import Conversation, canonical_pair
from .message import Message, MessageState
from .message_status import MessageStatus, DeliveryState

__all__ = [
    "Conversation",
    "canonical_pair",
    "Message",
    "MessageState",
    "MessageStatus",
    "DeliveryState",
]
