"""Core services: directory, ledger, delivery tracking and read composition."""

from .conversation_directory import ConversationDirectory
from .delivery_status import DeliveryStatusTracker
from .message_ledger import MessageLedger
from .publisher import MessagePublisher, NullPublisher
from .query_service import QueryService

__all__ = [
    "ConversationDirectory",
    "DeliveryStatusTracker",
    "MessageLedger",
    "MessagePublisher",
    "NullPublisher",
    "QueryService",
]
