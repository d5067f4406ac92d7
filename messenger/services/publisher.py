"""
Publisher capability held by the message ledger.

The ledger always holds a publisher. Processes without live sessions pass
NullPublisher instead of leaving the reference empty.
"""

from typing import Protocol

from messenger.schemas.message import MessageView


class MessagePublisher(Protocol):
    def publish(self, conversation_id: int, message: MessageView) -> int:
        """Push a newly admitted message; returns how many sessions got it."""
        ...


class NullPublisher:
    """Publisher that drops every event."""

    def publish(self, conversation_id: int, message: MessageView) -> int:
        return 0
