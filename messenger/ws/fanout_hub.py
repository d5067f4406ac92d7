"""
Live Fan-out Hub.

Keeps the mapping from conversation id to the sessions currently subscribed
to it and pushes newly admitted messages to them. Delivery is best effort:
nothing is persisted or replayed, the read API stays the source of truth.

The registry lock is held only to mutate or snapshot the maps, never while
handing an event to a session.
"""

import threading
from typing import Any, Dict, List, Protocol, Set

from messenger.schemas.message import MessageView, PushEvent
from messenger.utils.logger import get_logger
from messenger.utils.metrics import MetricsCollector, metrics_collector

logger = get_logger("messenger.fanout")


class SessionClosed(Exception):
    """Raised by a session whose transport is gone."""


class Subscriber(Protocol):
    session_id: str

    def deliver(self, event: Dict[str, Any]) -> None:
        """Hand off one event without blocking on transport I/O."""
        ...


class FanoutHub:
    """Subscription registry and push dispatch."""

    def __init__(self, metrics: MetricsCollector = metrics_collector):
        self._lock = threading.Lock()
        self._subscriptions: Dict[int, Set[Subscriber]] = {}
        self._sessions: Dict[Subscriber, Set[int]] = {}
        self.metrics = metrics

    def subscribe(self, conversation_id: int, session: Subscriber) -> None:
        with self._lock:
            self._subscriptions.setdefault(conversation_id, set()).add(session)
            self._sessions.setdefault(session, set()).add(conversation_id)

        logger.debug("Session subscribed", session_id=session.session_id, conversation_id=conversation_id)

    def unsubscribe(self, conversation_id: int, session: Subscriber) -> None:
        """Remove one subscription. Unknown pairs are ignored."""
        with self._lock:
            self._discard(conversation_id, session)
            conversations = self._sessions.get(session)
            if conversations is not None:
                conversations.discard(conversation_id)
                if not conversations:
                    del self._sessions[session]

    def drop_session(self, session: Subscriber) -> None:
        """Forget a session entirely, e.g. when its transport closes."""
        with self._lock:
            conversations = self._sessions.pop(session, set())
            for conversation_id in conversations:
                self._discard(conversation_id, session)

        if conversations:
            logger.info(
                "Session dropped",
                session_id=session.session_id,
                conversations=sorted(conversations),
            )

    def subscribers(self, conversation_id: int) -> List[Subscriber]:
        with self._lock:
            return list(self._subscriptions.get(conversation_id, ()))

    def conversations_for(self, session: Subscriber) -> Set[int]:
        with self._lock:
            return set(self._sessions.get(session, ()))

    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def publish(self, conversation_id: int, message: MessageView) -> int:
        """Push message.created to every subscriber of the conversation.

        Returns the number of sessions that accepted the event. Sessions that
        fail are dropped; the others still receive it.
        """
        targets = self.subscribers(conversation_id)
        if not targets:
            return 0

        event = PushEvent(payload=message).model_dump(mode="json")
        delivered = 0
        failed = []

        for session in targets:
            try:
                session.deliver(event)
                delivered += 1
            except SessionClosed:
                failed.append(session)
                logger.info("Skipping closed session", session_id=session.session_id)
            except Exception as e:
                failed.append(session)
                logger.error(
                    "Push delivery failed",
                    session_id=session.session_id,
                    conversation_id=conversation_id,
                    error=e.__class__.__name__,
                )

        for session in failed:
            self.metrics.push_failed()
            self.drop_session(session)

        if delivered:
            self.metrics.push_delivered(delivered)
        return delivered

    def close(self) -> None:
        """Release every subscription at shutdown."""
        with self._lock:
            self._subscriptions.clear()
            self._sessions.clear()

    def _discard(self, conversation_id: int, session: Subscriber) -> None:
        sessions = self._subscriptions.get(conversation_id)
        if sessions is None:
            return
        sessions.discard(session)
        if not sessions:
            del self._subscriptions[conversation_id]
