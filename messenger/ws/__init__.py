"""Live fan-out of new messages to connected WebSocket sessions."""

from .fanout_hub import FanoutHub, SessionClosed, Subscriber
from .session import WebSocketSession

__all__ = ["FanoutHub", "SessionClosed", "Subscriber", "WebSocketSession"]
