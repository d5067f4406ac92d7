"""Routers for the messaging API."""

from .conversations import router as conversations_router
from .messages import router as messages_router
from .ws import router as ws_router

__all__ = ["conversations_router", "messages_router", "ws_router"]
