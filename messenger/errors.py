"""
Error taxonomy for the messaging core.

Every failure crossing the service boundary is a MessengerError carrying a
stable kind and a human message. Store exceptions are translated before they
reach a caller so driver text never leaks.
"""

import logging
from contextlib import contextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)


class MessengerError(Exception):
    kind = "messenger_error"
    status_code = 400
    retriable = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "retriable": self.retriable}


class InvalidParticipants(MessengerError):
    kind = "invalid_participants"
    status_code = 400


class NotParticipant(MessengerError):
    kind = "not_participant"
    status_code = 403


class EmptyBody(MessengerError):
    kind = "empty_body"
    status_code = 422


class ConversationNotFound(MessengerError):
    kind = "conversation_not_found"
    status_code = 404


class MessageNotFound(MessengerError):
    kind = "message_not_found"
    status_code = 404


class InvalidPage(MessengerError):
    kind = "invalid_page"
    status_code = 400


class StatusNotFound(MessengerError):
    kind = "status_not_found"
    status_code = 404


class DuplicateConversation(MessengerError):
    """Lost a first-contact race. Resolved by re-reading, never surfaced."""
    kind = "duplicate_conversation"
    status_code = 409


class StoreUnavailable(MessengerError):
    kind = "store_unavailable"
    status_code = 503
    retriable = True


@contextmanager
def store_errors(operation: str):
    """Translate driver-level failures into StoreUnavailable."""
    try:
        yield
    except OperationalError as e:
        logger.error(f"Store failure during {operation}: {e.__class__.__name__}")
        raise StoreUnavailable(f"Storage is temporarily unavailable ({operation}), please retry") from e


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(MessengerError)
    async def messenger_error_handler(_: Request, exc: MessengerError):
        logger.warning("MessengerError %s: %s", exc.kind, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})
