"""
WebSocket endpoint for live message push.

Protocol (JSON frames):
- client -> server: {"action": "subscribe" | "unsubscribe", "conversation_id": N}
- server -> client: connection_established, subscribed, unsubscribed, error,
  and message.created pushes from the fan-out hub.

Closing the socket drops every subscription the session held.
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from messenger.errors import MessengerError
from messenger.middleware.auth import authenticate_websocket
from messenger.services.conversation_directory import ConversationDirectory
from messenger.ws.fanout_hub import FanoutHub
from messenger.ws.session import WebSocketSession

import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def messenger_socket(websocket: WebSocket, token: Optional[str] = Query(None)):
    user_id = authenticate_websocket(token)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    hub: FanoutHub = websocket.app.state.hub
    session = WebSocketSession(websocket, user_id)
    writer = asyncio.create_task(session.run_writer())

    session.reply({
        "event": "connection_established",
        "session_id": session.session_id,
        "user_id": user_id,
        "timestamp": datetime.utcnow().isoformat(),
    })
    logger.info(f"User {user_id} connected as session {session.session_id}")

    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except ValueError:
                session.reply(_error_frame("invalid_frame", "Frames must be JSON objects"))
                continue
            reply = await _handle_frame(websocket, hub, session, frame)
            session.reply(reply)
    except WebSocketDisconnect:
        logger.info(f"Session {session.session_id} for user {user_id} disconnected")
    finally:
        session.close()
        hub.drop_session(session)
        writer.cancel()


async def _handle_frame(
    websocket: WebSocket,
    hub: FanoutHub,
    session: WebSocketSession,
    frame: Any,
) -> Dict[str, Any]:
    if not isinstance(frame, dict):
        return _error_frame("invalid_frame", "Frames must be JSON objects")

    action = frame.get("action")
    conversation_id = frame.get("conversation_id")
    if action not in ("subscribe", "unsubscribe"):
        return _error_frame("invalid_action", f"Unknown action: {action}")
    if not isinstance(conversation_id, int) or isinstance(conversation_id, bool):
        return _error_frame("invalid_frame", "conversation_id must be an integer")

    if action == "unsubscribe":
        hub.unsubscribe(conversation_id, session)
        return {"event": "unsubscribed", "conversation_id": conversation_id}

    try:
        await run_in_threadpool(_require_participant, websocket.app.state.engine, conversation_id, session.user_id)
    except MessengerError as e:
        return _error_frame(e.kind, e.message)

    hub.subscribe(conversation_id, session)
    return {"event": "subscribed", "conversation_id": conversation_id}


def _require_participant(engine, conversation_id: int, user_id: str) -> None:
    with Session(engine) as db:
        ConversationDirectory(db).require_participant(conversation_id, user_id)


def _error_frame(kind: str, message: str) -> Dict[str, Any]:
    return {"event": "error", "kind": kind, "message": message}
