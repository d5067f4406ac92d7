"""
WebSocket session adapter.

deliver() may be called from any thread: sync routes run in the worker pool
while the socket lives on the event loop. Events are scheduled onto a bounded
queue on the loop and a single writer task performs the socket I/O, so the
publisher never waits on a slow client.
"""

import asyncio
import uuid
from typing import Any, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect

from messenger.config import PUSH_QUEUE_SIZE
from messenger.utils.logger import get_logger
from messenger.utils.metrics import metrics_collector
from messenger.ws.fanout_hub import SessionClosed

logger = get_logger("messenger.ws.session")


class WebSocketSession:
    """One connected client socket."""

    def __init__(
        self,
        websocket: WebSocket,
        user_id: str,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        queue_size: int = PUSH_QUEUE_SIZE,
    ):
        self.session_id = uuid.uuid4().hex
        self.websocket = websocket
        self.user_id = user_id
        self.loop = loop or asyncio.get_running_loop()
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.closed = False

    def deliver(self, event: Dict[str, Any]) -> None:
        if self.closed:
            raise SessionClosed(self.session_id)
        try:
            self.loop.call_soon_threadsafe(self._enqueue, event)
        except RuntimeError as e:
            # Event loop already shut down
            self.closed = True
            raise SessionClosed(self.session_id) from e

    def reply(self, event: Dict[str, Any]) -> None:
        """Queue a protocol frame from the loop thread."""
        self._enqueue(event)

    async def run_writer(self) -> None:
        try:
            while True:
                event = await self.queue.get()
                await self.websocket.send_json(event)
        except (WebSocketDisconnect, RuntimeError):
            logger.info("Writer stopped, socket closed", session_id=self.session_id)
        finally:
            self.closed = True

    def close(self) -> None:
        self.closed = True

    def _enqueue(self, event: Dict[str, Any]) -> None:
        if self.closed:
            return
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            metrics_collector.push_failed()
            logger.warning("Push backlog full, dropping event", session_id=self.session_id)
