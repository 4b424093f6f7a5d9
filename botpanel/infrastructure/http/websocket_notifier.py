# botpanel/infrastructure/http/websocket_notifier.py
import json
import logging
from typing import Any, Set

from fastapi import WebSocket

from ...domain.interfaces import INotifier

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = ("stats", "session", "log", "command", "user", "thread")


class WebSocketNotifier(INotifier):
    """Broadcasts typed notifications to every connected dashboard socket."""

    def __init__(self):
        self._clients: Set[WebSocket] = set()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._clients.add(websocket)
        logger.info(f"WebSocket client connected. Total: {len(self._clients)}")
        await websocket.send_text(json.dumps({"type": "connected", "message": "WebSocket connected"}))

    def disconnect(self, websocket: WebSocket) -> None:
        self._clients.discard(websocket)
        logger.info(f"WebSocket client disconnected. Total: {len(self._clients)}")

    async def publish(self, message_type: str, data: Any) -> None:
        if message_type not in NOTIFICATION_TYPES:
            raise ValueError(f"Unknown notification type: {message_type}")
        if not self._clients:
            return

        payload = json.dumps({"type": message_type, "data": data}, default=str)
        for client in list(self._clients):
            try:
                await client.send_text(payload)
            except Exception as e:
                logger.debug(f"Dropping WebSocket client after send failure: {e}")
                self._clients.discard(client)
