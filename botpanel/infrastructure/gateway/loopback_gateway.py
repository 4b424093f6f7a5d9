# botpanel/infrastructure/gateway/loopback_gateway.py
import itertools
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from ...domain.errors import AuthenticationError, GatewayConnectionError
from ...domain.interfaces import EventCallback, IGateway, IGatewayConnection
from ...domain.models import GatewayOptions, LoginCredentials, MessageEvent

logger = logging.getLogger(__name__)


class LoopbackConnection(IGatewayConnection):
    """In-process connection. Inbound events are pushed with ``deliver``."""

    def __init__(self, gateway: "LoopbackGateway", options: GatewayOptions):
        self._gateway = gateway
        self.options = options
        self._callback: Optional[EventCallback] = None
        self.closed = False
        self.read_threads: List[str] = []

    @property
    def is_listening(self) -> bool:
        return self._callback is not None and not self.closed

    async def listen(self, callback: EventCallback) -> None:
        self._callback = callback
        logger.info("Loopback gateway listening for messages...")

    async def deliver(self, event: MessageEvent) -> None:
        if not self.is_listening:
            raise GatewayConnectionError("Connection is not listening")
        if self.options.auto_mark_read:
            await self.mark_read(event.thread_id)
        await self._callback(None, event)

    async def break_stream(self, error: Exception) -> None:
        if self._callback is not None:
            await self._callback(error, None)

    async def send_message(self, content: str, thread_id: str) -> Dict[str, Any]:
        if self.closed:
            raise GatewayConnectionError("Connection is closed")
        message_id = f"mid.{next(self._gateway.message_ids)}"
        self._gateway.sent.append((thread_id, content))
        return {"message_id": message_id, "thread_id": thread_id, "timestamp": int(time.time() * 1000)}

    async def mark_read(self, thread_id: str) -> None:
        self.read_threads.append(thread_id)

    async def get_user_info(self, user_ids: List[str]) -> Dict[str, Any]:
        return {user_id: {"id": user_id} for user_id in user_ids}

    async def get_thread_info(self, thread_id: str) -> Dict[str, Any]:
        return {"id": thread_id}

    async def close(self) -> None:
        self.closed = True
        self._callback = None


class LoopbackGateway(IGateway):
    """
    Gateway that never leaves the process. Stands in for a real messaging
    platform binding in local runs and tests.

    ``fail_next`` makes the next N connect attempts fail; ``reject_password``
    makes username/password logins with that password fail authentication.
    """

    def __init__(self, fail_next: int = 0, reject_password: Optional[str] = None):
        self.fail_next = fail_next
        self.reject_password = reject_password
        self.connect_calls: List[Tuple[LoginCredentials, GatewayOptions]] = []
        self.connections: List[LoopbackConnection] = []
        self.sent: List[Tuple[str, str]] = []
        self.message_ids = itertools.count(1)

    @property
    def active_connection(self) -> Optional[LoopbackConnection]:
        if self.connections and not self.connections[-1].closed:
            return self.connections[-1]
        return None

    async def connect(self, credentials: LoginCredentials, options: GatewayOptions) -> LoopbackConnection:
        self.connect_calls.append((credentials, options))
        if self.reject_password is not None and credentials.password == self.reject_password:
            raise AuthenticationError("Login rejected by gateway")
        if self.fail_next > 0:
            self.fail_next -= 1
            raise GatewayConnectionError("Gateway unreachable")
        connection = LoopbackConnection(self, options)
        self.connections.append(connection)
        return connection
