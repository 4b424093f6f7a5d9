import asyncio
import json
import logging
import random
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from ...domain.errors import (
    AlreadyRunningError, BotError, GatewayConnectionError, InvalidCredentialsError, NoCredentialsError
)
from ...domain.interfaces import IGateway, IGatewayConnection, Repositories
from ...domain.models import BotConfig, GatewayOptions, LoginCredentials, MessageEvent
from .activity_reporter import ActivityReporter

logger = logging.getLogger(__name__)

MAX_RECONNECT_ATTEMPTS = 10
BASE_RECONNECT_DELAY_MS = 1000
MAX_RECONNECT_DELAY_MS = 300000

USER_AGENTS = [
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Linux; Android 14; SM-S918B) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_6 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Linux; Android 13; Pixel 7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/119.0.0.0 Mobile Safari/537.36",
]

EventHandler = Callable[[MessageEvent], Awaitable[None]]
SleepFn = Callable[[float], Awaitable[Any]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


RUNNING_STATES = (ConnectionState.CONNECTING, ConnectionState.CONNECTED, ConnectionState.RECONNECTING)


def backoff_delay_ms(attempt: int) -> int:
    """Delay before reconnect ``attempt`` (1-based): 2s, 4s, 8s ... capped at 5 minutes."""
    return min(BASE_RECONNECT_DELAY_MS * 2 ** attempt, MAX_RECONNECT_DELAY_MS)


def validate_credentials(credentials: LoginCredentials) -> Any:
    """
    Checks the credential payload shape.
    Returns the parsed app state for appState logins, None for username/password logins.
    """
    if credentials.type == "appState":
        if not credentials.app_state:
            raise InvalidCredentialsError("AppState is required")
        try:
            app_state = json.loads(credentials.app_state)
        except (TypeError, ValueError):
            raise InvalidCredentialsError("Invalid AppState JSON format")
        if not isinstance(app_state, (dict, list)):
            raise InvalidCredentialsError("Invalid AppState JSON format")
        return app_state
    if credentials.type == "credentials":
        if not credentials.username or not credentials.password:
            raise InvalidCredentialsError("Username and password are required")
        return None
    raise InvalidCredentialsError(f"Unknown login type: {credentials.type}")


class SessionManager:
    """
    Owns the gateway connection: login, listening, exponential-backoff
    reconnection and the persisted session record.

    At most one reconnect task is pending at any time. ``stop()`` bumps the run
    generation so a connect attempt already in flight is discarded when it returns.
    """

    def __init__(
            self,
            repositories: Repositories,
            gateway: IGateway,
            reporter: ActivityReporter,
            event_handler: EventHandler,
            sleep: SleepFn = asyncio.sleep,
            max_reconnect_attempts: int = MAX_RECONNECT_ATTEMPTS,
            restart_settle_seconds: float = 2.0
    ):
        self._repos = repositories
        self._gateway = gateway
        self._reporter = reporter
        self._event_handler = event_handler
        self._sleep = sleep
        self.max_reconnect_attempts = max_reconnect_attempts
        self.restart_settle_seconds = restart_settle_seconds

        self._state = ConnectionState.DISCONNECTED
        self._connection: Optional[IGatewayConnection] = None
        self._credentials: Optional[LoginCredentials] = None
        self._reconnect_attempts = 0
        self._reconnect_task: Optional[asyncio.Task] = None
        self._generation = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connection(self) -> Optional[IGatewayConnection]:
        return self._connection

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def has_credentials(self) -> bool:
        return self._credentials is not None

    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED and self._connection is not None

    def connection_status(self) -> str:
        if self.is_connected():
            return "connected"
        if self._state == ConnectionState.RECONNECTING or (
                self._state == ConnectionState.CONNECTING and self._reconnect_attempts > 0):
            return "reconnecting"
        return "offline"

    def reconnect_pending(self) -> bool:
        task = self._reconnect_task
        return task is not None and not task.done() and task is not asyncio.current_task()

    async def start(self, credentials: LoginCredentials) -> None:
        if self._state in RUNNING_STATES:
            raise AlreadyRunningError()

        self._credentials = credentials
        self._reconnect_attempts = 0
        self._generation += 1
        await self.connect(credentials)

    async def connect(self, credentials: LoginCredentials) -> None:
        generation = self._generation
        self._state = ConnectionState.CONNECTING
        await self._reporter.update_session(is_connected=False, connection_health=50)
        await self._reporter.log("info", "Connecting to gateway...", f"Method: {credentials.type}")

        try:
            app_state = validate_credentials(credentials)
        except InvalidCredentialsError as e:
            await self._reporter.log("error", "Connection failed", str(e))
            await self._mark_down()
            raise

        config = await self._repos.config.get()
        try:
            connection = await self._gateway.connect(credentials, self._build_options(config, credentials))
        except Exception as e:
            logger.error(f"Gateway connect failed: {e}")
            await self._reporter.log("error", "Connection failed", str(e))
            await self._handle_connect_failure(e, config, generation)
            return

        if generation != self._generation:
            logger.info("Discarding connection that completed after stop().")
            await self._close_quietly(connection)
            return

        self._connection = connection
        self._state = ConnectionState.CONNECTED

        now = datetime.now()
        changes = {"is_connected": True, "last_connected": now, "connection_health": 100}
        if app_state is not None:
            changes["app_state"] = app_state
        if credentials.username:
            changes["username"] = credentials.username
        await self._reporter.update_session(**changes)
        await self._repos.stats.set_start_time(now)
        await self._reporter.publish_stats()

        details = f"Logged in as: {credentials.username}" if credentials.username else None
        await self._reporter.log("info", "Successfully connected", details)
        logger.info("Gateway connection established.")

        try:
            await connection.listen(self._on_gateway_event)
        except Exception as e:
            logger.error(f"Gateway listen failed: {e}")
            self._connection = None
            await self._close_quietly(connection)
            await self._reporter.log("error", "Connection failed", str(e))
            await self._repos.stats.set_start_time(None)
            await self._handle_connect_failure(e, config, generation)
            return

        self._reconnect_attempts = 0

    async def schedule_reconnect(self) -> None:
        if self.reconnect_pending():
            logger.debug("Reconnect already pending, not scheduling another.")
            return

        self._reconnect_attempts += 1
        attempt = self._reconnect_attempts
        delay_ms = backoff_delay_ms(attempt)
        self._state = ConnectionState.RECONNECTING

        await self._reporter.update_session(
            is_connected=False,
            connection_health=max(0, 100 - attempt * 10)
        )
        await self._reporter.log(
            "warn",
            f"Reconnecting in {delay_ms / 1000:g}s (attempt {attempt}/{self.max_reconnect_attempts})"
        )
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay_ms, self._generation))

    async def _reconnect_after(self, delay_ms: int, generation: int) -> None:
        await self._sleep(delay_ms / 1000)
        if generation != self._generation or self._credentials is None:
            return
        try:
            await self.connect(self._credentials)
        except BotError as e:
            # Already logged and recorded on the session by connect()
            logger.warning(f"Reconnect attempt {self._reconnect_attempts} gave up: {e}")
        except Exception as e:
            logger.error(f"Unexpected error during reconnect: {e}", exc_info=True)
            await self._mark_down()

    async def wait_reconnect(self) -> None:
        """Wait until no reconnect task is pending."""
        while self._reconnect_task is not None and not self._reconnect_task.done():
            task = self._reconnect_task
            try:
                await task
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise

    async def stop(self) -> None:
        self._generation += 1

        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        connection, self._connection = self._connection, None
        if connection is not None:
            await self._close_quietly(connection)

        self._reconnect_attempts = 0
        self._state = ConnectionState.STOPPED
        await self._reporter.update_session(is_connected=False, connection_health=0)
        await self._repos.stats.set_start_time(None)
        await self._reporter.publish_stats()

    async def restart(self) -> None:
        if self._credentials is None:
            raise NoCredentialsError()
        credentials = self._credentials
        await self.stop()
        await self._sleep(self.restart_settle_seconds)
        await self.start(credentials)

    async def _on_gateway_event(self, error: Optional[Exception], event: Optional[MessageEvent]) -> None:
        if error is not None:
            await self._reporter.log("error", "Listen error", str(error))
            await self._handle_stream_failure()
            return
        if event is None:
            return
        try:
            await self._event_handler(event)
        except Exception as e:
            logger.error(f"Unhandled error processing event {event.message_id}: {e}", exc_info=True)
            await self._reporter.log("error", "Message handling failed", str(e))

    async def _handle_stream_failure(self) -> None:
        connection, self._connection = self._connection, None
        if connection is not None:
            await self._close_quietly(connection)

        config = await self._repos.config.get()
        if config.auto_reconnect and self._reconnect_attempts < self.max_reconnect_attempts:
            await self.schedule_reconnect()
        else:
            await self._mark_down()
            await self._repos.stats.set_start_time(None)

    async def _handle_connect_failure(self, error: Exception, config: BotConfig, generation: int) -> None:
        """Schedules a reconnect while attempts remain, otherwise marks the session down and raises."""
        if generation != self._generation:
            return
        if config.auto_reconnect and self._reconnect_attempts < self.max_reconnect_attempts:
            await self.schedule_reconnect()
            return
        await self._mark_down()
        if isinstance(error, GatewayConnectionError):
            raise error
        raise GatewayConnectionError(str(error)) from error

    async def _mark_down(self) -> None:
        self._state = ConnectionState.DISCONNECTED
        await self._reporter.update_session(is_connected=False, connection_health=0)

    def _build_options(self, config: BotConfig, credentials: LoginCredentials) -> GatewayOptions:
        return GatewayOptions(
            self_listen=config.self_listen,
            auto_mark_read=config.auto_mark_read,
            listen_timeout=config.listen_timeout,
            listen_interval=config.listen_interval,
            proxy=credentials.proxy or config.proxy,
            user_agent=random.choice(USER_AGENTS) if config.random_user_agent else None
        )

    @staticmethod
    async def _close_quietly(connection: IGatewayConnection) -> None:
        try:
            await connection.close()
        except Exception as e:
            logger.warning(f"Error closing gateway connection: {e}")
