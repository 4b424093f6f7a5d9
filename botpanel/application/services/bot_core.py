import asyncio
import logging
from dataclasses import asdict, replace
from typing import Any, Dict, List, Optional

from ..commands.registry import CommandRegistry
from ...domain.errors import NotConnectedError, NotFoundError
from ...domain.interfaces import IGateway, INotifier, NullNotifier, Repositories
from ...domain.models import ActivityLog, BotStats, Command, LoginCredentials, MessageEvent, Session
from .activity_reporter import ActivityReporter
from .cooldown_tracker import CooldownTracker
from .message_router import MessageRouter
from .session_manager import SessionManager, SleepFn, MAX_RECONNECT_ATTEMPTS
from .stats_service import StatsService

logger = logging.getLogger(__name__)


class BotCore:
    """
    The bot: connection lifecycle plus message routing, wired on explicit
    collaborators so tests can swap the gateway and storage.
    """

    def __init__(
            self,
            repositories: Repositories,
            registry: CommandRegistry,
            gateway: IGateway,
            notifier: Optional[INotifier] = None,
            cooldowns: Optional[CooldownTracker] = None,
            sleep: SleepFn = asyncio.sleep,
            max_reconnect_attempts: int = MAX_RECONNECT_ATTEMPTS,
            restart_settle_seconds: float = 2.0
    ):
        self._repos = repositories
        self.registry = registry
        self.cooldowns = cooldowns or CooldownTracker()
        self.stats_service = StatsService(repositories)
        self.reporter = ActivityReporter(repositories, notifier or NullNotifier(), self.stats_service)

        self.router = MessageRouter(
            repositories=repositories,
            registry=registry,
            cooldowns=self.cooldowns,
            reporter=self.reporter,
            stats_service=self.stats_service,
            send=self._send_from_command,
            connection_provider=lambda: self.session_manager.connection
        )
        self.session_manager = SessionManager(
            repositories=repositories,
            gateway=gateway,
            reporter=self.reporter,
            event_handler=self.router.handle_event,
            sleep=sleep,
            max_reconnect_attempts=max_reconnect_attempts,
            restart_settle_seconds=restart_settle_seconds
        )
        self.stats_service.set_status_provider(self.session_manager.connection_status)

    async def initialize(self) -> None:
        """Seed the command table from the registry."""
        try:
            await self.registry.seed()
            await self.reporter.log("info", f"Loaded {len(self.registry)} commands")
        except Exception as e:
            logger.error(f"Failed to load commands: {e}", exc_info=True)
            await self.reporter.log("error", "Failed to load commands", str(e))

    # Lifecycle

    async def start(self, credentials: LoginCredentials) -> None:
        await self.session_manager.start(credentials)

    async def stop(self) -> None:
        await self.session_manager.stop()

    async def restart(self) -> None:
        await self.session_manager.restart()

    def is_connected(self) -> bool:
        return self.session_manager.is_connected()

    # Messaging

    async def handle_event(self, event: MessageEvent) -> None:
        await self.router.handle_event(event)

    async def send_message(self, thread_id: str, content: str) -> Dict[str, Any]:
        connection = self.session_manager.connection
        if connection is None or not self.is_connected():
            raise NotConnectedError()
        ack = await connection.send_message(content, thread_id)
        await self.reporter.increment("messages_sent")
        await self.reporter.log("message", f"Sent message to thread {thread_id}", content)
        return ack

    async def _send_from_command(self, content: str, thread_id: str) -> Dict[str, Any]:
        return await self.send_message(thread_id, content)

    # Queries

    async def get_session(self) -> Session:
        return await self._repos.session.get()

    async def get_stats(self) -> BotStats:
        return await self.stats_service.get_stats()

    async def list_commands(self) -> List[Command]:
        return await self._repos.commands.get_all()

    async def set_command_enabled(self, command_id: str, enabled: bool) -> Command:
        command = await self._repos.commands.get_by_id(command_id)
        if command is None:
            raise NotFoundError("command", command_id)
        updated = await self._repos.commands.update(replace(command, is_enabled=enabled))
        await self.reporter.publish("command", asdict(updated))
        await self.reporter.log(
            "info", f"Command {'enabled' if enabled else 'disabled'}: {updated.name}"
        )
        return updated

    async def get_logs(self, limit: int = 100, log_type: Optional[str] = None) -> List[ActivityLog]:
        return await self._repos.logs.get_logs(limit=limit, log_type=log_type)

    async def clear_logs(self) -> None:
        await self._repos.logs.clear()
        logger.info("Activity log cleared.")
