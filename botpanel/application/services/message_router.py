import asyncio
import logging
from collections import OrderedDict
from dataclasses import asdict, replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from ..commands.base import CommandContext
from ..commands.registry import CommandRegistry
from ...domain.errors import CommandExecutionError
from ...domain.interfaces import IGatewayConnection, Repositories
from ...domain.models import MessageEvent, Thread, User, MESSAGE_PREVIEW_LENGTH
from .activity_reporter import ActivityReporter
from .cooldown_tracker import CooldownTracker
from .stats_service import StatsService

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 5
SEEN_MESSAGE_IDS = 1000

SendFn = Callable[[str, str], Awaitable[Dict[str, Any]]]
ConnectionProvider = Callable[[], Optional[IGatewayConnection]]


class MessageRouter:
    """
    Handles inbound messages: records the sender and thread, then resolves and
    runs prefixed commands.

    Unknown commands, disabled commands, blocked senders and cooldown hits are
    dropped without a reply. A failing handler is logged and never stops the router.
    """

    def __init__(
            self,
            repositories: Repositories,
            registry: CommandRegistry,
            cooldowns: CooldownTracker,
            reporter: ActivityReporter,
            stats_service: StatsService,
            send: SendFn,
            connection_provider: ConnectionProvider
    ):
        self._repos = repositories
        self._registry = registry
        self._cooldowns = cooldowns
        self._reporter = reporter
        self._stats = stats_service
        self._send = send
        self._connection_provider = connection_provider
        self._lock = asyncio.Lock()
        self._seen_message_ids: "OrderedDict[str, None]" = OrderedDict()

    async def handle_event(self, event: MessageEvent) -> None:
        async with self._lock:
            if self._already_seen(event.message_id):
                logger.debug(f"Ignoring redelivered message {event.message_id}")
                return

            await self._reporter.increment("messages_received")
            user = await self._upsert_user(event)
            await self._upsert_thread(event)

            config = await self._repos.config.get()
            prefix = config.prefix or "/"
            if event.body and event.body.startswith(prefix):
                await self._handle_command(event, prefix, user)

    def _already_seen(self, message_id: Optional[str]) -> bool:
        if not message_id:
            return False
        if message_id in self._seen_message_ids:
            return True
        self._seen_message_ids[message_id] = None
        if len(self._seen_message_ids) > SEEN_MESSAGE_IDS:
            self._seen_message_ids.popitem(last=False)
        return False

    async def _upsert_user(self, event: MessageEvent) -> User:
        now = datetime.now()
        existing = await self._repos.users.get_by_id(event.sender_id)
        if existing is None:
            user = await self._repos.users.create(User(
                id=event.sender_id,
                username=event.sender_id,
                message_count=1,
                last_active=now
            ))
        else:
            user = await self._repos.users.update(replace(
                existing,
                message_count=existing.message_count + 1,
                last_active=now
            ))
        await self._reporter.publish("user", asdict(user))
        return user

    async def _upsert_thread(self, event: MessageEvent) -> Thread:
        now = datetime.now()
        preview = event.body[:MESSAGE_PREVIEW_LENGTH] if event.body else None
        existing = await self._repos.threads.get_by_id(event.thread_id)
        if existing is None:
            thread = await self._repos.threads.create(Thread(
                id=event.thread_id,
                name="Group Chat" if event.is_group else "Direct Message",
                is_group=event.is_group,
                message_count=1,
                last_message=preview,
                last_message_time=now
            ))
        else:
            thread = await self._repos.threads.update(replace(
                existing,
                is_group=event.is_group,
                message_count=existing.message_count + 1,
                last_message=preview,
                last_message_time=now
            ))
        await self._reporter.publish("thread", asdict(thread))
        return thread

    async def _handle_command(self, event: MessageEvent, prefix: str, user: User) -> None:
        tokens = event.body[len(prefix):].split()
        if not tokens:
            return
        command_name = tokens[0].lower()
        args = tokens[1:]

        handler = self._registry.resolve(command_name)
        if handler is None:
            return

        row = await self._repos.commands.get_by_name(command_name)
        if row is not None and not row.is_enabled:
            logger.debug(f"Command '{command_name}' is disabled.")
            return

        if user.is_blocked:
            logger.debug(f"Blocked user {user.id} tried '{command_name}'.")
            return

        if row is not None and row.cooldown is not None:
            cooldown = row.cooldown
        elif handler.cooldown is not None:
            cooldown = handler.cooldown
        else:
            cooldown = DEFAULT_COOLDOWN_SECONDS
        if not self._cooldowns.check_and_record(command_name, event.sender_id, cooldown):
            logger.debug(f"Command '{command_name}' on cooldown for {event.sender_id}.")
            return

        await self._reporter.increment("commands_executed")
        if row is not None:
            await self._repos.commands.increment_usage(row.id)
            updated = await self._repos.commands.get_by_id(row.id)
            if updated:
                await self._reporter.publish("command", asdict(updated))
        await self._reporter.log(
            "info",
            f"Command executed: {command_name}",
            f"User: {event.sender_id}, Thread: {event.thread_id}"
        )

        ctx = CommandContext(
            send=self._send,
            event=event,
            args=args,
            storage=self._repos,
            stats=self._stats,
            connection=self._connection_provider()
        )
        try:
            await handler.execute(ctx)
        except Exception as e:
            error = CommandExecutionError(command_name, e)
            logger.error(str(error), exc_info=True)
            await self._reporter.log("error", f"Command error: {command_name}", str(e))
