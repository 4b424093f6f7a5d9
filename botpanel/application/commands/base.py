from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, TYPE_CHECKING

from ...domain.interfaces import IGatewayConnection, Repositories
from ...domain.models import MessageEvent

if TYPE_CHECKING:
    from ..services.stats_service import StatsService

SendFn = Callable[[str, str], Awaitable[Dict[str, Any]]]


@dataclass
class CommandContext:
    """Everything a handler may touch while executing."""
    send: SendFn
    event: MessageEvent
    args: List[str]
    storage: Repositories
    stats: "StatsService"
    connection: Optional[IGatewayConnection] = None

    async def reply(self, content: str) -> Dict[str, Any]:
        """Send ``content`` back to the thread the command came from."""
        return await self.send(content, self.event.thread_id)


class CommandHandler(ABC):
    """A named command the bot can execute."""

    name: str = ""
    description: str = ""
    category: str = "general"
    usage: str = ""
    cooldown: int = 5

    @abstractmethod
    async def execute(self, ctx: CommandContext) -> None:
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


class FunctionCommand(CommandHandler):
    """Adapts a plain coroutine function to the CommandHandler interface."""

    def __init__(
            self,
            name: str,
            func: Callable[[CommandContext], Awaitable[None]],
            description: str = "",
            category: str = "general",
            usage: Optional[str] = None,
            cooldown: int = 5
    ):
        if not name:
            raise ValueError("Command name is required.")
        self.name = name.lower()
        self.description = description
        self.category = category or "general"
        self.usage = usage or f"/{self.name}"
        self.cooldown = cooldown
        self._func = func

    async def execute(self, ctx: CommandContext) -> None:
        await self._func(ctx)
