import logging
import uuid
from typing import Dict, Iterable, List, Optional

from .base import CommandHandler
from ...domain.interfaces import ICommandRepository
from ...domain.models import Command

logger = logging.getLogger(__name__)


class CommandRegistry:
    """
    In-memory map of command name to handler, backed by the persisted command table.

    The handler supplies behaviour and default metadata; the persisted row holds
    the user-controlled settings (enabled flag, cooldown override, usage count).
    """

    def __init__(self, command_repo: ICommandRepository, handlers: Optional[Iterable[CommandHandler]] = None):
        self._command_repo = command_repo
        self._handlers: Dict[str, CommandHandler] = {}
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: CommandHandler, replace: bool = False) -> None:
        """Add a handler. Raises ValueError on a duplicate name unless ``replace`` is set."""
        name = handler.name.lower()
        if not name:
            raise ValueError("Cannot register a command without a name.")
        if name in self._handlers and not replace:
            raise ValueError(f"Command '{name}' is already registered.")
        self._handlers[name] = handler
        logger.debug(f"Registered command '{name}' ({type(handler).__name__}).")

    def resolve(self, name: str) -> Optional[CommandHandler]:
        return self._handlers.get(name.lower())

    def names(self) -> List[str]:
        return sorted(self._handlers)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    async def list_enabled(self) -> List[CommandHandler]:
        """Registered handlers whose persisted row is enabled (or that have no row yet)."""
        rows = {row.name: row for row in await self._command_repo.get_all()}
        return [
            handler for name, handler in sorted(self._handlers.items())
            if name not in rows or rows[name].is_enabled
        ]

    async def seed(self) -> int:
        """
        Create a default row for every handler that has none.
        Existing rows are left untouched so user toggles survive restarts.
        Returns the number of rows created.
        """
        created = 0
        for name, handler in self._handlers.items():
            if await self._command_repo.get_by_name(name):
                continue
            await self._command_repo.create(Command(
                id=uuid.uuid4().hex,
                name=name,
                description=handler.description,
                category=handler.category or "general",
                usage=handler.usage,
                cooldown=handler.cooldown,
                is_enabled=True,
                usage_count=0
            ))
            created += 1
        logger.info(f"Command table seeded: {created} new of {len(self._handlers)} registered.")
        return created
