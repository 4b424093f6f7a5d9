import dataclasses
import json
import logging
from typing import Any, Dict, List

from ..services.activity_reporter import ActivityReporter
from ...domain.errors import NotFoundError
from ...domain.interfaces import Repositories
from ...domain.models import BotConfig, Command, Thread, User

logger = logging.getLogger(__name__)

# Fields the dashboard may edit. Identifiers and counters maintained by the router are excluded.
USER_EDITABLE_FIELDS = {"username", "full_name", "profile_pic", "is_admin", "is_blocked", "experience"}
THREAD_EDITABLE_FIELDS = {"name", "participant_count", "is_muted"}
COMMAND_EDITABLE_FIELDS = {"description", "category", "usage", "cooldown", "is_enabled"}


def _pick(changes: Dict[str, Any], allowed: set) -> Dict[str, Any]:
    return {key: value for key, value in changes.items() if key in allowed and value is not None}


class DashboardUseCase:
    """Read and edit operations backing the dashboard pages."""

    def __init__(self, repositories: Repositories, reporter: ActivityReporter):
        self._repos = repositories
        self._reporter = reporter

    async def list_users(self) -> List[User]:
        return await self._repos.users.get_all()

    async def get_user(self, user_id: str) -> User:
        user = await self._repos.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    async def update_user(self, user_id: str, changes: Dict[str, Any]) -> User:
        user = await self.get_user(user_id)
        updated = await self._repos.users.update(dataclasses.replace(user, **_pick(changes, USER_EDITABLE_FIELDS)))
        await self._reporter.publish("user", dataclasses.asdict(updated))
        return updated

    async def list_threads(self) -> List[Thread]:
        return await self._repos.threads.get_all()

    async def update_thread(self, thread_id: str, changes: Dict[str, Any]) -> Thread:
        thread = await self._repos.threads.get_by_id(thread_id)
        if thread is None:
            raise NotFoundError("thread", thread_id)
        updated = await self._repos.threads.update(
            dataclasses.replace(thread, **_pick(changes, THREAD_EDITABLE_FIELDS))
        )
        await self._reporter.publish("thread", dataclasses.asdict(updated))
        return updated

    async def update_command(self, command_id: str, changes: Dict[str, Any]) -> Command:
        command = await self._repos.commands.get_by_id(command_id)
        if command is None:
            raise NotFoundError("command", command_id)
        updated = await self._repos.commands.update(
            dataclasses.replace(command, **_pick(changes, COMMAND_EDITABLE_FIELDS))
        )
        await self._reporter.publish("command", dataclasses.asdict(updated))
        return updated

    async def get_config(self) -> BotConfig:
        return await self._repos.config.get()

    async def update_config(self, changes: Dict[str, Any]) -> BotConfig:
        current = await self._repos.config.get()
        allowed = {f.name for f in dataclasses.fields(BotConfig)}
        applied = {key: value for key, value in changes.items() if key in allowed}
        config = await self._repos.config.update(dataclasses.replace(current, **applied))
        await self._reporter.log("info", "Bot configuration updated", json.dumps(applied, default=str))
        logger.debug(f"Bot config updated: {applied}")
        return config
