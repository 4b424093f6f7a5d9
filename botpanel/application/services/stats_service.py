import logging
from datetime import datetime
from typing import Callable, Optional

from ...domain.interfaces import Repositories
from ...domain.models import BotStats

logger = logging.getLogger(__name__)


class StatsService:
    """Builds the aggregate BotStats view from persisted counters and session state."""

    def __init__(self, repositories: Repositories, status_provider: Optional[Callable[[], str]] = None):
        self._repos = repositories
        self._status_provider = status_provider

    def set_status_provider(self, provider: Callable[[], str]) -> None:
        self._status_provider = provider

    async def get_stats(self) -> BotStats:
        session = await self._repos.session.get()
        counters = await self._repos.stats.get_counters()

        uptime = 0
        if counters.start_time and session.is_connected:
            uptime = max(0, int((datetime.now() - counters.start_time).total_seconds()))

        if self._status_provider:
            status = self._status_provider()
        else:
            status = "connected" if session.is_connected else "offline"

        return BotStats(
            uptime=uptime,
            total_users=await self._repos.users.count(),
            total_threads=await self._repos.threads.count(),
            messages_received=counters.messages_received,
            messages_sent=counters.messages_sent,
            commands_executed=counters.commands_executed,
            connection_status=status,
            connection_health=session.connection_health
        )


def format_duration(total_seconds: int) -> str:
    """Formats seconds as 'Hh Mm Ss'."""
    hours, remainder = divmod(int(total_seconds), 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours}h {minutes}m {seconds}s"
