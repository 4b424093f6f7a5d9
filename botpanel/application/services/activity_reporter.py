import logging
from dataclasses import asdict, replace
from typing import Any, Dict, Optional

from ...domain.interfaces import INotifier, Repositories
from ...domain.models import ActivityLog, Session
from .stats_service import StatsService

logger = logging.getLogger(__name__)


def session_to_public_dict(session: Session) -> Dict[str, Any]:
    """Session as shown to observers: the credential blob is never exposed."""
    data = asdict(session)
    data["app_state"] = "[HIDDEN]" if session.app_state else None
    return data


class ActivityReporter:
    """
    Writes activity log entries, session transitions and counter bumps,
    and publishes the matching notification for each change.
    """

    def __init__(self, repositories: Repositories, notifier: INotifier, stats_service: StatsService):
        self._repos = repositories
        self._notifier = notifier
        self._stats = stats_service

    async def log(self, log_type: str, message: str, details: Optional[str] = None) -> ActivityLog:
        entry = await self._repos.logs.add(log_type, message, details)
        await self.publish("log", asdict(entry))
        return entry

    async def update_session(self, **changes: Any) -> Session:
        current = await self._repos.session.get()
        if "connection_health" in changes:
            changes["connection_health"] = max(0, min(100, int(changes["connection_health"])))
        session = await self._repos.session.update(replace(current, **changes))
        await self.publish("session", session_to_public_dict(session))
        return session

    async def increment(self, counter: str) -> None:
        await self._repos.stats.increment(counter)
        await self.publish_stats()

    async def publish_stats(self) -> None:
        stats = await self._stats.get_stats()
        await self.publish("stats", asdict(stats))

    async def publish(self, message_type: str, data: Any) -> None:
        try:
            await self._notifier.publish(message_type, data)
        except Exception as e:
            logger.warning(f"Dropping '{message_type}' notification: {e}")
