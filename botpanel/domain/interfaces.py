# botpanel/domain/interfaces.py
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .models import (
    User, Thread, Command, BotConfig, Session, ActivityLog, StatsCounters,
    LoginCredentials, GatewayOptions, MessageEvent
)


class IUserRepository(ABC):
    """Repository interface for users observed by the bot."""

    @abstractmethod
    async def create(self, user: User) -> User:
        """Create a new user."""
        pass

    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Retrieve a user by sender ID."""
        pass

    @abstractmethod
    async def get_all(self) -> List[User]:
        """Retrieve all users, most recently active first."""
        pass

    @abstractmethod
    async def update(self, user: User) -> User:
        """Persist all fields of an existing user."""
        pass

    @abstractmethod
    async def delete(self, user_id: str) -> bool:
        pass

    @abstractmethod
    async def count(self) -> int:
        pass


class IThreadRepository(ABC):
    """Repository interface for conversation threads."""

    @abstractmethod
    async def create(self, thread: Thread) -> Thread:
        pass

    @abstractmethod
    async def get_by_id(self, thread_id: str) -> Optional[Thread]:
        pass

    @abstractmethod
    async def get_all(self) -> List[Thread]:
        pass

    @abstractmethod
    async def update(self, thread: Thread) -> Thread:
        pass

    @abstractmethod
    async def delete(self, thread_id: str) -> bool:
        pass

    @abstractmethod
    async def count(self) -> int:
        pass


class ICommandRepository(ABC):
    """Repository interface for persisted command settings."""

    @abstractmethod
    async def create(self, command: Command) -> Command:
        """Create a command row. Raises ValueError when the name is taken."""
        pass

    @abstractmethod
    async def get_by_id(self, command_id: str) -> Optional[Command]:
        pass

    @abstractmethod
    async def get_by_name(self, name: str) -> Optional[Command]:
        pass

    @abstractmethod
    async def get_all(self) -> List[Command]:
        pass

    @abstractmethod
    async def update(self, command: Command) -> Command:
        pass

    @abstractmethod
    async def delete(self, command_id: str) -> bool:
        pass

    @abstractmethod
    async def increment_usage(self, command_id: str) -> None:
        """Atomically add one to the usage counter."""
        pass


class IBotConfigRepository(ABC):
    """Repository interface for the singleton bot configuration."""

    @abstractmethod
    async def get(self) -> BotConfig:
        """Return the configuration, creating the default row if missing."""
        pass

    @abstractmethod
    async def update(self, config: BotConfig) -> BotConfig:
        pass


class ISessionRepository(ABC):
    """Repository interface for the singleton session record."""

    @abstractmethod
    async def get(self) -> Session:
        pass

    @abstractmethod
    async def update(self, session: Session) -> Session:
        pass


class IActivityLogRepository(ABC):
    """Repository interface for the capped activity log."""

    @abstractmethod
    async def add(self, log_type: str, message: str, details: Optional[str] = None) -> ActivityLog:
        """Append an entry, evicting the oldest ones beyond the cap."""
        pass

    @abstractmethod
    async def get_logs(self, limit: int = 100, log_type: Optional[str] = None) -> List[ActivityLog]:
        """Return entries newest first, optionally filtered by type."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass

    @abstractmethod
    async def count(self) -> int:
        pass


class IStatsRepository(ABC):
    """Repository interface for global counters."""

    @abstractmethod
    async def get_counters(self) -> StatsCounters:
        pass

    @abstractmethod
    async def increment(self, counter: str) -> None:
        """Add one to messages_received, messages_sent or commands_executed."""
        pass

    @abstractmethod
    async def set_start_time(self, start_time: Optional[datetime]) -> None:
        pass


@dataclass(frozen=True)
class Repositories:
    """The storage layer handed to services and command handlers."""
    users: IUserRepository
    threads: IThreadRepository
    commands: ICommandRepository
    config: IBotConfigRepository
    session: ISessionRepository
    logs: IActivityLogRepository
    stats: IStatsRepository


EventCallback = Callable[[Optional[Exception], Optional[MessageEvent]], Awaitable[None]]


class IGatewayConnection(ABC):
    """An authenticated session with the messaging platform."""

    @abstractmethod
    async def listen(self, callback: EventCallback) -> None:
        """
        Register the inbound event callback.
        The callback receives (None, event) per message, or (error, None)
        if the listen stream itself breaks.
        """
        pass

    @abstractmethod
    async def send_message(self, content: str, thread_id: str) -> Dict[str, Any]:
        """Send a message and return the delivery acknowledgment."""
        pass

    @abstractmethod
    async def mark_read(self, thread_id: str) -> None:
        pass

    @abstractmethod
    async def get_user_info(self, user_ids: List[str]) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def get_thread_info(self, thread_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class IGateway(ABC):
    """Connector to the external messaging platform."""

    @abstractmethod
    async def connect(self, credentials: LoginCredentials, options: GatewayOptions) -> IGatewayConnection:
        """Log in. Raises AuthenticationError or GatewayConnectionError on failure."""
        pass


class INotifier(ABC):
    """Fan-out of typed state-change notifications to observers."""

    @abstractmethod
    async def publish(self, message_type: str, data: Any) -> None:
        """Deliver {type, data} to every subscriber, best effort."""
        pass


class NullNotifier(INotifier):
    """Notifier that drops everything. Used when nobody is listening."""

    async def publish(self, message_type: str, data: Any) -> None:
        return None
