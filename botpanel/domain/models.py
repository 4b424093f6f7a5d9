# botpanel/domain/models.py
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


LOG_TYPES = ("info", "warn", "error", "message")
MAX_LOG_ENTRIES = 1000
MESSAGE_PREVIEW_LENGTH = 100


@dataclass(frozen=True)
class User:
    """A sender observed by the bot."""
    id: str
    username: str
    full_name: Optional[str] = None
    profile_pic: Optional[str] = None
    is_admin: bool = False
    is_blocked: bool = False
    message_count: int = 0
    experience: int = 0
    last_active: Optional[datetime] = None


@dataclass(frozen=True)
class Thread:
    """A conversation (direct message or group chat)."""
    id: str
    name: Optional[str] = None
    is_group: bool = False
    participant_count: int = 1
    message_count: int = 0
    is_muted: bool = False
    last_message: Optional[str] = None
    last_message_time: Optional[datetime] = None


@dataclass(frozen=True)
class Command:
    """Persisted command row. Holds the user-controlled settings of a handler."""
    id: str
    name: str
    description: Optional[str] = None
    category: str = "general"
    usage: Optional[str] = None
    cooldown: int = 5
    is_enabled: bool = True
    usage_count: int = 0


@dataclass(frozen=True)
class BotConfig:
    """Singleton runtime configuration of the bot."""
    prefix: str = "/"
    auto_reconnect: bool = True
    random_user_agent: bool = True
    auto_mark_read: bool = False
    self_listen: bool = False
    listen_timeout: int = 60000  # ms
    listen_interval: int = 3000  # ms
    proxy: Optional[str] = None
    language: str = "en"


@dataclass(frozen=True)
class Session:
    """Singleton connection record."""
    app_state: Any = None
    username: Optional[str] = None
    user_id: Optional[str] = None
    is_connected: bool = False
    last_connected: Optional[datetime] = None
    connection_health: int = 100


@dataclass(frozen=True)
class ActivityLog:
    id: str
    type: str
    message: str
    details: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class StatsCounters:
    """Raw persisted counters."""
    messages_received: int = 0
    messages_sent: int = 0
    commands_executed: int = 0
    start_time: Optional[datetime] = None


@dataclass(frozen=True)
class BotStats:
    """Aggregate statistics shown on the dashboard."""
    uptime: int
    total_users: int
    total_threads: int
    messages_received: int
    messages_sent: int
    commands_executed: int
    connection_status: str  # 'connected' | 'reconnecting' | 'offline'
    connection_health: int


@dataclass(frozen=True)
class LoginCredentials:
    """Payload used to log the bot in.

    ``type`` is either ``"appState"`` (``app_state`` holds a serialized cookie
    snapshot) or ``"credentials"`` (``username`` and ``password``).
    """
    type: str
    app_state: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    proxy: Optional[str] = None


@dataclass(frozen=True)
class GatewayOptions:
    """Options handed to the gateway on connect, derived from BotConfig."""
    self_listen: bool = False
    auto_mark_read: bool = False
    listen_timeout: int = 60000
    listen_interval: int = 3000
    proxy: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class MessageEvent:
    """Inbound message delivered by the gateway."""
    thread_id: str
    sender_id: str
    body: str = ""
    is_group: bool = False
    message_id: Optional[str] = None
