# botpanel/infrastructure/database/sqlite_repositories.py
import json
from abc import ABC, abstractmethod
import sqlite3
import logging
import uuid
from datetime import datetime
from typing import List, Optional

from ...domain.interfaces import (
    IUserRepository, IThreadRepository, ICommandRepository, IBotConfigRepository,
    ISessionRepository, IActivityLogRepository, IStatsRepository, Repositories
)
from ...domain.models import (
    User, Thread, Command, BotConfig, Session, ActivityLog, StatsCounters, MAX_LOG_ENTRIES
)

logger = logging.getLogger(__name__)

SINGLETON_ID = "default"
COUNTER_COLUMNS = ("messages_received", "messages_sent", "commands_executed")


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class _SQLiteRepository(ABC):
    """Shared connection handling. Every statement runs in its own transaction."""

    def __init__(self, db_path: str = "botpanel.db"):
        self.db_path = db_path
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @abstractmethod
    def _init_database(self) -> None:
        """Create the tables this repository owns."""


class SQLiteUserRepository(_SQLiteRepository, IUserRepository):
    """SQLite implementation of the user repository."""

    def _init_database(self) -> None:
        """Initialize database tables."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL,
                    full_name TEXT,
                    profile_pic TEXT,
                    is_admin BOOLEAN DEFAULT FALSE,
                    is_blocked BOOLEAN DEFAULT FALSE,
                    message_count INTEGER DEFAULT 0,
                    experience INTEGER DEFAULT 0,
                    last_active TIMESTAMP
                )
            """)
            conn.commit()

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row['id'],
            username=row['username'],
            full_name=row['full_name'],
            profile_pic=row['profile_pic'],
            is_admin=bool(row['is_admin']),
            is_blocked=bool(row['is_blocked']),
            message_count=row['message_count'] or 0,
            experience=row['experience'] or 0,
            last_active=_from_iso(row['last_active'])
        )

    async def create(self, user: User) -> User:
        """Create a new user."""
        with self._connect() as conn:
            try:
                conn.execute("""
                    INSERT INTO users (
                        id, username, full_name, profile_pic, is_admin, is_blocked,
                        message_count, experience, last_active
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    user.id,
                    user.username,
                    user.full_name,
                    user.profile_pic,
                    user.is_admin,
                    user.is_blocked,
                    user.message_count,
                    user.experience,
                    _to_iso(user.last_active)
                ))
                conn.commit()
            except sqlite3.IntegrityError as e:
                logger.error(f"SQLite integrity error creating user {user.id}: {e}")
                raise ValueError(f"User {user.id} already exists: {e}")
        return user

    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Retrieve a user by sender ID."""
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return self._row_to_user(row) if row else None

    async def get_all(self) -> List[User]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM users ORDER BY last_active IS NULL, last_active DESC"
            ).fetchall()
            return [self._row_to_user(row) for row in rows]

    async def update(self, user: User) -> User:
        with self._connect() as conn:
            conn.execute("""
                UPDATE users
                SET username = ?, full_name = ?, profile_pic = ?, is_admin = ?, is_blocked = ?,
                    message_count = ?, experience = ?, last_active = ?
                WHERE id = ?
            """, (
                user.username,
                user.full_name,
                user.profile_pic,
                user.is_admin,
                user.is_blocked,
                user.message_count,
                user.experience,
                _to_iso(user.last_active),
                user.id
            ))
            conn.commit()
        return user

    async def delete(self, user_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            conn.commit()
            return cursor.rowcount > 0

    async def count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) AS count FROM users").fetchone()['count'] or 0


class SQLiteThreadRepository(_SQLiteRepository, IThreadRepository):
    """SQLite implementation of the thread repository."""

    def _init_database(self) -> None:
        """Initialize database tables."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS threads (
                    id TEXT PRIMARY KEY,
                    name TEXT,
                    is_group BOOLEAN DEFAULT FALSE,
                    participant_count INTEGER DEFAULT 1,
                    message_count INTEGER DEFAULT 0,
                    is_muted BOOLEAN DEFAULT FALSE,
                    last_message TEXT,
                    last_message_time TIMESTAMP
                )
            """)
            conn.commit()

    @staticmethod
    def _row_to_thread(row: sqlite3.Row) -> Thread:
        return Thread(
            id=row['id'],
            name=row['name'],
            is_group=bool(row['is_group']),
            participant_count=row['participant_count'] or 0,
            message_count=row['message_count'] or 0,
            is_muted=bool(row['is_muted']),
            last_message=row['last_message'],
            last_message_time=_from_iso(row['last_message_time'])
        )

    async def create(self, thread: Thread) -> Thread:
        with self._connect() as conn:
            try:
                conn.execute("""
                    INSERT INTO threads (
                        id, name, is_group, participant_count, message_count,
                        is_muted, last_message, last_message_time
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    thread.id,
                    thread.name,
                    thread.is_group,
                    thread.participant_count,
                    thread.message_count,
                    thread.is_muted,
                    thread.last_message,
                    _to_iso(thread.last_message_time)
                ))
                conn.commit()
            except sqlite3.IntegrityError as e:
                logger.error(f"SQLite integrity error creating thread {thread.id}: {e}")
                raise ValueError(f"Thread {thread.id} already exists: {e}")
        return thread

    async def get_by_id(self, thread_id: str) -> Optional[Thread]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM threads WHERE id = ?", (thread_id,)).fetchone()
            return self._row_to_thread(row) if row else None

    async def get_all(self) -> List[Thread]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM threads ORDER BY last_message_time IS NULL, last_message_time DESC"
            ).fetchall()
            return [self._row_to_thread(row) for row in rows]

    async def update(self, thread: Thread) -> Thread:
        with self._connect() as conn:
            conn.execute("""
                UPDATE threads
                SET name = ?, is_group = ?, participant_count = ?, message_count = ?,
                    is_muted = ?, last_message = ?, last_message_time = ?
                WHERE id = ?
            """, (
                thread.name,
                thread.is_group,
                thread.participant_count,
                thread.message_count,
                thread.is_muted,
                thread.last_message,
                _to_iso(thread.last_message_time),
                thread.id
            ))
            conn.commit()
        return thread

    async def delete(self, thread_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM threads WHERE id = ?", (thread_id,))
            conn.commit()
            return cursor.rowcount > 0

    async def count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) AS count FROM threads").fetchone()['count'] or 0


class SQLiteCommandRepository(_SQLiteRepository, ICommandRepository):
    """SQLite implementation of the command repository."""

    def _init_database(self) -> None:
        """Initialize database tables."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS commands (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE,
                    description TEXT,
                    category TEXT DEFAULT 'general',
                    usage TEXT,
                    cooldown INTEGER DEFAULT 5,
                    is_enabled BOOLEAN DEFAULT TRUE,
                    usage_count INTEGER DEFAULT 0
                )
            """)
            conn.commit()

    @staticmethod
    def _row_to_command(row: sqlite3.Row) -> Command:
        return Command(
            id=row['id'],
            name=row['name'],
            description=row['description'],
            category=row['category'] or "general",
            usage=row['usage'],
            cooldown=row['cooldown'] if row['cooldown'] is not None else 5,
            is_enabled=bool(row['is_enabled']),
            usage_count=row['usage_count'] or 0
        )

    async def create(self, command: Command) -> Command:
        """Create a command row. The name must be unique."""
        command_id = command.id or uuid.uuid4().hex
        with self._connect() as conn:
            try:
                conn.execute("""
                    INSERT INTO commands (
                        id, name, description, category, usage, cooldown, is_enabled, usage_count
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    command_id,
                    command.name,
                    command.description,
                    command.category,
                    command.usage,
                    command.cooldown,
                    command.is_enabled,
                    command.usage_count
                ))
                conn.commit()
            except sqlite3.IntegrityError as e:
                logger.error(f"SQLite integrity error creating command '{command.name}': {e}")
                raise ValueError(f"Command '{command.name}' already exists: {e}")
        return await self.get_by_id(command_id)

    async def get_by_id(self, command_id: str) -> Optional[Command]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM commands WHERE id = ?", (command_id,)).fetchone()
            return self._row_to_command(row) if row else None

    async def get_by_name(self, name: str) -> Optional[Command]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM commands WHERE name = ?", (name,)).fetchone()
            return self._row_to_command(row) if row else None

    async def get_all(self) -> List[Command]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM commands ORDER BY category, name").fetchall()
            return [self._row_to_command(row) for row in rows]

    async def update(self, command: Command) -> Command:
        with self._connect() as conn:
            conn.execute("""
                UPDATE commands
                SET description = ?, category = ?, usage = ?, cooldown = ?,
                    is_enabled = ?, usage_count = ?
                WHERE id = ?
            """, (
                command.description,
                command.category,
                command.usage,
                command.cooldown,
                command.is_enabled,
                command.usage_count,
                command.id
            ))
            conn.commit()
        return command

    async def delete(self, command_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM commands WHERE id = ?", (command_id,))
            conn.commit()
            return cursor.rowcount > 0

    async def increment_usage(self, command_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE commands SET usage_count = COALESCE(usage_count, 0) + 1 WHERE id = ?",
                (command_id,)
            )
            conn.commit()


class SQLiteBotConfigRepository(_SQLiteRepository, IBotConfigRepository):
    """SQLite implementation of the singleton bot configuration."""

    def _init_database(self) -> None:
        """Initialize database tables."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS bot_config (
                    id TEXT PRIMARY KEY,
                    prefix TEXT DEFAULT '/',
                    auto_reconnect BOOLEAN DEFAULT TRUE,
                    random_user_agent BOOLEAN DEFAULT TRUE,
                    auto_mark_read BOOLEAN DEFAULT FALSE,
                    self_listen BOOLEAN DEFAULT FALSE,
                    listen_timeout INTEGER DEFAULT 60000,
                    listen_interval INTEGER DEFAULT 3000,
                    proxy TEXT,
                    language TEXT DEFAULT 'en'
                )
            """)
            conn.execute("INSERT OR IGNORE INTO bot_config (id) VALUES (?)", (SINGLETON_ID,))
            conn.commit()

    async def get(self) -> BotConfig:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM bot_config WHERE id = ?", (SINGLETON_ID,)).fetchone()
        if not row:
            logger.warning("bot_config row missing, recreating defaults.")
            return await self.update(BotConfig())
        return BotConfig(
            prefix=row['prefix'] or "/",
            auto_reconnect=bool(row['auto_reconnect']),
            random_user_agent=bool(row['random_user_agent']),
            auto_mark_read=bool(row['auto_mark_read']),
            self_listen=bool(row['self_listen']),
            listen_timeout=row['listen_timeout'],
            listen_interval=row['listen_interval'],
            proxy=row['proxy'],
            language=row['language'] or "en"
        )

    async def update(self, config: BotConfig) -> BotConfig:
        with self._connect() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO bot_config (
                    id, prefix, auto_reconnect, random_user_agent, auto_mark_read,
                    self_listen, listen_timeout, listen_interval, proxy, language
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                SINGLETON_ID,
                config.prefix,
                config.auto_reconnect,
                config.random_user_agent,
                config.auto_mark_read,
                config.self_listen,
                config.listen_timeout,
                config.listen_interval,
                config.proxy,
                config.language
            ))
            conn.commit()
        return config


class SQLiteSessionRepository(_SQLiteRepository, ISessionRepository):
    """SQLite implementation of the singleton session record."""

    def _init_database(self) -> None:
        """Initialize database tables."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    app_state TEXT,
                    username TEXT,
                    user_id TEXT,
                    is_connected BOOLEAN DEFAULT FALSE,
                    last_connected TIMESTAMP,
                    connection_health INTEGER DEFAULT 100
                )
            """)
            conn.execute("INSERT OR IGNORE INTO sessions (id) VALUES (?)", (SINGLETON_ID,))
            conn.commit()

    async def get(self) -> Session:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM sessions WHERE id = ?", (SINGLETON_ID,)).fetchone()
        if not row:
            logger.warning("sessions row missing, recreating defaults.")
            return await self.update(Session())
        return Session(
            app_state=json.loads(row['app_state']) if row['app_state'] else None,
            username=row['username'],
            user_id=row['user_id'],
            is_connected=bool(row['is_connected']),
            last_connected=_from_iso(row['last_connected']),
            connection_health=row['connection_health'] if row['connection_health'] is not None else 100
        )

    async def update(self, session: Session) -> Session:
        # Health is a percentage; never store values outside 0..100.
        health = max(0, min(100, int(session.connection_health)))
        with self._connect() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO sessions (
                    id, app_state, username, user_id, is_connected, last_connected, connection_health
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                SINGLETON_ID,
                json.dumps(session.app_state) if session.app_state is not None else None,
                session.username,
                session.user_id,
                session.is_connected,
                _to_iso(session.last_connected),
                health
            ))
            conn.commit()
        return await self.get()


class SQLiteActivityLogRepository(_SQLiteRepository, IActivityLogRepository):
    """SQLite implementation of the activity log, capped at MAX_LOG_ENTRIES rows."""

    def __init__(self, db_path: str = "botpanel.db", max_entries: int = MAX_LOG_ENTRIES):
        self.max_entries = max_entries
        super().__init__(db_path)

    def _init_database(self) -> None:
        """Initialize database tables."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS activity_logs (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    type TEXT NOT NULL,
                    message TEXT NOT NULL,
                    details TEXT,
                    timestamp TIMESTAMP NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_activity_logs_type ON activity_logs(type)")
            conn.commit()

    @staticmethod
    def _row_to_log(row: sqlite3.Row) -> ActivityLog:
        return ActivityLog(
            id=row['id'],
            type=row['type'],
            message=row['message'],
            details=row['details'],
            timestamp=_from_iso(row['timestamp'])
        )

    async def add(self, log_type: str, message: str, details: Optional[str] = None) -> ActivityLog:
        entry = ActivityLog(
            id=uuid.uuid4().hex,
            type=log_type,
            message=message,
            details=details,
            timestamp=datetime.now()
        )
        with self._connect() as conn:
            conn.execute("""
                INSERT INTO activity_logs (id, type, message, details, timestamp)
                VALUES (?, ?, ?, ?, ?)
            """, (entry.id, entry.type, entry.message, entry.details, _to_iso(entry.timestamp)))
            # Evict the oldest rows beyond the cap
            conn.execute("""
                DELETE FROM activity_logs WHERE seq NOT IN (
                    SELECT seq FROM activity_logs ORDER BY seq DESC LIMIT ?
                )
            """, (self.max_entries,))
            conn.commit()
        return entry

    async def get_logs(self, limit: int = 100, log_type: Optional[str] = None) -> List[ActivityLog]:
        with self._connect() as conn:
            if log_type and log_type != "all":
                rows = conn.execute(
                    "SELECT * FROM activity_logs WHERE type = ? ORDER BY seq DESC LIMIT ?",
                    (log_type, limit)
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM activity_logs ORDER BY seq DESC LIMIT ?", (limit,)
                ).fetchall()
            return [self._row_to_log(row) for row in rows]

    async def clear(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM activity_logs")
            conn.commit()

    async def count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) AS count FROM activity_logs").fetchone()['count'] or 0


class SQLiteStatsRepository(_SQLiteRepository, IStatsRepository):
    """SQLite implementation of the global counters."""

    def _init_database(self) -> None:
        """Initialize database tables."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS bot_stats (
                    id TEXT PRIMARY KEY,
                    messages_received INTEGER DEFAULT 0,
                    messages_sent INTEGER DEFAULT 0,
                    commands_executed INTEGER DEFAULT 0,
                    start_time TIMESTAMP
                )
            """)
            conn.execute("INSERT OR IGNORE INTO bot_stats (id) VALUES (?)", (SINGLETON_ID,))
            conn.commit()

    async def get_counters(self) -> StatsCounters:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM bot_stats WHERE id = ?", (SINGLETON_ID,)).fetchone()
        if not row:
            return StatsCounters()
        return StatsCounters(
            messages_received=row['messages_received'] or 0,
            messages_sent=row['messages_sent'] or 0,
            commands_executed=row['commands_executed'] or 0,
            start_time=_from_iso(row['start_time'])
        )

    async def increment(self, counter: str) -> None:
        if counter not in COUNTER_COLUMNS:
            raise ValueError(f"Unknown counter: {counter}")
        with self._connect() as conn:
            conn.execute(
                f"UPDATE bot_stats SET {counter} = COALESCE({counter}, 0) + 1 WHERE id = ?",
                (SINGLETON_ID,)
            )
            conn.commit()

    async def set_start_time(self, start_time: Optional[datetime]) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE bot_stats SET start_time = ? WHERE id = ?",
                (_to_iso(start_time), SINGLETON_ID)
            )
            conn.commit()


def create_sqlite_repositories(db_path: str) -> Repositories:
    """Build every repository on a single SQLite file."""
    return Repositories(
        users=SQLiteUserRepository(db_path=db_path),
        threads=SQLiteThreadRepository(db_path=db_path),
        commands=SQLiteCommandRepository(db_path=db_path),
        config=SQLiteBotConfigRepository(db_path=db_path),
        session=SQLiteSessionRepository(db_path=db_path),
        logs=SQLiteActivityLogRepository(db_path=db_path),
        stats=SQLiteStatsRepository(db_path=db_path)
    )
