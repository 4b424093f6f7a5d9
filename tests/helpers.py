"""Test doubles and builders shared across the suite."""

import asyncio
from typing import List, Optional

from botpanel.application.commands.builtins import builtin_commands
from botpanel.application.commands.registry import CommandRegistry
from botpanel.application.services.bot_core import BotCore
from botpanel.application.use_cases.dashboard import DashboardUseCase
from botpanel.domain.models import LoginCredentials, MessageEvent
from botpanel.infrastructure.database.sqlite_repositories import create_sqlite_repositories
from botpanel.infrastructure.gateway.loopback_gateway import LoopbackGateway
from botpanel.infrastructure.http.dashboard_server import DashboardHttpServer
from botpanel.infrastructure.http.websocket_notifier import WebSocketNotifier


APP_STATE_LOGIN = LoginCredentials(type="appState", app_state='[{"key": "c_user", "value": "1001"}]')
PASSWORD_LOGIN = LoginCredentials(type="credentials", username="botuser", password="hunter2")


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Records requested delays and returns immediately."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


class BlockingSleep:
    """Records requested delays and never returns until cancelled."""

    def __init__(self):
        self.calls: List[float] = []
        self.started = asyncio.Event()

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.started.set()
        await asyncio.Event().wait()


def make_event(body: str, sender_id: str = "u1", thread_id: str = "t1",
               is_group: bool = False, message_id: Optional[str] = None) -> MessageEvent:
    return MessageEvent(
        thread_id=thread_id,
        sender_id=sender_id,
        body=body,
        is_group=is_group,
        message_id=message_id
    )


def build_dashboard(tmp_path, api_key: Optional[str] = None):
    """A DashboardHttpServer on a fresh database. Returns ``(server, gateway)``."""
    repositories = create_sqlite_repositories(str(tmp_path / "dashboard-test.db"))
    gateway = LoopbackGateway()
    notifier = WebSocketNotifier()
    core = BotCore(
        repositories=repositories,
        registry=CommandRegistry(repositories.commands, builtin_commands()),
        gateway=gateway,
        notifier=notifier,
        restart_settle_seconds=0
    )
    server = DashboardHttpServer(
        bot_core=core,
        dashboard=DashboardUseCase(repositories, core.reporter),
        notifier=notifier,
        api_key=api_key
    )
    return server, gateway
