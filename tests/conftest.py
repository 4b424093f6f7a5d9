"""Shared pytest fixtures.

Provides:
- SQLite repositories on a per-test database file
- A loopback gateway standing in for the messaging platform
- A BotCore wired with a fake clock and a recording sleep, so cooldowns and
  reconnect backoff can be observed without waiting
"""

from collections.abc import Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from botpanel.application.commands.builtins import builtin_commands
from botpanel.application.commands.registry import CommandRegistry
from botpanel.application.services.bot_core import BotCore
from botpanel.application.services.cooldown_tracker import CooldownTracker
from botpanel.domain.interfaces import Repositories
from botpanel.infrastructure.database.sqlite_repositories import create_sqlite_repositories
from botpanel.infrastructure.gateway.loopback_gateway import LoopbackGateway
from tests.helpers import APP_STATE_LOGIN, FakeClock, RecordingSleep, build_dashboard


# ============================================================================
# Storage and collaborators
# ============================================================================


@pytest.fixture
def repositories(tmp_path) -> Repositories:
    return create_sqlite_repositories(str(tmp_path / "botpanel-test.db"))


@pytest.fixture
def gateway() -> LoopbackGateway:
    return LoopbackGateway()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def registry(repositories) -> CommandRegistry:
    return CommandRegistry(repositories.commands, builtin_commands())


@pytest_asyncio.fixture
async def bot_core(repositories, registry, gateway, clock, recording_sleep):
    """A seeded BotCore that is not yet connected."""
    core = BotCore(
        repositories=repositories,
        registry=registry,
        gateway=gateway,
        cooldowns=CooldownTracker(clock=clock),
        sleep=recording_sleep
    )
    await core.initialize()
    yield core
    await core.stop()


@pytest_asyncio.fixture
async def running_bot(bot_core):
    """A BotCore connected through the loopback gateway."""
    await bot_core.start(APP_STATE_LOGIN)
    return bot_core


# ============================================================================
# HTTP
# ============================================================================


@pytest.fixture
def dashboard(tmp_path):
    return build_dashboard(tmp_path)


@pytest.fixture
def client(dashboard) -> Generator[TestClient, None, None]:
    """TestClient with the app lifespan running (commands seeded, bot stopped on exit)."""
    server, _ = dashboard
    with TestClient(server.app) as test_client:
        yield test_client
