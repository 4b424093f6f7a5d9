"""Tests for the SQLite repositories."""

from dataclasses import replace
from datetime import datetime

import pytest

from botpanel.domain.models import BotConfig, Command, Session, Thread, User
from botpanel.infrastructure.database.sqlite_repositories import SQLiteActivityLogRepository, _SQLiteRepository


# =========================================================================
# Users and threads
# =========================================================================


@pytest.mark.asyncio
async def test_user_round_trip(repositories):
    """Creating a user then fetching it returns identical fields."""
    user = User(
        id="u1",
        username="alice",
        full_name="Alice Example",
        profile_pic="https://example.com/a.png",
        is_admin=True,
        is_blocked=False,
        message_count=4,
        experience=12,
        last_active=datetime(2026, 10, 1, 12, 30, 0)
    )
    await repositories.users.create(user)
    assert await repositories.users.get_by_id("u1") == user


@pytest.mark.asyncio
async def test_duplicate_user_raises_value_error(repositories):
    await repositories.users.create(User(id="u1", username="u1"))
    with pytest.raises(ValueError):
        await repositories.users.create(User(id="u1", username="again"))


@pytest.mark.asyncio
async def test_user_update_and_delete(repositories):
    await repositories.users.create(User(id="u1", username="u1"))
    await repositories.users.update(User(id="u1", username="u1", is_blocked=True))
    assert (await repositories.users.get_by_id("u1")).is_blocked is True

    assert await repositories.users.delete("u1") is True
    assert await repositories.users.delete("u1") is False
    assert await repositories.users.get_by_id("u1") is None


@pytest.mark.asyncio
async def test_thread_round_trip_and_count(repositories):
    thread = Thread(id="t1", name="Group Chat", is_group=True, participant_count=5,
                    message_count=2, last_message="hi", last_message_time=datetime(2026, 1, 1))
    await repositories.threads.create(thread)
    await repositories.threads.create(Thread(id="t2"))

    assert await repositories.threads.get_by_id("t1") == thread
    assert await repositories.threads.count() == 2
    assert [t.id for t in await repositories.threads.get_all()] == ["t1", "t2"]


# =========================================================================
# Commands
# =========================================================================


@pytest.mark.asyncio
async def test_command_name_is_unique(repositories):
    await repositories.commands.create(Command(id="c1", name="ping"))
    with pytest.raises(ValueError):
        await repositories.commands.create(Command(id="c2", name="ping"))


@pytest.mark.asyncio
async def test_command_defaults_and_usage_increment(repositories):
    created = await repositories.commands.create(Command(id="c1", name="ping"))
    assert created.category == "general"
    assert created.cooldown == 5
    assert created.is_enabled is True

    await repositories.commands.increment_usage("c1")
    await repositories.commands.increment_usage("c1")
    assert (await repositories.commands.get_by_name("ping")).usage_count == 2


# =========================================================================
# Singletons
# =========================================================================


@pytest.mark.asyncio
async def test_bot_config_defaults(repositories):
    assert await repositories.config.get() == BotConfig()


@pytest.mark.asyncio
async def test_bot_config_update(repositories):
    config = replace(await repositories.config.get(), prefix="!", auto_reconnect=False, proxy="http://proxy:8080")
    await repositories.config.update(config)
    assert await repositories.config.get() == config


@pytest.mark.asyncio
async def test_session_stores_app_state_and_clamps_health(repositories):
    session = await repositories.session.update(
        Session(app_state=[{"key": "c_user"}], username="bot", connection_health=150)
    )
    assert session.app_state == [{"key": "c_user"}]
    assert session.connection_health == 100

    session = await repositories.session.update(replace(session, connection_health=-20))
    assert session.connection_health == 0


@pytest.mark.asyncio
async def test_stats_counters(repositories):
    await repositories.stats.increment("messages_received")
    await repositories.stats.increment("messages_received")
    await repositories.stats.increment("commands_executed")
    started = datetime(2026, 10, 19, 8, 0, 0)
    await repositories.stats.set_start_time(started)

    counters = await repositories.stats.get_counters()
    assert counters.messages_received == 2
    assert counters.messages_sent == 0
    assert counters.commands_executed == 1
    assert counters.start_time == started


@pytest.mark.asyncio
async def test_stats_rejects_unknown_counter(repositories):
    with pytest.raises(ValueError):
        await repositories.stats.increment("uptime; DROP TABLE bot_stats")


# =========================================================================
# Activity log
# =========================================================================


@pytest.mark.asyncio
async def test_log_store_is_capped_at_1000(repositories):
    """The 1001st entry evicts the oldest; the newest is at index 0."""
    for i in range(1001):
        await repositories.logs.add("info", f"entry {i}")

    assert await repositories.logs.count() == 1000
    logs = await repositories.logs.get_logs(limit=1000)
    assert logs[0].message == "entry 1000"
    assert logs[-1].message == "entry 1"
    assert "entry 0" not in {entry.message for entry in logs}


@pytest.mark.asyncio
async def test_log_cap_is_configurable(tmp_path):
    logs = SQLiteActivityLogRepository(db_path=str(tmp_path / "logs.db"), max_entries=3)
    for i in range(5):
        await logs.add("info", f"entry {i}")
    assert [entry.message for entry in await logs.get_logs()] == ["entry 4", "entry 3", "entry 2"]


@pytest.mark.asyncio
async def test_logs_filter_limit_and_clear(repositories):
    await repositories.logs.add("info", "one")
    await repositories.logs.add("error", "two", "details")
    await repositories.logs.add("info", "three")

    errors = await repositories.logs.get_logs(log_type="error")
    assert [(e.message, e.details) for e in errors] == [("two", "details")]
    assert len(await repositories.logs.get_logs(log_type="all")) == 3
    assert [e.message for e in await repositories.logs.get_logs(limit=2)] == ["three", "two"]

    await repositories.logs.clear()
    assert await repositories.logs.get_logs() == []


def test_repository_base_requires_schema_hook(tmp_path):
    with pytest.raises(TypeError):
        _SQLiteRepository(db_path=str(tmp_path / "base.db"))
