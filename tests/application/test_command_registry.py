"""Tests for CommandRegistry seeding and script loading."""

from dataclasses import replace
from textwrap import dedent

import pytest

from botpanel.application.commands.base import FunctionCommand
from botpanel.application.commands.builtins import builtin_commands
from botpanel.application.commands.loader import load_command_module, load_commands_from_directory
from botpanel.application.commands.registry import CommandRegistry


async def _noop(ctx):
    return None


BUILTIN_NAMES = ["about", "help", "ping", "say", "stats", "tid", "uid", "uptime"]


def test_builtins_are_registered(registry):
    assert registry.names() == BUILTIN_NAMES


def test_resolve_is_case_insensitive(registry):
    assert registry.resolve("PING").name == "ping"
    assert registry.resolve("missing") is None


def test_duplicate_registration_is_rejected(registry):
    with pytest.raises(ValueError):
        registry.register(FunctionCommand("ping", _noop))
    registry.register(FunctionCommand("ping", _noop, description="override"), replace=True)
    assert registry.resolve("ping").description == "override"


@pytest.mark.asyncio
async def test_seed_creates_rows_once(repositories, registry):
    assert await registry.seed() == len(BUILTIN_NAMES)
    assert await registry.seed() == 0

    rows = await repositories.commands.get_all()
    assert sorted(row.name for row in rows) == BUILTIN_NAMES
    say = await repositories.commands.get_by_name("say")
    assert (say.category, say.usage, say.cooldown, say.is_enabled) == ("fun", "/say [message]", 3, True)


@pytest.mark.asyncio
async def test_reseeding_preserves_user_settings(repositories):
    first = CommandRegistry(repositories.commands, builtin_commands())
    await first.seed()
    ping = await repositories.commands.get_by_name("ping")
    await repositories.commands.update(replace(ping, is_enabled=False, cooldown=30, usage_count=7))

    # A fresh registry on the same database, as after a restart
    second = CommandRegistry(repositories.commands, builtin_commands())
    await second.seed()

    ping = await repositories.commands.get_by_name("ping")
    assert (ping.is_enabled, ping.cooldown, ping.usage_count) == (False, 30, 7)


@pytest.mark.asyncio
async def test_list_enabled_skips_disabled_rows(repositories, registry):
    await registry.seed()
    uid = await repositories.commands.get_by_name("uid")
    await repositories.commands.update(replace(uid, is_enabled=False))
    registry.register(FunctionCommand("unseeded", _noop))

    names = [handler.name for handler in await registry.list_enabled()]
    assert "uid" not in names
    assert "unseeded" in names
    assert "ping" in names


# =========================================================================
# Script loading
# =========================================================================


VALID_SCRIPT = dedent('''
    name = "Greet"
    description = "Say hello"
    category = "custom"
    usage = "/greet [name]"
    cooldown = 2


    async def execute(ctx):
        await ctx.reply("hello " + " ".join(ctx.args))
''')


def test_load_command_module(tmp_path):
    path = tmp_path / "greet.py"
    path.write_text(VALID_SCRIPT)

    handler = load_command_module(path)
    assert handler.name == "greet"
    assert (handler.description, handler.category, handler.usage, handler.cooldown) == (
        "Say hello", "custom", "/greet [name]", 2
    )


def test_load_command_module_requires_all_metadata(tmp_path):
    path = tmp_path / "broken.py"
    path.write_text("name = 'broken'\n\nasync def execute(ctx):\n    pass\n")
    with pytest.raises(ValueError, match="missing"):
        load_command_module(path)


def test_load_command_module_requires_async_execute(tmp_path):
    path = tmp_path / "sync.py"
    path.write_text(VALID_SCRIPT.replace("async def execute", "def execute"))
    with pytest.raises(ValueError, match="async"):
        load_command_module(path)


def test_load_directory_skips_broken_and_private_scripts(tmp_path):
    (tmp_path / "greet.py").write_text(VALID_SCRIPT)
    (tmp_path / "_private.py").write_text(VALID_SCRIPT.replace("Greet", "private"))
    (tmp_path / "syntax.py").write_text("def (:\n")
    (tmp_path / "notes.txt").write_text("not a script")

    handlers = load_commands_from_directory(tmp_path)
    assert [h.name for h in handlers] == ["greet"]


def test_load_missing_directory_returns_nothing(tmp_path):
    assert load_commands_from_directory(tmp_path / "nope") == []
