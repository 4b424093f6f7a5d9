import time
from typing import Dict, List

from .base import CommandContext, CommandHandler, FunctionCommand
from ..services.stats_service import format_duration

ABOUT_TEXT = (
    "botpanel\n\n"
    "A chat-bot with a web control panel.\n"
    "Use /help for available commands."
)


async def _help(ctx: CommandContext) -> None:
    commands = await ctx.storage.commands.get_all()
    enabled_commands = [c for c in commands if c.is_enabled]

    if ctx.args:
        wanted = ctx.args[0].lower()
        cmd = next((c for c in enabled_commands if c.name == wanted), None)
        if cmd:
            await ctx.reply(
                f"Command: {cmd.name}\n"
                f"Description: {cmd.description or 'No description'}\n"
                f"Usage: {cmd.usage or '/' + cmd.name}\n"
                f"Category: {cmd.category}\n"
                f"Cooldown: {cmd.cooldown}s"
            )
        else:
            await ctx.reply(f'Command "{ctx.args[0]}" not found.')
        return

    categories: Dict[str, List[str]] = {}
    for cmd in enabled_commands:
        categories.setdefault(cmd.category or "general", []).append(cmd.name)

    message = "Available Commands:\n\n"
    for category, names in categories.items():
        message += f"{category.upper()}:\n"
        message += "\n".join(f"  /{name}" for name in names) + "\n\n"
    message += "Use /help [command] for more info."
    await ctx.reply(message)


async def _ping(ctx: CommandContext) -> None:
    start = time.perf_counter()
    if ctx.connection:
        await ctx.connection.get_thread_info(ctx.event.thread_id)
    elapsed_ms = int((time.perf_counter() - start) * 1000)
    await ctx.reply(f"Pong! Response time: {elapsed_ms}ms")


async def _uptime(ctx: CommandContext) -> None:
    stats = await ctx.stats.get_stats()
    await ctx.reply(f"Bot Uptime: {format_duration(stats.uptime)}")


async def _stats(ctx: CommandContext) -> None:
    stats = await ctx.stats.get_stats()
    await ctx.reply(
        "Bot Statistics:\n\n"
        f"Users: {stats.total_users}\n"
        f"Threads: {stats.total_threads}\n"
        f"Messages Received: {stats.messages_received}\n"
        f"Messages Sent: {stats.messages_sent}\n"
        f"Commands Executed: {stats.commands_executed}\n"
        f"Status: {stats.connection_status}"
    )


async def _uid(ctx: CommandContext) -> None:
    await ctx.reply(f"Your User ID: {ctx.event.sender_id}")


async def _tid(ctx: CommandContext) -> None:
    await ctx.reply(f"Thread ID: {ctx.event.thread_id}")


async def _say(ctx: CommandContext) -> None:
    if not ctx.args:
        await ctx.reply("Please provide a message to say.")
        return
    await ctx.reply(" ".join(ctx.args))


async def _about(ctx: CommandContext) -> None:
    await ctx.reply(ABOUT_TEXT)


def builtin_commands() -> List[CommandHandler]:
    """Fresh instances of the commands every bot ships with."""
    return [
        FunctionCommand("help", _help, "Shows available commands and their usage",
                        category="utility", usage="/help [command]", cooldown=3),
        FunctionCommand("ping", _ping, "Check bot response time", category="utility", cooldown=3),
        FunctionCommand("uptime", _uptime, "Shows bot uptime", category="utility", cooldown=5),
        FunctionCommand("stats", _stats, "Shows bot statistics", category="utility", cooldown=5),
        FunctionCommand("uid", _uid, "Get user ID", category="utility", usage="/uid [@mention]", cooldown=3),
        FunctionCommand("tid", _tid, "Get thread/conversation ID", category="utility", cooldown=3),
        FunctionCommand("say", _say, "Make the bot say something", category="fun",
                        usage="/say [message]", cooldown=3),
        FunctionCommand("about", _about, "About this bot", category="info", cooldown=5),
    ]
