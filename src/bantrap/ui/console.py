"""Interactive console utilities for managing the live Discord bot."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
import os

import discord
from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.shortcuts import PromptSession

from bantrap.configuration.trap_settings import TrapSettingsStore
from bantrap.util.logger import get_logger

BOX_WIDTH = 45


def box_title(title: str) -> list[str]:
    inner_width = BOX_WIDTH - 2
    pad_left = (inner_width - len(title)) // 2
    pad_right = inner_width - len(title) - pad_left
    return [
        f"╔{'═' * inner_width}╗",
        f"║{' ' * pad_left}{title}{' ' * pad_right}║",
        f"╚{'═' * inner_width}╝"
    ]


logger = get_logger("console")

CommandHandler = Callable[["ConsoleControl", list[str]], Awaitable[None]]


@dataclass
class Command:
    """Definition of a console command."""
    name: str
    handler: CommandHandler
    aliases: list[str] = field(default_factory=list)
    description: str = ""
    usage: str = ""

    def matches(self, input_cmd: str) -> bool:
        return input_cmd == self.name or input_cmd in self.aliases


def console_print(message: str, style: str = "") -> None:
    """Render text via prompt_toolkit without breaking the active prompt."""
    formatted: FormattedText | str
    if style:
        formatted = FormattedText([(style, message)])
    else:
        formatted = message
    print_formatted_text(formatted)


class ConsoleControl:
    """Manage console-driven lifecycle controls for the running Discord bot."""

    def __init__(self, store: TrapSettingsStore | None = None) -> None:
        self.shutdown_event = asyncio.Event()
        self.restart_event = asyncio.Event()
        self._bot: discord.Bot | None = None
        self.store = store

    def set_bot(self, bot: discord.Bot | None) -> None:
        self._bot = bot

    @property
    def bot(self) -> discord.Bot | None:  # pragma: no cover - trivial getter
        return self._bot

    def request_shutdown(self) -> None:
        self.shutdown_event.set()

    def request_restart(self) -> None:
        self.restart_event.set()

    def is_shutdown_requested(self) -> bool:
        return self.shutdown_event.is_set()

    def is_restart_requested(self) -> bool:
        return self.restart_event.is_set()


async def close_bot_instance(bot: discord.Bot | None, *, log_close: bool = False) -> None:
    """Close the Discord bot instance if it is active."""
    if bot is None or bot.is_closed():
        return

    try:
        await bot.close()
        if log_close:
            logger.info("Discord bot connection closed.")
    except Exception as exc:  # pragma: no cover - logged, shutdown continues
        logger.exception("Error while closing Discord bot: %s", exc)


async def _request_lifecycle_action(control: ConsoleControl, *, restart: bool) -> None:
    if restart:
        control.request_restart()
    control.request_shutdown()
    await close_bot_instance(control.bot)


# ==================== Command Handlers ====================

async def cmd_help(control: ConsoleControl, args: list[str]) -> None:
    for line in box_title("Console Commands Reference"):
        console_print(line, "ansigreen")

    for cmd in COMMANDS:
        aliases_str = f" (aliases: {', '.join(cmd.aliases)})" if cmd.aliases else ""
        console_print(f"\n  {cmd.name}{aliases_str}", "ansicyan")
        console_print(f"    {cmd.description}")
        if cmd.usage:
            console_print(f"    Usage: {cmd.usage}", "ansibrightblack")

    console_print("")


async def cmd_status(control: ConsoleControl, args: list[str]) -> None:
    for line in box_title("Bot Status"):
        console_print(line, "ansiblue")

    if control.store is not None:
        console_print(f"  Traps:      {control.store.enforcing_guild_count()} active")

    if control.bot:
        bot_status = "🟢 Connected" if not control.bot.is_closed() else "🔴 Disconnected"
        console_print(f"  Bot:        {bot_status}")
        console_print(f"  Guilds:     {len(control.bot.guilds)}")
        console_print(f"  Latency:    {control.bot.latency * 1000:.0f}ms")
    else:
        console_print("  Bot:        🔴 Not initialized")

    console_print("")


async def cmd_guilds(control: ConsoleControl, args: list[str]) -> None:
    if not control.bot or not control.bot.guilds:
        console_print("No guilds found or bot not connected.", "ansiyellow")
        return

    for line in box_title(f"Connected Guilds ({len(control.bot.guilds)})"):
        console_print(line, "ansiblue")

    for guild in control.bot.guilds:
        console_print(f"  • {guild.name} (ID: {guild.id}, Members: {guild.member_count})")

    console_print("")


async def cmd_traps(control: ConsoleControl, args: list[str]) -> None:
    """List every guild with stored trap settings."""
    if control.store is None:
        console_print("Trap settings are not loaded.", "ansiyellow")
        return

    configs = control.store.snapshot()
    if not configs:
        console_print("No trap settings stored.", "ansiyellow")
        return

    for line in box_title(f"Trap Settings ({len(configs)})"):
        console_print(line, "ansiblue")

    for guild_id, config in configs.items():
        guild = control.bot.get_guild(guild_id.to_int()) if control.bot else None
        name = guild.name if guild else "unknown guild"
        trap = f"#{config.trap_channel_id}" if config.trap_channel_id else "off"
        log = f"#{config.log_channel_id}" if config.log_channel_id else "off"
        console_print(f"  • {name} (ID: {guild_id}) trap: {trap}, log: {log}")

    console_print("")


async def cmd_clear(control: ConsoleControl, args: list[str]) -> None:
    os.system('cls' if os.name == 'nt' else 'clear')
    console_print("Console cleared.", "ansigreen")


async def cmd_restart(control: ConsoleControl, args: list[str]) -> None:
    console_print("Restart requested. Bot will shut down and restart...", "ansiyellow")
    await _request_lifecycle_action(control, restart=True)


async def cmd_shutdown(control: ConsoleControl, args: list[str]) -> None:
    console_print("Shutdown requested.", "ansiyellow")
    await _request_lifecycle_action(control, restart=False)


# ==================== Command Registry ====================

COMMANDS: list[Command] = [
    Command("help", cmd_help, ["h", "?"], "Show this help message with all available commands"),
    Command("status", cmd_status, ["stat", "info"], "Display connection info and number of active traps"),
    Command("guilds", cmd_guilds, ["servers", "g"], "List all guilds (servers) the bot is connected to"),
    Command("traps", cmd_traps, ["t"], "List trap and log channels of every configured guild"),
    Command("clear", cmd_clear, ["cls"], "Clear the console screen"),
    Command("restart", cmd_restart, ["reboot"], "Fully restart the bot process"),
    Command("shutdown", cmd_shutdown, ["stop", "quit", "exit"], "Gracefully shut down the bot"),
]


# ==================== Command Dispatcher ====================

async def handle_console_command(command: str, control: ConsoleControl) -> None:
    """Interpret and execute a single console command line."""
    if not command.strip():
        return

    parts = command.strip().split()
    cmd_name = parts[0].lower()
    args = parts[1:]

    for cmd in COMMANDS:
        if cmd.matches(cmd_name):
            try:
                await cmd.handler(control, args)
            except Exception as exc:
                logger.exception("Error executing command '%s': %s", cmd_name, exc)
                console_print(f"Error executing command: {exc}", "ansired")
            return

    console_print(f"Unknown command '{cmd_name}'. Type 'help' for available commands.", "ansired")


async def run_console(control: ConsoleControl) -> None:
    """Run the interactive console until shutdown is requested."""
    session = PromptSession("> ")

    for line in box_title("Bantrap Interactive Console"):
        console_print(line, "ansigreen")
    console_print("Type 'help' for available commands or 'exit' to quit.\n", "ansibrightblack")

    with patch_stdout():
        while not control.is_shutdown_requested():
            try:
                line = await session.prompt_async()
                if line.strip():
                    await handle_console_command(line, control)
            except (EOFError, KeyboardInterrupt):
                console_print("\nShutdown requested by user.", "ansiyellow")
                await _request_lifecycle_action(control, restart=False)
                break
            except Exception as exc:  # pragma: no cover - logged, loop continues
                logger.exception("Error in console input loop: %s", exc)
                console_print(f"Error: {exc}", "ansired")


@asynccontextmanager
async def console_session(control: ConsoleControl) -> AsyncIterator[ConsoleControl]:
    """Run the console alongside the bot, cleaning up automatically."""
    console_task = asyncio.create_task(run_console(control))
    try:
        yield control
    finally:
        control.request_shutdown()
        console_task.cancel()
        try:
            await console_task
        except asyncio.CancelledError:
            pass
