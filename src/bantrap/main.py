"""
Bantrap Discord Bot
===================

A Discord bot that bans anyone without staff permissions who posts in a
designated trap channel, purging their last seven days of messages and
optionally recording the ban in a log channel.
"""

import asyncio
import os
import sys
from pathlib import Path

import discord
from dotenv import load_dotenv

from bantrap.configuration.app_configuration import CONFIG_PATH, AppConfig
from bantrap.configuration.trap_settings import TrapSettingsStore
from bantrap.moderation.audit_logger import AuditLogger
from bantrap.moderation.enforcement_engine import EnforcementEngine
from bantrap.moderation.gateway import DiscordGateway
from bantrap.ui.console import ConsoleControl, close_bot_instance, console_session
from bantrap.util.logger import get_logger, handle_exception

logger = get_logger("main")

RESTART_EXIT_CODE = 42


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. BANTRAP_HOME environment variable, if set.
    2. If running in a frozen/compiled context, the executable's directory.
    3. Otherwise the project root, two levels above the package directory.
    """
    if env_home := os.getenv("BANTRAP_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


def load_environment(base_dir: Path) -> str:
    """Load environment variables and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=base_dir / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Intents for guild, member and message events, including message content."""
    intents = discord.Intents.default()
    intents.guilds = True
    intents.members = True
    intents.messages = True
    intents.message_content = True
    return intents


def load_cogs(
    discord_bot_instance: discord.Bot,
    store: TrapSettingsStore,
    engine: EnforcementEngine,
) -> None:
    """Register all operational cogs with the provided Discord bot instance."""
    from bantrap.bot.cogs import events_listener, message_listener, trap_settings_cmds

    events_listener.setup(discord_bot_instance, store)
    message_listener.setup(discord_bot_instance, engine)
    trap_settings_cmds.setup(discord_bot_instance, store, delete_message_seconds=engine.delete_message_seconds)

    logger.info("All cogs loaded successfully.")


def create_bot(store: TrapSettingsStore, config: AppConfig) -> discord.Bot:
    """Instantiate the Discord bot, wire the enforcement engine and register all cogs."""
    bot = discord.Bot(intents=build_intents())
    gateway = DiscordGateway(bot)
    audit_logger = AuditLogger(gateway, preview_limit=config.preview_limit)
    engine = EnforcementEngine(
        store,
        gateway,
        audit_logger,
        delete_message_seconds=config.delete_message_seconds,
    )
    load_cogs(bot, store, engine)
    return bot


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Start the Discord bot and log around the connection lifecycle."""
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(bot: discord.Bot | None, store: TrapSettingsStore) -> None:
    """Gracefully stop the Discord bot and close the trap settings store."""
    await close_bot_instance(bot, log_close=True)

    try:
        await store.shutdown()
    except Exception as exc:
        logger.exception("Error during trap settings shutdown: %s", exc)

    logger.info("Shutdown complete.")


async def run_bot_session(bot: discord.Bot, token: str, control: ConsoleControl, store: TrapSettingsStore) -> int:
    """Run the bot alongside the console, returning an exit code."""
    control.set_bot(bot)
    exit_code = 0

    try:
        async with console_session(control):
            try:
                await start_bot(bot, token)
            except asyncio.CancelledError:
                logger.info("Bot start cancelled; proceeding to shutdown")
            except Exception as exc:
                logger.critical("Discord bot runtime error: %s", exc)
                exit_code = 1
    finally:
        control.set_bot(None)
        await shutdown_runtime(bot, store)

    return exit_code


async def async_main(base_dir: Path) -> int:
    """Bootstrap settings, bot and console, returning an exit code."""
    token = load_environment(base_dir)
    config = AppConfig(CONFIG_PATH.resolve())

    store = TrapSettingsStore(config.database_path)
    try:
        logger.info("Loading trap settings from %s...", store.db_path)
        await store.async_init()
    except Exception as exc:
        logger.critical("Failed to initialize trap settings: %s", exc)
        return 1

    try:
        bot = create_bot(store, config)
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        await store.shutdown()
        return 1

    control = ConsoleControl(store)
    exit_code = await run_bot_session(bot, token, control, store)

    if control.is_restart_requested():
        logger.info("Restart requested, returning exit code %d to trigger restart", RESTART_EXIT_CODE)
        return RESTART_EXIT_CODE

    return exit_code


def main() -> int:
    """Entrypoint that orchestrates the async runtime and returns the process code.

    Returns 42 after replacing the process when a restart was requested.
    """
    sys.excepthook = handle_exception
    base_dir = resolve_base_dir()
    os.chdir(base_dir)

    logger.info("Starting Bantrap…")
    try:
        exit_code = asyncio.run(async_main(base_dir))

        if exit_code == RESTART_EXIT_CODE:
            logger.info("Restart requested; replacing current process with new instance.")
            os.execv(sys.executable, [sys.executable] + sys.argv)
            return 0  # pragma: no cover

        return exit_code
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        return code if isinstance(code, int) else 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
