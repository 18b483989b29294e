"""Event listener Cog for Bantrap.

This cog handles bot lifecycle events (on_ready) and command error handling.
Message-related events are handled by the MessageListenerCog.
"""

import discord
from discord.ext import commands

from bantrap.configuration.trap_settings import TrapSettingsStore
from bantrap.util.logger import get_logger

logger = get_logger("events_listener_cog")

PRESENCE_TEXT = "the trap channels"


class EventsListenerCog(commands.Cog):
    """Cog containing bot lifecycle and command error handlers."""

    def __init__(self, discord_bot_instance, store: TrapSettingsStore):
        self.bot = discord_bot_instance
        self.store = store
        logger.info("Events listener cog loaded")

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self):
        """Log the connected identity, set presence and report active traps."""
        if self.bot.user:
            await self._update_presence()
            logger.info(f"Bot connected as {self.bot.user} (ID: {self.bot.user.id})")
        else:
            logger.warning("Bot partially connected, but user information not yet available.")

        logger.info(
            "Watching %d guild(s); %d have a trap channel configured.",
            len(self.bot.guilds),
            self.store.enforcing_guild_count(),
        )

    async def _update_presence(self) -> None:
        await self.bot.change_presence(
            status=discord.Status.online,
            activity=discord.Activity(type=discord.ActivityType.watching, name=PRESENCE_TEXT),
        )

    @commands.Cog.listener(name="on_application_command_error")
    async def on_application_command_error(self, application_context: discord.ApplicationContext, error: Exception):
        """Log command errors and tell the invoker something went wrong."""
        if isinstance(error, commands.CommandNotFound):
            return

        command_name = getattr(application_context.command, "qualified_name", None) or getattr(
            application_context.command, "name", "<unknown>"
        )
        logger.error(f"Error in command '{command_name}': {error}", exc_info=error)

        error_message = "A :bug: showed up while running this command."
        try:
            await application_context.respond(error_message, ephemeral=True)
        except discord.InteractionResponded:
            await application_context.followup.send(error_message, ephemeral=True)


def setup(discord_bot_instance, store: TrapSettingsStore):
    """Register the EventsListenerCog with the bot."""
    discord_bot_instance.add_cog(EventsListenerCog(discord_bot_instance, store))
