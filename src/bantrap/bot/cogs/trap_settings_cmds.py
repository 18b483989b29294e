"""
Trap settings cog: the ``/bantrap`` administrative command group.

Subcommands:
- /bantrap set <channel>     Set the trap channel.
- /bantrap clear             Clear the trap channel.
- /bantrap status            Show the current trap channel.
- /bantrap setlog <channel>  Set the log channel.
- /bantrap clearlog          Clear the log channel.
- /bantrap logstatus         Show the current log channel.

All subcommands need the Administrator permission and answer ephemerally.
"""

from typing import Any

import discord
from discord.ext import commands

from bantrap.configuration.trap_settings import TrapSettingsPersistenceError, TrapSettingsStore
from bantrap.datatypes.trap_datatypes import DEFAULT_DELETE_MESSAGE_SECONDS
from bantrap.moderation.gateway import is_text_channel
from bantrap.util.logger import get_logger

logger = get_logger("trap_settings_cog")

INVALID_CHANNEL_MESSAGE = "Please select a **server text channel** (not a thread/voice)."
GUILD_ONLY_MESSAGE = "This command can only be used in a server."
ADMIN_ONLY_MESSAGE = "You need the Administrator permission to configure the ban trap."
NOT_SAVED_SUFFIX = "\n⚠️ The change is active now but could not be saved and will be lost on restart."


class InvalidChannelError(ValueError):
    """The selected channel cannot be used as a trap or log channel."""


def validate_trap_channel(channel: Any) -> Any:
    """Return ``channel`` if it is a guild text channel, else raise ``InvalidChannelError``."""
    if not is_text_channel(channel):
        raise InvalidChannelError(INVALID_CHANNEL_MESSAGE)
    return channel


def describe_retention(seconds: int) -> str:
    days, remainder = divmod(seconds, 24 * 60 * 60)
    if remainder == 0 and days:
        return f"{days} day{'s' if days != 1 else ''}"
    hours = seconds // 3600
    return f"{hours} hour{'s' if hours != 1 else ''}"


class TrapSettingsCog(commands.Cog):
    """Guild-level trap and log channel configuration."""

    bantrap = discord.SlashCommandGroup(
        "bantrap",
        "Configure or check the auto-ban trap channel & logging.",
        default_member_permissions=discord.Permissions(administrator=True),
    )

    def __init__(self, discord_bot_instance, store: TrapSettingsStore, *, delete_message_seconds: int = DEFAULT_DELETE_MESSAGE_SECONDS):
        self.discord_bot_instance = discord_bot_instance
        self.store = store
        self.delete_message_seconds = delete_message_seconds
        logger.info("Trap settings cog loaded")

    async def _ensure_admin_context(self, ctx: discord.ApplicationContext) -> bool:
        if not ctx.guild_id:
            await ctx.respond(GUILD_ONLY_MESSAGE, ephemeral=True)
            return False
        permissions = getattr(ctx.user, "guild_permissions", None)
        if not getattr(permissions, "administrator", False):
            await ctx.respond(ADMIN_ONLY_MESSAGE, ephemeral=True)
            return False
        return True

    # -------- Handlers --------
    async def handle_set_trap(self, ctx: discord.ApplicationContext, channel: Any) -> None:
        if not await self._ensure_admin_context(ctx):
            return
        try:
            validate_trap_channel(channel)
        except InvalidChannelError as exc:
            await ctx.respond(str(exc), ephemeral=True)
            return

        message = (
            f"✅ Trap channel set to {channel.mention}. Posting there will result in an **instant ban** "
            f"with last {describe_retention(self.delete_message_seconds)} of messages deleted."
        )
        try:
            await self.store.set_trap_channel(ctx.guild_id, channel.id)
        except TrapSettingsPersistenceError:
            logger.error("Trap channel for guild %s set in memory only", ctx.guild_id)
            message += NOT_SAVED_SUFFIX
        else:
            logger.info("Trap channel for guild %s set to %s by %s", ctx.guild_id, channel.id, ctx.user)
        await ctx.respond(message, ephemeral=True)

    async def handle_clear_trap(self, ctx: discord.ApplicationContext) -> None:
        if not await self._ensure_admin_context(ctx):
            return
        message = "🧹 Trap channel cleared."
        try:
            await self.store.clear_trap_channel(ctx.guild_id)
        except TrapSettingsPersistenceError:
            logger.error("Trap channel for guild %s cleared in memory only", ctx.guild_id)
            message += NOT_SAVED_SUFFIX
        else:
            logger.info("Trap channel for guild %s cleared by %s", ctx.guild_id, ctx.user)
        await ctx.respond(message, ephemeral=True)

    async def handle_trap_status(self, ctx: discord.ApplicationContext) -> None:
        if not await self._ensure_admin_context(ctx):
            return
        trap_id = self.store.get(ctx.guild_id).trap_channel_id
        status = f"Current trap channel: <#{trap_id}>" if trap_id else "No trap channel set."
        await ctx.respond(f"ℹ️ {status}", ephemeral=True)

    async def handle_set_log(self, ctx: discord.ApplicationContext, channel: Any) -> None:
        if not await self._ensure_admin_context(ctx):
            return
        try:
            validate_trap_channel(channel)
        except InvalidChannelError as exc:
            await ctx.respond(str(exc), ephemeral=True)
            return

        message = f"📝 Log channel set to {channel.mention}. Auto-bans will be logged there."
        try:
            await self.store.set_log_channel(ctx.guild_id, channel.id)
        except TrapSettingsPersistenceError:
            logger.error("Log channel for guild %s set in memory only", ctx.guild_id)
            message += NOT_SAVED_SUFFIX
        else:
            logger.info("Log channel for guild %s set to %s by %s", ctx.guild_id, channel.id, ctx.user)
        await ctx.respond(message, ephemeral=True)

    async def handle_clear_log(self, ctx: discord.ApplicationContext) -> None:
        if not await self._ensure_admin_context(ctx):
            return
        message = "🧹 Log channel cleared."
        try:
            await self.store.clear_log_channel(ctx.guild_id)
        except TrapSettingsPersistenceError:
            logger.error("Log channel for guild %s cleared in memory only", ctx.guild_id)
            message += NOT_SAVED_SUFFIX
        else:
            logger.info("Log channel for guild %s cleared by %s", ctx.guild_id, ctx.user)
        await ctx.respond(message, ephemeral=True)

    async def handle_log_status(self, ctx: discord.ApplicationContext) -> None:
        if not await self._ensure_admin_context(ctx):
            return
        log_id = self.store.get(ctx.guild_id).log_channel_id
        status = f"Current log channel: <#{log_id}>" if log_id else "No log channel set."
        await ctx.respond(f"ℹ️ {status}", ephemeral=True)

    # -------- Slash commands --------
    @bantrap.command(name="set", description="Set the trap channel.")
    async def set_trap(
        self,
        ctx: discord.ApplicationContext,
        channel: discord.Option(discord.abc.GuildChannel, "The channel to trap."),
    ):
        await self.handle_set_trap(ctx, channel)

    @bantrap.command(name="clear", description="Clear the trap channel.")
    async def clear_trap(self, ctx: discord.ApplicationContext):
        await self.handle_clear_trap(ctx)

    @bantrap.command(name="status", description="Show current trap channel.")
    async def trap_status(self, ctx: discord.ApplicationContext):
        await self.handle_trap_status(ctx)

    @bantrap.command(name="setlog", description="Set the log channel.")
    async def set_log(
        self,
        ctx: discord.ApplicationContext,
        channel: discord.Option(discord.abc.GuildChannel, "The channel for ban logs."),
    ):
        await self.handle_set_log(ctx, channel)

    @bantrap.command(name="clearlog", description="Clear the log channel.")
    async def clear_log(self, ctx: discord.ApplicationContext):
        await self.handle_clear_log(ctx)

    @bantrap.command(name="logstatus", description="Show the current log channel.")
    async def log_status(self, ctx: discord.ApplicationContext):
        await self.handle_log_status(ctx)


def setup(discord_bot_instance, store: TrapSettingsStore, *, delete_message_seconds: int = DEFAULT_DELETE_MESSAGE_SECONDS):
    """Register the TrapSettingsCog with the bot."""
    discord_bot_instance.add_cog(
        TrapSettingsCog(discord_bot_instance, store, delete_message_seconds=delete_message_seconds)
    )
