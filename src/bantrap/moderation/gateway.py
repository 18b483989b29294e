"""
Platform operations used by the enforcement core.

``PlatformGateway`` lists the handful of Discord calls the engine and the
audit logger make, so both can be driven by a fake in tests. ``DiscordGateway``
implements it on top of a py-cord bot, preferring the gateway cache and
falling back to REST fetches.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

import discord

from bantrap.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from bantrap.util.logger import get_logger

logger = get_logger("gateway")


def is_text_channel(channel: Any) -> bool:
    """True for a guild text (or announcement) channel. Threads, voice, stage,
    forum and category channels do not qualify."""
    return isinstance(channel, discord.TextChannel) and getattr(channel, "guild", None) is not None


class PlatformGateway(Protocol):
    async def fetch_member_permissions(self, guild_id: GuildID, user_id: UserID) -> Optional[Any]:
        """Return the member's guild permissions, or None if they are not a member."""
        ...

    async def ban_member(
        self,
        guild_id: GuildID,
        user_id: UserID,
        *,
        delete_message_seconds: int,
        reason: str,
    ) -> None:
        """Ban the user. Raises on failure."""
        ...

    async def delete_message(self, handle: Any) -> bool:
        """Best-effort delete. Never raises; returns whether it worked."""
        ...

    async def fetch_channel(self, guild_id: GuildID, channel_id: ChannelID) -> Optional[Any]:
        """Return the channel if it still exists in the guild and accepts messages."""
        ...

    async def send_message(self, channel: Any, *, embed: discord.Embed) -> None:
        """Send an embed to the channel. Raises on failure."""
        ...


class DiscordGateway:
    """``PlatformGateway`` backed by a py-cord ``discord.Bot``."""

    def __init__(self, bot: discord.Client) -> None:
        self._bot = bot

    async def _resolve_guild(self, guild_id: GuildID) -> discord.Guild:
        guild = self._bot.get_guild(guild_id.to_int())
        if guild is None:
            guild = await self._bot.fetch_guild(guild_id.to_int())
        return guild

    async def fetch_member_permissions(self, guild_id: GuildID, user_id: UserID) -> Optional[discord.Permissions]:
        guild = await self._resolve_guild(guild_id)
        member = guild.get_member(user_id.to_int())
        if member is None:
            try:
                member = await guild.fetch_member(user_id.to_int())
            except discord.NotFound:
                return None
        return member.guild_permissions

    async def ban_member(
        self,
        guild_id: GuildID,
        user_id: UserID,
        *,
        delete_message_seconds: int,
        reason: str,
    ) -> None:
        guild = await self._resolve_guild(guild_id)
        await guild.ban(
            discord.Object(id=user_id.to_int()),
            delete_message_seconds=delete_message_seconds,
            reason=reason,
        )

    async def delete_message(self, handle: Any) -> bool:
        if handle is None:
            return False
        try:
            await handle.delete()
            return True
        except discord.NotFound:
            return False
        except discord.Forbidden:
            logger.warning("No permission to delete message %s", getattr(handle, "id", "?"))
        except discord.HTTPException as exc:
            logger.error("Error deleting message %s: %s", getattr(handle, "id", "?"), exc)
        return False

    async def fetch_channel(self, guild_id: GuildID, channel_id: ChannelID) -> Optional[discord.abc.GuildChannel]:
        channel = self._bot.get_channel(channel_id.to_int())
        if channel is None:
            try:
                channel = await self._bot.fetch_channel(channel_id.to_int())
            except (discord.NotFound, discord.Forbidden):
                return None

        if not is_text_channel(channel) or channel.guild.id != guild_id.to_int():
            return None
        return channel

    async def send_message(self, channel: Any, *, embed: discord.Embed) -> None:
        await channel.send(embed=embed)
