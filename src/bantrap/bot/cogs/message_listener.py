"""Message listener Cog for Bantrap.

Feeds every message py-cord delivers into the enforcement engine and logs the
returned ``EnforcementResult``. py-cord runs each listener call as its own
task, so a slow ban or member fetch never holds up the next message.
"""

import discord
from discord.ext import commands

from bantrap.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, UserID
from bantrap.datatypes.trap_datatypes import (
    AbortReason,
    EnforcementAction,
    EnforcementEvent,
    EnforcementResult,
)
from bantrap.moderation.enforcement_engine import EnforcementEngine
from bantrap.util.logger import get_logger

logger = get_logger("message_listener_cog")


def build_enforcement_event(message: discord.Message) -> EnforcementEvent:
    """Normalise a Discord message into an ``EnforcementEvent``.

    Guild messages usually carry a ``discord.Member`` author, whose
    permissions are attached so the engine can skip a member fetch.
    """
    author = message.author
    channel = message.channel

    return EnforcementEvent(
        guild_id=GuildID.from_guild(message.guild) if message.guild else None,
        channel_id=ChannelID.from_int(message.channel.id),
        author_id=UserID.from_user(author),
        message_id=MessageID.from_message(message),
        channel_name=getattr(channel, "name", None),
        author_tag=str(author),
        author_is_bot=bool(getattr(author, "bot", False)),
        is_system=message.is_system(),
        is_webhook=message.webhook_id is not None,
        author_permissions=getattr(author, "guild_permissions", None),
        content=message.content or "",
        created_at=message.created_at,
        jump_url=message.jump_url,
        handle=message,
    )


class MessageListenerCog(commands.Cog):
    """Cog responsible for passing new messages to the enforcement engine."""

    def __init__(self, discord_bot_instance, engine: EnforcementEngine):
        self.bot = discord_bot_instance
        self.engine = engine
        logger.info("Message listener cog loaded")

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message):
        """Run the trap check for a new message and log what happened."""
        if message.guild is None:
            return

        try:
            event = build_enforcement_event(message)
            result = await self.engine.process(event)
        except Exception:
            logger.exception("Unhandled error while enforcing trap for message %s", message.id)
            return

        self.log_result(event, result, guild_name=message.guild.name)

    @staticmethod
    def log_result(event: EnforcementEvent, result: EnforcementResult, *, guild_name: str = "") -> None:
        guild_label = guild_name or str(event.guild_id)

        if result.is_failed:
            logger.error(
                "Failed to ban %s (%s) from %s for posting in trap channel [%s]: %s (audit logged: %s)",
                event.author_tag, event.author_id, guild_label, result.failure_kind, result.detail, result.audit_logged,
            )
            return

        if result.is_aborted:
            if result.abort_reason is AbortReason.MEMBER_UNRESOLVED:
                logger.info(
                    "Skipped trap enforcement for %s in %s: %s",
                    event.author_tag, guild_label, result.detail,
                )
            return

        if result.action is EnforcementAction.BANNED:
            logger.info(f"Banned {event.author_tag} from {guild_label} for posting in trap channel.")
        elif result.action is EnforcementAction.MESSAGE_DELETED:
            logger.info(f"Deleted trap channel message from exempt member {event.author_tag} in {guild_label}.")
        else:
            logger.warning(f"Exempt member {event.author_tag} posted in the trap channel of {guild_label}; {result.detail}.")


def setup(discord_bot_instance, engine: EnforcementEngine):
    """Register the MessageListenerCog with the bot."""
    discord_bot_instance.add_cog(MessageListenerCog(discord_bot_instance, engine))
