"""
Embed rendering for trap audit records.
"""

import datetime

import discord

from bantrap.datatypes.trap_datatypes import AuditRecord

BAN_TITLE = "🚫 Auto Ban (Trap Channel)"
FAILED_BAN_TITLE = "⚠️ Auto Ban Failed (Trap Channel)"


def build_audit_embed(record: AuditRecord) -> discord.Embed:
    """
    Render an ``AuditRecord`` as the embed posted to the log channel.

    Args:
        record: The audit record to render.

    Returns:
        discord.Embed: User, user id, channel, reason, jump link and, when the
        message had text, a content preview.
    """
    embed = discord.Embed(
        title=BAN_TITLE if record.ban_succeeded else FAILED_BAN_TITLE,
        color=discord.Color.dark_red() if record.ban_succeeded else discord.Color.orange(),
        timestamp=record.created_at or datetime.datetime.now(datetime.timezone.utc),
    )

    embed.add_field(name="User", value=f"{record.author_tag} (<@{record.author_id}>)", inline=False)
    embed.add_field(name="User ID", value=str(record.author_id), inline=True)

    channel_mention = f"<#{record.channel_id}>"
    embed.add_field(name="Channel", value=f"{channel_mention} ({record.channel_id})", inline=True)

    embed.add_field(name="Reason", value=record.reason or "Posted in trap channel", inline=False)

    if record.jump_url:
        embed.add_field(name="Message Link", value=f"[Jump to message]({record.jump_url})", inline=False)

    if record.content_preview:
        embed.add_field(name="Content", value=record.content_preview, inline=False)

    return embed
