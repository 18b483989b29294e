"""
Best-effort audit logging of trap bans.

Nothing in this module may raise into the enforcement flow: a missing log
channel, a channel that was deleted or converted since it was configured, and
a failed send all end in ``record`` returning False.
"""

import datetime
from typing import Optional

from bantrap.datatypes.trap_datatypes import (
    PREVIEW_LIMIT,
    AuditRecord,
    CommunityConfig,
    EnforcementEvent,
    truncate_preview,
)
from bantrap.moderation.gateway import PlatformGateway
from bantrap.ui.audit_embed import build_audit_embed
from bantrap.util.logger import get_logger

logger = get_logger("audit_logger")


class AuditLogger:
    """Sends an embed summary of each trap ban to the guild's log channel."""

    def __init__(self, gateway: PlatformGateway, *, preview_limit: int = PREVIEW_LIMIT) -> None:
        self._gateway = gateway
        self.preview_limit = preview_limit

    def build_record(self, event: EnforcementEvent, reason: str, *, ban_succeeded: bool = True) -> AuditRecord:
        return AuditRecord(
            author_tag=event.author_tag or str(event.author_id),
            author_id=event.author_id,
            channel_id=event.channel_id,
            channel_name=event.channel_name,
            reason=reason,
            jump_url=event.jump_url,
            content_preview=truncate_preview(event.content, self.preview_limit),
            created_at=datetime.datetime.now(datetime.timezone.utc),
            ban_succeeded=ban_succeeded,
        )

    async def record(
        self,
        config: CommunityConfig,
        event: EnforcementEvent,
        reason: str,
        *,
        ban_succeeded: bool = True,
    ) -> bool:
        """
        Post an audit record for ``event`` to the configured log channel.

        Never raises. Returns True only when the record was sent.
        """
        if config.log_channel_id is None:
            return False

        try:
            channel: Optional[object] = await self._gateway.fetch_channel(config.guild_id, config.log_channel_id)
            if channel is None:
                logger.warning(
                    "Log channel %s of guild %s is missing or no longer a text channel; skipping audit record",
                    config.log_channel_id, config.guild_id,
                )
                return False

            record = self.build_record(event, reason, ban_succeeded=ban_succeeded)
            await self._gateway.send_message(channel, embed=build_audit_embed(record))
        except Exception as exc:
            logger.warning(
                "Failed to send audit record for user %s to log channel %s: %s",
                event.author_id, config.log_channel_id, exc,
            )
            return False

        logger.debug("Audit record for user %s sent to log channel %s", event.author_id, config.log_channel_id)
        return True
