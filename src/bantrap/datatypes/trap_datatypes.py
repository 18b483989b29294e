"""
Data structures for trap-channel enforcement.

``CommunityConfig`` is the only persisted type. ``EnforcementEvent`` and
``AuditRecord`` live for the duration of a single message, and
``EnforcementResult`` is what the engine hands back to the listener that fed
it the event.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

from bantrap.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, UserID

# 7 days, the largest window Discord accepts for ``delete_message_seconds``
DEFAULT_DELETE_MESSAGE_SECONDS = 7 * 24 * 60 * 60
PREVIEW_LIMIT = 1000
TRUNCATION_MARKER = "…"


@dataclass(frozen=True, slots=True)
class CommunityConfig:
    """Trap and log channel settings of one guild.

    Attributes:
        guild_id: Guild the settings belong to.
        trap_channel_id: Channel whose posters get banned, or None when disabled.
        log_channel_id: Channel receiving audit records, or None when disabled.
    """

    guild_id: GuildID
    trap_channel_id: Optional[ChannelID] = None
    log_channel_id: Optional[ChannelID] = None

    @property
    def is_enforcing(self) -> bool:
        return self.trap_channel_id is not None

    @property
    def is_logging(self) -> bool:
        return self.log_channel_id is not None

    def with_trap_channel(self, channel_id: Optional[ChannelID]) -> "CommunityConfig":
        return replace(self, trap_channel_id=channel_id)

    def with_log_channel(self, channel_id: Optional[ChannelID]) -> "CommunityConfig":
        return replace(self, log_channel_id=channel_id)

    def to_row(self) -> tuple[str, Optional[str], Optional[str]]:
        """Return the ``(guild_id, trap_channel_id, log_channel_id)`` database row."""
        return (
            str(self.guild_id),
            str(self.trap_channel_id) if self.trap_channel_id is not None else None,
            str(self.log_channel_id) if self.log_channel_id is not None else None,
        )

    @classmethod
    def from_row(cls, guild_id: Any, trap_channel_id: Any, log_channel_id: Any) -> "CommunityConfig":
        return cls(
            guild_id=GuildID(guild_id),
            trap_channel_id=ChannelID(trap_channel_id) if trap_channel_id is not None else None,
            log_channel_id=ChannelID(log_channel_id) if log_channel_id is not None else None,
        )


@dataclass(slots=True)
class EnforcementEvent:
    """A single inbound guild message, normalised for the enforcement engine.

    ``author_permissions`` is the capability set when the platform already
    attached it to the message; the engine fetches it otherwise. ``handle`` is
    the platform object the gateway deletes when an exempt member posts.
    """

    guild_id: Optional[GuildID]
    channel_id: ChannelID
    author_id: UserID
    message_id: MessageID
    channel_name: Optional[str] = None
    author_tag: str = ""
    author_is_bot: bool = False
    is_system: bool = False
    is_webhook: bool = False
    author_permissions: Any = None
    content: str = ""
    created_at: Optional[datetime.datetime] = None
    jump_url: str = ""
    handle: Any = None

    @property
    def channel_label(self) -> str:
        """``#name`` when the channel name is known, otherwise ``#<id>``."""
        return f"#{self.channel_name or self.channel_id}"


@dataclass(frozen=True, slots=True)
class AuditRecord:
    """Structured summary of one trap ban, rendered into the log channel."""

    author_tag: str
    author_id: UserID
    channel_id: ChannelID
    channel_name: Optional[str]
    reason: str
    jump_url: str
    content_preview: Optional[str] = None
    created_at: Optional[datetime.datetime] = None
    ban_succeeded: bool = True


def truncate_preview(content: Optional[str], limit: int = PREVIEW_LIMIT) -> Optional[str]:
    """Trim message content for the audit preview.

    Returns None for empty content. Content longer than ``limit`` is cut to
    exactly ``limit`` characters followed by ``TRUNCATION_MARKER``.
    """
    if not content:
        return None
    if len(content) > limit:
        return content[:limit] + TRUNCATION_MARKER
    return content


class EnforcementStatus(Enum):
    OK = "ok"
    ABORTED = "aborted"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class EnforcementAction(Enum):
    NONE = "none"
    BANNED = "banned"
    MESSAGE_DELETED = "message_deleted"

    def __str__(self) -> str:
        return self.value


class AbortReason(Enum):
    """Why a message was left alone."""

    NOT_IN_GUILD = "not_in_guild"
    SYSTEM_MESSAGE = "system_message"
    WEBHOOK_MESSAGE = "webhook_message"
    BOT_AUTHOR = "bot_author"
    NO_TRAP_CHANNEL = "no_trap_channel"
    OTHER_CHANNEL = "other_channel"
    MEMBER_UNRESOLVED = "member_unresolved"

    def __str__(self) -> str:
        return self.value


class FailureKind(Enum):
    """Classification of a failed ban call."""

    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    HTTP_ERROR = "http_error"
    UNEXPECTED = "unexpected"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class EnforcementResult:
    """Outcome of processing one ``EnforcementEvent``.

    Exactly one of three shapes:
        - OK: ``action`` tells what was done (ban or exempt clean-up).
        - ABORTED: ``abort_reason`` tells why nothing was done.
        - FAILED: ``failure_kind`` classifies the failed ban; ``detail`` holds
          the error text.
    ``audit_logged`` reports whether an audit record reached the log channel.
    """

    status: EnforcementStatus
    action: EnforcementAction = EnforcementAction.NONE
    abort_reason: Optional[AbortReason] = None
    failure_kind: Optional[FailureKind] = None
    audit_logged: bool = False
    detail: str = ""

    @classmethod
    def ok(cls, action: EnforcementAction, *, audit_logged: bool = False, detail: str = "") -> "EnforcementResult":
        return cls(EnforcementStatus.OK, action=action, audit_logged=audit_logged, detail=detail)

    @classmethod
    def aborted(cls, reason: AbortReason, detail: str = "") -> "EnforcementResult":
        return cls(EnforcementStatus.ABORTED, abort_reason=reason, detail=detail)

    @classmethod
    def failed(cls, kind: FailureKind, *, audit_logged: bool = False, detail: str = "") -> "EnforcementResult":
        return cls(EnforcementStatus.FAILED, failure_kind=kind, audit_logged=audit_logged, detail=detail)

    @property
    def is_ok(self) -> bool:
        return self.status is EnforcementStatus.OK

    @property
    def is_aborted(self) -> bool:
        return self.status is EnforcementStatus.ABORTED

    @property
    def is_failed(self) -> bool:
        return self.status is EnforcementStatus.FAILED
