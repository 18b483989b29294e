"""
Trap-channel enforcement engine.

``EnforcementEngine.process`` takes one ``EnforcementEvent`` through a single
pass and returns an ``EnforcementResult``:

1. Filter   - DMs, system messages, webhooks and bots are ignored.
2. Lookup   - only messages in the guild's configured trap channel continue.
3. Resolve  - the author's permissions are taken from the event or fetched;
              if that fails nothing is done (never ban on incomplete info).
4. Exempt   - administrators and members with ban rights only lose the message.
5. Enforce  - everyone else is banned with their recent messages purged.
6. Record   - an audit record goes to the log channel, whatever the ban outcome.

The ban and the audit record are independent: neither is retried and a
failure of one does not undo or skip the other. The engine does not log
outcomes; the caller decides what to do with the result.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import discord

from bantrap.configuration.trap_settings import TrapSettingsStore
from bantrap.datatypes.trap_datatypes import (
    DEFAULT_DELETE_MESSAGE_SECONDS,
    AbortReason,
    EnforcementAction,
    EnforcementEvent,
    EnforcementResult,
    FailureKind,
)
from bantrap.moderation.audit_logger import AuditLogger
from bantrap.moderation.exemption import is_exempt
from bantrap.moderation.gateway import PlatformGateway
from bantrap.util.logger import get_logger

logger = get_logger("enforcement_engine")


def build_ban_reason(event: EnforcementEvent) -> str:
    """Audit-log reason attached to the ban, naming the trap channel."""
    return f"Posted in trap channel {event.channel_label}"


def classify_ban_error(exc: BaseException) -> FailureKind:
    if isinstance(exc, discord.Forbidden):
        return FailureKind.FORBIDDEN
    if isinstance(exc, discord.NotFound):
        return FailureKind.NOT_FOUND
    if isinstance(exc, (discord.HTTPException, asyncio.TimeoutError)):
        return FailureKind.HTTP_ERROR
    return FailureKind.UNEXPECTED


class EnforcementEngine:
    """Decides and performs the trap action for each guild message."""

    def __init__(
        self,
        store: TrapSettingsStore,
        gateway: PlatformGateway,
        audit_logger: AuditLogger,
        *,
        delete_message_seconds: int = DEFAULT_DELETE_MESSAGE_SECONDS,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._audit_logger = audit_logger
        self.delete_message_seconds = delete_message_seconds

    async def process(self, event: EnforcementEvent) -> EnforcementResult:
        if event.guild_id is None:
            return EnforcementResult.aborted(AbortReason.NOT_IN_GUILD)
        if event.is_system:
            return EnforcementResult.aborted(AbortReason.SYSTEM_MESSAGE)
        if event.is_webhook:
            return EnforcementResult.aborted(AbortReason.WEBHOOK_MESSAGE)
        if event.author_is_bot:
            return EnforcementResult.aborted(AbortReason.BOT_AUTHOR)

        config = self._store.get(event.guild_id)
        if not config.is_enforcing:
            return EnforcementResult.aborted(AbortReason.NO_TRAP_CHANNEL)
        if event.channel_id != config.trap_channel_id:
            return EnforcementResult.aborted(AbortReason.OTHER_CHANNEL)

        permissions = await self._resolve_permissions(event)
        if permissions is None:
            return EnforcementResult.aborted(
                AbortReason.MEMBER_UNRESOLVED,
                detail=f"could not resolve permissions of user {event.author_id}",
            )

        if is_exempt(permissions):
            deleted = await self._delete_quietly(event)
            return EnforcementResult.ok(
                EnforcementAction.MESSAGE_DELETED if deleted else EnforcementAction.NONE,
                detail="exempt member" if deleted else "exempt member, message deletion failed",
            )

        reason = build_ban_reason(event)
        failure: Optional[BaseException] = None
        try:
            await self._gateway.ban_member(
                event.guild_id,
                event.author_id,
                delete_message_seconds=self.delete_message_seconds,
                reason=reason,
            )
        except Exception as exc:
            failure = exc

        audit_logged = False
        if config.is_logging:
            audit_logged = await self._audit_logger.record(config, event, reason, ban_succeeded=failure is None)

        if failure is not None:
            return EnforcementResult.failed(
                classify_ban_error(failure),
                audit_logged=audit_logged,
                detail=f"{type(failure).__name__}: {failure}",
            )
        return EnforcementResult.ok(EnforcementAction.BANNED, audit_logged=audit_logged, detail=reason)

    async def _resolve_permissions(self, event: EnforcementEvent) -> Any:
        if event.author_permissions is not None:
            return event.author_permissions
        try:
            return await self._gateway.fetch_member_permissions(event.guild_id, event.author_id)
        except Exception as exc:
            logger.debug("Member lookup for user %s in guild %s failed: %s", event.author_id, event.guild_id, exc)
            return None

    async def _delete_quietly(self, event: EnforcementEvent) -> bool:
        try:
            return bool(await self._gateway.delete_message(event.handle))
        except Exception as exc:
            logger.debug("Could not delete trap message %s: %s", event.message_id, exc)
            return False
