"""Tests for the trap-channel enforcement engine."""

import asyncio
from unittest.mock import MagicMock

import discord
import pytest
import pytest_asyncio

from bantrap.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from bantrap.datatypes.trap_datatypes import (
    AbortReason,
    EnforcementAction,
    FailureKind,
    TRUNCATION_MARKER,
)
from bantrap.moderation.audit_logger import AuditLogger
from bantrap.moderation.enforcement_engine import (
    EnforcementEngine,
    build_ban_reason,
    classify_ban_error,
)
from bantrap.ui.audit_embed import FAILED_BAN_TITLE

from conftest import (
    FakeGateway,
    GUILD_ID,
    LOG_CHANNEL_ID,
    OTHER_CHANNEL_ID,
    TRAP_CHANNEL_ID,
    USER_ID,
    make_permissions,
    make_response,
)


def field_values(embed):
    return {field.name: field.value for field in embed.fields}


@pytest.fixture
def log_channel():
    return MagicMock(spec=discord.TextChannel, id=LOG_CHANNEL_ID)


@pytest_asyncio.fixture
async def trapped_store(store):
    await store.set_trap_channel(GUILD_ID, TRAP_CHANNEL_ID)
    return store


@pytest_asyncio.fixture
async def logged_store(trapped_store, gateway, log_channel):
    await trapped_store.set_log_channel(GUILD_ID, LOG_CHANNEL_ID)
    gateway.channels[LOG_CHANNEL_ID] = log_channel
    return trapped_store


@pytest.fixture
def engine_for(gateway):
    def _engine(store):
        return EnforcementEngine(store, gateway, AuditLogger(gateway))

    return _engine


def test_ban_reason_names_the_channel(make_event):
    assert build_ban_reason(make_event()) == "Posted in trap channel #lobby-trap"
    assert build_ban_reason(make_event(channel_name=None)) == f"Posted in trap channel #{TRAP_CHANNEL_ID}"


@pytest.mark.parametrize(
    "exc, kind",
    [
        (discord.Forbidden(make_response(403), "Missing Permissions"), FailureKind.FORBIDDEN),
        (discord.NotFound(make_response(404), "Unknown User"), FailureKind.NOT_FOUND),
        (discord.HTTPException(make_response(500), "Server Error"), FailureKind.HTTP_ERROR),
        (TimeoutError(), FailureKind.HTTP_ERROR),
        (RuntimeError("boom"), FailureKind.UNEXPECTED),
    ],
)
def test_classify_ban_error(exc, kind):
    assert classify_ban_error(exc) is kind


@pytest.mark.asyncio
async def test_regular_member_is_banned_and_logged(logged_store, gateway, log_channel, engine_for, make_event):
    gateway.permissions[USER_ID] = make_permissions()
    content = "".join(chr(ord("a") + i % 26) for i in range(1500))

    result = await engine_for(logged_store).process(make_event(content=content))

    assert result.is_ok
    assert result.action is EnforcementAction.BANNED
    assert result.audit_logged is True

    assert len(gateway.bans) == 1
    ban = gateway.bans[0]
    assert ban.guild_id == GUILD_ID
    assert ban.user_id == USER_ID
    assert ban.delete_message_seconds == 604800
    assert "#lobby-trap" in ban.reason

    assert len(gateway.sent) == 1
    assert gateway.sent[0].channel is log_channel
    fields = field_values(gateway.sent[0].embed)
    assert fields["Content"] == content[:1000] + TRUNCATION_MARKER
    assert fields["User ID"] == str(USER_ID)
    assert "#lobby-trap" in fields["Reason"]


@pytest.mark.asyncio
async def test_ban_without_log_channel_sends_no_record(trapped_store, gateway, engine_for, make_event):
    gateway.permissions[USER_ID] = make_permissions()

    result = await engine_for(trapped_store).process(make_event())

    assert result.action is EnforcementAction.BANNED
    assert result.audit_logged is False
    assert len(gateway.bans) == 1
    assert gateway.sent == []


@pytest.mark.asyncio
async def test_permissions_on_event_skip_the_lookup(trapped_store, gateway, engine_for, make_event):
    result = await engine_for(trapped_store).process(make_event(author_permissions=make_permissions()))

    assert result.action is EnforcementAction.BANNED
    assert gateway.permission_lookups == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "permissions",
    [make_permissions(administrator=True), make_permissions(ban_members=True)],
)
async def test_staff_message_is_deleted_without_ban(logged_store, gateway, engine_for, make_event, permissions):
    event = make_event(author_permissions=permissions)

    result = await engine_for(logged_store).process(event)

    assert result.is_ok
    assert result.action is EnforcementAction.MESSAGE_DELETED
    assert gateway.deleted == [event.handle]
    assert gateway.bans == []
    assert gateway.sent == []


@pytest.mark.asyncio
async def test_staff_delete_failure_is_not_an_error(trapped_store, gateway, engine_for, make_event):
    gateway.delete_result = False

    result = await engine_for(trapped_store).process(make_event(author_permissions=make_permissions(administrator=True)))

    assert result.is_ok
    assert result.action is EnforcementAction.NONE
    assert gateway.bans == []


@pytest.mark.asyncio
async def test_unresolvable_member_is_left_alone(logged_store, gateway, engine_for, make_event):
    gateway.permission_error = discord.HTTPException(make_response(503), "Service Unavailable")

    result = await engine_for(logged_store).process(make_event())

    assert result.is_aborted
    assert result.abort_reason is AbortReason.MEMBER_UNRESOLVED
    assert gateway.bans == []
    assert gateway.deleted == []
    assert gateway.sent == []


@pytest.mark.asyncio
async def test_departed_member_is_left_alone(trapped_store, gateway, engine_for, make_event):
    # No permissions registered: the fake reports the user is not a member
    result = await engine_for(trapped_store).process(make_event())

    assert result.abort_reason is AbortReason.MEMBER_UNRESOLVED
    assert gateway.bans == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides, reason",
    [
        ({"guild_id": None}, AbortReason.NOT_IN_GUILD),
        ({"is_system": True}, AbortReason.SYSTEM_MESSAGE),
        ({"is_webhook": True}, AbortReason.WEBHOOK_MESSAGE),
        ({"author_is_bot": True}, AbortReason.BOT_AUTHOR),
        ({"channel_id": ChannelID(OTHER_CHANNEL_ID)}, AbortReason.OTHER_CHANNEL),
    ],
)
async def test_filtered_messages_cause_no_platform_calls(logged_store, gateway, engine_for, make_event, overrides, reason):
    gateway.permissions[USER_ID] = make_permissions()

    result = await engine_for(logged_store).process(make_event(**overrides))

    assert result.is_aborted
    assert result.abort_reason is reason
    assert gateway.permission_lookups == 0
    assert gateway.bans == []
    assert gateway.deleted == []
    assert gateway.sent == []


@pytest.mark.asyncio
async def test_guild_without_trap_does_nothing(store, gateway, engine_for, make_event):
    gateway.permissions[USER_ID] = make_permissions()

    result = await engine_for(store).process(make_event())

    assert result.abort_reason is AbortReason.NO_TRAP_CHANNEL
    assert gateway.bans == []


@pytest.mark.asyncio
async def test_cleared_trap_stops_enforcement(trapped_store, gateway, engine_for, make_event):
    gateway.permissions[USER_ID] = make_permissions()
    await trapped_store.clear_trap_channel(GUILD_ID)

    result = await engine_for(trapped_store).process(make_event())

    assert result.abort_reason is AbortReason.NO_TRAP_CHANNEL
    assert gateway.bans == []


@pytest.mark.asyncio
async def test_trap_only_applies_to_its_own_guild(trapped_store, gateway, engine_for, make_event):
    gateway.permissions[USER_ID] = make_permissions()

    result = await engine_for(trapped_store).process(make_event(guild_id=GuildID(GUILD_ID + 1)))

    assert result.abort_reason is AbortReason.NO_TRAP_CHANNEL


@pytest.mark.asyncio
async def test_failed_ban_is_reported_and_still_logged(logged_store, gateway, engine_for, make_event):
    gateway.permissions[USER_ID] = make_permissions()
    gateway.ban_error = discord.Forbidden(make_response(403), "Missing Permissions")

    result = await engine_for(logged_store).process(make_event())

    assert result.is_failed
    assert result.failure_kind is FailureKind.FORBIDDEN
    assert result.audit_logged is True
    assert "Missing Permissions" in result.detail
    assert gateway.sent[0].embed.title == FAILED_BAN_TITLE


@pytest.mark.asyncio
async def test_audit_failure_does_not_affect_ban(logged_store, gateway, engine_for, make_event):
    gateway.permissions[USER_ID] = make_permissions()
    gateway.send_error = discord.Forbidden(make_response(403), "Missing Access")

    result = await engine_for(logged_store).process(make_event())

    assert result.is_ok
    assert result.action is EnforcementAction.BANNED
    assert result.audit_logged is False
    assert len(gateway.bans) == 1


@pytest.mark.asyncio
async def test_deleted_log_channel_skips_record(logged_store, gateway, engine_for, make_event):
    gateway.permissions[USER_ID] = make_permissions()
    gateway.channels.clear()

    result = await engine_for(logged_store).process(make_event())

    assert result.action is EnforcementAction.BANNED
    assert result.audit_logged is False
    assert gateway.sent == []


@pytest.mark.asyncio
async def test_configured_retention_window_is_used(trapped_store, gateway, make_event):
    engine = EnforcementEngine(trapped_store, gateway, AuditLogger(gateway), delete_message_seconds=3600)

    await engine.process(make_event(author_permissions=make_permissions()))

    assert gateway.bans[0].delete_message_seconds == 3600


@pytest.mark.asyncio
async def test_repeat_posts_each_attempt_a_ban(trapped_store, gateway, engine_for, make_event):
    engine = engine_for(trapped_store)
    event = make_event(author_permissions=make_permissions())

    await engine.process(event)
    await engine.process(event)

    assert len(gateway.bans) == 2


class GatedGateway(FakeGateway):
    """Holds the ban of one user until ``release`` is set."""

    def __init__(self, gated_user_id) -> None:
        super().__init__()
        self.gated_user_id = gated_user_id
        self.release = asyncio.Event()

    async def ban_member(self, guild_id, user_id, *, delete_message_seconds, reason):
        if user_id == self.gated_user_id:
            await self.release.wait()
        await super().ban_member(
            guild_id, user_id, delete_message_seconds=delete_message_seconds, reason=reason
        )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "other_overrides",
    [
        {"author_id": UserID(USER_ID + 1)},
        {"guild_id": GuildID(GUILD_ID + 1), "author_id": UserID(USER_ID + 1)},
    ],
)
async def test_slow_ban_does_not_hold_up_other_events(trapped_store, make_event, other_overrides):
    await trapped_store.set_trap_channel(GUILD_ID + 1, TRAP_CHANNEL_ID)
    gated = GatedGateway(UserID(USER_ID))
    engine = EnforcementEngine(trapped_store, gated, AuditLogger(gated))
    permissions = make_permissions()
    completed = []

    async def process_slow():
        result = await engine.process(make_event(author_permissions=permissions))
        completed.append("slow")
        return result

    async def process_other():
        result = await engine.process(make_event(author_permissions=permissions, **other_overrides))
        completed.append("other")
        # Only now let the first ban through
        gated.release.set()
        return result

    slow, other = await asyncio.wait_for(asyncio.gather(process_slow(), process_other()), timeout=5)

    assert completed == ["other", "slow"]
    assert other.action is EnforcementAction.BANNED
    assert slow.action is EnforcementAction.BANNED
    assert [ban.user_id for ban in gated.bans] == [USER_ID + 1, USER_ID]
