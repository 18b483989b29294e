"""
Pytest configuration and fixtures for Bantrap tests.
"""

import datetime
import os
import sys
import tempfile
from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio

# Keep test log files out of the project tree
os.environ.setdefault("BANTRAP_LOGS_DIR", tempfile.mkdtemp(prefix="bantrap-logs-"))

# Add src directory to path so imports work without installing
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from bantrap.configuration.trap_settings import TrapSettingsStore  # noqa: E402
from bantrap.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, UserID  # noqa: E402
from bantrap.datatypes.trap_datatypes import EnforcementEvent  # noqa: E402

GUILD_ID = 1000
TRAP_CHANNEL_ID = 2000
LOG_CHANNEL_ID = 3000
OTHER_CHANNEL_ID = 4000
USER_ID = 5000


def make_response(status: int, reason: str = "") -> SimpleNamespace:
    """Minimal aiohttp-like response accepted by ``discord.HTTPException``."""
    return SimpleNamespace(status=status, reason=reason or "error")


def make_permissions(*, administrator: bool = False, ban_members: bool = False, **extra) -> SimpleNamespace:
    return SimpleNamespace(administrator=administrator, ban_members=ban_members, **extra)


class FakeGateway:
    """In-memory stand-in for ``PlatformGateway`` recording every call."""

    def __init__(self) -> None:
        self.permissions: dict[int, object] = {}
        self.permission_error: Exception | None = None
        self.bans: list[SimpleNamespace] = []
        self.ban_error: Exception | None = None
        self.deleted: list[object] = []
        self.delete_result = True
        self.channels: dict[int, object] = {}
        self.fetch_channel_error: Exception | None = None
        self.sent: list[SimpleNamespace] = []
        self.send_error: Exception | None = None
        self.permission_lookups = 0

    async def fetch_member_permissions(self, guild_id, user_id):
        self.permission_lookups += 1
        if self.permission_error is not None:
            raise self.permission_error
        return self.permissions.get(user_id.to_int())

    async def ban_member(self, guild_id, user_id, *, delete_message_seconds, reason):
        self.bans.append(
            SimpleNamespace(
                guild_id=guild_id,
                user_id=user_id,
                delete_message_seconds=delete_message_seconds,
                reason=reason,
            )
        )
        if self.ban_error is not None:
            raise self.ban_error

    async def delete_message(self, handle):
        self.deleted.append(handle)
        return self.delete_result

    async def fetch_channel(self, guild_id, channel_id):
        if self.fetch_channel_error is not None:
            raise self.fetch_channel_error
        return self.channels.get(channel_id.to_int())

    async def send_message(self, channel, *, embed):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(SimpleNamespace(channel=channel, embed=embed))


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest_asyncio.fixture
async def store(tmp_path):
    trap_store = TrapSettingsStore(tmp_path / "bantrap.db")
    await trap_store.async_init()
    yield trap_store
    await trap_store.shutdown()


@pytest.fixture
def make_event():
    """Factory for trap-channel events from a regular member."""

    def _make_event(**overrides) -> EnforcementEvent:
        fields = dict(
            guild_id=GuildID(GUILD_ID),
            channel_id=ChannelID(TRAP_CHANNEL_ID),
            author_id=UserID(USER_ID),
            message_id=MessageID(42),
            channel_name="lobby-trap",
            author_tag="spammer",
            content="hi",
            created_at=datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc),
            jump_url=f"https://discord.com/channels/{GUILD_ID}/{TRAP_CHANNEL_ID}/42",
            handle=SimpleNamespace(id=42),
        )
        fields.update(overrides)
        return EnforcementEvent(**fields)

    return _make_event
