"""
Type-safe wrapper classes for Discord identifiers.

Discord snowflakes are 64-bit integers, but they travel as strings in JSON and
are stored as TEXT in the settings database. These wrappers keep guild,
channel, user and message ids from being mixed up while still comparing equal
to (and hashing like) the raw ``int`` ids the Discord API hands back.
"""

from __future__ import annotations

from typing import Union

import discord


class Snowflake:
    """
    Base wrapper for a Discord snowflake id.

    Attributes:
        _value (str): The snowflake stored as a canonical decimal string.

    Example:
        >>> gid = GuildID.from_int(123456789012345678)
        >>> gid.to_int()
        123456789012345678
        >>> str(gid)
        '123456789012345678'
        >>> GuildID(" 123456789012345678 ") == 123456789012345678
        True
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "Snowflake"]) -> None:
        """
        Initialize from a string, int, or another wrapper of the same kind.

        Args:
            value: The snowflake as a string, int, or wrapper.

        Raises:
            ValueError: If the value cannot be converted to a valid snowflake.
        """
        if isinstance(value, type(self)):
            self._value = value._value
        elif isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool: {value}")
        elif isinstance(value, int):
            if value < 0:
                raise ValueError(f"Snowflakes are non-negative, got {value}")
            self._value = str(value)
        elif isinstance(value, str):
            parsed = int(value.strip())
            if parsed < 0:
                raise ValueError(f"Snowflakes are non-negative, got {value!r}")
            self._value = str(parsed)
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")

    @classmethod
    def from_int(cls, value: int):
        return cls(value)

    def to_int(self) -> int:
        """Convert to an integer for Discord API calls."""
        return int(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, type(self)):
            return self._value == other._value
        if isinstance(other, int) and not isinstance(other, bool):
            return self.to_int() == other
        return NotImplemented

    def __hash__(self) -> int:
        # Must match hash(int) since wrappers compare equal to raw ints
        return hash(self.to_int())


class UserID(Snowflake):
    """Discord user snowflake."""

    __slots__ = ()

    @classmethod
    def from_user(cls, member: Union[discord.Member, discord.User]) -> "UserID":
        return cls(member.id)


class GuildID(Snowflake):
    """Discord guild snowflake."""

    __slots__ = ()

    @classmethod
    def from_guild(cls, guild: discord.Guild) -> "GuildID":
        return cls(guild.id)


class ChannelID(Snowflake):
    """Discord channel snowflake."""

    __slots__ = ()

    @classmethod
    def from_channel(cls, channel: Union[discord.abc.GuildChannel, discord.Thread, discord.abc.Messageable]) -> "ChannelID":
        return cls(channel.id)  # type: ignore[union-attr]


class MessageID(Snowflake):
    """Discord message snowflake."""

    __slots__ = ()

    @classmethod
    def from_message(cls, message: discord.Message) -> "MessageID":
        return cls(message.id)
