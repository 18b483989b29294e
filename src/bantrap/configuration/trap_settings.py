"""
Persistent per-guild trap configuration.

Responsibilities:
- Keep every guild's ``CommunityConfig`` in memory for lock-free reads by the
  enforcement engine
- Write the whole mapping to SQLite after every change and report write
  failures to the caller
- Serialise changes per guild so concurrent set/clear calls cannot lose updates

Database schema:
- trap_settings table with columns: guild_id, trap_channel_id, log_channel_id
"""

from __future__ import annotations

import asyncio
import collections
import datetime
from pathlib import Path
from typing import Callable, DefaultDict, Dict, List, Optional, Union

import aiosqlite

from bantrap.database.db_connection import ConnectionManager
from bantrap.database.db_schema import SchemaManager
from bantrap.datatypes.discord_datatypes import ChannelID, GuildID
from bantrap.datatypes.trap_datatypes import CommunityConfig
from bantrap.util.logger import get_logger

logger = get_logger("trap_settings")

GuildKey = Union[GuildID, int, str]
ChannelKey = Union[ChannelID, int, str]


CORRUPTION_ERROR_NAMES = ("SQLITE_NOTADB", "SQLITE_CORRUPT")


def is_corruption_error(exc: BaseException) -> bool:
    """True if SQLite reported the file itself as damaged or not a database."""
    name = getattr(exc, "sqlite_errorname", None) or ""
    return name.startswith(CORRUPTION_ERROR_NAMES)


class TrapSettingsError(Exception):
    """Base class for trap settings errors."""


class TrapSettingsPersistenceError(TrapSettingsError):
    """A change was applied in memory but could not be written to disk.

    The change stays visible for the rest of the process lifetime but will be
    lost on restart unless a later write succeeds.
    """


class TrapSettingsStore:
    """
    Owner of the ``guild_id -> CommunityConfig`` mapping.

    Lifecycle:
        1. ``await store.async_init()`` at startup opens the database and loads
           it. Missing or corrupt state leaves the store empty.
        2. ``get`` for reads; ``set_*``/``clear_*`` for changes. Each change
           returns only after the full mapping is committed to disk.
        3. ``await store.shutdown()`` at exit.
    """

    def __init__(self, db_path: Path, connection: Optional[ConnectionManager] = None) -> None:
        self.db_path = Path(db_path)
        self.guilds: Dict[GuildID, CommunityConfig] = {}
        self._connection = connection or ConnectionManager()
        self._guild_locks: DefaultDict[GuildID, asyncio.Lock] = collections.defaultdict(asyncio.Lock)

    # -------- Lifecycle --------
    async def async_init(self) -> Dict[GuildID, CommunityConfig]:
        """Open the database, creating or replacing it if needed, and load it."""
        if not self._connection.is_open:
            await self._open_database()
        return await self.load()

    async def _open_database(self) -> None:
        try:
            await self._connect()
            return
        except (aiosqlite.Error, OSError) as exc:
            logger.error("[TRAP SETTINGS] Could not open %s: %s", self.db_path, exc)
            corrupt = is_corruption_error(exc)

        # A locked or unreadable but intact file is left in place
        if corrupt and self.db_path.exists():
            self._quarantine_corrupt_file()
            try:
                await self._connect()
                return
            except (aiosqlite.Error, OSError) as exc:
                logger.error("[TRAP SETTINGS] Could not create a fresh database at %s: %s", self.db_path, exc)

        logger.critical(
            "[TRAP SETTINGS] Running without persistence; configuration changes will fail to save."
        )

    async def _connect(self) -> None:
        await self._connection.open(self.db_path)
        try:
            await SchemaManager.initialize_schema(self._connection.connection)
        except Exception:
            await self._connection.close()
            raise

    def _quarantine_corrupt_file(self) -> None:
        stamp = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
        target = self.db_path.with_name(f"{self.db_path.name}.corrupt-{stamp}")
        try:
            self.db_path.rename(target)
            for suffix in ("-wal", "-shm"):
                sidecar = self.db_path.with_name(self.db_path.name + suffix)
                if sidecar.exists():
                    sidecar.rename(target.with_name(target.name + suffix))
            logger.warning("[TRAP SETTINGS] Moved unreadable database to %s", target)
        except OSError as exc:
            logger.error("[TRAP SETTINGS] Could not move unreadable database %s aside: %s", self.db_path, exc)

    async def shutdown(self) -> None:
        """Close the database connection."""
        await self._connection.close()
        logger.info("[TRAP SETTINGS] Trap settings store shutdown complete")

    # -------- Reads --------
    def get(self, guild_id: GuildKey) -> CommunityConfig:
        """Return the guild's config, or an empty one. Never adds an entry."""
        guild_id = GuildID(guild_id)
        config = self.guilds.get(guild_id)
        return config if config is not None else CommunityConfig(guild_id=guild_id)

    def snapshot(self) -> Dict[GuildID, CommunityConfig]:
        """Return a shallow copy of the mapping."""
        return dict(self.guilds)

    def list_guild_ids(self) -> List[GuildID]:
        return list(self.guilds.keys())

    def enforcing_guild_count(self) -> int:
        """Number of guilds with a trap channel configured."""
        return sum(1 for config in self.guilds.values() if config.is_enforcing)

    # -------- Changes --------
    async def set_trap_channel(self, guild_id: GuildKey, channel_id: ChannelKey) -> CommunityConfig:
        channel_id = ChannelID(channel_id)
        return await self._update(guild_id, lambda config: config.with_trap_channel(channel_id))

    async def clear_trap_channel(self, guild_id: GuildKey) -> CommunityConfig:
        return await self._update(guild_id, lambda config: config.with_trap_channel(None))

    async def set_log_channel(self, guild_id: GuildKey, channel_id: ChannelKey) -> CommunityConfig:
        channel_id = ChannelID(channel_id)
        return await self._update(guild_id, lambda config: config.with_log_channel(channel_id))

    async def clear_log_channel(self, guild_id: GuildKey) -> CommunityConfig:
        return await self._update(guild_id, lambda config: config.with_log_channel(None))

    async def _update(
        self,
        guild_id: GuildKey,
        change: Callable[[CommunityConfig], CommunityConfig],
    ) -> CommunityConfig:
        """Apply ``change`` to one guild's config and persist the mapping.

        Raises:
            TrapSettingsPersistenceError: The write failed. The new config is
                still in memory.
        """
        guild_id = GuildID(guild_id)
        async with self._guild_locks[guild_id]:
            updated = change(self.get(guild_id))
            # Whole-object swap, readers see either the old or the new config
            self.guilds[guild_id] = updated
            logger.debug(
                "[TRAP SETTINGS] Guild %s now trap=%s log=%s",
                guild_id, updated.trap_channel_id, updated.log_channel_id,
            )
            await self.save()
            return updated

    # -------- Persistence --------
    async def save(self) -> None:
        """Replace the persisted mapping with the in-memory one in one transaction.

        Raises:
            TrapSettingsPersistenceError: If the database is unavailable or the
                write fails.
        """
        if not self._connection.is_open:
            raise TrapSettingsPersistenceError(f"settings database {self.db_path} is not open")

        try:
            async with self._connection.transaction() as db:
                rows = [config.to_row() for config in self.guilds.values()]
                await db.execute("DELETE FROM trap_settings")
                await db.executemany(
                    "INSERT INTO trap_settings (guild_id, trap_channel_id, log_channel_id) VALUES (?, ?, ?)",
                    rows,
                )
        except (aiosqlite.Error, OSError) as exc:
            logger.error("[TRAP SETTINGS] Failed to persist trap settings to %s: %s", self.db_path, exc)
            raise TrapSettingsPersistenceError(str(exc)) from exc

        logger.debug("[TRAP SETTINGS] Persisted %d guild(s) to database", len(rows))

    async def load(self) -> Dict[GuildID, CommunityConfig]:
        """Replace the in-memory mapping with the persisted one and return a copy.

        An unopened or unreadable database loads as an empty mapping. Rows
        holding invalid ids are skipped.
        """
        loaded: Dict[GuildID, CommunityConfig] = {}

        if not self._connection.is_open:
            logger.warning("[TRAP SETTINGS] Database not open, starting with empty trap settings")
            self.guilds = loaded
            return dict(loaded)

        try:
            async with self._connection.read() as db:
                async with db.execute(
                    "SELECT guild_id, trap_channel_id, log_channel_id FROM trap_settings"
                ) as cursor:
                    rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            logger.error("[TRAP SETTINGS] Failed to read trap settings, starting empty: %s", exc)
            self.guilds = loaded
            return dict(loaded)

        for row in rows:
            try:
                config = CommunityConfig.from_row(row[0], row[1], row[2])
            except ValueError as exc:
                logger.warning("[TRAP SETTINGS] Skipping malformed row %r: %s", tuple(row), exc)
                continue
            loaded[config.guild_id] = config

        self.guilds = loaded
        logger.info("[TRAP SETTINGS] Loaded trap settings for %d guild(s)", len(loaded))
        return dict(loaded)
