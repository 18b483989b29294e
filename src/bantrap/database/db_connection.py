"""
Database connection management, one long-lived connection per store.

Concurrency model
-----------------
SQLite is single-writer. Writes go through ``transaction()``, which holds a
semaphore so concurrent coroutines queue up instead of fighting SQLite's busy
timeout, and which commits on clean exit or rolls back on error. A write is
durable once ``transaction()`` exits.

Usage
-----
    connection = ConnectionManager()
    await connection.open(path)

    async with connection.read() as conn:
        cursor = await conn.execute("SELECT ...")

    async with connection.transaction() as conn:
        await conn.execute("DELETE ...")
        await conn.executemany("INSERT ...", rows)

    await connection.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from bantrap.util.logger import get_logger

logger = get_logger("database_connection")

# Applied once when the connection is opened
_PRAGMAS = [
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = FULL",
    "PRAGMA foreign_keys = ON",
]


class ConnectionManager:
    """
    Wrapper around a single aiosqlite connection.

    * Reads  - ``async with read()``; WAL allows concurrent readers.
    * Writes - ``async with transaction()``; serialised by ``_write_sem``.
    """

    def __init__(self) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._write_sem = asyncio.Semaphore(1)
        self._path: Path | None = None

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self, path: Path) -> None:
        """
        Open the database and apply pragmas.

        Args:
            path: Path to the SQLite database file.

        Raises:
            aiosqlite.Error: If the file is not a usable SQLite database.
            OSError: If the parent directory cannot be created.
        """
        if self._conn is not None:
            logger.warning("[DB CONNECTION] open() called but connection already exists, ignoring")
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(path)
        try:
            conn.row_factory = aiosqlite.Row
            for pragma in _PRAGMAS:
                await conn.execute(pragma)
            await conn.commit()
        except Exception:
            await conn.close()
            raise

        self._conn = conn
        self._path = path
        logger.info("[DB CONNECTION] Opened connection to %s", path)

    async def close(self) -> None:
        """Flush the WAL into the main file and close the connection."""
        if self._conn is None:
            return

        try:
            await self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            await self._conn.commit()
        except aiosqlite.Error:
            logger.exception("[DB CONNECTION] WAL checkpoint failed during close")
        finally:
            await self._conn.close()
            self._conn = None
            logger.info("[DB CONNECTION] Connection closed")

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The raw aiosqlite connection.

        Raises:
            RuntimeError: If the connection has not been opened yet.
        """
        if self._conn is None:
            raise RuntimeError(
                "ConnectionManager: connection is not open. "
                "Call await connection.open(path) at startup."
            )
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Serialised write transaction: commits on clean exit, rolls back on error.

        Raises:
            RuntimeError: If the connection is not open.
        """
        conn = self.connection

        async with self._write_sem:
            try:
                yield conn
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        """Read access; no semaphore is taken."""
        yield self.connection
