"""Async SQLite key/value backend.

Uses aiosqlite for non-blocking database operations with WAL mode so the
refresh loop and user edits never block the event loop on disk I/O.
Every aiosqlite failure surfaces as StorageError.
"""

import os
from typing import Any, Self

import aiosqlite

from fxsync.exceptions import StorageError
from fxsync.logging import get_logger
from fxsync.storage.backend import KeyValueStorage, decode_value, encode_value

logger = get_logger(__name__)

SCHEMA_VERSION = 1

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class SqliteStorage(KeyValueStorage):
    """KeyValueStorage persisted in a single SQLite table.

    Usage:
        # Context manager (recommended)
        async with SqliteStorage("data/fxsync.db") as storage:
            await storage.set("key", {"a": 1})

        # Manual lifecycle
        storage = SqliteStorage("data/fxsync.db")
        await storage.connect()
        try:
            ...
        finally:
            await storage.close()
    """

    def __init__(self, db_path: str = "data/fxsync.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises StorageError if not connected.
        """
        if self._connection is None:
            raise StorageError("Storage not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> None:
        """Open the database, configure pragmas, and create the schema.

        Creates the parent directory if it does not exist.
        """
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        try:
            self._connection = await aiosqlite.connect(self._db_path)
            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA synchronous=NORMAL")
            await self._connection.executescript(_CREATE_TABLES_SQL)
            await self._ensure_schema_version()
            await self._connection.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"cannot open {self._db_path}: {e}") from e

        logger.info("storage_connected", db_path=self._db_path)

    async def close(self) -> None:
        """Close the database connection if open."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("storage_closed", db_path=self._db_path)

    async def _ensure_schema_version(self) -> None:
        assert self._connection is not None
        cursor = await self._connection.execute("SELECT version FROM schema_version LIMIT 1")
        if await cursor.fetchone() is None:
            await self._connection.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            logger.info("schema_version_set", version=SCHEMA_VERSION)

    async def get(self, key: str) -> Any | None:
        try:
            cursor = await self.db.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"read of {key} failed: {e}") from e
        if row is None:
            return None
        return decode_value(row[0])

    async def set(self, key: str, value: Any) -> None:
        raw = encode_value(value)
        try:
            await self.db.execute(
                "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                (key, raw),
            )
            await self.db.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"write of {key} failed: {e}") from e

    async def remove(self, key: str) -> None:
        try:
            await self.db.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            await self.db.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"delete of {key} failed: {e}") from e

    async def usage_bytes(self) -> int:
        try:
            cursor = await self.db.execute(
                "SELECT COALESCE(SUM(LENGTH(CAST(key AS BLOB)) + LENGTH(CAST(value AS BLOB))), 0) "
                "FROM kv_store"
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"usage query failed: {e}") from e
        return int(row[0])

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        """Async context manager exit."""
        await self.close()
