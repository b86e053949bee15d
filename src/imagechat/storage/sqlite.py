"""SQLite key-value store.

Provides durable storage across restarts using a SQLite database file.
Uses aiosqlite for async access.
"""

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from .base import KeyValueStore, StorageError, StorageFullError


class SQLiteKeyValueStore(KeyValueStore):
    """SQLite-backed key-value store.

    Values larger than max_value_bytes are refused with StorageFullError,
    mirroring the quota behaviour of browser storage.
    """

    def __init__(
        self,
        path: str | Path = "./imagechat.db",
        max_value_bytes: int | None = None,
    ):
        self._db_path = Path(path)
        self._max_value_bytes = max_value_bytes
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the database and create the schema."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = await aiosqlite.connect(self._db_path)
            await self._connection.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            await self._connection.commit()
        except (OSError, aiosqlite.Error) as e:
            raise StorageError(f"Cannot open store at {self._db_path}: {e}") from e

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _require_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise StorageError("Store is not connected")
        return self._connection

    async def get(self, key: str) -> str | None:
        connection = self._require_connection()
        try:
            async with connection.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"Cannot read {key!r}: {e}") from e
        return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        connection = self._require_connection()
        size = len(value.encode())
        if self._max_value_bytes is not None and size > self._max_value_bytes:
            raise StorageFullError(
                f"Value for {key!r} is {size} bytes, limit is {self._max_value_bytes}"
            )
        try:
            await connection.execute("""
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
            """, (key, value, datetime.now(timezone.utc).isoformat()))
            await connection.commit()
        except aiosqlite.Error as e:
            if "full" in str(e).lower():
                raise StorageFullError(str(e)) from e
            raise StorageError(f"Cannot write {key!r}: {e}") from e

    async def delete(self, key: str) -> None:
        connection = self._require_connection()
        try:
            await connection.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            await connection.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"Cannot delete {key!r}: {e}") from e

    @property
    def backend_type(self) -> str:
        return "sqlite"

    @property
    def db_path(self) -> Path:
        return self._db_path
