"""SQLite-backed item store so pending context survives a restart."""

from typing import Any, Dict, Optional
import time

import aiosqlite
import structlog

from apex_mcp.domain.errors import StoreUnavailableError

logger = structlog.get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS items (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at REAL NOT NULL
)
"""


class SQLiteItemStore:
    """Item store on a single SQLite file.

    Expired rows are invisible to ``get`` and removed by ``clear_expired``.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def initialize(self) -> None:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(_SCHEMA)
                await db.execute("CREATE INDEX IF NOT EXISTS idx_items_expires ON items (expires_at)")
                await db.commit()
        except aiosqlite.Error as e:
            raise StoreUnavailableError("initialize", cause=e) from e

        logger.info("SQLite item store ready", db_path=self.db_path)

    async def get(self, key: str) -> Optional[str]:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute(
                    "SELECT value FROM items WHERE key = ? AND expires_at > ?",
                    (key, time.time()),
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreUnavailableError("get", key, e) from e

        return row[0] if row else None

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    "INSERT OR REPLACE INTO items (key, value, expires_at) VALUES (?, ?, ?)",
                    (key, value, time.time() + ttl_seconds),
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise StoreUnavailableError("put", key, e) from e

    async def delete(self, key: str) -> None:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute("DELETE FROM items WHERE key = ?", (key,))
                await db.commit()
        except aiosqlite.Error as e:
            raise StoreUnavailableError("delete", key, e) from e

    async def clear_expired(self) -> int:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute("DELETE FROM items WHERE expires_at <= ?", (time.time(),))
                await db.commit()
                return cursor.rowcount
        except aiosqlite.Error as e:
            raise StoreUnavailableError("clear_expired", cause=e) from e

    async def get_stats(self) -> Dict[str, Any]:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute(
                    "SELECT COUNT(*), COALESCE(SUM(expires_at > ?), 0) FROM items",
                    (time.time(),),
                )
                total, active = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreUnavailableError("get_stats", cause=e) from e

        return {
            "backend": "sqlite",
            "total_keys": total,
            "active_keys": active,
            "expired_keys": total - active,
        }
