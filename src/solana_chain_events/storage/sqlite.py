"""SQLite implementation of the CursorStore protocol."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from solana_chain_events.models.records import Cursor

SCHEMA = """
-- Polling cursor, one row per program
CREATE TABLE IF NOT EXISTS cursor (
    topic TEXT PRIMARY KEY,
    signature TEXT NOT NULL,
    slot INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteCursorStore:
    """SQLite-backed implementation of the CursorStore protocol."""

    def __init__(self, db_path: str, topic: str) -> None:
        self._db_path = db_path
        self._topic = topic
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        Path(self._db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(Path(self._db_path).expanduser()))
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    async def load(self) -> Cursor | None:
        async with self.db.execute(
            "SELECT signature, slot FROM cursor WHERE topic=?", (self._topic,)
        ) as cur:
            row = await cur.fetchone()
            return Cursor(row["signature"], row["slot"]) if row else None

    async def save(self, cursor: Cursor) -> None:
        await self.db.execute(
            "INSERT INTO cursor (topic, signature, slot, updated_at) VALUES (?, ?, ?, ?)"
            " ON CONFLICT(topic) DO UPDATE SET signature=excluded.signature,"
            " slot=excluded.slot, updated_at=excluded.updated_at",
            (self._topic, cursor.signature, cursor.slot, _now()),
        )
        await self.db.commit()

    async def clear(self) -> None:
        await self.db.execute("DELETE FROM cursor WHERE topic=?", (self._topic,))
        await self.db.commit()
