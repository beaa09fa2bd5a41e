"""SQLite access to per-guild configuration rows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import aiosqlite

GUILD_TABLE_NAME = "guilds"

_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {GUILD_TABLE_NAME} (
    id INTEGER PRIMARY KEY,
    name TEXT,
    autorole INTEGER,
    music_channel_text INTEGER
)
"""


class GuildDatabaseError(RuntimeError):
    """Raised when a guild configuration query fails."""


@dataclass(frozen=True)
class GuildTransformer:
    """Read-only view of a guild's stored configuration."""

    id: int
    name: Optional[str] = None
    autorole: Optional[int] = None
    music_channel_text: Optional[int] = None


class GuildDatabase:
    """Thin async wrapper around the ``guilds`` table."""

    def __init__(self, path: Path | str):
        self.path = str(path)
        self.logger = logging.getLogger("Resound.Database")
        self._conn: Optional[aiosqlite.Connection] = None

    async def start(self) -> None:
        if self._conn:
            return
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self.path)
        await self._conn.execute(_SCHEMA)
        await self._conn.commit()
        self.logger.info("Guild database ready at %s", self.path)

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require(self) -> aiosqlite.Connection:
        if not self._conn:
            raise GuildDatabaseError("Guild database has not been started.")
        return self._conn

    async def fetch_autoroles(self) -> List[Tuple[int, int]]:
        """Return ``(guild_id, role_id)`` for every guild with an auto-role configured."""
        conn = self._require()
        try:
            cursor = await conn.execute(
                f"SELECT id, autorole FROM {GUILD_TABLE_NAME} WHERE autorole IS NOT NULL"
            )
            rows = await cursor.fetchall()
            await cursor.close()
        except aiosqlite.Error as exc:
            raise GuildDatabaseError(f"Failed to load auto-roles: {exc}") from exc
        return [(int(guild_id), int(role_id)) for guild_id, role_id in rows]

    async def fetch_guild(self, guild_id: int) -> Optional[GuildTransformer]:
        conn = self._require()
        try:
            cursor = await conn.execute(
                f"SELECT id, name, autorole, music_channel_text FROM {GUILD_TABLE_NAME} WHERE id = ?",
                (guild_id,),
            )
            row = await cursor.fetchone()
            await cursor.close()
        except aiosqlite.Error as exc:
            raise GuildDatabaseError(f"Failed to load guild {guild_id}: {exc}") from exc
        if not row:
            return None
        return GuildTransformer(id=int(row[0]), name=row[1], autorole=row[2], music_channel_text=row[3])

