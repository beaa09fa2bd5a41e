"""Process-wide TTL cache mapping guilds to their configured auto-role."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Iterable, Optional, Tuple

from resound.configs.schema import AUTOROLE_CACHE_TTL_SECONDS

AutoroleLoader = Callable[[], Awaitable[Iterable[Tuple[int, int]]]]


class AutoroleCache:
    """Guild id -> auto-role id, expiring entries after a period without reads.

    The cache is filled in bulk: when it is empty, a single loader call fetches
    every configured ``(guild_id, role_id)`` pair. Concurrent callers that find
    the cache cold share that one in-flight load instead of issuing their own.
    Guilds missing from the load are treated as having no auto-role.
    """

    def __init__(
        self,
        loader: AutoroleLoader,
        *,
        ttl_seconds: float = AUTOROLE_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self.ttl = max(1.0, float(ttl_seconds))
        self._clock = clock
        # guild_id -> (role_id, last_access)
        self._entries: Dict[int, Tuple[int, float]] = {}
        self._populating: Optional[asyncio.Task[int]] = None
        self.logger = logging.getLogger("Resound.AutoroleCache")

    def __len__(self) -> int:
        self._evict_expired()
        return len(self._entries)

    def is_empty(self) -> bool:
        return len(self) == 0

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [gid for gid, (_, accessed) in self._entries.items() if now - accessed >= self.ttl]
        for gid in expired:
            self._entries.pop(gid, None)

    def get_if_present(self, guild_id: int) -> Optional[int]:
        """Return the cached role id without triggering a load; refreshes its TTL."""
        self._evict_expired()
        entry = self._entries.get(guild_id)
        if entry is None:
            return None
        role_id, _ = entry
        self._entries[guild_id] = (role_id, self._clock())
        return role_id

    async def get(self, guild_id: int) -> Optional[int]:
        """Return the auto-role for ``guild_id``, repopulating first if the cache is cold."""
        await self.warm()
        return self.get_if_present(guild_id)

    async def warm(self) -> int:
        """Repopulate when empty; returns the number of cached guilds afterwards."""
        if not self.is_empty():
            return len(self._entries)
        await self.populate()
        return len(self._entries)

    async def populate(self) -> int:
        """Bulk load every configured auto-role, sharing any load already running."""
        task = self._populating
        if task is None or task.done():
            task = asyncio.ensure_future(self._load())
            self._populating = task
        # Shield so one cancelled waiter does not abort the load for the others.
        return await asyncio.shield(task)

    async def _load(self) -> int:
        self.logger.debug("No cache entries found, populating the auto-role cache.")
        try:
            rows = list(await self._loader())
        except Exception as exc:
            self.logger.error("Failed to populate the auto-role cache: %s", exc, exc_info=exc)
            return 0
        finally:
            self._populating = None

        now = self._clock()
        for guild_id, role_id in rows:
            if role_id is None:
                continue
            self._entries[int(guild_id)] = (int(role_id), now)
        self.logger.debug("Auto-role cache populated with %s guild(s).", len(self._entries))
        return len(rows)
