"""Grant auto-roles to members who joined while a shard was disconnected."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional, Set

import discord

from resound.configs.schema import RECENT_JOIN_WINDOW_MINUTES
from resound.services.autorole_cache import AutoroleCache

GRANT_REASON = "Auto-role sync after shard reconnect"


@dataclass
class AutoroleSyncResult:
    shard_id: Optional[int]
    guilds_scanned: int = 0
    grants_requested: int = 0


class AutoroleSyncJob:
    """Catch up on auto-role grants missed during a gateway outage."""

    def __init__(
        self,
        cache: AutoroleCache,
        *,
        join_window: timedelta = timedelta(minutes=RECENT_JOIN_WINDOW_MINUTES),
    ):
        self.cache = cache
        self.join_window = join_window
        self.logger = logging.getLogger("Resound.AutoroleSync")
        self._pending: Set[asyncio.Task[None]] = set()

    async def run(self, guilds: Iterable[discord.Guild], *, shard_id: Optional[int] = None) -> AutoroleSyncResult:
        """Request the auto-role for every recent joiner of ``guilds`` that lacks it."""
        self.logger.debug(
            "Connection to shard %s has been established, running auto-role job to sync auto-roles missed due to downtime",
            shard_id,
        )
        result = AutoroleSyncResult(shard_id=shard_id)
        await self.cache.warm()
        joined_after = discord.utils.utcnow() - self.join_window

        for guild in guilds:
            result.guilds_scanned += 1
            try:
                result.grants_requested += self._sync_guild(guild, joined_after)
            except Exception as exc:
                self.logger.warning("Auto-role sync failed for guild %s: %s", getattr(guild, "id", "?"), exc)

        self.logger.debug(
            "Shard %s successfully synced %s new users auto-role", shard_id, result.grants_requested
        )
        return result

    def _sync_guild(self, guild: discord.Guild, joined_after: datetime) -> int:
        me = guild.me
        if me is None or not me.guild_permissions.manage_roles:
            self.logger.debug("Skipping guild %s: missing Manage Roles permission.", guild.id)
            return 0

        role_id = self.cache.get_if_present(guild.id)
        if role_id is None:
            return 0

        role = guild.get_role(role_id)
        if role is None:
            self.logger.debug("Skipping guild %s: auto-role %s no longer exists.", guild.id, role_id)
            return 0
        if not role.is_assignable():
            self.logger.debug("Skipping guild %s: auto-role %s is above the bot or managed.", guild.id, role_id)
            return 0

        requested = 0
        for member in guild.members:
            joined_at = member.joined_at
            if joined_at is None or joined_at <= joined_after:
                continue
            if any(existing.id == role.id for existing in member.roles):
                continue
            self._grant(member, role)
            requested += 1
        return requested

    def _grant(self, member: discord.Member, role: discord.Role) -> None:
        task = asyncio.create_task(member.add_roles(role, reason=GRANT_REASON))
        self._pending.add(task)
        task.add_done_callback(self._grant_done)

    def _grant_done(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.warning("Auto-role grant failed: %s", exc)

    async def drain(self) -> None:
        """Wait for every in-flight grant request to settle."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
