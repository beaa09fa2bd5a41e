"""Lifecycle hooks for shard readiness and reconnection recovery."""

import logging

from discord.ext import commands

log = logging.getLogger(__name__)


class LifecycleEvents(commands.Cog):
    """Logs connection state and triggers recovery when a shard re-identifies."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    # -------------------- EVENTS --------------------

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        log.info("Bot ready – serving %s guilds on %s shard(s).", len(self.bot.guilds), self.bot.shard_count or 1)

    @commands.Cog.listener()
    async def on_shard_ready(self, shard_id: int) -> None:
        # READY only follows a fresh IDENTIFY, so state kept in memory may be stale.
        log.info("Shard %s is ready.", shard_id)
        orchestrator = getattr(self.bot, "shard_recovery", None)
        if orchestrator is None:
            return
        await orchestrator.on_shard_connected(shard_id)

    @commands.Cog.listener()
    async def on_shard_resumed(self, shard_id: int) -> None:
        log.info("Shard %s resumed its session; missed events were replayed.", shard_id)

    @commands.Cog.listener()
    async def on_shard_disconnect(self, shard_id: int) -> None:
        log.warning("Shard %s disconnected.", shard_id)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(LifecycleEvents(bot))
