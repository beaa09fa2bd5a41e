"""Application bootstrap for the Resound Discord bot.

This module wires together configuration, logging, Lavalink connectivity, the
guild database and the shard reconnection recovery jobs so the bot can be
launched with a single call to ``python -m resound.main``. Side effects live
in the ``setup_hook`` lifecycle to keep the import safe for testing.
"""

import logging
import os
from datetime import timedelta
from typing import Optional

import discord
from discord.ext import commands

from resound.configs.settings import CONFIG, DISCORD_TOKEN
from resound.services.audio_state_store import AudioStateStore
from resound.services.autorole_cache import AutoroleCache
from resound.services.autorole_sync import AutoroleSyncJob
from resound.services.file_cache import FileCacheAdapter
from resound.services.guild_database import GuildDatabase
from resound.services.lavalink_service import LavalinkManager, LavalinkVoiceConnector
from resound.services.metrics_service import MetricsService
from resound.services.music_recovery import MusicSessionRecoveryJob
from resound.services.shard_recovery_service import ShardConnectionOrchestrator
from resound.utils.embeds import EmbedFactory
from resound.utils.logger import setup_logging

INTENTS = discord.Intents.default()
INTENTS.guilds = True
INTENTS.voice_states = True
INTENTS.members = CONFIG.bot.intents.members  # Requires privileged intent
INTENTS.message_content = CONFIG.bot.intents.message_content


class Resound(commands.AutoShardedBot):
    """Main bot implementation.

    ``AutoShardedBot`` is used so that the bot can scale with the guild count.
    Every shard that re-identifies runs the recovery orchestrator for its own
    guilds.
    """

    def __init__(self):
        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=INTENTS,
            help_command=None,
            shard_count=CONFIG.bot.shard_count,
            shard_ids=CONFIG.bot.shard_ids,
        )
        self.logger: Optional[logging.Logger] = None
        self.lavalink_manager = LavalinkManager(self, CONFIG.lavalink_nodes)
        self.guild_database = GuildDatabase(CONFIG.database.path)
        self.file_cache = FileCacheAdapter(CONFIG.file_cache.directory)
        self.audio_state = AudioStateStore(self.file_cache)
        self.autorole_cache = AutoroleCache(
            self.guild_database.fetch_autoroles,
            ttl_seconds=CONFIG.recovery.autorole_cache_ttl_seconds,
        )
        self.metrics_service = MetricsService(self, CONFIG.metrics)
        self.autorole_sync: Optional[AutoroleSyncJob] = None
        self.shard_recovery: Optional[ShardConnectionOrchestrator] = None

    async def close(self):
        """Persist active voice sessions, then gracefully stop every service."""
        if CONFIG.recovery.persist_audio_state_on_shutdown:
            try:
                states = self.audio_state.capture(self.lavalink_manager.players())
                await self.audio_state.save_snapshot(states)
            except Exception as e:
                if self.logger:
                    self.logger.error("Failed to persist audio state: %s", e)

        if self.autorole_sync:
            await self.autorole_sync.drain()

        await self.lavalink_manager.close()
        await self.metrics_service.close()
        await self.guild_database.close()

        for vc in list(self.voice_clients):
            try:
                await vc.disconnect(force=True)
            except Exception as e:
                if self.logger:
                    self.logger.error("Error disconnecting voice client: %s", e)

        await super().close()

    async def setup_hook(self):
        """Configure logging, initialise Lavalink and the recovery pipeline."""
        setup_logging()

        self.logger = logging.getLogger("Resound")
        self.logger.info("Initializing Resound...")

        await self.guild_database.start()
        await self.lavalink_manager.connect()
        await self.metrics_service.start()

        recovery = CONFIG.recovery
        if recovery.autorole_enabled:
            self.autorole_sync = AutoroleSyncJob(
                self.autorole_cache,
                join_window=timedelta(minutes=recovery.recent_join_window_minutes),
            )
        music_job = None
        if recovery.music_enabled:
            music_job = MusicSessionRecoveryJob(
                self.audio_state,
                LavalinkVoiceConnector(self),
                self.lavalink.player_manager,
                guild_loader=self.guild_database.fetch_guild,
                embeds=EmbedFactory(CONFIG.theme),
            )
        self.shard_recovery = ShardConnectionOrchestrator(
            self, self.autorole_sync, music_job, metrics=self.metrics_service
        )

        folder = os.path.join(os.path.dirname(__file__), "events")
        for file in sorted(os.listdir(folder)):
            if file.endswith(".py") and not file.startswith("__"):
                ext = f"resound.events.{file[:-3]}"
                await self.load_extension(ext)
                self.logger.info("Loaded extension: %s", ext)


bot = Resound()

if __name__ == "__main__":
    bot.run(DISCORD_TOKEN)
