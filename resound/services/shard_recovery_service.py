"""Run the reconnection recovery jobs for a shard that just came back online."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

import discord

from resound.services.audio_state_store import AudioStateError
from resound.services.autorole_sync import AutoroleSyncJob, AutoroleSyncResult
from resound.services.metrics_service import MetricsService
from resound.services.music_recovery import MusicRecoveryReport, MusicSessionRecoveryJob


@dataclass
class ShardRecoveryOutcome:
    shard_id: int
    autorole: Optional[AutoroleSyncResult] = None
    music: Optional[MusicRecoveryReport] = None


class ShardConnectionOrchestrator:
    """Sequence the auto-role sync and music recovery for one shard's guilds.

    The jobs are independent: a failure in one is logged and does not stop
    the other, and nothing is re-raised to the gateway event handler.
    """

    def __init__(
        self,
        bot: discord.Client,
        autorole_job: Optional[AutoroleSyncJob],
        music_job: Optional[MusicSessionRecoveryJob],
        *,
        metrics: Optional[MetricsService] = None,
    ):
        self.bot = bot
        self.autorole_job = autorole_job
        self.music_job = music_job
        self.metrics = metrics
        self.logger = logging.getLogger("Resound.ShardRecovery")

    def guilds_for_shard(self, shard_id: int) -> List[discord.Guild]:
        return [guild for guild in self.bot.guilds if guild.shard_id == shard_id]

    async def on_shard_connected(self, shard_id: int) -> ShardRecoveryOutcome:
        guilds = self.guilds_for_shard(shard_id)
        self.logger.info("Shard %s connected; running recovery for %s guild(s).", shard_id, len(guilds))
        outcome = ShardRecoveryOutcome(shard_id=shard_id)

        if self.autorole_job is not None:
            try:
                outcome.autorole = await self.autorole_job.run(guilds, shard_id=shard_id)
            except Exception as exc:
                self.logger.error("Auto-role sync failed on shard %s: %s", shard_id, exc, exc_info=exc)
                self._failure("autorole")
            else:
                if self.metrics:
                    self.metrics.record_autorole_sync(shard_id, outcome.autorole.grants_requested)

        if self.music_job is not None:
            try:
                outcome.music = await self.music_job.run(guilds, shard_id=shard_id)
            except AudioStateError as exc:
                self.logger.error("Music recovery aborted on shard %s, snapshot unusable: %s", shard_id, exc)
                self._failure("music")
            except Exception as exc:
                self.logger.error("Music recovery failed on shard %s: %s", shard_id, exc, exc_info=exc)
                self._failure("music")
            else:
                if self.metrics:
                    self.metrics.record_music_recovery(
                        shard_id, outcome.music.snapshot_entries, outcome.music.channels_reconnected
                    )

        return outcome

    def _failure(self, job: str) -> None:
        if self.metrics:
            self.metrics.record_failure(job)
