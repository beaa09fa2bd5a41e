"""Prometheus metrics exporter and helper utilities."""

# pyright: reportMissingTypeStubs=false

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, start_http_server


class MetricsService:
    """Export recovery counters and basic bot gauges for Prometheus scraping."""

    def __init__(self, bot, config):
        self.bot = bot
        self.config = config
        self.enabled = getattr(config, "enabled", False)
        self.logger = logging.getLogger("Resound.Metrics")
        self.registry = CollectorRegistry()
        self._task: Optional[asyncio.Task] = None
        self._started = False

        self.guilds_gauge = Gauge("resound_guilds", "Current guild count", registry=self.registry)
        self.players_gauge = Gauge("resound_lavalink_players", "Number of Lavalink players", registry=self.registry)
        self.snapshot_gauge = Gauge(
            "resound_audio_snapshot_entries",
            "Entries in the audio snapshot read by the last music recovery",
            registry=self.registry,
        )
        self.autorole_grants = Counter(
            "resound_autorole_grants_total",
            "Auto-role grants requested after shard reconnects",
            labelnames=("shard",),
            registry=self.registry,
        )
        self.sessions_resumed = Counter(
            "resound_music_sessions_resumed_total",
            "Voice sessions reconnected after shard reconnects",
            labelnames=("shard",),
            registry=self.registry,
        )
        self.recovery_failures = Counter(
            "resound_recovery_failures_total",
            "Recovery jobs that aborted",
            labelnames=("job",),
            registry=self.registry,
        )

    async def start(self) -> None:
        if not self.enabled or self._started:
            return
        start_http_server(addr=self.config.host, port=self.config.port, registry=self.registry)
        interval = max(5, int(getattr(self.config, "collection_interval", 15)))
        self._task = asyncio.create_task(self._loop(interval))
        self._started = True
        self.logger.info(
            "Prometheus exporter listening on %s:%s (interval=%ss)", self.config.host, self.config.port, interval
        )

    async def close(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def _loop(self, interval: int) -> None:
        try:
            while True:
                self._collect()
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            pass

    def _collect(self) -> None:
        self.guilds_gauge.set(len(getattr(self.bot, "guilds", [])))
        lavalink_client = getattr(self.bot, "lavalink", None)
        if lavalink_client:
            self.players_gauge.set(len(lavalink_client.player_manager.players))
        else:
            self.players_gauge.set(0)

    # ------------------------------------------------------------------ public helpers
    def record_autorole_sync(self, shard_id: Optional[int], grants: int) -> None:
        self.autorole_grants.labels(shard=str(shard_id)).inc(grants)

    def record_music_recovery(self, shard_id: Optional[int], snapshot_entries: int, reconnected: int) -> None:
        self.snapshot_gauge.set(snapshot_entries)
        self.sessions_resumed.labels(shard=str(shard_id)).inc(reconnected)

    def record_failure(self, job: str) -> None:
        self.recovery_failures.labels(job=job).inc()
