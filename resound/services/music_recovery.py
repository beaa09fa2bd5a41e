"""Resume voice sessions that were active before the bot lost its shard connection."""

# pyright: reportMissingTypeStubs=false

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Protocol

import discord

from resound.services.audio_state_store import AudioState, AudioStateStore
from resound.services.guild_database import GuildTransformer
from resound.services.lavalink_service import VoiceConnectStatus
from resound.utils.embeds import EmbedFactory
from resound.utils.tracks import decode_track, source_name

GuildLoader = Callable[[int], Awaitable[Optional[GuildTransformer]]]
TrackDecoder = Callable[[Optional[str]], Any]


class VoiceConnector(Protocol):
    async def connect(self, channel: discord.VoiceChannel) -> VoiceConnectStatus: ...


@dataclass
class PlaybackContext:
    """Where playback in a guild was last driven from."""

    guild_id: int
    channel_id: int
    message_id: int
    requester_id: Optional[int]
    guild: Optional[GuildTransformer] = None


@dataclass
class MusicRecoveryReport:
    shard_id: Optional[int]
    snapshot_entries: int = 0
    sessions_scheduled: int = 0
    channels_reconnected: int = 0
    tracks_enqueued: int = 0


@dataclass
class _ResumePlan:
    state: AudioState
    guild: discord.Guild
    voice_channel: discord.VoiceChannel
    text_channel: discord.TextChannel


class MusicSessionRecoveryJob:
    """Rebuild each guild's player from the stored audio snapshot.

    Every snapshot entry runs through its own pipeline: post a status message,
    join the voice channel, then re-enqueue the stored tracks in their original
    order. A failure at any step only ends that guild's pipeline.
    """

    def __init__(
        self,
        store: AudioStateStore,
        connector: VoiceConnector,
        player_manager: Any,
        *,
        guild_loader: Optional[GuildLoader] = None,
        decoder: TrackDecoder = decode_track,
        embeds: Optional[EmbedFactory] = None,
    ):
        self.store = store
        self.connector = connector
        self.player_manager = player_manager
        self.guild_loader = guild_loader
        self.decoder = decoder
        self.embeds = embeds or EmbedFactory()
        self.logger = logging.getLogger("Resound.MusicRecovery")

    async def run(self, guilds: Iterable[discord.Guild], *, shard_id: Optional[int] = None) -> MusicRecoveryReport:
        """Resume the stored sessions that belong to ``guilds``.

        Raises :class:`~resound.services.audio_state_store.AudioStateError` when
        the snapshot cannot be parsed; nothing is resumed in that case.
        """
        self.logger.debug(
            "Connection to shard %s has been established, running reconnect music job to reconnect music to "
            "channels that were connected during shutdown",
            shard_id,
        )
        report = MusicRecoveryReport(shard_id=shard_id)
        states = await self.store.load_snapshot()
        report.snapshot_entries = len(states)

        by_id: Dict[int, discord.Guild] = {guild.id: guild for guild in guilds}
        pipelines: List[asyncio.Task[Optional[int]]] = []
        for state in states:
            try:
                plan = self._plan(state, by_id)
            except Exception as exc:
                self.logger.warning("Failed to prepare music resume for guild %s: %s", state.guild_id, exc)
                continue
            if plan is None:
                continue
            pipelines.append(asyncio.create_task(self._guarded_resume(plan)))
        report.sessions_scheduled = len(pipelines)

        for enqueued in await asyncio.gather(*pipelines):
            if enqueued is None:
                continue
            report.channels_reconnected += 1
            report.tracks_enqueued += enqueued

        self.logger.debug(
            "Shard %s successfully reconnected %s of %s music channels",
            shard_id,
            report.channels_reconnected,
            report.snapshot_entries,
        )
        return report

    # ------------------------------------------------------------------ planning
    def _plan(self, state: AudioState, guilds: Dict[int, discord.Guild]) -> Optional[_ResumePlan]:
        guild = guilds.get(state.guild_id)
        if guild is None:
            return None

        voice_channel = guild.get_channel(state.voice_channel_id)
        if not isinstance(voice_channel, (discord.VoiceChannel, discord.StageChannel)):
            self.logger.debug("Guild %s: voice channel %s is gone.", guild.id, state.voice_channel_id)
            return None

        listeners = sum(1 for member in voice_channel.members if not member.bot)
        if listeners == 0:
            self.logger.debug("Guild %s: nobody is listening in %s, not reconnecting.", guild.id, voice_channel.id)
            return None

        text_channel = guild.get_channel(state.message_channel_id)
        if not isinstance(text_channel, discord.abc.Messageable):
            self.logger.debug("Guild %s: text channel %s is gone.", guild.id, state.message_channel_id)
            return None

        existing = self.player_manager.get(guild.id)
        if existing is not None and existing.is_connected and existing.is_playing:
            self.logger.debug("Guild %s: playback already active, skipping resume.", guild.id)
            return None

        playing = self.decoder(state.playing_track.track) if state.playing_track else None
        self.logger.debug(
            "%s stopped playing %s (%s) with %s songs in the queue",
            guild.id,
            getattr(playing, "uri", None) or "Unknown Track",
            source_name(playing),
            len(state.queue),
        )
        return _ResumePlan(state=state, guild=guild, voice_channel=voice_channel, text_channel=text_channel)

    # ------------------------------------------------------------------ pipeline
    async def _guarded_resume(self, plan: _ResumePlan) -> Optional[int]:
        try:
            return await self._resume(plan)
        except Exception as exc:
            self.logger.warning("Failed to resume music in guild %s: %s", plan.guild.id, exc)
            return None

    async def _resume(self, plan: _ResumePlan) -> Optional[int]:
        state = plan.state
        entries = state.tracks()
        message = await plan.text_channel.send(embed=self.embeds.resuming(len(entries)))

        status = await self.connector.connect(plan.voice_channel)
        if not status.success:
            reason = status.error_message or "Unable to reconnect to the voice channel."
            await message.edit(embed=self.embeds.resume_failed(reason))
            self.logger.debug("Guild %s: voice connection failed: %s", plan.guild.id, reason)
            return None

        player = self.player_manager.create(plan.guild.id)
        player.text_channel_id = plan.text_channel.id
        context = PlaybackContext(
            guild_id=plan.guild.id,
            channel_id=plan.text_channel.id,
            message_id=message.id,
            requester_id=None,
            guild=await self._load_guild(plan.guild.id),
        )
        player.last_active = context

        enqueued = 0
        for entry in entries:
            member = plan.guild.get_member(entry.requested_by_user_id)
            if member is None:
                self.logger.debug(
                    "Guild %s: requester %s left, dropping their track.", plan.guild.id, entry.requested_by_user_id
                )
                continue
            track = self.decoder(entry.track)
            if track is None:
                self.logger.debug("Guild %s: stored track could not be decoded, skipping it.", plan.guild.id)
                continue
            player.add(track, requester=member.id)
            if context.requester_id is None:
                context.requester_id = member.id
            enqueued += 1

        if enqueued and not player.is_playing:
            await player.play()
        return enqueued

    async def _load_guild(self, guild_id: int) -> Optional[GuildTransformer]:
        if self.guild_loader is None:
            return None
        try:
            return await self.guild_loader(guild_id)
        except Exception as exc:
            self.logger.warning("Unable to load settings for guild %s: %s", guild_id, exc)
            return None
