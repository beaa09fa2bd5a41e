"""Persisted snapshot of the voice sessions that were active at shutdown."""

# pyright: reportMissingTypeStubs=false

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from resound.services.file_cache import FileCacheAdapter
from resound.utils.tracks import encoded_track

AUDIO_STATE_KEY = "audio.state"


class AudioStateError(RuntimeError):
    """Raised when the stored audio snapshot cannot be read or trusted."""


class AudioCacheEntry(BaseModel):
    """A single stored track and the user who requested it."""

    model_config = ConfigDict(populate_by_name=True)

    requested_by_user_id: int = Field(alias="requestedByUserId")
    track: str


class AudioState(BaseModel):
    """The playback session of one guild as it looked at shutdown."""

    model_config = ConfigDict(populate_by_name=True)

    guild_id: int = Field(alias="guildId")
    voice_channel_id: int = Field(alias="voiceChannelId")
    message_channel_id: int = Field(alias="messageChannelId")
    playing_track: Optional[AudioCacheEntry] = Field(default=None, alias="playingTrack")
    queue: List[AudioCacheEntry] = Field(default_factory=list)

    def tracks(self) -> List[AudioCacheEntry]:
        """Return the playing track followed by the queue, in playback order."""
        ordered: List[AudioCacheEntry] = []
        if self.playing_track is not None:
            ordered.append(self.playing_track)
        ordered.extend(self.queue)
        return ordered


class AudioStateStore:
    """Read and write the ``audio.state`` snapshot through the file cache."""

    def __init__(self, cache: FileCacheAdapter, *, key: str = AUDIO_STATE_KEY):
        self.cache = cache
        self.key = key
        self.logger = logging.getLogger("Resound.AudioState")

    async def load_snapshot(self) -> List[AudioState]:
        """Return every stored AudioState; an absent or null snapshot is empty.

        Raises :class:`AudioStateError` when the stored document is not valid
        JSON or does not describe a list of audio states.
        """
        try:
            raw = await self.cache.get(self.key)
        except OSError as exc:
            raise AudioStateError(f"Unable to read '{self.key}': {exc}") from exc
        if raw is None or not raw.strip():
            return []

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise AudioStateError(f"Stored '{self.key}' is not valid JSON: {exc}") from exc
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise AudioStateError(
                f"Stored '{self.key}' must be a JSON array, got {type(payload).__name__}"
            )

        try:
            return [AudioState.model_validate(item) for item in payload if item is not None]
        except ValidationError as exc:
            raise AudioStateError(f"Stored '{self.key}' contains malformed entries: {exc}") from exc

    async def save_snapshot(self, states: Iterable[AudioState]) -> int:
        """Overwrite the stored snapshot with ``states`` and return how many were written.

        An empty ``states`` removes the stored snapshot instead of writing an empty list.
        """
        serialised = [state.model_dump(by_alias=True) for state in states]
        if not serialised:
            await self.cache.forget(self.key)
            self.logger.info("No active audio sessions, removed '%s'.", self.key)
            return 0
        await self.cache.put(self.key, json.dumps(serialised))
        self.logger.info("Persisted %s audio session(s) to '%s'.", len(serialised), self.key)
        return len(serialised)

    # ------------------------------------------------------------------ capture
    @staticmethod
    def _entry(track: Any) -> Optional[AudioCacheEntry]:
        blob = encoded_track(track)
        if not blob:
            return None
        requester = getattr(track, "requester", None) or 0
        return AudioCacheEntry(requested_by_user_id=int(requester), track=blob)

    def capture(self, players: Iterable[Any]) -> List[AudioState]:
        """Build snapshot records from live Lavalink players worth resuming."""
        states: List[AudioState] = []
        for player in players:
            channel_id = getattr(player, "channel_id", None)
            text_channel_id = getattr(player, "text_channel_id", None)
            if not getattr(player, "is_connected", False) or not channel_id or not text_channel_id:
                continue

            current = getattr(player, "current", None)
            playing = self._entry(current) if current is not None else None
            queue = [entry for entry in (self._entry(track) for track in getattr(player, "queue", [])) if entry]
            if playing is None and not queue:
                continue

            states.append(
                AudioState(
                    guild_id=int(player.guild_id),
                    voice_channel_id=int(channel_id),
                    message_channel_id=int(text_channel_id),
                    playing_track=playing,
                    queue=queue,
                )
            )
        return states
