"""Abstractions for managing Lavalink connectivity and Discord voice sessions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from aiohttp import ClientConnectorError, ContentTypeError
import discord
import lavalink
from lavalink.errors import AuthenticationError

from resound.configs.schema import LavalinkConfig

REQUIRED_VOICE_PERMS = ("connect", "speak")


class ResoundPlayer(lavalink.DefaultPlayer):
    """Custom Lavalink player that stores guild metadata."""

    __slots__ = ("text_channel_id", "last_active")

    def __init__(self, guild_id: int, client: lavalink.Client) -> None:
        super().__init__(guild_id, client)
        self.text_channel_id: int | None = None
        # PlaybackContext of the message that last drove playback in this guild.
        self.last_active: Any = None


@dataclass(frozen=True)
class VoiceConnectStatus:
    """Outcome of a voice connection attempt."""

    success: bool
    error_message: str | None = None

    @classmethod
    def ok(cls) -> "VoiceConnectStatus":
        return cls(True)

    @classmethod
    def failed(cls, message: str) -> "VoiceConnectStatus":
        return cls(False, message)


class LavalinkVoiceClient(discord.VoiceProtocol):
    """Voice protocol bridging discord.py voice state with Lavalink."""

    def __init__(self, client: discord.Client, channel: discord.abc.Connectable) -> None:
        self.client = client
        self.channel = channel
        self.guild_id = channel.guild.id
        self._destroyed = False
        self.logger = logging.getLogger("Resound.LavalinkVoice")

        if not hasattr(self.client, "lavalink"):
            raise RuntimeError("Lavalink client has not been initialised.")

        self.lavalink: lavalink.Client[ResoundPlayer] = self.client.lavalink

    async def connect(
        self,
        *,
        timeout: float,
        reconnect: bool,
        self_deaf: bool = False,
        self_mute: bool = False,
    ) -> None:
        """Create or reuse a player and join the voice channel."""
        self.lavalink.player_manager.create(self.guild_id)
        await self.channel.guild.change_voice_state(
            channel=self.channel, self_deaf=self_deaf, self_mute=self_mute
        )

    async def on_voice_server_update(self, data: dict[str, Any]) -> None:
        await self.lavalink.voice_update_handler({"t": "VOICE_SERVER_UPDATE", "d": data})

    async def on_voice_state_update(self, data: dict[str, Any]) -> None:
        channel_id = data.get("channel_id")

        if not channel_id:
            await self._destroy()
            return

        self.channel = self.client.get_channel(int(channel_id))  # type: ignore[assignment]
        await self.lavalink.voice_update_handler({"t": "VOICE_STATE_UPDATE", "d": data})

    async def disconnect(self, *, force: bool = False) -> None:
        player = self.lavalink.player_manager.get(self.guild_id)

        if not force and (player is None or not player.is_connected):
            return

        await self.channel.guild.change_voice_state(channel=None)
        if player is not None:
            player.channel_id = None
        await self._destroy()

    async def _destroy(self) -> None:
        self.cleanup()

        if self._destroyed:
            return

        self._destroyed = True
        try:
            await self.lavalink.player_manager.destroy(self.guild_id)
        except lavalink.ClientError:
            pass
        except ContentTypeError as exc:
            self.logger.warning(
                "Ignoring Lavalink response while destroying player %s: %s",
                self.guild_id,
                exc,
            )


class LavalinkVoiceConnector:
    """Join voice channels through Lavalink and report why a join failed."""

    def __init__(self, bot: discord.Client, *, timeout: float = 30.0) -> None:
        self.bot = bot
        self.timeout = timeout
        self.logger = logging.getLogger("Resound.LavalinkVoice")

    def _preflight(self, channel: discord.VoiceChannel) -> str | None:
        client: lavalink.Client | None = getattr(self.bot, "lavalink", None)
        if client is None or not client.node_manager.available_nodes:
            return "No audio node is available right now, I can't resume the music."

        me = channel.guild.me
        perms = channel.permissions_for(me)
        missing = [attr.replace("_", " ").title() for attr in REQUIRED_VOICE_PERMS if not getattr(perms, attr, False)]
        if missing:
            return f"I'm missing the {', '.join(missing)} permission(s) for {channel.mention}."

        if channel.user_limit and len(channel.members) >= channel.user_limit and not perms.move_members:
            return f"{channel.mention} is full, I can't rejoin it."
        return None

    async def connect(self, channel: discord.VoiceChannel) -> VoiceConnectStatus:
        voice_client = channel.guild.voice_client
        if voice_client is not None and getattr(voice_client, "channel", None) == channel:
            return VoiceConnectStatus.ok()

        problem = self._preflight(channel)
        if problem:
            return VoiceConnectStatus.failed(problem)

        try:
            await channel.connect(cls=LavalinkVoiceClient, timeout=self.timeout, self_deaf=True)  # type: ignore[arg-type]
        except asyncio.TimeoutError:
            return VoiceConnectStatus.failed(f"Timed out while connecting to {channel.mention}.")
        except discord.ClientException as exc:
            return VoiceConnectStatus.failed(f"Could not connect to {channel.mention}: {exc}")
        except discord.HTTPException as exc:
            self.logger.warning("Voice connect to %s failed: %s", channel.id, exc)
            return VoiceConnectStatus.failed(f"Discord rejected the voice connection to {channel.mention}.")
        return VoiceConnectStatus.ok()


class LavalinkManager:
    """Initialises and tears down Lavalink resources for the bot."""

    def __init__(self, bot: discord.Client, nodes: Sequence[LavalinkConfig]) -> None:
        self.bot = bot
        self.nodes: list[LavalinkConfig] = list(nodes)
        if not self.nodes:
            raise RuntimeError("At least one Lavalink node must be configured.")
        self.logger = logging.getLogger("Resound.Lavalink")

    async def connect(self) -> None:
        if not hasattr(self.bot, "lavalink"):
            self.bot.lavalink = lavalink.Client(
                self.bot.user.id, player=ResoundPlayer  # type: ignore[arg-type]
            )

        client: lavalink.Client[ResoundPlayer] = self.bot.lavalink
        await asyncio.gather(*(self._register_node(client, config) for config in self.nodes))

    async def _register_node(self, client: lavalink.Client[ResoundPlayer], config: LavalinkConfig) -> lavalink.Node:
        existing = next((node for node in client.node_manager.nodes if node.name == config.name), None)
        if existing:
            self.logger.info("Lavalink node '%s' already registered.", existing.name)
            return existing

        node = client.add_node(
            host=config.host,
            port=config.port,
            password=config.password,
            region=config.region,
            name=config.name,
            ssl=config.https,
            connect=False,
        )

        try:
            await node.connect(force=True)
            await asyncio.wait_for(node.get_version(), timeout=5)
        except AuthenticationError:
            self.logger.error(
                "Lavalink authentication failed for node '%s'. "
                "Verify the password in config.yml/.env matches the server configuration.",
                config.name,
            )
        except ClientConnectorError as exc:
            self.logger.error(
                "Could not reach Lavalink node '%s' at %s:%s (%s).",
                config.name,
                config.host,
                config.port,
                exc.strerror or exc,
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                "Timed out while verifying Lavalink node '%s'. Continuing but playback may fail.",
                config.name,
            )
        else:
            self.logger.info(
                "Authenticated Lavalink node %s (%s:%s, ssl=%s)",
                config.name,
                config.host,
                config.port,
                config.https,
            )
        return node

    def players(self) -> list[ResoundPlayer]:
        client: lavalink.Client | None = getattr(self.bot, "lavalink", None)
        if not client:
            return []
        return list(client.player_manager.players.values())

    async def close(self) -> None:
        if hasattr(self.bot, "lavalink"):
            try:
                await self.bot.lavalink.close()
            except Exception as exc:
                self.logger.error("Error closing Lavalink: %s", exc)
