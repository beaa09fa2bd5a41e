"""Typed configuration models used throughout the project."""

from typing import List, Optional

from pydantic import BaseModel, field_validator

# Members who joined within this window before a shard came back are assumed
# to have been missed while the gateway connection was down.
RECENT_JOIN_WINDOW_MINUTES = 30
# Auto-role cache entries expire after this long without being read.
AUTOROLE_CACHE_TTL_SECONDS = 180


class LavalinkConfig(BaseModel):
    """Connection settings for the Lavalink cluster."""

    host: str = "127.0.0.1"
    port: int = 2333
    password: str = "youshallnotpass"
    https: bool = False
    name: str = "main"
    region: str = "us"

    @field_validator("host", "password", "name", "region", mode="before")
    @classmethod
    def _strip_strings(cls, value: str):
        """Ensure configuration strings do not accidentally contain whitespace."""
        if isinstance(value, str):
            return value.strip()
        return value


class BotIntents(BaseModel):
    """Discord gateway intent toggles."""

    members: bool = True
    message_content: bool = False


class BotConfig(BaseModel):
    """Runtime behaviour toggles for the bot."""

    intents: BotIntents = BotIntents()
    shard_count: Optional[int] = None
    shard_ids: Optional[List[int]] = None


class ThemeConfig(BaseModel):
    """Branding information applied to embeds."""

    color_primary: int = 0x5865F2
    color_warning: int = 0xFEE75C
    footer_text: str = "Resound"
    footer_icon_url: Optional[str] = None


class DatabaseConfig(BaseModel):
    """SQLite database holding per-guild configuration."""

    path: str = "data/resound.db"


class FileCacheConfig(BaseModel):
    """Directory used by the file-backed key/value cache."""

    directory: str = "data/cache"


class RecoveryConfig(BaseModel):
    """Shard reconnection recovery tuning."""

    autorole_enabled: bool = True
    music_enabled: bool = True
    autorole_cache_ttl_seconds: int = AUTOROLE_CACHE_TTL_SECONDS
    recent_join_window_minutes: int = RECENT_JOIN_WINDOW_MINUTES
    persist_audio_state_on_shutdown: bool = True

    @field_validator("autorole_cache_ttl_seconds", "recent_join_window_minutes")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value


class MetricsConfig(BaseModel):
    """Settings for the Prometheus metrics exporter."""

    enabled: bool = False
    host: str = "0.0.0.0"
    port: int = 3052
    collection_interval: int = 15


class AppConfig(BaseModel):
    """Root configuration container loaded from ``config.yml`` and ``.env``."""

    bot: BotConfig = BotConfig()
    theme: ThemeConfig = ThemeConfig()
    lavalink: LavalinkConfig = LavalinkConfig()
    lavalink_nodes: List[LavalinkConfig] = []
    database: DatabaseConfig = DatabaseConfig()
    file_cache: FileCacheConfig = FileCacheConfig()
    recovery: RecoveryConfig = RecoveryConfig()
    metrics: MetricsConfig = MetricsConfig()
