"""Configuration loader for Resound.

This module centralises configuration concerns: it loads ``config.yml``,
overrides with environment variables (``.env``) and exposes globally accessible
objects the rest of the code base can rely on.
"""

import os
from pathlib import Path
from typing import Dict

import yaml
from dotenv import find_dotenv, load_dotenv

from .schema import (
    AppConfig,
    DatabaseConfig,
    FileCacheConfig,
    LavalinkConfig,
    MetricsConfig,
    RecoveryConfig,
)

# Resolve env file precedence: .env.local (dev), .env.production (prod), then .env
_base_dir = Path(__file__).resolve().parents[2]
_env_files = [".env.local", ".env.production", ".env"]
_loaded = False
for _candidate in _env_files:
    _path = _base_dir / _candidate
    if _path.exists():
        load_dotenv(_path)
        _loaded = True
        break
if not _loaded:
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path)


def _load_yaml(path: str) -> Dict:
    """Load a YAML config file, returning an empty dict if it is blank or absent."""
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
        return data or {}


def _flag(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


_raw = _load_yaml(os.getenv("CONFIG_PATH", "config.yml"))
CONFIG = AppConfig(**_raw)

# .env overrides for Lavalink (if provided)
host = os.getenv("LAVALINK_HOST")
port = os.getenv("LAVALINK_PORT")
pwd = os.getenv("LAVALINK_PASSWORD")
https = os.getenv("LAVALINK_HTTPS")
name = os.getenv("LAVALINK_NAME")
region = os.getenv("LAVALINK_REGION")
if host or port or pwd or https or name or region:
    CONFIG.lavalink = LavalinkConfig(
        host=host or CONFIG.lavalink.host,
        port=int(port) if port else CONFIG.lavalink.port,
        password=pwd or CONFIG.lavalink.password,
        https=_flag(https) if isinstance(https, str) else CONFIG.lavalink.https,
        name=name or CONFIG.lavalink.name,
        region=region or CONFIG.lavalink.region,
    )

if CONFIG.lavalink_nodes:
    deduped = []
    seen = set()
    for node in CONFIG.lavalink_nodes:
        if node.name in seen:
            continue
        seen.add(node.name)
        deduped.append(node)
    CONFIG.lavalink_nodes = deduped
    CONFIG.lavalink = CONFIG.lavalink_nodes[0]
else:
    CONFIG.lavalink_nodes = [CONFIG.lavalink]

database_path = os.getenv("DATABASE_PATH")
if database_path:
    CONFIG.database = DatabaseConfig(path=database_path)

file_cache_dir = os.getenv("FILE_CACHE_DIR")
if file_cache_dir:
    CONFIG.file_cache = FileCacheConfig(directory=file_cache_dir)

recovery_autorole = os.getenv("RECOVERY_AUTOROLE_ENABLED")
recovery_music = os.getenv("RECOVERY_MUSIC_ENABLED")
recovery_ttl = os.getenv("RECOVERY_AUTOROLE_TTL_SECONDS")
recovery_window = os.getenv("RECOVERY_JOIN_WINDOW_MINUTES")
recovery_persist = os.getenv("RECOVERY_PERSIST_AUDIO_STATE")
if recovery_autorole or recovery_music or recovery_ttl or recovery_window or recovery_persist:
    CONFIG.recovery = RecoveryConfig(
        autorole_enabled=_flag(recovery_autorole)
        if isinstance(recovery_autorole, str)
        else CONFIG.recovery.autorole_enabled,
        music_enabled=_flag(recovery_music) if isinstance(recovery_music, str) else CONFIG.recovery.music_enabled,
        autorole_cache_ttl_seconds=int(recovery_ttl) if recovery_ttl else CONFIG.recovery.autorole_cache_ttl_seconds,
        recent_join_window_minutes=int(recovery_window)
        if recovery_window
        else CONFIG.recovery.recent_join_window_minutes,
        persist_audio_state_on_shutdown=_flag(recovery_persist)
        if isinstance(recovery_persist, str)
        else CONFIG.recovery.persist_audio_state_on_shutdown,
    )

metrics_enabled = os.getenv("METRICS_ENABLED")
metrics_host = os.getenv("METRICS_HOST")
metrics_port = os.getenv("METRICS_PORT")
metrics_interval = os.getenv("METRICS_INTERVAL")
if metrics_enabled or metrics_host or metrics_port or metrics_interval:
    CONFIG.metrics = MetricsConfig(
        enabled=_flag(metrics_enabled) if isinstance(metrics_enabled, str) else CONFIG.metrics.enabled,
        host=metrics_host or CONFIG.metrics.host,
        port=int(metrics_port) if metrics_port else CONFIG.metrics.port,
        collection_interval=int(metrics_interval) if metrics_interval else CONFIG.metrics.collection_interval,
    )

_discord_token = os.getenv("DISCORD_TOKEN")
if not _discord_token:
    raise RuntimeError("DISCORD_TOKEN missing in .env")
DISCORD_TOKEN: str = _discord_token
