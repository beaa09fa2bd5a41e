"""Helpers for working with Lavalink track blobs and metadata."""

# pyright: reportMissingTypeStubs=false

from __future__ import annotations

import logging
from typing import Any, Optional

import lavalink

logger = logging.getLogger(__name__)


def source_name(track: Any) -> str:
    """Return the lower-case source identifier for a Lavalink track."""

    raw = getattr(track, "source_name", None) or getattr(track, "sourceName", None)
    if isinstance(raw, str):
        return raw.lower()
    return "unknown"


def encoded_track(track: Any) -> Optional[str]:
    """Return the opaque base64 blob Lavalink uses to identify ``track``."""
    for attr in ("track", "encoded"):
        value = getattr(track, attr, None)
        if isinstance(value, str) and value:
            return value
    return None


def decode_track(blob: Optional[str]) -> Optional[lavalink.AudioTrack]:
    """Decode a stored track blob, returning ``None`` when it is unusable."""
    if not blob:
        return None
    try:
        return lavalink.decode_track(blob)
    except Exception as exc:
        logger.debug("Unable to decode stored track blob (%s): %s", type(exc).__name__, exc)
        return None
