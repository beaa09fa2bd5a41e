"""File-backed key/value cache used for state that must survive restarts."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import aiofiles

DEFAULT_CACHE_DIR = Path("data/cache")
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class FileCacheAdapter:
    """Store one UTF-8 text value per key as a file inside ``directory``."""

    def __init__(self, directory: Path | str = DEFAULT_CACHE_DIR):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        safe = _UNSAFE_CHARS.sub("_", key.strip())
        if not safe or safe in {".", ".."}:
            raise ValueError(f"Invalid cache key: {key!r}")
        return self.directory / f"{safe}.cache"

    async def get(self, key: str) -> Optional[str]:
        """Return the raw text stored under ``key`` or ``None`` if never written."""
        path = self._path(key)
        if not path.exists():
            return None
        async with aiofiles.open(path, "r", encoding="utf-8") as handle:
            return await handle.read()

    async def put(self, key: str, value: str) -> None:
        """Persist ``value`` under ``key``, replacing any previous value atomically."""
        path = self._path(key)
        if not self.directory.exists():
            self.directory.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as handle:
            await handle.write(value)
        os.replace(tmp_path, path)

    async def forget(self, key: str) -> bool:
        """Remove ``key``; returns True if a value was deleted."""
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True
