"""Pytest configuration helpers."""

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
HERE = Path(__file__).resolve().parent

for _path in (ROOT, HERE):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))

# Ensure config bootstrap has the secrets it needs during CI/unit tests.
os.environ.setdefault("DISCORD_TOKEN", "TEST_TOKEN")
os.environ.setdefault("LAVALINK_HOST", "localhost")
os.environ.setdefault("LAVALINK_PORT", "2333")
os.environ.setdefault("LAVALINK_PASSWORD", "testing-token")
