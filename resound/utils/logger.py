"""Utility for configuring project wide logging behaviour."""

import logging
import os
import sys


def setup_logging():
    """Initialise logging handlers and adjust default noisy loggers."""
    fmt = "[%(asctime)s] %(levelname)s:%(name)s: %(message)s"
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=fmt,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("discord").setLevel(logging.INFO)
    # Lavalink reconnect chatter is only useful while debugging node issues.
    logging.getLogger("lavalink").setLevel(logging.WARNING)
