"""Centralised helpers for building branded Discord embeds."""

from typing import Optional

import discord

from resound.configs.schema import ThemeConfig


class EmbedFactory:
    """Centralized, branded embed factory for Resound."""

    def __init__(self, theme: Optional[ThemeConfig] = None):
        self.theme = theme or ThemeConfig()

    def _base(self, title: Optional[str], description: Optional[str], color: int) -> discord.Embed:
        """Return a themed embed with the common footer decoration."""
        e = discord.Embed(title=title, description=description, color=color)
        if self.theme.footer_text:
            e.set_footer(text=self.theme.footer_text, icon_url=self.theme.footer_icon_url or None)
        return e

    # Generic
    def primary(self, title: Optional[str], description: Optional[str] = None) -> discord.Embed:
        return self._base(title, description, self.theme.color_primary)

    def warning(self, title: Optional[str], description: Optional[str] = None) -> discord.Embed:
        return self._base(title, description, self.theme.color_warning)

    # Recovery notices
    def resuming(self, queued: int) -> discord.Embed:
        """Status card posted before rejoining a voice channel after a restart."""
        suffix = "track" if queued == 1 else "tracks"
        return self.primary(
            None,
            f"I was disconnected while playing music here, resuming playback with `{queued}` {suffix}...",
        )

    def resume_failed(self, reason: str) -> discord.Embed:
        return self.warning(None, reason)
