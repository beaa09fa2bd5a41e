"""Tests for EmbedFactory (resound/utils/embeds.py)."""

from resound.configs.schema import ThemeConfig
from resound.utils.embeds import EmbedFactory


def test_primary_uses_theme_colour_and_footer():
    factory = EmbedFactory(ThemeConfig(color_primary=0x123456, footer_text="Footer"))
    embed = factory.primary("Title", "Desc")
    assert embed.title == "Title"
    assert embed.color.value == 0x123456
    assert embed.footer.text == "Footer"


def test_resuming_mentions_track_count():
    embed = EmbedFactory().resuming(3)
    assert "`3` tracks" in embed.description
    assert "`1` track" in EmbedFactory().resuming(1).description


def test_resume_failed_is_a_warning():
    theme = ThemeConfig()
    embed = EmbedFactory(theme).resume_failed("Channel is full")
    assert embed.description == "Channel is full"
    assert embed.color.value == theme.color_warning
