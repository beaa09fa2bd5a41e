"""Tests for the Lavalink track helpers (resound/utils/tracks.py)."""

from types import SimpleNamespace

from resound.utils.tracks import decode_track, encoded_track, source_name

# Lavaplayer v2 encoding of a YouTube track, as produced by a Lavalink node.
RICK_ROLL = (
    "QAAAfAIAF05ldmVyIEdvbm5hIEdpdmUgWW91IFVwAAtSaWNrIEFzdGxleQAAAAAAAzwgAAtkUXc0dzlXZ1hjUQABACtodHRwczovL3d3dy55"
    "b3V0dWJlLmNvbS93YXRjaD92PWRRdzR3OVdnWGNRAAd5b3V0dWJlAAAAAAAAAAA="
)


def test_decode_reads_track_info():
    track = decode_track(RICK_ROLL)
    assert track is not None
    assert track.title == "Never Gonna Give You Up"
    assert track.author == "Rick Astley"
    assert track.uri == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
    assert track.duration == 212_000
    assert source_name(track) == "youtube"


def test_serialised_track_decodes_to_same_uri_and_duration():
    original = decode_track(RICK_ROLL)
    blob = encoded_track(original)
    assert blob

    restored = decode_track(blob)
    assert restored is not None
    assert restored.uri == original.uri
    assert restored.duration == original.duration


def test_decode_failure_returns_none():
    assert decode_track("definitely not a track") is None
    assert decode_track("") is None
    assert decode_track(None) is None


def test_encoded_track_falls_back_to_encoded_attribute():
    assert encoded_track(SimpleNamespace(track=None, encoded="abc")) == "abc"
    assert encoded_track(SimpleNamespace()) is None


def test_source_name_defaults_to_unknown():
    assert source_name(SimpleNamespace(source_name="SoundCloud")) == "soundcloud"
    assert source_name(SimpleNamespace()) == "unknown"
