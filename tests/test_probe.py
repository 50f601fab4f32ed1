"""Tests for media probing."""

import json
from pathlib import Path

import pytest

from clipstudio.analyzers.probe import parse_probe_output, probe_media
from clipstudio.ffutil import ProbeError

from conftest import FakeClient, probe_json


class TestParseProbeOutput:
    def test_basic(self):
        result = parse_probe_output(probe_json(60.0))
        assert result.duration == 60.0
        assert result.width == 1280
        assert result.height == 720
        assert result.has_video is True
        assert result.has_audio is True

    def test_audio_only(self):
        result = parse_probe_output(probe_json(12.5, video=False))
        assert result.has_video is False
        assert result.has_audio is True
        assert result.width is None
        assert result.height is None

    def test_video_only(self):
        result = parse_probe_output(probe_json(12.5, audio=False))
        assert result.has_video is True
        assert result.has_audio is False

    def test_missing_duration_defaults_to_zero(self):
        assert parse_probe_output(probe_json(None)).duration == 0.0

    def test_missing_sections(self):
        result = parse_probe_output("{}")
        assert result.duration == 0.0
        assert result.has_video is False
        assert result.has_audio is False

    def test_non_numeric_duration(self):
        data = json.dumps({"format": {"duration": "N/A"}, "streams": []})
        assert parse_probe_output(data).duration == 0.0

    def test_garbage_raises(self):
        with pytest.raises(ProbeError, match="unparseable"):
            parse_probe_output("this is not json")

    def test_non_object_raises(self):
        with pytest.raises(ProbeError):
            parse_probe_output("[1, 2]")


class TestProbeMedia:
    def test_uses_client(self):
        client = FakeClient(default_duration=42.0)
        result = probe_media(Path("in.mp4"), client)
        assert result.duration == 42.0
        assert client.ops() == ["probe"]

    def test_nonzero_exit_raises(self):
        client = FakeClient(fail={"probe"})
        with pytest.raises(ProbeError, match="ffprobe failed"):
            probe_media(Path("missing.mp4"), client)
