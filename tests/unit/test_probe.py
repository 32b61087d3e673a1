"""
Tests for ffprobe output parsing and the prober
"""
import json
import stat
from fractions import Fraction
from pathlib import Path

import pytest

from pipeline.errors import ProbeFailure
from pipeline.probe import MediaProber, parse_frame_rate, parse_probe_output

FFPROBE_JSON = {
    "format": {
        "filename": "clip.mp4",
        "format_name": "mov,mp4,m4a,3gp,3g2,mj2",
        "duration": "12.345000",
        "size": "2048000",
        "bit_rate": "1327000",
    },
    "streams": [
        {
            "index": 0,
            "codec_type": "video",
            "codec_name": "h264",
            "width": 1280,
            "height": 720,
            "r_frame_rate": "30000/1001",
            "avg_frame_rate": "30000/1001",
            "pix_fmt": "yuv420p",
        },
        {
            "index": 1,
            "codec_type": "audio",
            "codec_name": "aac",
            "sample_rate": "44100",
            "channels": 2,
            "bit_rate": "128000",
        },
    ],
}


def write_script(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return path


class TestParseFrameRate:

    @pytest.mark.unit
    @pytest.mark.parametrize("raw,expected", [
        ("30000/1001", Fraction(30000, 1001)),
        ("25/1", Fraction(25)),
        ("24", Fraction(24)),
    ])
    def test_valid_rates(self, raw, expected):
        assert parse_frame_rate(raw) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", [None, "", "0/0", "0/1", "__import__('os')", "30/abc"])
    def test_invalid_rates_are_none(self, raw):
        assert parse_frame_rate(raw) is None


class TestParseProbeOutput:

    @pytest.mark.unit
    def test_full_output(self):
        probe = parse_probe_output(FFPROBE_JSON)

        assert probe.container_format == "mov,mp4,m4a,3gp,3g2,mj2"
        assert probe.duration_seconds == pytest.approx(12.345)
        assert probe.size_bytes == 2048000
        assert probe.video.width == 1280
        assert probe.video.height == 720
        assert probe.video.frame_rate == Fraction(30000, 1001)
        assert probe.video.fps == pytest.approx(29.97)
        assert probe.audio.sample_rate == 44100
        assert probe.has_audio and probe.has_video

    @pytest.mark.unit
    def test_falls_back_to_average_frame_rate(self):
        data = json.loads(json.dumps(FFPROBE_JSON))
        data["streams"][0]["r_frame_rate"] = "0/0"
        data["streams"][0]["avg_frame_rate"] = "25/1"
        assert parse_probe_output(data).video.frame_rate == Fraction(25)

    @pytest.mark.unit
    def test_cover_art_is_not_video(self):
        data = {
            "format": {"format_name": "mp3", "duration": "180.0"},
            "streams": [
                {"codec_type": "audio", "codec_name": "mp3", "sample_rate": "44100", "channels": 2},
                {"codec_type": "video", "codec_name": "mjpeg", "width": 500, "height": 500,
                 "disposition": {"attached_pic": 1}},
            ],
        }
        probe = parse_probe_output(data)
        assert probe.video is None
        assert probe.audio.codec == "mp3"

    @pytest.mark.unit
    def test_video_only(self):
        data = {"format": FFPROBE_JSON["format"], "streams": [FFPROBE_JSON["streams"][0]]}
        probe = parse_probe_output(data)
        assert not probe.has_audio


class TestMediaProber:

    @pytest.fixture
    def media(self, tmp_path):
        path = tmp_path / "clip.mp4"
        path.write_bytes(b"placeholder")
        return path

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_probe_success(self, tmp_path, media):
        script = write_script(
            tmp_path / "ffprobe",
            f"cat <<'EOF'\n{json.dumps(FFPROBE_JSON)}\nEOF\n",
        )
        probe = await MediaProber(script).probe(media)
        assert probe.video.width == 1280

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(ProbeFailure) as exc_info:
            await MediaProber().probe(tmp_path / "nope.mp4")
        assert exc_info.value.status_code == 422

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_nonzero_exit(self, tmp_path, media):
        script = write_script(tmp_path / "ffprobe", "echo 'Invalid data found' >&2\nexit 1\n")
        with pytest.raises(ProbeFailure) as exc_info:
            await MediaProber(script).probe(media)
        assert "exit" in exc_info.value.message
        assert "Invalid data" in exc_info.value.details

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unparsable_output(self, tmp_path, media):
        script = write_script(tmp_path / "ffprobe", "echo 'not json'\n")
        with pytest.raises(ProbeFailure):
            await MediaProber(script).probe(media)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_output(self, tmp_path, media):
        script = write_script(tmp_path / "ffprobe", "echo '{}'\n")
        with pytest.raises(ProbeFailure):
            await MediaProber(script).probe(media)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_binary_missing(self, tmp_path, media):
        with pytest.raises(ProbeFailure) as exc_info:
            await MediaProber(tmp_path / "no-such-ffprobe").probe(media)
        assert "cannot run" in exc_info.value.message

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout(self, tmp_path, media):
        script = write_script(tmp_path / "ffprobe", "exec sleep 5\n")
        with pytest.raises(ProbeFailure) as exc_info:
            await MediaProber(script, timeout=0.2).probe(media)
        assert "timed out" in exc_info.value.message
