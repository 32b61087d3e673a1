"""
Media probing via ffprobe.
"""
import asyncio
import json
from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, Optional, Union

import structlog

from pipeline.errors import ProbeFailure
from pipeline.models import AudioStreamInfo, MediaProbe, VideoStreamInfo

logger = structlog.get_logger()


def parse_frame_rate(value: Optional[str]) -> Optional[Fraction]:
    """Parse an ffprobe rate such as ``30000/1001`` without evaluating it."""
    if not value:
        return None
    numerator, _, denominator = str(value).partition("/")
    try:
        num = int(numerator)
        den = int(denominator) if denominator else 1
    except ValueError:
        return None
    if num <= 0 or den <= 0:
        return None
    return Fraction(num, den)


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_probe_output(data: Dict[str, Any]) -> MediaProbe:
    """Normalize ffprobe ``-show_format -show_streams`` JSON."""
    fmt = data.get("format") or {}
    streams = data.get("streams") or []

    video = None
    video_stream = next(
        (s for s in streams
         if s.get("codec_type") == "video" and not (s.get("disposition") or {}).get("attached_pic")),
        None,
    )
    if video_stream is not None:
        video = VideoStreamInfo(
            codec=video_stream.get("codec_name"),
            width=_as_int(video_stream.get("width")) or 0,
            height=_as_int(video_stream.get("height")) or 0,
            frame_rate=(parse_frame_rate(video_stream.get("r_frame_rate"))
                        or parse_frame_rate(video_stream.get("avg_frame_rate"))),
            pixel_format=video_stream.get("pix_fmt"),
        )

    audio = None
    audio_stream = next((s for s in streams if s.get("codec_type") == "audio"), None)
    if audio_stream is not None:
        audio = AudioStreamInfo(
            codec=audio_stream.get("codec_name"),
            sample_rate=_as_int(audio_stream.get("sample_rate")),
            channels=_as_int(audio_stream.get("channels")),
            bitrate_bps=_as_int(audio_stream.get("bit_rate")),
        )

    return MediaProbe(
        container_format=fmt.get("format_name"),
        duration_seconds=_as_float(fmt.get("duration")),
        size_bytes=_as_int(fmt.get("size")) or 0,
        bitrate_bps=_as_int(fmt.get("bit_rate")) or 0,
        video=video,
        audio=audio,
    )


class MediaProber:
    """Runs ffprobe on a file and returns a ``MediaProbe``."""

    def __init__(self, ffprobe_path: Union[str, Path] = "ffprobe", timeout: float = 30):
        self.ffprobe_path = str(ffprobe_path)
        self.timeout = timeout

    async def probe(self, path: Path) -> MediaProbe:
        path = Path(path)
        if not path.exists():
            raise ProbeFailure(str(path), "file does not exist")

        cmd = [
            self.ffprobe_path, '-v', 'quiet', '-print_format', 'json',
            '-show_format', '-show_streams', str(path),
        ]
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise ProbeFailure(str(path), f"cannot run ffprobe: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ProbeFailure(str(path), f"ffprobe timed out after {self.timeout} seconds")

        if process.returncode != 0:
            logger.warning("FFprobe failed", path=str(path), returncode=process.returncode)
            raise ProbeFailure(
                str(path),
                f"ffprobe exited with code {process.returncode}",
                details=stderr.decode("utf-8", errors="replace"),
            )

        try:
            data = json.loads(stdout.decode("utf-8", errors="replace"))
        except json.JSONDecodeError as e:
            raise ProbeFailure(str(path), f"unparsable ffprobe output: {e}") from e

        if not data.get("format") and not data.get("streams"):
            raise ProbeFailure(str(path), "no media streams recognized")
        return parse_probe_output(data)
