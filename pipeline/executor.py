"""
Runs compiled pipelines as a single FFmpeg process each.
"""
import asyncio
import re
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import structlog

from pipeline.models import ExecutionResult, PipelineSpec, TimeoutClass

logger = structlog.get_logger()

READ_CHUNK_BYTES = 64 * 1024


class ProgressParser:
    """Parse FFmpeg progress output."""

    def __init__(self):
        self.frame_pattern = re.compile(r'frame=\s*(\d+)')
        self.fps_pattern = re.compile(r'fps=\s*([\d.]+)')
        self.time_pattern = re.compile(r'time=(\d{2}):(\d{2}):(\d{2})\.(\d{2})')
        self.bitrate_pattern = re.compile(r'bitrate=\s*([\d.]+)kbits/s')
        self.speed_pattern = re.compile(r'speed=\s*([\d.]+)x')

    def parse_progress(self, line: str) -> Optional[Dict[str, Any]]:
        """Parse progress information from one FFmpeg status line."""
        if not line.strip():
            return None

        progress = {}

        frame_match = self.frame_pattern.search(line)
        if frame_match:
            progress['frame'] = int(frame_match.group(1))

        fps_match = self.fps_pattern.search(line)
        if fps_match:
            progress['fps'] = float(fps_match.group(1))

        time_match = self.time_pattern.search(line)
        if time_match:
            hours, minutes, seconds, centiseconds = (int(g) for g in time_match.groups())
            progress['time'] = hours * 3600 + minutes * 60 + seconds + centiseconds / 100

        bitrate_match = self.bitrate_pattern.search(line)
        if bitrate_match:
            progress['bitrate'] = float(bitrate_match.group(1))

        speed_match = self.speed_pattern.search(line)
        if speed_match:
            progress['speed'] = float(speed_match.group(1))

        return progress if progress else None

    def last_progress(self, log: str) -> Dict[str, Any]:
        """Most recent status report in a full engine log."""
        # status updates are separated by carriage returns, not newlines
        for line in reversed(re.split(r'[\r\n]+', log)):
            progress = self.parse_progress(line)
            if progress and 'time' in progress:
                return progress
        return {}


async def _drain(stream: Optional[asyncio.StreamReader], limit: int) -> Tuple[bytes, bool]:
    """Read a stream to EOF keeping at most the last ``limit`` bytes."""
    if stream is None:
        return b"", False
    buffer = bytearray()
    truncated = False
    while True:
        chunk = await stream.read(READ_CHUNK_BYTES)
        if not chunk:
            break
        buffer.extend(chunk)
        if len(buffer) > limit:
            del buffer[:len(buffer) - limit]
            truncated = True
    return bytes(buffer), truncated


class PipelineExecutor:
    """Executes a ``PipelineSpec`` with a timeout and an output ceiling."""

    def __init__(
        self,
        ffmpeg_path: Union[str, Path] = "ffmpeg",
        standard_timeout: float = 600,
        extended_timeout: float = 1800,
        max_output_bytes: int = 50 * 1024 * 1024,
    ):
        self.ffmpeg_path = str(ffmpeg_path)
        self.timeouts = {
            TimeoutClass.STANDARD: standard_timeout,
            TimeoutClass.EXTENDED: extended_timeout,
        }
        self.max_output_bytes = max_output_bytes
        self.progress_parser = ProgressParser()

    def timeout_for(self, spec: PipelineSpec) -> float:
        return self.timeouts[spec.timeout_class]

    async def execute(self, spec: PipelineSpec) -> ExecutionResult:
        """Run the pipeline once; never retries."""
        cmd = [self.ffmpeg_path, *spec.arguments]
        timeout = self.timeout_for(spec)
        started = time.monotonic()

        logger.info(
            "Executing pipeline",
            operation=spec.kind.value,
            label=spec.label,
            command=cmd,
            timeout=timeout,
        )

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            logger.error("Failed to start engine", command=cmd, error=str(e))
            return ExecutionResult(
                exit_ok=False,
                return_code=None,
                stdout="",
                stderr=f"Failed to start {self.ffmpeg_path}: {e}",
                elapsed_seconds=time.monotonic() - started,
            )

        stdout_task = asyncio.create_task(_drain(process.stdout, self.max_output_bytes))
        stderr_task = asyncio.create_task(_drain(process.stderr, self.max_output_bytes))

        timed_out = False
        try:
            await asyncio.wait_for(process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            timed_out = True
            process.kill()
            await process.wait()
        finally:
            # cancelled mid-run: never leave the engine or the readers behind
            if process.returncode is None:
                logger.warning("Killing engine after cancellation", label=spec.label)
                process.kill()
                await process.wait()
                stdout_task.cancel()
                stderr_task.cancel()

        stdout, stdout_truncated = await stdout_task
        stderr, stderr_truncated = await stderr_task
        stderr_text = stderr.decode("utf-8", errors="replace")

        result = ExecutionResult(
            exit_ok=not timed_out and process.returncode == 0,
            return_code=process.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr_text,
            timed_out=timed_out,
            elapsed_seconds=time.monotonic() - started,
            truncated=stdout_truncated or stderr_truncated,
            stats=self.progress_parser.last_progress(stderr_text),
        )

        if result.exit_ok:
            logger.info(
                "Pipeline finished",
                operation=spec.kind.value,
                label=spec.label,
                elapsed=round(result.elapsed_seconds, 3),
                stats=result.stats,
            )
        else:
            logger.error(
                "Pipeline failed",
                operation=spec.kind.value,
                label=spec.label,
                returncode=process.returncode,
                timed_out=timed_out,
                log_tail=result.log_tail(10),
            )
        return result
