"""
Tests for the pipeline executor

The engine binary is replaced by the current Python interpreter so the
subprocess handling can be exercised without FFmpeg installed.
"""
import asyncio
import os
import sys

import pytest

from pipeline.executor import PipelineExecutor, ProgressParser
from pipeline.models import OperationKind, PipelineSpec, TimeoutClass


def python_spec(tmp_path, code: str, timeout_class=TimeoutClass.STANDARD) -> PipelineSpec:
    return PipelineSpec(
        kind=OperationKind.CONVERT,
        arguments=["-c", code],
        inputs=[],
        output_path=tmp_path / "out.mp4",
        timeout_class=timeout_class,
        label="convert",
    )


class TestProgressParser:

    @pytest.mark.unit
    def test_parse_status_line(self):
        parser = ProgressParser()
        line = "frame=  240 fps= 48 q=28.0 size=    1024kB time=00:00:08.00 bitrate=1048.6kbits/s speed=1.6x"

        progress = parser.parse_progress(line)

        assert progress["frame"] == 240
        assert progress["fps"] == 48.0
        assert progress["time"] == pytest.approx(8.0)
        assert progress["bitrate"] == pytest.approx(1048.6)
        assert progress["speed"] == pytest.approx(1.6)

    @pytest.mark.unit
    def test_blank_and_unrelated_lines(self):
        parser = ProgressParser()
        assert parser.parse_progress("") is None
        assert parser.parse_progress("Stream mapping:") is None

    @pytest.mark.unit
    def test_last_progress_uses_carriage_returns(self):
        parser = ProgressParser()
        log = (
            "Input #0, mov,mp4\n"
            "frame=   10 fps=0.0 time=00:00:00.40 speed=0.8x\r"
            "frame=   50 fps= 25 time=00:00:02.00 speed=1.0x\r"
            "\nvideo:120kB audio:30kB\n"
        )
        assert parser.last_progress(log)["frame"] == 50


class TestPipelineExecutor:

    @pytest.fixture
    def executor(self):
        return PipelineExecutor(sys.executable, standard_timeout=30, extended_timeout=60)

    @pytest.mark.unit
    def test_timeout_classes(self, executor, tmp_path):
        assert executor.timeout_for(python_spec(tmp_path, "pass")) == 30
        assert executor.timeout_for(python_spec(tmp_path, "pass", TimeoutClass.EXTENDED)) == 60

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success(self, executor, tmp_path):
        code = (
            "import sys\n"
            "sys.stderr.write('frame=   25 fps=25 time=00:00:01.00 bitrate= 800.0kbits/s speed=1x\\r')\n"
            "print('done')\n"
        )
        result = await executor.execute(python_spec(tmp_path, code))

        assert result.exit_ok
        assert result.return_code == 0
        assert result.stdout.strip() == "done"
        assert result.stats["frame"] == 25
        assert not result.timed_out
        assert result.elapsed_seconds >= 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_nonzero_exit(self, executor, tmp_path):
        code = "import sys\nsys.stderr.write('line one\\nError opening output\\n')\nsys.exit(3)\n"
        result = await executor.execute(python_spec(tmp_path, code))

        assert not result.exit_ok
        assert result.return_code == 3
        assert result.log_tail().endswith("Error opening output")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, tmp_path):
        executor = PipelineExecutor(sys.executable, standard_timeout=0.5)
        result = await executor.execute(python_spec(tmp_path, "import time\ntime.sleep(10)\n"))

        assert result.timed_out
        assert not result.exit_ok
        assert result.elapsed_seconds < 10

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancel_kills_process(self, executor, tmp_path):
        pid_file = tmp_path / "engine.pid"
        code = f"import os, time\nopen({str(pid_file)!r}, 'w').write(str(os.getpid()))\ntime.sleep(30)\n"
        task = asyncio.create_task(executor.execute(python_spec(tmp_path, code)))

        for _ in range(100):
            if pid_file.exists() and pid_file.read_text():
                break
            await asyncio.sleep(0.05)
        pid = int(pid_file.read_text())

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_output_capture_keeps_tail(self, tmp_path):
        executor = PipelineExecutor(sys.executable, max_output_bytes=100)
        code = "import sys\nsys.stderr.write('x' * 200000 + 'THE END')\n"
        result = await executor.execute(python_spec(tmp_path, code))

        assert result.exit_ok
        assert result.truncated
        assert len(result.stderr) <= 100
        assert result.stderr.endswith("THE END")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_binary(self, tmp_path):
        executor = PipelineExecutor(tmp_path / "no-such-ffmpeg")
        result = await executor.execute(python_spec(tmp_path, "pass"))

        assert not result.exit_ok
        assert result.return_code is None
        assert "Failed to start" in result.stderr
