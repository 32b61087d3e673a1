"""
Tests for the request dispatcher
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from pipeline.errors import (
    ArtifactMissing,
    ExecutionFailure,
    InputNotFound,
    ProbeFailure,
    ValidationError,
)
from pipeline.models import OperationKind
from tests.mocks.ffmpeg import make_probe


def output_entries(workspace):
    return sorted(p.name for p in workspace.output_dir.iterdir())


class TestProcess:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success_response(self, dispatcher, mock_executor, workspace):
        response = await dispatcher.process("crop", "/clip.mp4", {"cropWidth": 800, "cropHeight": 600})

        assert response["success"] is True
        assert response["operation"] == "crop"
        assert response["message"] == "crop completed successfully"
        assert response["output"]["path"].startswith("/outputs/cropped_")
        assert response["output"]["sizeBytes"] == 2048
        assert mock_executor.labels == ["crop"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_operation(self, dispatcher, mock_executor):
        with pytest.raises(ValidationError) as exc_info:
            await dispatcher.process("explode", "/clip.mp4", {})

        assert exc_info.value.valid_operations == OperationKind.values()
        assert mock_executor.executed == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_validation_happens_before_input_lookup(self, dispatcher, mock_prober):
        with pytest.raises(ValidationError) as exc_info:
            await dispatcher.process("crop", "/missing.mp4", {})
        assert exc_info.value.field == "cropWidth"
        assert mock_prober.calls == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_input(self, dispatcher, mock_executor):
        with pytest.raises(InputNotFound):
            await dispatcher.process("mute", "/missing.mp4", {})
        assert mock_executor.executed == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_secondary_input(self, dispatcher):
        with pytest.raises(InputNotFound):
            await dispatcher.process("add-audio", "/clip.mp4", {"audioPath": "/nope.mp3"})

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_traversal_in_secondary_input(self, dispatcher):
        with pytest.raises(ValidationError) as exc_info:
            await dispatcher.process("watermark", "/clip.mp4", {"imagePath": "../../logo.png"})
        assert exc_info.value.field == "imagePath"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_only_needed_probes_run(self, dispatcher, mock_prober):
        await dispatcher.process("blur", "/clip.mp4", {})
        assert mock_prober.calls == []

        await dispatcher.process("extract-audio", "/clip.mp4", {})
        assert [p.name for p in mock_prober.calls] == ["clip.mp4"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_merge_probes_every_input(self, dispatcher, mock_prober, mock_executor):
        mock_prober.probes["second.mp4"] = make_probe(1280, 720, audio=False)

        await dispatcher.process("merge", "/clip.mp4", {"inputPaths": ["/clip.mp4", "/second.mp4", "/third.mov"]})

        assert sorted(p.name for p in mock_prober.calls) == ["clip.mp4", "second.mp4", "third.mov"]
        assert "-an" in mock_executor.executed[0].arguments

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_probe_failure_stops_request(self, dispatcher, mock_prober, mock_executor):
        mock_prober.failing.add("clip.mp4")
        with pytest.raises(ProbeFailure):
            await dispatcher.process("extract-audio", "/clip.mp4", {})
        assert mock_executor.executed == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_execution_failure_removes_partial_output(self, dispatcher, mock_executor, workspace):
        mock_executor.fail_labels.add("compress")

        with pytest.raises(ExecutionFailure) as exc_info:
            await dispatcher.process("compress", "/clip.mp4", {})

        assert exc_info.value.status_code == 500
        assert "Invalid argument" in exc_info.value.details
        assert output_entries(workspace) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_maps_to_504(self, dispatcher, mock_executor):
        mock_executor.timeout_labels.add("reverse")

        with pytest.raises(ExecutionFailure) as exc_info:
            await dispatcher.process("reverse", "/clip.mp4", {})

        assert exc_info.value.timed_out
        assert exc_info.value.status_code == 504
        assert "1800" in exc_info.value.message

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_clean_exit_without_output(self, dispatcher, mock_executor):
        mock_executor.write_output = False
        with pytest.raises(ArtifactMissing):
            await dispatcher.process("mute", "/clip.mp4", {})

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_extract_frames(self, dispatcher, mock_executor, workspace):
        response = await dispatcher.process("extract-frames", "/clip.mp4", {"fps": 1})

        assert response["output"]["framesCount"] == 3
        assert response["output"]["frames"] == ["frame_0001.jpg", "frame_0002.jpg", "frame_0003.jpg"]
        assert mock_executor.executed[0].output_path.is_dir()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_frame_extraction_removes_directory(self, dispatcher, mock_executor, workspace):
        mock_executor.fail_labels.add("extract-frames")
        with pytest.raises(ExecutionFailure):
            await dispatcher.process("extract-frames", "/clip.mp4", {})
        assert output_entries(workspace) == []


class TestStabilize:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_two_passes_in_order(self, dispatcher, mock_executor, workspace):
        response = await dispatcher.process("stabilize", "/clip.mp4", {})

        analysis, transform = mock_executor.executed
        assert mock_executor.labels == ["stabilize:analyze", "stabilize:transform"]
        assert analysis.output_path.name in transform.filter_graph
        assert response["output"]["path"].startswith("/outputs/stabilized_")
        # trace is removed, the stabilized video is kept
        assert not analysis.output_path.exists()
        assert output_entries(workspace) == [transform.output_path.name]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_analysis_skips_transform(self, dispatcher, mock_executor, workspace):
        mock_executor.fail_labels.add("stabilize:analyze")

        with pytest.raises(ExecutionFailure):
            await dispatcher.process("stabilize", "/clip.mp4", {})

        assert mock_executor.labels == ["stabilize:analyze"]
        assert output_entries(workspace) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_transform_cleans_everything(self, dispatcher, mock_executor, workspace):
        mock_executor.fail_labels.add("stabilize:transform")

        with pytest.raises(ExecutionFailure):
            await dispatcher.process("stabilize", "/clip.mp4", {})

        assert mock_executor.labels == ["stabilize:analyze", "stabilize:transform"]
        assert output_entries(workspace) == []


class TestConcurrency:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrent_requests_get_distinct_outputs(self, dispatcher):
        responses = await asyncio.gather(*(
            dispatcher.process("blur", "/clip.mp4", {}) for _ in range(5)
        ))
        paths = {r["output"]["path"] for r in responses}
        assert len(paths) == 5


class TestMetrics:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_outcomes_recorded(self, dispatcher):
        dispatcher.metrics = MagicMock()

        await dispatcher.process("mute", "/clip.mp4", {})
        with pytest.raises(ValidationError):
            await dispatcher.process("explode", "/clip.mp4", {})

        calls = [c.args[:2] for c in dispatcher.metrics.record_operation.call_args_list]
        assert calls == [("mute", "success"), ("invalid", "validation_error")]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_error_not_counted_as_success(self, dispatcher, mock_executor):
        dispatcher.metrics = MagicMock()
        mock_executor.execute = AsyncMock(side_effect=RuntimeError("engine wrapper crashed"))

        with pytest.raises(RuntimeError):
            await dispatcher.process("mute", "/clip.mp4", {})

        dispatcher.metrics.record_operation.assert_called_once()
        assert dispatcher.metrics.record_operation.call_args.args[:2] == ("mute", "internal_error")


class TestProbeMedia:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_probe_response(self, dispatcher):
        info = await dispatcher.probe_media("/clip.mp4")

        assert info["durationSeconds"] == 10.0
        assert info["video"]["width"] == 1920
        assert info["video"]["frameRate"] == "30000/1001"
        assert info["audio"]["sampleRate"] == 48000
        assert info["size"] == "0.95 MB"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_probe_missing_file(self, dispatcher):
        with pytest.raises(InputNotFound):
            await dispatcher.probe_media("/missing.mp4")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_probe_field_name(self, dispatcher):
        with pytest.raises(ValidationError) as exc_info:
            await dispatcher.probe_media("../../etc/passwd")
        assert exc_info.value.field == "path"
