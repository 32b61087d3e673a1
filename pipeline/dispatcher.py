"""
Request dispatcher: validate, resolve inputs, probe, compile, execute,
resolve the artifact, and always clean up.
"""
import asyncio
import shutil
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Set
from uuid import uuid4

import structlog
from pydantic.alias_generators import to_camel

from pipeline.compiler import CompileContext, OperationStrategy, PipelineCompiler, ProbeScope
from pipeline.errors import ExecutionFailure, GatewayError
from pipeline.executor import PipelineExecutor
from pipeline.models import (
    ExecutionResult,
    MediaProbe,
    OperationKind,
    OperationRequest,
    OutputKind,
    PipelineSpec,
)
from pipeline.probe import MediaProber
from pipeline.resolver import ArtifactResolver
from pipeline.schemas import parse_kind, validate_options
from pipeline.workspace import MediaWorkspace

logger = structlog.get_logger()


def probe_response(probe: MediaProbe, path: Path) -> Dict[str, Any]:
    """Client-facing rendering of a ``MediaProbe``."""
    size_bytes = probe.size_bytes or (path.stat().st_size if path.exists() else 0)
    body: Dict[str, Any] = {
        "format": probe.container_format,
        "durationSeconds": probe.duration_seconds,
        "size": f"{size_bytes / (1024 * 1024):.2f} MB",
        "sizeBytes": size_bytes,
        "bitrate": f"{probe.bitrate_bps / 1000:.0f} kbps",
        "bitrateBps": probe.bitrate_bps,
        "video": None,
        "audio": None,
    }
    if probe.video is not None:
        frame_rate = probe.video.frame_rate
        body["video"] = {
            "codec": probe.video.codec,
            "width": probe.video.width,
            "height": probe.video.height,
            "fps": probe.video.fps,
            "frameRate": (f"{frame_rate.numerator}/{frame_rate.denominator}"
                          if frame_rate is not None else None),
            "pixelFormat": probe.video.pixel_format,
        }
    if probe.audio is not None:
        body["audio"] = {
            "codec": probe.audio.codec,
            "sampleRate": probe.audio.sample_rate,
            "channels": probe.audio.channels,
            "bitrateBps": probe.audio.bitrate_bps,
        }
    return body


class RequestDispatcher:
    """Root of the pipeline: one call per client request."""

    def __init__(
        self,
        workspace: MediaWorkspace,
        prober: MediaProber,
        executor: PipelineExecutor,
        resolver: Optional[ArtifactResolver] = None,
        compiler: Optional[PipelineCompiler] = None,
        metrics: Optional[Any] = None,
    ):
        self.workspace = workspace
        self.prober = prober
        self.executor = executor
        self.resolver = resolver or ArtifactResolver(workspace)
        self.compiler = compiler or PipelineCompiler()
        self.metrics = metrics

    async def process(self, operation: Any, input_path: Any, options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Run one operation end to end and return the response body."""
        started = time.monotonic()
        label = operation if operation in OperationKind.values() else "invalid"
        status = "success"
        try:
            return await self._process(operation, input_path, options)
        except GatewayError as e:
            status = e.code.lower()
            raise
        except Exception:
            status = "internal_error"
            raise
        finally:
            if self.metrics is not None:
                self.metrics.record_operation(label, status, time.monotonic() - started)

    async def _process(self, operation: Any, input_path: Any, options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        kind = parse_kind(operation)
        validated = validate_options(kind, options)
        log = logger.bind(operation=kind.value, request_id=uuid4().hex[:12])

        primary = self.workspace.resolve_input(input_path)
        strategy = self.compiler.strategy(kind)
        paths = self._resolve_paths(strategy, validated)
        probes = await self._probe_inputs(strategy, primary, paths)

        ctx = CompileContext(
            request=OperationRequest(kind=kind, primary_input=primary, options=validated),
            workspace=self.workspace,
            paths=paths,
            probes=probes,
        )
        spec = self.compiler.compile(ctx)
        log.info("Pipeline compiled", label=spec.label, inputs=[str(p) for p in spec.inputs])

        executed: List[PipelineSpec] = []
        auxiliary: Set[Path] = set(spec.auxiliary_artifacts)
        succeeded = False
        try:
            executed.append(spec)
            result = await self._run(spec)
            final, final_result = spec, result

            next_spec = self.compiler.compile_next(ctx, spec, result)
            if next_spec is not None:
                auxiliary.update(next_spec.auxiliary_artifacts)
                executed.append(next_spec)
                final, final_result = next_spec, await self._run(next_spec)

            artifact = self.resolver.resolve(final, final_result.log_tail())
            succeeded = True
        finally:
            self._remove(auxiliary)
            if not succeeded:
                self._remove(s.output_path for s in executed)

        log.info("Operation completed", output=artifact.public_path, kind=artifact.kind.value)
        return {
            "success": True,
            "operation": kind.value,
            "output": artifact.to_response(),
            "message": f"{kind.value} completed successfully",
        }

    async def probe_media(self, path: Any) -> Dict[str, Any]:
        """Standalone media information lookup."""
        full_path = self.workspace.resolve_input(path, field="path")
        probe = await self.prober.probe(full_path)
        return probe_response(probe, full_path)

    def _resolve_paths(self, strategy: OperationStrategy, options: Any) -> Dict[str, Any]:
        paths: Dict[str, Any] = {}
        for name in strategy.path_options:
            value = getattr(options, name)
            if value is None:
                continue
            field = to_camel(name)
            if isinstance(value, (list, tuple)):
                paths[name] = [self.workspace.resolve_input(v, field=field) for v in value]
            else:
                paths[name] = self.workspace.resolve_input(value, field=field)
        return paths

    async def _probe_inputs(
        self, strategy: OperationStrategy, primary: Path, paths: Dict[str, Any]
    ) -> Dict[Path, MediaProbe]:
        if strategy.probe_scope == ProbeScope.NONE:
            return {}
        if strategy.probe_scope == ProbeScope.PRIMARY:
            targets = [primary]
        else:
            targets = []
            for value in paths.values():
                targets.extend(value if isinstance(value, list) else [value])
        unique = list(dict.fromkeys(targets))
        results = await asyncio.gather(*(self.prober.probe(path) for path in unique))
        return dict(zip(unique, results))

    async def _run(self, spec: PipelineSpec) -> ExecutionResult:
        if spec.output_kind == OutputKind.FRAME_DIRECTORY:
            spec.output_path.mkdir(parents=True, exist_ok=True)
        result = await self.executor.execute(spec)
        if not result.exit_ok:
            if result.timed_out:
                message = f"{spec.label} timed out after {self.executor.timeout_for(spec):.0f} seconds"
            else:
                message = f"{spec.label} failed with exit code {result.return_code}"
            raise ExecutionFailure(message, details=result.log_tail(), timed_out=result.timed_out)
        return result

    def _remove(self, paths) -> None:
        for path in paths:
            try:
                if path.is_dir():
                    shutil.rmtree(path)
                else:
                    path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Cleanup failed", path=str(path), error=str(e))
            else:
                logger.debug("Removed", path=str(path))
