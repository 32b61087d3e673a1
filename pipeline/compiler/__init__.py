"""
Pipeline compiler: a closed map from operation kind to compile strategy.

Each strategy is a pure function of a ``CompileContext`` returning a
``PipelineSpec``. Strategies that need a second pass (stabilize) declare a
``follow_up`` that is only invoked with the first pass's result.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from pipeline.compiler.audio import (
    compile_add_audio,
    compile_extract_audio,
    compile_mute,
    compile_volume,
)
from pipeline.compiler.base import CompileContext, ProbeScope, escape_value
from pipeline.compiler.effects import (
    compile_blur,
    compile_filter,
    compile_text,
    compile_watermark,
)
from pipeline.compiler.encoding import (
    compile_compress,
    compile_convert,
    compile_extract_frames,
    compile_gif,
)
from pipeline.compiler.geometry import compile_crop, compile_resize, compile_rotate
from pipeline.compiler.stabilize import compile_stabilize_analysis, compile_stabilize_transform
from pipeline.compiler.timeline import compile_merge, compile_reverse, compile_speed, compile_trim
from pipeline.errors import ExecutionFailure
from pipeline.models import ExecutionResult, OperationKind, PipelineSpec

CompileFn = Callable[[CompileContext], PipelineSpec]
FollowUpFn = Callable[[CompileContext, PipelineSpec, ExecutionResult], PipelineSpec]


@dataclass(frozen=True)
class OperationStrategy:
    """How one operation kind is compiled."""
    compile: CompileFn
    probe_scope: ProbeScope = ProbeScope.NONE
    # option attributes naming media files that must exist under the media root
    path_options: Tuple[str, ...] = ()
    follow_up: Optional[FollowUpFn] = None


STRATEGIES: Dict[OperationKind, OperationStrategy] = {
    OperationKind.TRIM: OperationStrategy(compile_trim),
    OperationKind.MERGE: OperationStrategy(
        compile_merge, ProbeScope.ALL_INPUTS, path_options=("input_paths",)
    ),
    OperationKind.CONVERT: OperationStrategy(compile_convert),
    OperationKind.RESIZE: OperationStrategy(compile_resize),
    OperationKind.CROP: OperationStrategy(compile_crop),
    OperationKind.SPEED: OperationStrategy(compile_speed),
    OperationKind.FILTER: OperationStrategy(compile_filter),
    OperationKind.EXTRACT_AUDIO: OperationStrategy(compile_extract_audio, ProbeScope.PRIMARY),
    OperationKind.ADD_AUDIO: OperationStrategy(compile_add_audio, path_options=("audio_path",)),
    OperationKind.MUTE: OperationStrategy(compile_mute),
    OperationKind.VOLUME: OperationStrategy(compile_volume),
    OperationKind.WATERMARK: OperationStrategy(
        compile_watermark, ProbeScope.PRIMARY, path_options=("image_path",)
    ),
    OperationKind.TEXT: OperationStrategy(compile_text, path_options=("fontfile",)),
    OperationKind.ROTATE: OperationStrategy(compile_rotate),
    OperationKind.EXTRACT_FRAMES: OperationStrategy(compile_extract_frames),
    OperationKind.GIF: OperationStrategy(compile_gif),
    OperationKind.COMPRESS: OperationStrategy(compile_compress),
    OperationKind.REVERSE: OperationStrategy(compile_reverse),
    OperationKind.BLUR: OperationStrategy(compile_blur),
    OperationKind.STABILIZE: OperationStrategy(
        compile_stabilize_analysis, follow_up=compile_stabilize_transform
    ),
}

_missing = set(OperationKind) - set(STRATEGIES)
if _missing:
    raise RuntimeError(f"No compile strategy for: {sorted(k.value for k in _missing)}")


class PipelineCompiler:
    """Dispatches compilation to the strategy registered for a kind."""

    def __init__(self, strategies: Optional[Dict[OperationKind, OperationStrategy]] = None):
        self.strategies = strategies or STRATEGIES

    def strategy(self, kind: OperationKind) -> OperationStrategy:
        return self.strategies[kind]

    def compile(self, ctx: CompileContext) -> PipelineSpec:
        return self.strategy(ctx.kind).compile(ctx)

    def compile_next(
        self, ctx: CompileContext, previous: PipelineSpec, result: ExecutionResult
    ) -> Optional[PipelineSpec]:
        """Second pass for multi-pass kinds, or ``None``."""
        follow_up = self.strategy(ctx.kind).follow_up
        if follow_up is None:
            return None
        if not result.exit_ok:
            raise ExecutionFailure(
                f"{previous.label} failed; next pass not compiled",
                details=result.log_tail(),
                timed_out=result.timed_out,
            )
        return follow_up(ctx, previous, result)


__all__ = [
    "CompileContext",
    "OperationStrategy",
    "PipelineCompiler",
    "ProbeScope",
    "STRATEGIES",
    "escape_value",
]
