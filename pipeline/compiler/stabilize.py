"""
Two-pass stabilization with libvidstab.

Pass one analyzes motion into a transform trace and writes no video. Pass
two reads the trace, applies the inverse transform and sharpens slightly.
Pass two is only compiled from a successful pass-one result.
"""
from pipeline.compiler.base import CompileContext, escape_value, format_number, single_input
from pipeline.errors import ExecutionFailure
from pipeline.models import ExecutionResult, PipelineSpec, TimeoutClass

DETECT_STEPSIZE = 6
SHARPEN = "unsharp=5:5:0.8:3:3:0.4"


def compile_stabilize_analysis(ctx: CompileContext) -> PipelineSpec:
    opts = ctx.options
    trace = ctx.workspace.new_auxiliary_path("transforms", "trf")
    chain = (
        f"vidstabdetect=stepsize={DETECT_STEPSIZE}:shakiness={opts.shakiness}"
        f":accuracy={opts.accuracy}:result={escape_value(trace)}"
    )
    builder = single_input(ctx).video_filter(chain).add('-f', 'null')
    return builder.build(
        trace,
        auxiliary=(trace,),
        timeout_class=TimeoutClass.EXTENDED,
        label="stabilize:analyze",
        output_target="-",
    )


def compile_stabilize_transform(
    ctx: CompileContext, analysis: PipelineSpec, result: ExecutionResult
) -> PipelineSpec:
    if not result.exit_ok:
        raise ExecutionFailure(
            "Stabilization analysis did not succeed; transform pass not compiled",
            details=result.log_tail(),
            timed_out=result.timed_out,
        )
    opts = ctx.options
    trace = analysis.output_path
    chain = (
        f"vidstabtransform=input={escape_value(trace)}:zoom={format_number(opts.zoom)}"
        f":smoothing={opts.smoothing},{SHARPEN}"
    )
    builder = single_input(ctx).video_filter(chain)
    return builder.build(
        ctx.workspace.new_output_path("stabilized", opts.format),
        auxiliary=(trace,),
        timeout_class=TimeoutClass.EXTENDED,
        label="stabilize:transform",
    )
