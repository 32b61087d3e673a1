"""
Strategies that change the timeline: trim, merge, speed, reverse.
"""
from typing import List

import structlog

from pipeline.compiler.base import (
    CommandBuilder,
    CompileContext,
    format_number,
    format_seconds,
    single_input,
)
from pipeline.errors import RequestShapeError, ValidationError
from pipeline.models import PipelineSpec, TimeoutClass

logger = structlog.get_logger()

ACCURATE_TRIM_CRF = 18
MERGE_CRF = 18
MERGE_AUDIO_RATE = 48000


def compile_trim(ctx: CompileContext) -> PipelineSpec:
    """Cut a segment starting at ``startTime``.

    Accurate mode re-encodes so the cut lands on the exact frame. Fast mode
    stream-copies, which can only start on a keyframe, so the first few frames
    may be off; timestamps are shifted to zero to avoid negative values.
    """
    opts = ctx.options
    if opts.duration is not None and opts.end_time is not None:
        raise RequestShapeError(
            "Supply either duration or endTime for trim, not both", field="duration"
        )
    if opts.duration is None and opts.end_time is None:
        raise RequestShapeError(
            "Either duration or endTime is required for trim", field="duration"
        )

    if opts.duration is not None:
        length = opts.duration
    else:
        if opts.end_time <= opts.start_time:
            raise RequestShapeError("endTime must be after startTime", field="endTime")
        length = opts.end_time - opts.start_time

    builder = CommandBuilder(ctx.kind)
    builder.add_input(ctx.primary_input, '-ss', format_seconds(opts.start_time))
    builder.add('-t', format_seconds(length))

    if opts.accurate:
        builder.add(
            '-c:v', 'libx264', '-preset', 'fast', '-crf', str(ACCURATE_TRIM_CRF),
            '-c:a', 'aac', '-b:a', '192k',
        )
    else:
        builder.add('-c', 'copy', '-avoid_negative_ts', 'make_zero')

    return builder.build(ctx.workspace.new_output_path("trimmed", opts.format))


def compile_merge(ctx: CompileContext) -> PipelineSpec:
    """Concatenate inputs in request order at a common resolution.

    Every input is scaled to fit the target box and letterboxed, so mixed
    resolutions never break concatenation. Audio is kept only when every
    input has an audio stream; otherwise the output is video-only.
    """
    opts = ctx.options
    inputs = ctx.path("input_paths")
    probes = [ctx.probe_of(path) for path in inputs]

    for client_path, probe in zip(opts.input_paths, probes):
        if not probe.has_video:
            raise ValidationError(
                f"Merge input has no video stream: {client_path}", field="inputPaths"
            )

    all_have_audio = all(probe.has_audio for probe in probes)
    width, height = opts.target_width, opts.target_height
    count = len(inputs)

    builder = CommandBuilder(ctx.kind)
    for path in inputs:
        builder.add_input(path)

    graph = [
        f"[{i}:v:0]scale={width}:{height}:force_original_aspect_ratio=decrease,"
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:black,setsar=1[v{i}]"
        for i in range(count)
    ]
    graph.append("".join(f"[v{i}]" for i in range(count)) + f"concat=n={count}:v=1:a=0[outv]")
    maps = ["[outv]"]

    if all_have_audio:
        graph.extend(
            f"[{i}:a:0]aformat=sample_rates={MERGE_AUDIO_RATE}:channel_layouts=stereo[a{i}]"
            for i in range(count)
        )
        graph.append("".join(f"[a{i}]" for i in range(count)) + f"concat=n={count}:v=0:a=1[outa]")
        maps.append("[outa]")

    builder.filter_complex(";".join(graph), maps)
    builder.add('-c:v', 'libx264', '-preset', 'fast', '-crf', str(MERGE_CRF))
    if all_have_audio:
        builder.add('-c:a', 'aac', '-b:a', '192k')
    else:
        builder.add('-an')

    logger.info(
        "Merge planned",
        inputs=count,
        keep_audio=all_have_audio,
        source_dimensions=[(p.video.width, p.video.height) for p in probes],
        target=(width, height),
    )
    return builder.build(
        ctx.workspace.new_output_path("merged", opts.format),
        timeout_class=TimeoutClass.EXTENDED,
    )


def atempo_chain(factor: float) -> List[str]:
    """Split a tempo factor into ``atempo`` stages each within [0.5, 2.0]."""
    stages = []
    remaining = factor
    while remaining > 2.0:
        stages.append("atempo=2")
        remaining /= 2.0
    while remaining < 0.5:
        stages.append("atempo=0.5")
        remaining /= 0.5
    stages.append(f"atempo={format_number(remaining)}")
    return stages


def compile_speed(ctx: CompileContext) -> PipelineSpec:
    opts = ctx.options
    video = f"setpts=PTS/{format_number(opts.video_speed)}"
    builder = single_input(ctx)

    if opts.audio_speed != 1:
        audio = ",".join(atempo_chain(opts.audio_speed))
        builder.filter_complex(f"[0:v]{video}[v];[0:a]{audio}[a]", ["[v]", "[a]"])
    else:
        # identity audio factor drops the audio track
        builder.video_filter(video).add('-an')

    return builder.build(ctx.workspace.new_output_path("speed", opts.format))


def compile_reverse(ctx: CompileContext) -> PipelineSpec:
    opts = ctx.options
    builder = single_input(ctx).video_filter("reverse")
    if opts.reverse_audio:
        builder.add('-af', 'areverse')
    else:
        builder.add('-an')
    return builder.build(
        ctx.workspace.new_output_path("reversed", opts.format),
        timeout_class=TimeoutClass.EXTENDED,
    )
