"""
Strategies that draw on or filter the picture: filter, blur, text, watermark.
"""
from typing import Any

from pipeline.compiler.base import (
    CommandBuilder,
    CompileContext,
    escape_value,
    format_number,
    single_input,
)
from pipeline.errors import ValidationError
from pipeline.models import PipelineSpec

WATERMARK_POSITIONS = {
    "topleft": "10:10",
    "topright": "main_w-overlay_w-10:10",
    "bottomleft": "10:main_h-overlay_h-10",
    "bottomright": "main_w-overlay_w-10:main_h-overlay_h-10",
    "center": "(main_w-overlay_w)/2:(main_h-overlay_h)/2",
}


def _param_value(value: Any) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return format_number(value)
    return escape_value(value)


def filter_invocation(invocation) -> str:
    """``name`` or ``name=k=v:k=v``; the name itself is forwarded as given."""
    if not invocation.params:
        return invocation.name
    params = ":".join(
        f"{key}={_param_value(value)}" for key, value in invocation.params.items()
    )
    return f"{invocation.name}={params}"


def compile_filter(ctx: CompileContext) -> PipelineSpec:
    opts = ctx.options
    chain = ",".join(filter_invocation(invocation) for invocation in opts.filters)
    builder = single_input(ctx).video_filter(chain)
    return builder.build(ctx.workspace.new_output_path("filtered", opts.format))


def compile_blur(ctx: CompileContext) -> PipelineSpec:
    opts = ctx.options
    builder = single_input(ctx).video_filter(f"boxblur={opts.strength}:{opts.strength}")
    return builder.build(ctx.workspace.new_output_path("blurred", opts.format))


def drawtext_filter(opts, fontfile=None) -> str:
    parts = [
        f"text={escape_value(opts.text)}",
        "expansion=none",
        f"fontsize={opts.fontsize}",
        f"fontcolor={escape_value(opts.fontcolor)}",
        f"x={escape_value(opts.x)}",
        f"y={escape_value(opts.y)}",
    ]
    if fontfile is not None:
        parts.append(f"fontfile={escape_value(fontfile)}")
    if opts.box:
        parts.extend([
            "box=1",
            f"boxcolor={escape_value(opts.boxcolor)}",
            f"boxborderw={opts.boxborderw}",
        ])
    return "drawtext=" + ":".join(parts)


def compile_text(ctx: CompileContext) -> PipelineSpec:
    opts = ctx.options
    chain = drawtext_filter(opts, ctx.paths.get("fontfile"))
    builder = single_input(ctx).video_filter(chain)
    return builder.build(ctx.workspace.new_output_path("text", opts.format))


def compile_watermark(ctx: CompileContext) -> PipelineSpec:
    """Overlay an image sized relative to the primary video's width."""
    opts = ctx.options
    primary = ctx.probe_of(ctx.primary_input)
    if not primary.has_video:
        raise ValidationError("Watermark input has no video stream", field="inputPath")

    mark_width = max(1, round(primary.video.width * opts.scale))
    position = WATERMARK_POSITIONS[opts.position]

    builder = CommandBuilder(ctx.kind)
    builder.add_input(ctx.primary_input)
    builder.add_input(ctx.path("image_path"))
    graph = (
        f"[1:v]scale={mark_width}:-1,format=rgba,"
        f"colorchannelmixer=aa={format_number(opts.opacity)}[wm];"
        f"[0:v][wm]overlay={position}[v]"
    )
    builder.filter_complex(graph, ["[v]", "0:a?"]).add('-c:a', 'copy')
    return builder.build(ctx.workspace.new_output_path("watermarked", opts.format))
