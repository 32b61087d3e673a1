"""
Strategies that mostly re-encode: convert, compress, gif, extract-frames.
"""
from pipeline.compiler.base import CompileContext, format_number, format_seconds, single_input
from pipeline.models import OutputKind, PipelineSpec


def compile_convert(ctx: CompileContext) -> PipelineSpec:
    """Re-wrap into another container; the format picks default codecs
    unless a video codec is given."""
    opts = ctx.options
    builder = single_input(ctx)
    if opts.codec:
        builder.add('-c:v', opts.codec)
    return builder.build(ctx.workspace.new_output_path("converted", opts.format))


def compile_compress(ctx: CompileContext) -> PipelineSpec:
    opts = ctx.options
    builder = single_input(ctx)
    builder.add('-c:v', 'libx264', '-crf', str(opts.crf), '-preset', opts.preset)
    if opts.max_bitrate:
        builder.add('-maxrate', f"{opts.max_bitrate}k", '-bufsize', f"{opts.max_bitrate * 2}k")
    builder.add('-c:a', 'aac', '-b:a', '128k')
    return builder.build(ctx.workspace.new_output_path("compressed", opts.format))


def gif_filter_graph(fps: float, width: int) -> str:
    """Sample, then split the stream so one branch builds the palette and
    the other is encoded with it."""
    return (
        f"[0:v]fps={format_number(fps)},scale={width}:-1:flags=lanczos,split[s0][s1];"
        f"[s0]palettegen[p];"
        f"[s1][p]paletteuse[g]"
    )


def compile_gif(ctx: CompileContext) -> PipelineSpec:
    opts = ctx.options
    builder = single_input(ctx)
    if opts.start_time:
        builder.add('-ss', format_seconds(opts.start_time))
    if opts.duration:
        builder.add('-t', format_seconds(opts.duration))
    builder.filter_complex(gif_filter_graph(opts.fps, opts.width), ["[g]"])
    builder.add('-loop', str(opts.loop))
    return builder.build(ctx.workspace.new_output_path("animation", "gif"))


def compile_extract_frames(ctx: CompileContext) -> PipelineSpec:
    """Write numbered stills into a fresh directory."""
    opts = ctx.options
    frames_dir = ctx.workspace.new_frames_dir()
    builder = single_input(ctx)
    if opts.start_time:
        builder.add('-ss', format_seconds(opts.start_time))
    if opts.duration:
        builder.add('-t', format_seconds(opts.duration))
    builder.video_filter(f"fps={format_number(opts.fps)}")
    return builder.build(
        frames_dir,
        output_kind=OutputKind.FRAME_DIRECTORY,
        output_target=str(frames_dir / f"frame_%04d.{opts.format}"),
    )
