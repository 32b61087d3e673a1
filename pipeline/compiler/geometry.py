"""
Strategies that change frame geometry: resize, crop, rotate.
"""
import math

from pipeline.compiler.base import CompileContext, format_number, single_input
from pipeline.errors import RequestShapeError
from pipeline.models import PipelineSpec

TRANSPOSE_BY_ANGLE = {
    90: "transpose=1",
    180: "transpose=1,transpose=1",
    270: "transpose=2",
}
FLIP_FILTERS = {
    "horizontal": "hflip",
    "vertical": "vflip",
}


def resize_filter(width, height, scale) -> str:
    """Pick the single sizing mode the options describe."""
    if scale is not None:
        if width is not None or height is not None:
            raise RequestShapeError(
                "scale cannot be combined with width or height", field="scale"
            )
        factor = format_number(scale)
        # -2 style rounding keeps dimensions even for yuv420p encoders
        return f"scale=trunc(iw*{factor}/2)*2:trunc(ih*{factor}/2)*2"
    if width is not None and height is not None:
        return f"scale={width}:{height}"
    if width is not None:
        return f"scale={width}:-2"
    if height is not None:
        return f"scale=-2:{height}"
    raise RequestShapeError("Width, height, or scale is required for resize", field="width")


def compile_resize(ctx: CompileContext) -> PipelineSpec:
    opts = ctx.options
    chain = resize_filter(opts.width, opts.height, opts.scale)
    builder = single_input(ctx).video_filter(chain)
    return builder.build(ctx.workspace.new_output_path("resized", opts.format))


def compile_crop(ctx: CompileContext) -> PipelineSpec:
    opts = ctx.options
    chain = f"crop={opts.crop_width}:{opts.crop_height}:{opts.x}:{opts.y}"
    builder = single_input(ctx).video_filter(chain)
    return builder.build(ctx.workspace.new_output_path("cropped", opts.format))


def rotate_filter(angle: float, flip=None) -> str:
    """Flip wins over angle; right angles use transposes, anything else
    falls back to a continuous rotation in radians."""
    if flip:
        return FLIP_FILTERS[flip]
    normalized = angle % 360
    if normalized in TRANSPOSE_BY_ANGLE:
        return TRANSPOSE_BY_ANGLE[int(normalized)]
    return f"rotate={format_number(math.radians(normalized))}"


def compile_rotate(ctx: CompileContext) -> PipelineSpec:
    opts = ctx.options
    builder = single_input(ctx).video_filter(rotate_filter(opts.angle, opts.flip))
    return builder.build(ctx.workspace.new_output_path("rotated", opts.format))
