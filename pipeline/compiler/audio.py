"""
Strategies that work on the audio track: extract-audio, add-audio, mute,
volume.
"""
from pipeline.compiler.base import CommandBuilder, CompileContext, format_number, single_input
from pipeline.errors import ValidationError
from pipeline.models import PipelineSpec

# target format -> (encoder, source codecs that can be stream-copied into it)
AUDIO_ENCODERS = {
    "mp3": ("libmp3lame", {"mp3"}),
    "aac": ("aac", {"aac"}),
    "m4a": ("aac", {"aac", "alac"}),
    "ogg": ("libvorbis", {"vorbis"}),
    "opus": ("libopus", {"opus"}),
    "flac": ("flac", {"flac"}),
    "wav": ("pcm_s16le", {"pcm_s16le"}),
}
LOSSLESS_FORMATS = {"flac", "wav"}


def compile_extract_audio(ctx: CompileContext) -> PipelineSpec:
    """Demux the first audio track, copying it when the target allows."""
    opts = ctx.options
    probe = ctx.probe_of(ctx.primary_input)
    if not probe.has_audio:
        raise ValidationError("Input has no audio stream to extract", field="inputPath")

    encoder, copyable = AUDIO_ENCODERS[opts.audio_format]
    builder = single_input(ctx).add('-vn', '-map', '0:a:0')
    if probe.audio.codec in copyable:
        builder.add('-c:a', 'copy')
    else:
        builder.add('-c:a', encoder)
        if opts.audio_format not in LOSSLESS_FORMATS:
            builder.add('-b:a', f"{opts.bitrate}k")

    return builder.build(ctx.workspace.new_output_path("audio", opts.audio_format))


def compile_add_audio(ctx: CompileContext) -> PipelineSpec:
    """Replace the audio outright, or mix it with the original track."""
    opts = ctx.options
    builder = CommandBuilder(ctx.kind)
    builder.add_input(ctx.primary_input)
    builder.add_input(ctx.path("audio_path"))

    if opts.replace_original:
        builder.add('-map', '0:v:0', '-map', '1:a:0', '-c:v', 'copy', '-shortest')
    else:
        builder.filter_complex("[0:a][1:a]amix=inputs=2:duration=first[a]", ["0:v", "[a]"])
        builder.add('-c:v', 'copy')

    return builder.build(ctx.workspace.new_output_path("with-audio", opts.format))


def compile_mute(ctx: CompileContext) -> PipelineSpec:
    opts = ctx.options
    builder = single_input(ctx).add('-an', '-c:v', 'copy')
    return builder.build(ctx.workspace.new_output_path("muted", opts.format))


def compile_volume(ctx: CompileContext) -> PipelineSpec:
    opts = ctx.options
    builder = single_input(ctx).add('-af', f"volume={format_number(opts.level)}", '-c:v', 'copy')
    return builder.build(ctx.workspace.new_output_path("volume", opts.format))
