"""
Option schema registry.

Each operation kind owns a pydantic model describing its options: which are
required, their types, allowed values and defaults. Wire names are camelCase
(``startTime``, ``cropWidth``); attributes are snake_case. Validation happens
before any input is probed or any pipeline is compiled.
"""
import re
from typing import Annotated, Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from pipeline.errors import ValidationError
from pipeline.models import OperationKind

TIMECODE_REGEX = re.compile(r'^(?:(\d+):)?(\d{1,2}):(\d{1,2}(?:\.\d+)?)$')
BITRATE_REGEX = re.compile(r'^(\d+(?:\.\d+)?)\s*([kKmM]?)$')
IDENTIFIER_PATTERN = r'^[A-Za-z_][A-Za-z0-9_]*$'
CODEC_PATTERN = r'^[a-zA-Z0-9\-_]+$'
COLOR_PATTERN = r'^[A-Za-z0-9#@.]+$'

ContainerFormat = Literal["mp4", "mov", "mkv", "webm", "avi", "m4v", "ts", "flv", "mpg"]
ConvertFormat = Literal[
    "mp4", "mov", "mkv", "webm", "avi", "m4v", "ts", "flv", "mpg",
    "gif", "mp3", "wav", "aac", "m4a", "flac", "ogg", "opus",
]
AudioFormat = Literal["mp3", "aac", "m4a", "ogg", "opus", "flac", "wav"]
ImageFormat = Literal["jpg", "png", "bmp", "webp"]
WatermarkPosition = Literal["topleft", "topright", "bottomleft", "bottomright", "center"]
X264Preset = Literal[
    "ultrafast", "superfast", "veryfast", "faster", "fast",
    "medium", "slow", "slower", "veryslow",
]


def parse_timecode(value: Any) -> Any:
    """Accept seconds (number or numeric string) or [HH:]MM:SS[.ms]."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("time value must be seconds or HH:MM:SS")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return float(text)
        except ValueError:
            pass
        match = TIMECODE_REGEX.match(text)
        if match:
            hours, minutes, seconds = match.groups()
            return int(hours or 0) * 3600 + int(minutes) * 60 + float(seconds)
    raise ValueError("time value must be seconds or HH:MM:SS")


def parse_bitrate(value: Any) -> Any:
    """Normalize ``192k`` / ``2M`` / ``2000`` to integer kbps."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("bitrate must look like 192k, 2M or 2000")
    if isinstance(value, (int, float)):
        return int(value)
    match = BITRATE_REGEX.match(str(value).strip())
    if not match:
        raise ValueError("bitrate must look like 192k, 2M or 2000")
    amount, unit = match.groups()
    if unit.lower() == "m":
        return int(float(amount) * 1000)
    return int(float(amount))


def _stringify(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


Timecode = Annotated[float, BeforeValidator(parse_timecode), Field(ge=0)]
PositiveTimecode = Annotated[float, BeforeValidator(parse_timecode), Field(gt=0)]
Bitrate = Annotated[int, BeforeValidator(parse_bitrate), Field(gt=0)]
MediaPath = Annotated[str, Field(min_length=1)]
Expression = Annotated[str, BeforeValidator(_stringify), Field(min_length=1)]
Color = Annotated[str, Field(pattern=COLOR_PATTERN)]


class OperationOptions(BaseModel):
    """Base for all per-operation option models."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class VideoOutputOptions(OperationOptions):
    format: ContainerFormat = "mp4"


class TrimOptions(VideoOutputOptions):
    start_time: Timecode = 0.0
    duration: Optional[PositiveTimecode] = None
    end_time: Optional[Timecode] = None
    accurate: bool = True


class MergeOptions(VideoOutputOptions):
    input_paths: List[MediaPath] = Field(..., min_length=2)
    target_width: int = Field(1920, gt=0)
    target_height: int = Field(1080, gt=0)

    @field_validator("target_width", "target_height")
    @classmethod
    def _even_dimension(cls, value: int) -> int:
        if value % 2:
            raise ValueError("target dimensions must be even")
        return value


class ConvertOptions(OperationOptions):
    format: ConvertFormat = "mp4"
    codec: Optional[str] = Field(None, pattern=CODEC_PATTERN)


class ResizeOptions(VideoOutputOptions):
    width: Optional[int] = Field(None, gt=0)
    height: Optional[int] = Field(None, gt=0)
    scale: Optional[float] = Field(None, gt=0)


class CropOptions(VideoOutputOptions):
    crop_width: int = Field(..., gt=0)
    crop_height: int = Field(..., gt=0)
    x: int = Field(0, ge=0)
    y: int = Field(0, ge=0)


class SpeedOptions(VideoOutputOptions):
    video_speed: float = Field(1.0, ge=0.1, le=100)
    audio_speed: float = Field(1.0, ge=0.1, le=100)


class FilterInvocation(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., pattern=IDENTIFIER_PATTERN)
    params: Dict[str, Union[str, int, float]] = Field(default_factory=dict)

    @field_validator("params")
    @classmethod
    def _identifier_keys(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        for key in value:
            if not re.match(IDENTIFIER_PATTERN, key):
                raise ValueError(f"invalid filter parameter name: {key!r}")
        return value


class FilterOptions(VideoOutputOptions):
    filters: List[FilterInvocation] = Field(..., min_length=1)


class ExtractAudioOptions(OperationOptions):
    audio_format: AudioFormat = "mp3"
    bitrate: Bitrate = 192


class AddAudioOptions(VideoOutputOptions):
    audio_path: MediaPath
    replace_original: bool = True


class MuteOptions(VideoOutputOptions):
    pass


class VolumeOptions(VideoOutputOptions):
    level: float = Field(1.0, ge=0)


class WatermarkOptions(VideoOutputOptions):
    image_path: MediaPath
    position: WatermarkPosition = "topright"
    opacity: float = Field(0.5, ge=0, le=1)
    scale: float = Field(0.2, gt=0, le=1)


class TextOptions(VideoOutputOptions):
    text: str = Field(..., min_length=1)
    fontsize: int = Field(48, gt=0)
    fontcolor: Color = "white"
    x: Expression = "(w-text_w)/2"
    y: Expression = "h-th-20"
    fontfile: Optional[str] = None
    box: bool = False
    boxcolor: Color = "black@0.5"
    boxborderw: int = Field(5, ge=0)

    @field_validator("text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text must not be blank")
        return value


class RotateOptions(VideoOutputOptions):
    angle: float = 90
    flip: Optional[Literal["horizontal", "vertical"]] = None


class ExtractFramesOptions(OperationOptions):
    fps: float = Field(1.0, gt=0)
    format: ImageFormat = "jpg"
    start_time: Optional[Timecode] = None
    duration: Optional[PositiveTimecode] = None


class GifOptions(OperationOptions):
    fps: float = Field(10.0, gt=0, le=60)
    width: int = Field(480, gt=0)
    start_time: Optional[Timecode] = None
    duration: Optional[PositiveTimecode] = 5.0
    loop: int = Field(0, ge=-1)


class CompressOptions(VideoOutputOptions):
    crf: int = Field(28, ge=0, le=51)
    preset: X264Preset = "medium"
    max_bitrate: Optional[Bitrate] = None


class ReverseOptions(VideoOutputOptions):
    reverse_audio: bool = True


class BlurOptions(VideoOutputOptions):
    strength: int = Field(5, ge=1)


class StabilizeOptions(VideoOutputOptions):
    shakiness: int = Field(8, ge=1, le=10)
    accuracy: int = Field(9, ge=1, le=15)
    smoothing: int = Field(30, ge=0)
    zoom: float = Field(1.0, ge=-100, le=100)


OPTION_SCHEMAS: Dict[OperationKind, Type[OperationOptions]] = {
    OperationKind.TRIM: TrimOptions,
    OperationKind.MERGE: MergeOptions,
    OperationKind.CONVERT: ConvertOptions,
    OperationKind.RESIZE: ResizeOptions,
    OperationKind.CROP: CropOptions,
    OperationKind.SPEED: SpeedOptions,
    OperationKind.FILTER: FilterOptions,
    OperationKind.EXTRACT_AUDIO: ExtractAudioOptions,
    OperationKind.ADD_AUDIO: AddAudioOptions,
    OperationKind.MUTE: MuteOptions,
    OperationKind.VOLUME: VolumeOptions,
    OperationKind.WATERMARK: WatermarkOptions,
    OperationKind.TEXT: TextOptions,
    OperationKind.ROTATE: RotateOptions,
    OperationKind.EXTRACT_FRAMES: ExtractFramesOptions,
    OperationKind.GIF: GifOptions,
    OperationKind.COMPRESS: CompressOptions,
    OperationKind.REVERSE: ReverseOptions,
    OperationKind.BLUR: BlurOptions,
    OperationKind.STABILIZE: StabilizeOptions,
}

_missing = set(OperationKind) - set(OPTION_SCHEMAS)
if _missing:
    raise RuntimeError(f"No option schema for: {sorted(k.value for k in _missing)}")


def parse_kind(name: Any) -> OperationKind:
    """Map an operation name to its kind, listing valid kinds on failure."""
    if not name:
        raise ValidationError(
            "operation is required",
            field="operation",
            valid_operations=OperationKind.values(),
        )
    try:
        return OperationKind(name)
    except ValueError:
        raise ValidationError(
            f"Invalid operation: {name}",
            field="operation",
            valid_operations=OperationKind.values(),
        ) from None


def validate_options(kind: OperationKind, raw: Optional[Dict[str, Any]]) -> OperationOptions:
    """Validate raw options for ``kind``, applying coercion and defaults."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValidationError("options must be an object", field="options")

    schema = OPTION_SCHEMAS[kind]
    try:
        return schema.model_validate(raw)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or None
        raise ValidationError(
            f"Invalid option '{field}' for {kind.value}: {error['msg']}",
            field=field,
        ) from e


def describe_schemas() -> Dict[str, Dict[str, Any]]:
    """JSON schema of every operation's options, keyed by operation name."""
    return {
        kind.value: schema.model_json_schema(by_alias=True)
        for kind, schema in OPTION_SCHEMAS.items()
    }
