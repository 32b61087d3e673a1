"""
Data model shared by the prober, compiler, executor and resolver.
"""
from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, List, Optional


class OperationKind(str, Enum):
    """Closed set of supported edit operations."""
    TRIM = "trim"
    MERGE = "merge"
    CONVERT = "convert"
    RESIZE = "resize"
    CROP = "crop"
    SPEED = "speed"
    FILTER = "filter"
    EXTRACT_AUDIO = "extract-audio"
    ADD_AUDIO = "add-audio"
    MUTE = "mute"
    VOLUME = "volume"
    WATERMARK = "watermark"
    TEXT = "text"
    ROTATE = "rotate"
    EXTRACT_FRAMES = "extract-frames"
    GIF = "gif"
    COMPRESS = "compress"
    REVERSE = "reverse"
    BLUR = "blur"
    STABILIZE = "stabilize"

    @classmethod
    def values(cls) -> List[str]:
        return [kind.value for kind in cls]


class OutputKind(str, Enum):
    """What a pipeline writes at its output path."""
    FILE = "file"
    FRAME_DIRECTORY = "frame_directory"


class ArtifactKind(str, Enum):
    """Classification of a resolved artifact."""
    FILE = "file"
    AUDIO = "audio"
    FRAME_DIRECTORY = "frame_directory"


class TimeoutClass(str, Enum):
    """Execution ceiling class; long-running edits get the extended one."""
    STANDARD = "standard"
    EXTENDED = "extended"


@dataclass(frozen=True)
class OperationRequest:
    """A validated edit request."""
    kind: OperationKind
    primary_input: Path
    options: Any


@dataclass(frozen=True)
class VideoStreamInfo:
    codec: Optional[str]
    width: int
    height: int
    frame_rate: Optional[Fraction]
    pixel_format: Optional[str]

    @property
    def fps(self) -> Optional[float]:
        if self.frame_rate is None:
            return None
        return round(float(self.frame_rate), 3)


@dataclass(frozen=True)
class AudioStreamInfo:
    codec: Optional[str]
    sample_rate: Optional[int]
    channels: Optional[int]
    bitrate_bps: Optional[int]


@dataclass(frozen=True)
class MediaProbe:
    """Normalized result of probing one media file."""
    container_format: Optional[str]
    duration_seconds: float
    size_bytes: int
    bitrate_bps: int
    video: Optional[VideoStreamInfo] = None
    audio: Optional[AudioStreamInfo] = None

    @property
    def has_audio(self) -> bool:
        return self.audio is not None

    @property
    def has_video(self) -> bool:
        return self.video is not None


@dataclass
class PipelineSpec:
    """One engine invocation: argument vector plus its output contract."""
    kind: OperationKind
    arguments: List[str]
    inputs: List[Path]
    output_path: Path
    output_kind: OutputKind = OutputKind.FILE
    filter_graph: Optional[str] = None
    auxiliary_artifacts: List[Path] = field(default_factory=list)
    timeout_class: TimeoutClass = TimeoutClass.STANDARD
    label: str = ""

    @property
    def has_audio_output(self) -> bool:
        """False when the argument vector explicitly drops audio."""
        return "-an" not in self.arguments


@dataclass
class ExecutionResult:
    """Outcome of running one pipeline."""
    exit_ok: bool
    return_code: Optional[int]
    stdout: str
    stderr: str
    timed_out: bool = False
    elapsed_seconds: float = 0.0
    truncated: bool = False
    stats: Dict[str, Any] = field(default_factory=dict)

    def log_tail(self, lines: int = 20) -> str:
        """Last lines of the engine log, for error reporting."""
        return "\n".join(self.stderr.strip().splitlines()[-lines:])


@dataclass
class ArtifactDescriptor:
    """Human-facing description of what a pipeline produced."""
    path: Path
    public_path: str
    kind: ArtifactKind
    size_bytes: Optional[int] = None
    frame_count: Optional[int] = None
    sample_entries: List[str] = field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        if self.kind == ArtifactKind.FRAME_DIRECTORY:
            return {
                "framesCount": self.frame_count,
                "path": self.public_path,
                "frames": self.sample_entries,
            }
        return {
            "size": f"{(self.size_bytes or 0) / (1024 * 1024):.2f} MB",
            "sizeBytes": self.size_bytes,
            "path": self.public_path,
            "kind": self.kind.value,
        }
