"""
Request and response models for the operation endpoints.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProcessRequest(BaseModel):
    """Body of ``POST /process``.

    Fields are optional here so that a missing operation or input path is
    reported by the pipeline with its own error (and the list of valid
    operations) rather than a generic schema error.
    """
    model_config = ConfigDict(populate_by_name=True)

    operation: Optional[str] = None
    input_path: Optional[str] = Field(None, alias="inputPath")
    options: Optional[Dict[str, Any]] = Field(default_factory=dict)


class ProcessResponse(BaseModel):
    success: bool = True
    operation: str
    output: Dict[str, Any]
    message: str


class VideoInfo(BaseModel):
    codec: Optional[str] = None
    width: int
    height: int
    fps: Optional[float] = None
    frameRate: Optional[str] = None
    pixelFormat: Optional[str] = None


class AudioInfo(BaseModel):
    codec: Optional[str] = None
    sampleRate: Optional[int] = None
    channels: Optional[int] = None
    bitrateBps: Optional[int] = None


class ProbeResponse(BaseModel):
    format: Optional[str] = None
    durationSeconds: float
    size: str
    sizeBytes: int
    bitrate: str
    bitrateBps: int
    video: Optional[VideoInfo] = None
    audio: Optional[AudioInfo] = None


class OperationsResponse(BaseModel):
    operations: List[str]
    schemas: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
