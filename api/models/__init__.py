"""
API request and response models
"""
from .operation import (
    AudioInfo,
    OperationsResponse,
    ProbeResponse,
    ProcessRequest,
    ProcessResponse,
    VideoInfo,
)

__all__ = [
    "AudioInfo",
    "OperationsResponse",
    "ProbeResponse",
    "ProcessRequest",
    "ProcessResponse",
    "VideoInfo",
]
