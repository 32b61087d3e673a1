"""
Operation-to-pipeline compiler and executor for FFmpeg media edits.
"""
from pipeline.dispatcher import RequestDispatcher
from pipeline.models import OperationKind

__all__ = ["RequestDispatcher", "OperationKind"]
