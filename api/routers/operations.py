"""
Operation endpoints - process, probe and list operations
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
import structlog

from api.dependencies import get_dispatcher, get_metrics
from api.models.operation import OperationsResponse, ProbeResponse, ProcessRequest, ProcessResponse
from api.services.metrics import GatewayMetricsService
from pipeline.dispatcher import RequestDispatcher
from pipeline.errors import GatewayError
from pipeline.models import OperationKind
from pipeline.schemas import describe_schemas

logger = structlog.get_logger()
router = APIRouter()


@router.post("/process", response_model=ProcessResponse)
async def process_media(
    request: ProcessRequest,
    dispatcher: RequestDispatcher = Depends(get_dispatcher),
) -> Dict[str, Any]:
    """
    Run one edit operation synchronously.

    The response describes the produced artifact: a file (with its size) or,
    for ``extract-frames``, a directory of numbered stills.
    """
    logger.info("Process request", operation=request.operation, input_path=request.input_path)
    return await dispatcher.process(request.operation, request.input_path, request.options)


@router.get("/probe", response_model=ProbeResponse)
async def probe_media(
    path: str = Query(..., min_length=1, description="Media path relative to the media root"),
    dispatcher: RequestDispatcher = Depends(get_dispatcher),
    metrics: GatewayMetricsService = Depends(get_metrics),
) -> Dict[str, Any]:
    """Return container, stream and duration information for a media file."""
    try:
        info = await dispatcher.probe_media(path)
    except GatewayError as e:
        metrics.record_probe(e.code.lower())
        raise
    metrics.record_probe("success")
    return info


@router.get("/operations", response_model=OperationsResponse)
async def list_operations() -> Dict[str, Any]:
    """List supported operations with the JSON schema of their options."""
    return {
        "operations": OperationKind.values(),
        "schemas": describe_schemas(),
    }
