"""
Health check endpoints
"""
import asyncio
import shutil
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends
import structlog

from api.config import settings
from api.dependencies import get_dispatcher
from pipeline.dispatcher import RequestDispatcher
from pipeline.models import OperationKind

logger = structlog.get_logger()
router = APIRouter()


async def _binary_status(binary: str) -> Dict[str, Any]:
    """Check an engine binary answers ``-version``."""
    if shutil.which(binary) is None:
        return {"status": "unhealthy", "error": f"{binary} not found"}
    try:
        process = await asyncio.create_subprocess_exec(
            binary, "-version",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=5)
    except (OSError, asyncio.TimeoutError) as e:
        return {"status": "unhealthy", "error": str(e) or type(e).__name__}
    if process.returncode != 0:
        return {"status": "unhealthy", "error": f"exit code {process.returncode}"}
    return {"status": "healthy", "version": stdout.decode(errors="replace").split("\n")[0]}


@router.get("/health")
async def health_check(
    dispatcher: RequestDispatcher = Depends(get_dispatcher),
) -> Dict[str, Any]:
    """
    Health check with engine and workspace status.
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.VERSION,
        "components": {
            "ffmpeg": await _binary_status(settings.FFMPEG_PATH),
            "ffprobe": await _binary_status(settings.FFPROBE_PATH),
        },
    }

    output_dir = dispatcher.workspace.output_dir
    health_status["components"]["workspace"] = {
        "status": "healthy" if output_dir.is_dir() else "unhealthy",
        "output_dir": str(output_dir),
    }

    if any(c["status"] != "healthy" for c in health_status["components"].values()):
        health_status["status"] = "degraded"
        logger.warning("Health check degraded", components=health_status["components"])
    return health_status


@router.get("/capabilities")
async def get_capabilities() -> Dict[str, Any]:
    """
    Get supported operations and execution limits.
    """
    return {
        "version": settings.VERSION,
        "operations": OperationKind.values(),
        "limits": {
            "standard_timeout_seconds": settings.STANDARD_TIMEOUT_SECONDS,
            "extended_timeout_seconds": settings.EXTENDED_TIMEOUT_SECONDS,
            "max_captured_output_bytes": settings.MAX_CAPTURED_OUTPUT_BYTES,
        },
    }
