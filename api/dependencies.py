"""
FastAPI dependencies: the shared dispatcher and its collaborators.
"""
from functools import lru_cache
from typing import Optional

import structlog

from api.config import settings
from api.services.metrics import GatewayMetricsService
from pipeline.dispatcher import RequestDispatcher
from pipeline.executor import PipelineExecutor
from pipeline.probe import MediaProber
from pipeline.resolver import ArtifactResolver
from pipeline.workspace import MediaWorkspace

logger = structlog.get_logger()


@lru_cache()
def get_metrics() -> GatewayMetricsService:
    return GatewayMetricsService(enabled=settings.ENABLE_METRICS)


@lru_cache()
def get_workspace() -> MediaWorkspace:
    return MediaWorkspace(settings.MEDIA_ROOT, settings.OUTPUT_DIR)


def build_dispatcher(workspace: Optional[MediaWorkspace] = None, metrics=None) -> RequestDispatcher:
    """Wire a dispatcher from settings. Shared by the API and the CLI."""
    workspace = workspace or get_workspace()
    return RequestDispatcher(
        workspace=workspace,
        prober=MediaProber(settings.FFPROBE_PATH, timeout=settings.PROBE_TIMEOUT_SECONDS),
        executor=PipelineExecutor(
            settings.FFMPEG_PATH,
            standard_timeout=settings.STANDARD_TIMEOUT_SECONDS,
            extended_timeout=settings.EXTENDED_TIMEOUT_SECONDS,
            max_output_bytes=settings.MAX_CAPTURED_OUTPUT_BYTES,
        ),
        resolver=ArtifactResolver(workspace, preview_limit=settings.FRAME_PREVIEW_LIMIT),
        metrics=metrics,
    )


@lru_cache()
def get_dispatcher() -> RequestDispatcher:
    """Get the process-wide dispatcher dependency."""
    dispatcher = build_dispatcher(metrics=get_metrics())
    logger.debug("Dispatcher created", media_root=str(dispatcher.workspace.media_root))
    return dispatcher
