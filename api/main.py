"""
ffgate - Main Application
"""
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from prometheus_client import make_asgi_app
import structlog

from api.config import settings
from api.dependencies import get_dispatcher, get_metrics
from api.routers import health, operations
from api.utils.logger import setup_logging
from api.utils.error_handlers import (
    gateway_exception_handler, validation_exception_handler,
    http_exception_handler, general_exception_handler
)
from pipeline.errors import GatewayError

# Setup structured logging
setup_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    logger.info("Starting ffgate API", version=settings.VERSION)

    # Output directory is created once here, never per request
    dispatcher = get_dispatcher()
    dispatcher.workspace.prepare()

    logger.info(
        "Configuration loaded",
        api_host=settings.API_HOST,
        api_port=settings.API_PORT,
        workers=settings.API_WORKERS,
        ffmpeg=settings.FFMPEG_PATH,
        ffprobe=settings.FFPROBE_PATH,
        media_root=str(dispatcher.workspace.media_root),
    )

    yield

    logger.info("Shutting down ffgate API")


# Create FastAPI application
app = FastAPI(
    title="ffgate",
    description="Synchronous media edits compiled to FFmpeg pipelines",
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
app.add_exception_handler(GatewayError, gateway_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


# Include routers
app.include_router(operations.router, prefix="/api/v1", tags=["operations"])
app.include_router(health.router, prefix="/api/v1", tags=["health"])

# Add Prometheus metrics endpoint
if settings.ENABLE_METRICS:
    app.mount("/metrics", make_asgi_app(registry=get_metrics().registry))


@app.get("/", tags=["root"])
async def root() -> Dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": "ffgate",
        "version": settings.VERSION,
        "status": "operational",
        "documentation": "/docs",
        "health": "/api/v1/health",
        "operations": "/api/v1/operations",
    }


def main():
    """Main entry point for API server."""
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        workers=settings.API_WORKERS,
        reload=settings.API_RELOAD,
        log_config=None,  # Use structlog
    )


if __name__ == "__main__":
    main()
