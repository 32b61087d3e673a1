"""
Exception handlers mapping pipeline errors onto HTTP responses.
"""
import traceback

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import structlog

from api.config import settings
from pipeline.errors import GatewayError

logger = structlog.get_logger()


async def gateway_exception_handler(request: Request, exc: GatewayError):
    """Handle pipeline errors raised anywhere in a request."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Gateway error",
        error_code=exc.code,
        error_message=exc.message,
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors like any other validation failure."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if part != "body"]
    field = ".".join(loc) or None

    logger.warning(
        "Request validation error",
        field=field,
        error_message=first.get("msg"),
        path=request.url.path,
        method=request.method,
    )
    content = {
        "error": f"Invalid request: {first.get('msg', 'malformed body')}",
        "code": "VALIDATION_ERROR",
    }
    if field:
        content["field"] = field
    return JSONResponse(status_code=400, content=content)


async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(
        "HTTP error",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "code": f"HTTP_{exc.status_code}"},
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    tb = traceback.format_exc()
    logger.error(
        "Unhandled exception",
        exc_type=type(exc).__name__,
        exc_message=str(exc),
        traceback=tb,
        path=request.url.path,
        method=request.method,
    )

    content = {"error": "An internal error occurred", "code": "INTERNAL_ERROR"}
    # Don't expose internal details in production
    if settings.DEBUG:
        content["error"] = str(exc)
        content["details"] = tb
    return JSONResponse(status_code=500, content=content)
