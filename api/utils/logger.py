"""
Structured logging configuration
"""
import logging
import sys
from typing import Optional

import structlog
from structlog.stdlib import LoggerFactory

from api.config import settings


def setup_logging(level: Optional[str] = None, debug: Optional[bool] = None) -> None:
    """Configure structured logging.

    JSON lines in production, coloured console output when ``debug`` is set.
    The CLI passes its own level; the API uses the configured one.
    """
    level = (level or settings.API_LOG_LEVEL).upper()
    debug = settings.DEBUG if debug is None else debug

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level),
        force=True,
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if debug:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.extend([
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(),
        ])

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
