"""
Logging configuration.

Wires structlog through the standard library so engine events and
third-party log records share one output stream. JSON output is meant for
hosted deployments, the pretty renderer for local runs.
"""

import logging
import sys
from enum import Enum
from typing import Optional

import structlog


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    PRETTY = "pretty"


def configure_logging(level: str = "info", format: Optional[str] = None) -> None:
    """
    Configure structlog and the root logger.

    Args:
        level: Log level name (debug, info, warning, error, critical)
        format: Log format (json, pretty); defaults to the configured one
    """
    if format is None:
        from convoflow.config import get_settings

        format = get_settings().log_format

    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)

    if format == LogFormat.JSON or format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Suppress noisy third-party loggers
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    structlog.get_logger(__name__).debug(
        "logging_configured",
        level=level,
        format=format,
    )
