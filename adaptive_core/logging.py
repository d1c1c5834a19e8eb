"""
Structured Logging Configuration

Configures structlog for the engine. JSON output for production and a
console renderer for development.
"""

import logging
import sys
from enum import Enum
from typing import Optional

import structlog

from adaptive_core.config import get_settings


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    PRETTY = "pretty"


def configure_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Log level name, defaults to the configured setting
        log_format: "json" or "pretty", defaults to the configured setting
    """
    settings = get_settings()
    log_level = LogLevel((level or settings.log_level).upper())
    output = LogFormat((log_format or settings.log_format).lower())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.value),
    )
    logging.getLogger().setLevel(getattr(logging, log_level.value))

    if output == LogFormat.JSON:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.get_logger(__name__).debug(
        "logging_configured",
        service=settings.service_name,
        level=log_level.value,
        format=output.value,
    )


__all__ = [
    "LogLevel",
    "LogFormat",
    "configure_logging",
]
