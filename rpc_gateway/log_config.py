"""Structured logging setup for the gateway."""

import logging
import os
import sys
from typing import Optional

import structlog


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Install the structlog processor chain.

    Args:
        level: Log level name, defaults to LOG_LEVEL or INFO
        fmt: "json" or "console", defaults to LOG_FORMAT or json
    """
    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        raise ValueError(f"Unknown log level: {level_name}")

    fmt = (fmt or os.getenv('LOG_FORMAT', 'json')).lower()
    renderer = (
        structlog.dev.ConsoleRenderer()
        if fmt == 'console'
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
