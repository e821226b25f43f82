"""Structured logging configuration.

Workflow logs are read by humans most of the time, so the default output is
the console renderer. Set LOG_FORMAT=json to get one JSON object per line
instead, which suits runners that ship step logs to a log store.

Usage:
    from octopus_build_info.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
    logger.info("commits_collected", count=12)
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

LOG_FORMATS = ("console", "json")


def setup_logging(
    log_format: str | None = None,
    log_level: str | None = None,
) -> None:
    """Configure structlog and the standard library logging module.

    Args:
        log_format: "console" or "json". Reads from LOG_FORMAT env var if
                    not provided.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
                   Reads from LOG_LEVEL env var if not provided. Step
                   debug logging on the runner (RUNNER_DEBUG=1) forces DEBUG.
    """
    fmt = (log_format or os.environ.get("LOG_FORMAT") or "console").lower()
    level = log_level or os.environ.get("LOG_LEVEL", "INFO")
    if os.environ.get("RUNNER_DEBUG") == "1":
        level = "DEBUG"
    level_no = getattr(logging, level.upper())

    if fmt == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # httpx logs every request at INFO through the standard library
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level_no)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> Any:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        A structlog bound logger
    """
    return structlog.get_logger(name)
