"""Logging setup for DevGate.

Core modules log through structlog (``structlog.get_logger()``) with
snake_case event names and key/value context. Everything is written to
stderr because stdout carries the MCP stdio protocol.
"""

import logging
import sys
from typing import TextIO

import structlog


def configure_logging(level: str = "INFO", stream: TextIO | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Log level name (CRITICAL, ERROR, WARNING, INFO or DEBUG).
        stream: Output stream (defaults to sys.stderr).
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    output = stream or sys.stderr

    logging.basicConfig(
        level=numeric_level,
        stream=output,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=False,
    )
