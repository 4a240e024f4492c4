"""Structured logging setup (structlog over the standard logging module).

Components log through ``structlog.get_logger(__name__)`` and bind a
``component`` name. Call ``setup_logging`` once at process start; until
then structlog's defaults apply.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

import structlog


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None) -> None:
    """Configure timestamped, level-filtered console logs."""
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")
    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stderr,
        level=numeric_level,
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
