"""
utils/logging.py — structlog setup for the lmia-pipeline process.

Events go through stdlib logging, so the records of the HTTP and storage
libraries land in the same stream. Their per-request INFO chatter is held
back to WARNING unless the pipeline itself runs at DEBUG.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from lmiadata_shared.config import settings

# Libraries that log one line per request or statement
NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "postgrest")


def configure_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """
    Configure structlog once at startup.

    Args:
        log_level:  Override settings.log_level.
        log_format: "json" or "console"; overrides settings.log_format.
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    fmt = log_format or settings.log_format

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)

    if fmt == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
