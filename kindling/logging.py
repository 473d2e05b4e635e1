"""Logging setup for the CLI: structlog rendering through stdlib handlers."""

from __future__ import annotations

import logging
import os
import sys

import structlog


def setup_logging(level: str | None = None) -> None:
    """Route ``kindling.*`` events to stderr.

    ``KINDLING_LOG_LEVEL`` picks the level (WARNING unless set) and
    ``KINDLING_LOG_FORMAT=json`` switches from console to JSON lines.
    """
    log_level = (level or os.environ.get("KINDLING_LOG_LEVEL", "WARNING")).upper()
    as_json = os.environ.get("KINDLING_LOG_FORMAT", "console").lower() == "json"

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.format_exc_info if as_json else structlog.dev.set_exc_info,
            structlog.processors.JSONRenderer() if as_json else structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger = logging.getLogger("kindling")
    logger.handlers[:] = [handler]
    logger.setLevel(log_level)
    logger.propagate = False
