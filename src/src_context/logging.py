from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

LOGGER_NAME = "src_context"

_configured = False


def _handler(filename: str | Path | None) -> logging.Handler:
    if filename:
        return logging.FileHandler(str(filename), encoding="utf-8")
    return logging.StreamHandler(sys.stderr)


def setup_logging(filename: str | Path | None = None, level: int = logging.INFO) -> structlog.BoundLogger:
    """Set up structured JSON logging for src_context.

    structlog is configured on the first call only. Stdout carries the generated
    context, so log lines go to stderr, or to `filename` when one is given; a later
    call with a `filename` (the CLI's `--log-file`) moves the output there.

    Args:
        filename: Optional path to a log file.
        level: Minimum level emitted.

    Returns:
        The shared "src_context" structlog logger.
    """
    global _configured  # noqa: PLW0603
    if filename or not _configured:
        logging.basicConfig(level=level, handlers=[_handler(filename)], format="%(message)s", force=_configured)
    if not _configured:
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _configured = True
    return structlog.get_logger(LOGGER_NAME)


logger = setup_logging()
