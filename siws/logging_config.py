# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Logging setup for services embedding the SIWS verifier.

The library itself only emits records through module loggers; hosts
call :func:`configure_logging` once at startup to get structured output.
"""

import json
import logging
import sys
from typing import Any, Dict, Optional, TextIO

from siws.config import LOG_FORMAT, LOG_LEVEL

__all__ = ["configure_logging"]

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class _JSONFormatter(logging.Formatter):
    """One JSON object per line with timestamp, level, logger and message.

    Exception tracebacks, when present, go in an ``exception`` field.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(
    level: Optional[str] = None,
    fmt: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """Install a single stream handler on the ``siws`` logger.

    Parameters:
        level:  Log level name; defaults to ``SIWS_LOG_LEVEL``.
        fmt:    ``"json"`` or ``"text"``; defaults to ``SIWS_LOG_FORMAT``.
        stream: Output stream; defaults to stdout.

    Returns:
        The installed handler.
    """
    logger = logging.getLogger("siws")

    # Remove existing handlers to avoid duplicates.
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    if (fmt or LOG_FORMAT).lower() == "json":
        handler.setFormatter(_JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO))

    # Suppress noisy third-party loggers.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return handler
