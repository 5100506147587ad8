"""Structured logging utilities."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from roomfinder.utils.config import get_settings


_LOGGER_INITIALIZED = False
_QUIET_LOGGERS = ("httpx", "uvicorn.access")


def configure_logging(level: Optional[str] = None) -> None:
    """Configure process-wide logging once.

    Every module goes through ``get_logger`` so the search pipeline, the
    location directory and the HTTP layer share one format.
    """

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    settings = get_settings()
    resolved_level = (level or settings.log_level).upper()

    logging.basicConfig(
        level=resolved_level,
        format=(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
        ),
        stream=sys.stdout,
    )
    # httpx and uvicorn.access log one INFO line per HTTP request. Held at
    # WARNING so each search leaves a single "Search completed" line.
    for noisy in _QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(max(logging.WARNING, logging.getLevelName(resolved_level)))
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger for the requested module."""
    configure_logging()
    return logging.getLogger(name)
