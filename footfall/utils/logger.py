"""Process-wide logging setup for the API, dashboard helpers and scripts."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from footfall.utils.config import get_settings


_LOGGER_INITIALIZED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once; later calls are no-ops.

    The level comes from ``level`` when given, otherwise from
    ``FOOTFALL_LOG_LEVEL`` through the settings. Records go to stdout in a
    pipe-separated format so uvicorn and report-service lines read alike.
    """

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    resolved_level = (level or get_settings().log_level).upper()

    logging.basicConfig(
        level=resolved_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name``, configuring logging on first use."""
    configure_logging()
    return logging.getLogger(name)
