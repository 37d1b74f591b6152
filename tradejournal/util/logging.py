"""Logging setup shared by scripts and services embedding tradejournal."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from tradejournal.config import get_settings


def setup_logging(name: str = "tradejournal", level: Optional[str] = None) -> logging.Logger:
    """Attach a single stdout handler to the ``tradejournal`` logger tree.

    Module loggers (``logging.getLogger(__name__)``) propagate here, so this
    only needs to run once per process. Calling it again is a no-op.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level_name = (level or get_settings().log_level).upper()
    resolved = getattr(logging, level_name, logging.INFO)
    logger.setLevel(resolved)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
    return logger
