# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

from __future__ import annotations

import logging
import os
import sys

LOGGER_NAME = "goal_checkout"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _resolve_level(raw_level: str | None) -> int:
    if not raw_level:
        return logging.INFO
    level = logging.getLevelName(raw_level.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logger(name: str = LOGGER_NAME, level: str | None = None) -> logging.Logger:
    """Configure the service logger once and return it.

    Repeated calls reuse the existing handler so uvicorn reloads do not
    duplicate every line.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level or os.getenv("LOG_LEVEL")))
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        logger.addHandler(handler)
    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    return logging.getLogger(name)
