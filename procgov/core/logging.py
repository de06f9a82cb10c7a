"""Logging setup shared by the API server and the CLI."""
from __future__ import annotations

import logging

LOGGER_NAME = "procgov"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """Attach a single stream handler to the package logger.

    Safe to call more than once; later calls only adjust the level.
    """

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger


__all__ = ["LOGGER_NAME", "LOG_FORMAT", "configure_logging"]
