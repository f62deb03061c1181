"""Logging helpers for the Linear bridge.

All modules obtain their logger through ``get_logger()`` so that the
output format and level are configured in one place.
"""

import logging
import sys

LOGGER_NAME = "linear_bridge"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def setup_logging(level: str | int = "INFO", stream=None) -> logging.Logger:
    """Configure the package logger.

    Args:
        level: Log level name or number
        stream: Output stream (defaults to stderr)

    Returns:
        The configured package logger
    """
    global _configured

    logger = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    if not _configured:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
        _configured = True

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Get the package logger or one of its children."""
    if name:
        return logging.getLogger(f"{LOGGER_NAME}.{name}")
    return logging.getLogger(LOGGER_NAME)
