"""
Logging handle lifecycle.

Components never reach for a global logger on their own; they accept a
``logging.Logger`` at construction and fall back to their module logger.
Applications create one handle at startup with :func:`create_logger` and
call :func:`flush_logger` at shutdown.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

LOGGER_NAME = "spectrascope"
LOG_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"


def create_logger(
    debug: bool = False,
    stream: Optional[TextIO] = None,
    name: str = LOGGER_NAME,
) -> logging.Logger:
    """
    Create the application logging handle.

    Args:
        debug: Emit DEBUG records (per-frame diagnostics) when True.
        stream: Output stream (default: stderr).
        name: Logger name.

    Returns:
        A configured logger with a single stream handler.
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    return logger


def child_logger(parent: Optional[logging.Logger], suffix: str) -> logging.Logger:
    """Return ``parent.<suffix>``, or the package logger child when no parent is given."""
    if parent is None:
        return logging.getLogger(f"{LOGGER_NAME}.{suffix}")
    return parent.getChild(suffix)


def flush_logger(logger: logging.Logger) -> None:
    """Flush and detach every handler of *logger* and restore propagation."""
    for handler in list(logger.handlers):
        handler.flush()
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
