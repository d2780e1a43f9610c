# log.py
# SPDX-License-Identifier: MIT
"""Logging setup for docweave.

The package logger carries a NullHandler, so library use stays quiet until
the CLI or a host application attaches a handler.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

__all__ = [
    "PACKAGE_LOGGER_NAME",
    "DEFAULT_FORMAT",
    "get_logger",
    "resolve_logger",
    "parse_level",
    "configure_logging",
]

PACKAGE_LOGGER_NAME = "docweave"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logging.getLogger(PACKAGE_LOGGER_NAME).addHandler(logging.NullHandler())


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the logger called ``name``, or the package logger."""
    return logging.getLogger(name or PACKAGE_LOGGER_NAME)


def resolve_logger(logger: logging.Logger | None, default: logging.Logger) -> logging.Logger:
    """Return the injected logger, or ``default`` when none was supplied."""
    return logger if logger is not None else default


def parse_level(level: int | str) -> int:
    """Turn a level name such as ``"debug"`` into its number.

    Unknown names map to INFO.
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: TextIO | None = None,
    fmt: str | None = None,
    propagate: bool = True,
    logger_name: str = PACKAGE_LOGGER_NAME,
) -> logging.Logger:
    """Send a docweave logger's records to ``stream`` (stderr by default).

    Repeated calls retarget the handler installed by an earlier call
    instead of adding another one, so running the CLI twice in one process
    does not duplicate lines.

    Args:
        level (int | str): Level number or name.
        stream (TextIO | None): Destination; defaults to ``sys.stderr``.
        fmt (str | None): Record format; defaults to :data:`DEFAULT_FORMAT`.
        propagate (bool): Whether records also reach ancestor loggers.
        logger_name (str): Logger to configure.

    Returns:
        logging.Logger: The configured logger.
    """
    logger = get_logger(logger_name)
    logger.setLevel(parse_level(level))
    logger.propagate = propagate

    handler = next((h for h in logger.handlers if type(h) is logging.StreamHandler), None)
    if handler is None:
        handler = logging.StreamHandler()
        logger.addHandler(handler)
    # assigned directly: setStream would flush a stream that may already be closed
    handler.stream = stream if stream is not None else sys.stderr
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    return logger
