"""Process-wide diagnostic logging setup."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

DEFAULT_FORMAT = "[%(levelname)s] %(name)s: %(message)s"
ROOT_LOGGER_NAME = "treeguard"


def configure_logging(
    level: int = logging.WARNING,
    fmt: str = DEFAULT_FORMAT,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Install one stream handler on the package logger and set its level.

    Called by the CLI entry point. Repeated calls rebind the stream to the
    current stderr and adjust the level.
    """
    target = stream if stream is not None else sys.stderr
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler(target)
        handler.setFormatter(logging.Formatter(fmt))
        logger.addHandler(handler)
    else:
        for existing in logger.handlers:
            if isinstance(existing, logging.StreamHandler):
                existing.setStream(target)
    logger.setLevel(level)
    return logger


def verbosity_to_level(verbosity: int) -> int:
    """Map a -v count to a logging level."""
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; configuration happens in configure_logging()."""
    return logging.getLogger(name)
