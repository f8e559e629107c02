"""Diagnostic logging and the structured run log."""

from .runlog import JsonlRunLog, RunEvent, utc_timestamp
from .setup import configure_logging, get_logger, verbosity_to_level

__all__ = [
    "JsonlRunLog",
    "RunEvent",
    "configure_logging",
    "get_logger",
    "utc_timestamp",
    "verbosity_to_level",
]
