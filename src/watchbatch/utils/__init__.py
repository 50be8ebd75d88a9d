"""
A module providing constants, configuration, utility functions, and logging
for the watch folder transcoder.

This module includes the default settings, the environment-driven Settings
object, helpers for running system commands, atomic file moves, duration
formatting, and the structured logger.
"""

from .constants import (
    DEFAULT_TEMP_SUFFIXES,
    LEDGER_FILENAME,
    LEDGER_HEADER,
    STATUS_FAIL,
    STATUS_IDLE,
    STATUS_NOT_READY,
    STATUS_OK,
    STATUS_SKIP,
)
from .logger import LogLevel

__all__ = [
    "DEFAULT_TEMP_SUFFIXES",
    "LEDGER_FILENAME",
    "LEDGER_HEADER",
    "STATUS_IDLE",
    "STATUS_NOT_READY",
    "STATUS_SKIP",
    "STATUS_OK",
    "STATUS_FAIL",
    "LogLevel",
]
