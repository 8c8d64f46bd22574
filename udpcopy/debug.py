"""Levelled debug printing to a configurable stream."""

from __future__ import annotations

import os
import sys
from enum import IntEnum
from typing import TextIO

__all__ = ["DebugLevel", "dbg_print", "error_print", "set_level", "get_level", "set_stream"]


class DebugLevel(IntEnum):
    """Verbosity levels, from errors only up to very verbose."""

    ERROR = -1
    WARN = 0
    INFO = 1
    DEBUG = 2
    VDEBUG = 3


class _Config:
    level: int = DebugLevel.VDEBUG
    stream: TextIO | None = None


_config = _Config()


def _stream() -> TextIO:
    return _config.stream if _config.stream is not None else sys.stderr


def dbg_print(level: int, message: str) -> None:
    """Write ``message`` if ``level`` is enabled; errors are always written."""
    if level != DebugLevel.ERROR and _config.level < level:
        return
    stream = _stream()
    stream.write(message)
    stream.flush()


def error_print(message: str) -> None:
    """Write an error message prefixed with the process id and the caller."""
    caller = sys._getframe(1).f_code.co_name
    dbg_print(DebugLevel.ERROR, f"  ({os.getpid()})({caller:<12}) - ERROR - {message}")


def set_level(level: int) -> None:
    """Set the highest level that is written."""
    _config.level = int(level)


def get_level() -> int:
    """Return the highest level that is written."""
    return _config.level


def set_stream(stream: TextIO | None) -> None:
    """Send output to ``stream``; ``None`` restores standard error."""
    _config.stream = stream