"""Minimal level-filtered console logging."""

from enum import IntEnum


class LogLevel(IntEnum):
    """Severity of a log message, ordered from least to most severe."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


_min_level = LogLevel.DEBUG


def set_min_level(level):
    """Set the lowest level that will be printed."""
    global _min_level
    _min_level = LogLevel(level)


def log(level, message):
    """Print ``message`` prefixed by its level, unless filtered out."""
    level = LogLevel(level)
    if level < _min_level:
        return
    print(f"[{level.name}] {message}")