"""Error types raised by the filter engine."""

from __future__ import annotations


class LogLensError(Exception):
    """Base class for loglens errors."""


class NotFoundError(LogLensError, LookupError):
    """A group or filter id does not exist."""


class ParseError(LogLensError, ValueError):
    """An import document is not valid JSON or lacks a groups array."""


class InvalidPatternError(LogLensError, ValueError):
    """A filter's pattern does not compile."""

    def __init__(self, filter_id: str, pattern: str, reason: str) -> None:
        self.filter_id = filter_id
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid pattern {pattern!r} in filter {filter_id}: {reason}")


class IoError(LogLensError, OSError):
    """Reading the input or writing the filtered output failed."""
