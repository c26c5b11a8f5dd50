"""loglens - keyword/regex log filtering and highlighting."""

__version__ = "0.1.0"
