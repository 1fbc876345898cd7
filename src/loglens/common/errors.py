from __future__ import annotations


class LogLensError(Exception):
    """Base for failures that reach the caller."""


class StreamReadError(LogLensError):
    """The input stream itself could not be read; the parse call is aborted."""

    def __init__(self, message: str, *, line_number: int = 0) -> None:
        super().__init__(message)
        self.line_number = line_number


class UsageError(LogLensError, ValueError):
    """Caller supplied an invalid argument (e.g. limit <= 0)."""


class ExportError(LogLensError):
    pass
