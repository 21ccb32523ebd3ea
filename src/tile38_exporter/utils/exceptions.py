## `utils/exceptions.py`
from __future__ import annotations

__all__ = [
    "BackendError",
    "ExporterError",
    "ParseError",
    "Tile38ConnectionError",
    "ValidationError",
]


class ExporterError(Exception):
    """Base error for the exporter. Any of these aborts a scrape with HTTP 500."""


class ValidationError(ExporterError):
    """Raised on configuration validation failures."""


class Tile38ConnectionError(ExporterError):
    """Raised when a Tile38 connection cannot be dialed, negotiated, authenticated
    or kept alive. The connection is never handed out to a caller.
    """


class BackendError(ExporterError):
    """Raised when Tile38 answered but flagged the command as failed.

    str() of the error is the server's own message, verbatim.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ParseError(ExporterError):
    """Raised when a Tile38 reply is not a JSON object."""
