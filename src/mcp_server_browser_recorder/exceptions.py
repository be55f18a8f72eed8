"""Custom exceptions for the MCP browser recorder server."""


class BrowserRecorderError(Exception):
    """Base exception for browser recorder errors."""

    pass


class NotFoundError(BrowserRecorderError):
    """Raised for unknown or expired cache keys, recordings and snapshot indices."""

    pass


class InvalidArgumentError(BrowserRecorderError):
    """Raised when a request is malformed (missing action field, bad line range)."""

    pass


class ActionFailedError(BrowserRecorderError):
    """Raised when the action that triggers a recording fails."""

    pass


class CaptureSkipped(BrowserRecorderError):
    """Raised when a single state capture inside a recording loop fails.

    The loop swallows it and tries again on the next tick.
    """

    pass


class BrowserError(BrowserRecorderError):
    """Raised when browser operations fail."""

    pass
