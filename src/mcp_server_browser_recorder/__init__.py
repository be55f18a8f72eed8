"""MCP server that records browser state after actions and caches oversized output."""

from .config import settings
from .exceptions import (
    ActionFailedError,
    BrowserError,
    BrowserRecorderError,
    CaptureSkipped,
    InvalidArgumentError,
    NotFoundError,
)
from .server import main, serve

__all__ = [
    "main",
    "serve",
    "settings",
    "BrowserRecorderError",
    "NotFoundError",
    "InvalidArgumentError",
    "ActionFailedError",
    "CaptureSkipped",
    "BrowserError",
]
