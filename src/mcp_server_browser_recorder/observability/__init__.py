"""Observability helpers: structured logging bound to the active recording."""

from .logging import (
    bind_recording_context,
    clear_recording_context,
    get_recording_logger,
    setup_structured_logging,
)

__all__ = [
    "bind_recording_context",
    "clear_recording_context",
    "get_recording_logger",
    "setup_structured_logging",
]
