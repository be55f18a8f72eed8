"""Structured logging with per-recording context using structlog and contextvars."""

import logging

import structlog

_configured = False


def setup_structured_logging(level: str = "INFO") -> None:
    """Configure structlog with JSON output and per-recording context.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    global _configured
    if _configured:
        return

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,  # Inject recording context
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Configure stdlib logging to use structlog
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
    )

    _configured = True


def bind_recording_context(recording_id: str, trigger: str) -> None:
    """Bind recording context for all subsequent logs in this async context.

    Each recording loop runs in its own asyncio task, so the binding does not
    leak into other recordings.

    Args:
        recording_id: Recording identifier
        trigger: Action kind that started the recording
    """
    structlog.contextvars.bind_contextvars(recording_id=recording_id, trigger=trigger)


def clear_recording_context() -> None:
    """Clear recording context after the loop finishes."""
    structlog.contextvars.clear_contextvars()


def get_recording_logger(name: str = "mcp_server_browser_recorder") -> structlog.stdlib.BoundLogger:
    """Get a structlog logger carrying the recording context."""
    return structlog.get_logger(name)
