"""Tests for structured logging bound to the active recording."""

import asyncio

import structlog

from mcp_server_browser_recorder.observability import (
    bind_recording_context,
    clear_recording_context,
    get_recording_logger,
    setup_structured_logging,
)


class TestRecordingContext:
    def test_bind_and_clear(self):
        bind_recording_context("rec_abc", "click")

        assert structlog.contextvars.get_contextvars() == {"recording_id": "rec_abc", "trigger": "click"}

        clear_recording_context()

        assert structlog.contextvars.get_contextvars() == {}

    async def test_context_is_task_local(self):
        seen: dict[str, str | None] = {}

        async def record(recording_id: str) -> None:
            bind_recording_context(recording_id, "wait")
            await asyncio.sleep(0)
            seen[recording_id] = structlog.contextvars.get_contextvars().get("recording_id")

        await asyncio.gather(record("rec_1"), record("rec_2"))

        assert seen == {"rec_1": "rec_1", "rec_2": "rec_2"}
        assert "recording_id" not in structlog.contextvars.get_contextvars()

    def test_context_merged_into_events(self):
        bind_recording_context("rec_xyz", "navigate")
        try:
            event = structlog.contextvars.merge_contextvars(None, "info", {"event": "recording_started"})
        finally:
            clear_recording_context()

        assert event == {"event": "recording_started", "recording_id": "rec_xyz", "trigger": "navigate"}

    def test_recording_logger_emits(self):
        with structlog.testing.capture_logs() as logs:
            get_recording_logger().info("recording_stopped", reason="idle")

        assert logs == [{"event": "recording_stopped", "reason": "idle", "log_level": "info"}]

    def test_setup_is_idempotent(self):
        setup_structured_logging("DEBUG")
        setup_structured_logging("INFO")

        assert structlog.is_configured()
