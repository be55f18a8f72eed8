"""Tests for the recording registry."""

import asyncio

import pytest
from conftest import FakeClock, ScriptedTarget

from mcp_server_browser_recorder.config import RecordingSettings
from mcp_server_browser_recorder.exceptions import ActionFailedError, InvalidArgumentError, NotFoundError
from mcp_server_browser_recorder.recording import ActionKind, ActionSpec, RecordingRegistry, StopReason

CLICK = ActionSpec(kind=ActionKind.CLICK, ref="e1")


@pytest.fixture
def registry(fake_clock: FakeClock) -> RecordingRegistry:
    return RecordingRegistry(5, idle_stop_ms=50, clock=fake_clock, sleep=fake_clock.sleep)


class TestCreate:
    def test_ids_are_unique_and_prefixed(self, registry: RecordingRegistry):
        ids = {registry.create(CLICK, ScriptedTarget()).id for _ in range(5)}

        assert len(ids) == 5
        assert all(i.startswith("rec_") and len(i) == 16 for i in ids)

    def test_sixth_recording_evicts_oldest(self, registry: RecordingRegistry):
        sessions = [registry.create(CLICK, ScriptedTarget()) for _ in range(5)]

        sixth = registry.create(CLICK, ScriptedTarget())

        assert len(registry) == 5
        assert sessions[0].id not in registry
        assert sessions[0].content.released
        assert [s.id for s in registry.list()] == [s.id for s in sessions[1:]] + [sixth.id]
        with pytest.raises(NotFoundError, match=f"Recording {sessions[0].id} not found"):
            registry.get(sessions[0].id)

    def test_invalid_action_has_no_side_effects(self, registry: RecordingRegistry):
        sessions = [registry.create(CLICK, ScriptedTarget()) for _ in range(5)]

        with pytest.raises(InvalidArgumentError):
            registry.create(ActionSpec(kind=ActionKind.NAVIGATE), ScriptedTarget())

        assert [s.id for s in registry.list()] == [s.id for s in sessions]

    @pytest.mark.parametrize(("requested", "expected"), [(None, 10_000), (0, 10_000), (5_000, 5_000), (60_000, 30_000)])
    def test_duration_clamped(self, registry: RecordingRegistry, requested, expected):
        assert registry.create(CLICK, ScriptedTarget(), duration_ms=requested).duration_ms == expected

    @pytest.mark.parametrize(("requested", "expected"), [(None, 100), (-5, 100), (10, 50), (250, 250)])
    def test_interval_clamped(self, registry: RecordingRegistry, requested, expected):
        assert registry.create(CLICK, ScriptedTarget(), interval_ms=requested).interval_ms == expected

    def test_from_settings(self):
        registry = RecordingRegistry.from_settings(RecordingSettings(max_recordings=2, max_snapshots=7))

        assert registry.max_recordings == 2
        assert registry.max_snapshots == 7


class TestLifecycle:
    async def test_start_runs_in_background(self, registry: RecordingRegistry):
        session = registry.create(CLICK, ScriptedTarget(["same"]))

        task = registry.start(session)
        info = await task

        assert info.stop_reason == StopReason.IDLE
        assert registry.get(session.id) is session

    async def test_action_failure_surfaces_from_task(self, registry: RecordingRegistry):
        session = registry.create(CLICK, ScriptedTarget(action_error=RuntimeError("gone")))

        task = registry.start(session)
        await asyncio.wait({task})

        assert isinstance(task.exception(), ActionFailedError)
        assert registry.get(session.id).stop_reason == StopReason.ERROR

    async def test_delete_cancels_running_recording(self, registry: RecordingRegistry):
        target = ScriptedTarget(["A", "B"])
        target.gate = asyncio.Event()
        session = registry.create(CLICK, target)
        task = registry.start(session)
        while target.capture_count < 2:
            await asyncio.sleep(0)

        assert registry.delete(session.id)
        await asyncio.wait({task})

        assert task.cancelled()
        assert session.stop_reason == StopReason.MANUAL
        assert session.content.released
        assert session.id not in registry
        assert not registry.delete(session.id)

    async def test_shutdown_deletes_everything(self, registry: RecordingRegistry):
        target = ScriptedTarget(["A", "B"])
        target.gate = asyncio.Event()
        running = registry.create(CLICK, target)
        registry.start(running)
        registry.create(CLICK, ScriptedTarget())
        while target.capture_count < 2:
            await asyncio.sleep(0)

        await registry.shutdown()

        assert len(registry) == 0
        assert running.stop_reason == StopReason.MANUAL
