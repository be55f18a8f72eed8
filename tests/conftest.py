"""Pytest configuration and fixtures for mcp-server-browser-recorder tests."""

import asyncio
from collections.abc import Callable, Sequence

import pytest

from mcp_server_browser_recorder.cache.console import ConsoleMessage
from mcp_server_browser_recorder.recording.models import ActionSpec


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "e2e: End-to-end tests requiring a real browser")
    config.addinivalue_line("markers", "slow: Tests that take longer to run")


class FakeClock:
    """Millisecond clock whose sleep advances time instead of waiting."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def seconds(self) -> float:
        return self.now_ms / 1000

    def advance(self, ms: float) -> None:
        self.now_ms += ms

    async def sleep(self, seconds: float) -> None:
        self.now_ms += seconds * 1000
        await asyncio.sleep(0)


class ScriptedTarget:
    """AutomationTarget that replays a script of captures.

    Each script item is a string (returned as the capture) or an exception
    (raised). After the script runs out the last item repeats.
    """

    def __init__(
        self,
        captures: Sequence[str | Exception] = ("- main",),
        *,
        action_error: Exception | None = None,
        console: list[ConsoleMessage] | None = None,
        on_capture: Callable[[int], None] | None = None,
    ) -> None:
        self.captures = list(captures)
        self.action_error = action_error
        self.console = console or []
        self.on_capture = on_capture
        self.actions: list[ActionSpec] = []
        self.capture_count = 0
        self.gate: asyncio.Event | None = None

    async def capture_state(self) -> str:
        index = min(self.capture_count, len(self.captures) - 1)
        self.capture_count += 1
        if self.on_capture is not None:
            self.on_capture(self.capture_count)
        if self.gate is not None and self.capture_count > 1:
            await self.gate.wait()
        item = self.captures[index]
        if isinstance(item, Exception):
            raise item
        return item

    async def perform_action(self, action: ActionSpec) -> None:
        self.actions.append(action)
        if self.action_error is not None:
            raise self.action_error

    async def console_messages(self) -> list[ConsoleMessage]:
        return list(self.console)

    async def page_info(self) -> dict[str, str]:
        return {"url": "https://example.com/", "title": "Example"}


class FakeHost:
    def __init__(self, target: ScriptedTarget | None = None) -> None:
        self.target = target or ScriptedTarget()
        self.closed = False

    async def get_target(self) -> ScriptedTarget:
        return self.target

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
