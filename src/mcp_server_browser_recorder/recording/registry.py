"""Bounded registry of recording sessions and their background tasks."""

import asyncio
import logging
import secrets
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from ..config import RecordingSettings
from ..exceptions import NotFoundError
from .models import ActionSpec
from .session import RecordingSession

if TYPE_CHECKING:
    from ..host import AutomationTarget

logger = logging.getLogger(__name__)


class RecordingRegistry:
    """Insertion-ordered map of recordings with FIFO eviction.

    Creating a recording while at capacity deletes the oldest-created one and
    releases its snapshots. Each session's state is only mutated by its own
    loop, so no locking is needed between sessions.
    """

    def __init__(
        self,
        max_recordings: int = 5,
        *,
        max_snapshots: int = 200,
        default_duration_ms: int = 10_000,
        max_duration_ms: int = 30_000,
        default_interval_ms: int = 100,
        min_interval_ms: int = 50,
        idle_stop_ms: int = 2_000,
        max_line_length: int = 200,
        snapshot_page_size: int = 100,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        if max_recordings < 1:
            raise ValueError("max_recordings must be at least 1")
        self.max_recordings = max_recordings
        self.max_snapshots = max_snapshots
        self.default_duration_ms = default_duration_ms
        self.max_duration_ms = max_duration_ms
        self.default_interval_ms = default_interval_ms
        self.min_interval_ms = min_interval_ms
        self.idle_stop_ms = idle_stop_ms
        self.max_line_length = max_line_length
        self.snapshot_page_size = snapshot_page_size
        self._clock = clock
        self._sleep = sleep
        self._sessions: dict[str, RecordingSession] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    @classmethod
    def from_settings(cls, recording_settings: RecordingSettings, **kwargs: Any) -> "RecordingRegistry":
        return cls(
            recording_settings.max_recordings,
            max_snapshots=recording_settings.max_snapshots,
            default_duration_ms=recording_settings.default_duration_ms,
            max_duration_ms=recording_settings.max_duration_ms,
            default_interval_ms=recording_settings.default_interval_ms,
            min_interval_ms=recording_settings.min_interval_ms,
            idle_stop_ms=recording_settings.idle_stop_ms,
            max_line_length=recording_settings.max_line_length,
            snapshot_page_size=recording_settings.snapshot_page_size,
            **kwargs,
        )

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, recording_id: object) -> bool:
        return recording_id in self._sessions

    def clamp_duration(self, duration_ms: int | None) -> int:
        if not duration_ms or duration_ms <= 0:
            duration_ms = self.default_duration_ms
        return min(duration_ms, self.max_duration_ms)

    def clamp_interval(self, interval_ms: int | None) -> int:
        if not interval_ms or interval_ms <= 0:
            interval_ms = self.default_interval_ms
        return max(interval_ms, self.min_interval_ms)

    def create(
        self,
        action: ActionSpec,
        target: "AutomationTarget",
        *,
        duration_ms: int | None = None,
        interval_ms: int | None = None,
        idle_threshold_ms: int | None = None,
    ) -> RecordingSession:
        """Register a new session (not yet running).

        Raises:
            InvalidArgumentError: A field the action needs is missing. Nothing
                is created or evicted in that case.
        """
        action.validate_required()

        while len(self._sessions) >= self.max_recordings:
            oldest_id = next(iter(self._sessions))
            logger.info(f"Recording limit reached, deleting oldest recording {oldest_id}")
            self.delete(oldest_id)

        recording_id = self._new_id()
        session_kwargs: dict[str, Any] = {}
        if self._clock is not None:
            session_kwargs["clock"] = self._clock
        if self._sleep is not None:
            session_kwargs["sleep"] = self._sleep

        session = RecordingSession(
            recording_id,
            action,
            target,
            duration_ms=self.clamp_duration(duration_ms),
            interval_ms=self.clamp_interval(interval_ms),
            idle_threshold_ms=idle_threshold_ms if idle_threshold_ms and idle_threshold_ms > 0 else self.idle_stop_ms,
            max_snapshots=self.max_snapshots,
            max_line_length=self.max_line_length,
            snapshot_page_size=self.snapshot_page_size,
            **session_kwargs,
        )
        self._sessions[recording_id] = session
        logger.info(f"Created recording {recording_id} for action {action.kind.value}")
        return session

    def start(self, session: RecordingSession) -> asyncio.Task:
        """Run a registered session as a background asyncio task."""
        task = asyncio.create_task(session.run(), name=f"recording-{session.id}")
        self._tasks[session.id] = task

        def _on_done(t: asyncio.Task) -> None:
            if self._tasks.get(session.id) is t:
                del self._tasks[session.id]
            if not t.cancelled() and t.exception() is not None:
                logger.warning(f"Recording {session.id} ended with error: {t.exception()}")

        task.add_done_callback(_on_done)
        return task

    def get(self, recording_id: str) -> RecordingSession:
        session = self._sessions.get(recording_id)
        if session is None:
            raise NotFoundError(f"Recording {recording_id} not found")
        return session

    def list(self) -> list[RecordingSession]:
        return list(self._sessions.values())

    def delete(self, recording_id: str) -> bool:
        """Delete a recording, cancelling its loop and releasing its snapshots."""
        session = self._sessions.pop(recording_id, None)
        if session is None:
            return False
        task = self._tasks.pop(recording_id, None)
        if task is not None and not task.done():
            task.cancel()
        session.close()
        logger.info(f"Deleted recording {recording_id}")
        return True

    def delete_all(self) -> int:
        count = 0
        for recording_id in list(self._sessions):
            if self.delete(recording_id):
                count += 1
        return count

    async def shutdown(self) -> None:
        """Delete every recording and wait for cancelled loops to unwind."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        self.delete_all()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _new_id(self) -> str:
        while True:
            recording_id = "rec_" + secrets.token_hex(6)
            if recording_id not in self._sessions:
                return recording_id
