"""Recording session: perform one action, then capture snapshots until a stop condition.

State machine:

    CREATED --action ok--> RUNNING --stop requested--> STOPPING --> STOPPED
       |                      |                                        ^
       +--action raised-------+--idle / timeout / max_snapshots--------+

STOPPED is terminal and its reason is kept. The capture loop is strictly
sequential: one tick's capture, hashing, diff and event detection complete
before the next interval sleep. A manual stop is cooperative and takes effect
at the next loop check, after the in-flight tick finishes.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from ..cache.models import Page
from ..cache.store import paginate_lines
from ..exceptions import ActionFailedError
from ..observability import bind_recording_context, clear_recording_context, get_recording_logger
from ..utils import content_digest, split_lines, truncate
from .content import ContentStore
from .diff import SnapshotDiff, diff_snapshots
from .events import detect_events
from .models import (
    ActionSpec,
    ChangeSummary,
    RecordingInfo,
    RecordingMatch,
    SessionState,
    SignificantEvent,
    Snapshot,
    StopReason,
)

if TYPE_CHECKING:
    from ..host import AutomationTarget


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class RecordingSession:
    """One time-boxed recording of target state after a triggering action."""

    def __init__(
        self,
        recording_id: str,
        action: ActionSpec,
        target: "AutomationTarget",
        *,
        duration_ms: int = 10_000,
        interval_ms: int = 100,
        idle_threshold_ms: int = 2_000,
        max_snapshots: int = 200,
        max_line_length: int = 200,
        snapshot_page_size: int = 100,
        clock: Callable[[], float] = monotonic_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.id = recording_id
        self.action = action
        self.trigger_kind = action.kind.value
        self.trigger_params = action.redacted_params()
        self.duration_ms = duration_ms
        self.interval_ms = interval_ms
        self.idle_threshold_ms = idle_threshold_ms
        self.max_snapshots = max_snapshots
        self.max_line_length = max_line_length
        self.snapshot_page_size = snapshot_page_size

        self._target = target
        self._clock = clock
        self._sleep = sleep

        self.state = SessionState.CREATED
        self.created_at = datetime.now(UTC)
        self.started_at_ms = clock()
        self.ended_at_ms: float | None = None
        self.stop_reason: StopReason | None = None
        self.last_change_at_ms = self.started_at_ms
        self.events: list[SignificantEvent] = []
        self.changes: list[ChangeSummary] = []
        self.content = ContentStore(recording_id)
        self.error: str | None = None
        self._stop_requested = False

    @property
    def is_active(self) -> bool:
        return self.state != SessionState.STOPPED

    @property
    def total_snapshots(self) -> int:
        return len(self.content)

    @property
    def duration_so_far_ms(self) -> int:
        end = self.ended_at_ms if self.ended_at_ms is not None else self._clock()
        return int(end - self.started_at_ms)

    # --- lifecycle ---

    async def run(self) -> RecordingInfo:
        """Perform the trigger action, then capture until a stop condition fires.

        Raises:
            ActionFailedError: The trigger action raised; the session is
                stopped with reason ``error`` and no snapshot is taken.
        """
        if self.state != SessionState.CREATED:
            raise RuntimeError(f"Recording {self.id} has already run (state: {self.state.value})")

        bind_recording_context(self.id, self.trigger_kind)
        rec_logger = get_recording_logger()
        rec_logger.info("recording_started", params=self.trigger_params, duration_ms=self.duration_ms)
        try:
            try:
                await self._target.perform_action(self.action)
            except Exception as e:
                self.error = str(e)
                self._finish(StopReason.ERROR)
                raise ActionFailedError(f"Action failed: {e}") from e

            self.state = SessionState.STOPPING if self._stop_requested else SessionState.RUNNING
            await self._capture_loop()
        except asyncio.CancelledError:
            if self.is_active:
                self._finish(StopReason.MANUAL)
            raise
        finally:
            clear_recording_context()

        return self.info()

    def request_stop(self) -> bool:
        """Ask the loop to stop with reason ``manual``. False if already stopped."""
        if not self.is_active:
            return False
        self._stop_requested = True
        if self.state == SessionState.RUNNING:
            self.state = SessionState.STOPPING
        return True

    def close(self) -> None:
        """Destroy the session: stop it if needed and release its snapshots."""
        self._stop_requested = True
        if self.is_active:
            self._finish(StopReason.MANUAL)
        self.content.release()

    async def _capture_loop(self) -> None:
        while True:
            if self._stop_requested:
                self._finish(StopReason.MANUAL)
                return
            if self._clock() - self.started_at_ms >= self.duration_ms:
                self._finish(StopReason.TIMEOUT)
                return

            await self._tick()
            if not self.is_active:
                return

            if self._clock() - self.last_change_at_ms >= self.idle_threshold_ms:
                self._finish(StopReason.IDLE)
                return

            await self._sleep(self.interval_ms / 1000)

    async def _tick(self) -> None:
        try:
            content = await self._target.capture_state()
        except Exception as e:
            get_recording_logger().debug("capture_skipped", error=str(e))
            return
        if not content:
            get_recording_logger().debug("capture_skipped", error="empty state")
            return
        if self.content.released:
            return

        if len(self.content) >= self.max_snapshots:
            self._finish(StopReason.MAX_SNAPSHOTS)
            return

        now = self._clock()
        digest = content_digest(content)
        previous = self.content.last
        changed = previous is None or previous.content_hash != digest
        if changed:
            self.last_change_at_ms = now
            if previous is not None:
                self._record_change(previous, content, len(self.content), int(now - self.started_at_ms))

        self.content.append(
            Snapshot(
                index=len(self.content),
                content=content,
                content_hash=digest,
                captured_at_ms=now,
                changed=changed,
            )
        )
        get_recording_logger().debug("snapshot_captured", index=len(self.content) - 1, changed=changed)

    def _record_change(self, previous: Snapshot, content: str, index: int, relative_ms: int) -> None:
        diff = diff_snapshots(previous.content, content, max_line_length=self.max_line_length)
        self.changes.append(
            ChangeSummary(
                index=index,
                relative_time_ms=relative_ms,
                added=diff.total_added,
                removed=diff.total_removed,
                changed=diff.total_changed,
            )
        )
        events = detect_events(previous.content, content, relative_ms)
        self.events.extend(events)
        for event in events:
            get_recording_logger().info("significant_event", kind=event.kind.value, at_ms=event.relative_time_ms)

    def _finish(self, reason: StopReason) -> None:
        if self.state == SessionState.STOPPED:
            return
        self.state = SessionState.STOPPED
        self.stop_reason = reason
        self.ended_at_ms = self._clock()
        get_recording_logger().info(
            "recording_stopped",
            recording_id=self.id,
            reason=reason.value,
            snapshots=len(self.content),
            events=len(self.events),
        )

    # --- queries ---

    def diff(self, from_index: int, to_index: int | None = None) -> tuple[int, int, SnapshotDiff]:
        """Diff two snapshots. With only one index, diff it against the one before."""
        if to_index is None:
            to_index = from_index
            from_index = max(0, from_index - 1)
        before = self.content.get(from_index)
        after = self.content.get(to_index)
        return from_index, to_index, diff_snapshots(before.content, after.content, max_line_length=self.max_line_length)

    def get_snapshot(self, index: int, start_line: int = 1, end_line: int | None = None) -> Page:
        snapshot = self.content.get(index)
        return paginate_lines(split_lines(snapshot.content), start_line, end_line, self.snapshot_page_size)

    def search(self, query: str, max_results: int = 20) -> list[RecordingMatch]:
        """Case-insensitive search across all snapshots, in index then line order."""
        needle = query.lower()
        results: list[RecordingMatch] = []
        for snapshot in self.content:
            if len(results) >= max_results:
                break
            for i, line in enumerate(split_lines(snapshot.content)):
                if len(results) >= max_results:
                    break
                if needle in line.lower():
                    results.append(RecordingMatch(snapshot.index, i + 1, truncate(line, self.max_line_length)))
        return results

    def info(self, max_events: int = 20) -> RecordingInfo:
        return RecordingInfo(
            id=self.id,
            trigger_kind=self.trigger_kind,
            trigger_params=dict(self.trigger_params),
            state=self.state,
            created_at=self.created_at,
            started_at_ms=self.started_at_ms,
            ended_at_ms=self.ended_at_ms,
            duration_ms=self.duration_so_far_ms,
            stop_reason=self.stop_reason,
            total_snapshots=self.total_snapshots,
            is_active=self.is_active,
            events=[
                {"time_ms": e.relative_time_ms, "kind": e.kind.value, "detail": e.detail}
                for e in self.events[:max_events]
            ],
            total_events=len(self.events),
            changes=len(self.changes),
            error=self.error,
        )
