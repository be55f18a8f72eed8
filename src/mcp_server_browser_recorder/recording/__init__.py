"""Recording of target state over time after an action, with diff and search."""

from .content import ContentStore
from .diff import ElementChange, LineChange, SnapshotDiff, diff_snapshots, extract_refs
from .events import EVENT_RULES, EventRule, detect_events
from .models import (
    ActionKind,
    ActionSpec,
    ChangeSummary,
    EventKind,
    RecordingInfo,
    RecordingMatch,
    SessionState,
    SignificantEvent,
    Snapshot,
    StopReason,
)
from .registry import RecordingRegistry
from .session import RecordingSession

__all__ = [
    "EVENT_RULES",
    "ActionKind",
    "ActionSpec",
    "ChangeSummary",
    "ContentStore",
    "ElementChange",
    "EventKind",
    "EventRule",
    "LineChange",
    "RecordingInfo",
    "RecordingMatch",
    "RecordingRegistry",
    "RecordingSession",
    "SessionState",
    "SignificantEvent",
    "Snapshot",
    "SnapshotDiff",
    "StopReason",
    "detect_events",
    "diff_snapshots",
    "extract_refs",
]
