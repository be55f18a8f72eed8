"""Data models for recording sessions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from ..exceptions import InvalidArgumentError

REDACTED = "[REDACTED]"


class SessionState(str, Enum):
    """Lifecycle of a recording session. STOPPED is terminal."""

    CREATED = "created"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class StopReason(str, Enum):
    """Why a recording ended."""

    IDLE = "idle"
    TIMEOUT = "timeout"
    MANUAL = "manual"
    ERROR = "error"
    MAX_SNAPSHOTS = "max_snapshots"


class EventKind(str, Enum):
    """Heuristic UI transitions detected between consecutive snapshots."""

    LOADING_STARTED = "loading_started"
    LOADING_ENDED = "loading_ended"
    DIALOG_APPEARED = "dialog_appeared"
    DIALOG_CLOSED = "dialog_closed"
    ERROR_APPEARED = "error_appeared"


class ActionKind(str, Enum):
    """Actions that can trigger a recording."""

    CLICK = "click"
    TYPE = "type"
    NAVIGATE = "navigate"
    PRESS_KEY = "press_key"
    WAIT = "wait"


# Fields each action needs before it can be attempted
_REQUIRED_FIELDS: dict[ActionKind, tuple[str, ...]] = {
    ActionKind.CLICK: ("ref",),
    ActionKind.TYPE: ("ref", "text"),
    ActionKind.NAVIGATE: ("url",),
    ActionKind.PRESS_KEY: ("key",),
    ActionKind.WAIT: (),
}

# Free-text payloads that must not be stored with the recording
_REDACTED_FIELDS = frozenset({"text"})


class ActionSpec(BaseModel):
    """One action to perform on the target before recording starts."""

    kind: ActionKind
    ref: str | None = Field(default=None, description="Element ref for click/type")
    element: str | None = Field(default=None, description="Human-readable element description")
    text: str | None = Field(default=None, description="Text for type")
    url: str | None = Field(default=None, description="URL for navigate")
    key: str | None = Field(default=None, description="Key for press_key, e.g. Enter")

    def validate_required(self) -> None:
        """Fail fast when a field the action needs is missing."""
        missing = [name for name in _REQUIRED_FIELDS[self.kind] if not getattr(self, name)]
        if missing:
            raise InvalidArgumentError(f"{' and '.join(missing)} required for {self.kind.value}")

    def redacted_params(self) -> dict[str, Any]:
        """Parameters safe to keep with the recording (typed text is masked)."""
        params: dict[str, Any] = {"action": self.kind.value}
        for name in ("ref", "element", "text", "url", "key"):
            value = getattr(self, name)
            if value is None:
                continue
            params[name] = REDACTED if name in _REDACTED_FIELDS else value
        return params


@dataclass(frozen=True, slots=True)
class Snapshot:
    """One capture of target state. Never mutated after creation."""

    index: int
    content: str
    content_hash: str
    captured_at_ms: float
    changed: bool = True

    @property
    def total_lines(self) -> int:
        return self.content.count("\n") + 1


@dataclass(frozen=True, slots=True)
class SignificantEvent:
    relative_time_ms: int
    kind: EventKind
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class ChangeSummary:
    """Size of the diff between a changed snapshot and the one before it."""

    index: int
    relative_time_ms: int
    added: int
    removed: int
    changed: int


class RecordingInfo(BaseModel):
    """Read-only view of a recording session."""

    id: str
    trigger_kind: str
    trigger_params: dict[str, Any] = Field(default_factory=dict)
    state: SessionState
    created_at: datetime
    started_at_ms: float
    ended_at_ms: float | None = None
    duration_ms: int
    stop_reason: StopReason | None = None
    total_snapshots: int
    is_active: bool
    events: list[dict[str, Any]] = Field(default_factory=list)
    total_events: int = 0
    changes: int = 0
    error: str | None = None


@dataclass(frozen=True, slots=True)
class RecordingMatch:
    """A search hit inside one snapshot of a recording."""

    snapshot_index: int
    line: int
    content: str
