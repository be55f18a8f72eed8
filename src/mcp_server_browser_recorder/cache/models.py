"""Value types for the expiring output caches."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class OutputKind(str, Enum):
    """The three kinds of oversized output that get cached."""

    SNAPSHOT = "snapshot"  # full page state dumps
    OUTPUT = "output"  # free-form tool output
    CONSOLE = "console"  # structured console message logs


@dataclass(slots=True)
class CacheEntry:
    """One cached blob. Owned by the cache that created it."""

    key: str
    raw_text: str
    lines: list[str]
    total_lines: int
    created_at: float
    expires_at: float
    source_label: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class StructureHint:
    """A line worth jumping to, shown next to a fresh cache key."""

    line: int
    element: str
    ref: str | None = None


@dataclass(frozen=True, slots=True)
class PutResult:
    key: str
    total_lines: int
    preview: list[str]
    hints: list[StructureHint] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class Page:
    """A 1-indexed inclusive slice of a cached blob."""

    content: str
    start_line: int
    end_line: int
    total_lines: int
    has_more: bool

    @property
    def next_start_line(self) -> int | None:
        return self.end_line + 1 if self.has_more else None


@dataclass(frozen=True, slots=True)
class SearchMatch:
    line: int
    content: str


@dataclass(frozen=True, slots=True)
class SearchResult:
    query: str
    matches: list[SearchMatch]
    total_matches: int
