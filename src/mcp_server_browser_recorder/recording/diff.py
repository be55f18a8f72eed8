"""Snapshot diffing: a line-set diff plus a diff of ref-tagged elements.

This module is intentionally "pure": no I/O, no logging, no global state.

The line diff uses set membership, not LCS. Reordered lines produce no noise,
and a line removed in one place and re-added with identical text elsewhere
produces no entry at all. Duplicate lines are treated as a set too.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..utils import split_lines, truncate

MAX_DIFF_ITEMS = 30

_REF_RE = re.compile(r"\[ref=([a-z0-9]+)\]", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class LineChange:
    line: int  # 1-based, in the side the line comes from
    content: str


@dataclass(frozen=True, slots=True)
class ElementChange:
    ref: str
    before: str
    after: str


@dataclass(frozen=True, slots=True)
class SnapshotDiff:
    """Capped diff lists plus uncapped totals."""

    added: list[LineChange] = field(default_factory=list)
    removed: list[LineChange] = field(default_factory=list)
    changed: list[ElementChange] = field(default_factory=list)
    total_added: int = 0
    total_removed: int = 0
    total_changed: int = 0

    @property
    def is_empty(self) -> bool:
        return self.total_added + self.total_removed + self.total_changed == 0


def extract_refs(lines: list[str]) -> dict[str, str]:
    """Map element ref -> stripped line. The last line carrying a ref wins."""
    refs: dict[str, str] = {}
    for line in lines:
        match = _REF_RE.search(line)
        if match:
            refs[match.group(1)] = line.strip()
    return refs


def diff_snapshots(
    before: str,
    after: str,
    *,
    max_items: int = MAX_DIFF_ITEMS,
    max_line_length: int = 200,
    max_element_length: int = 80,
) -> SnapshotDiff:
    """Compare two snapshot texts.

    Args:
        before: Text of the earlier snapshot
        after: Text of the later snapshot
        max_items: Cap per category (added, removed, changed)
        max_line_length: Truncation for added/removed lines
        max_element_length: Truncation for before/after of changed elements
    """
    before_lines = split_lines(before)
    after_lines = split_lines(after)
    before_set = set(before_lines)
    after_set = set(after_lines)

    added = [LineChange(i + 1, line) for i, line in enumerate(after_lines) if line not in before_set]
    removed = [LineChange(i + 1, line) for i, line in enumerate(before_lines) if line not in after_set]

    before_refs = extract_refs(before_lines)
    after_refs = extract_refs(after_lines)
    changed = [
        ElementChange(ref, line, after_refs[ref])
        for ref, line in before_refs.items()
        if ref in after_refs and after_refs[ref] != line
    ]

    return SnapshotDiff(
        added=[LineChange(c.line, truncate(c.content, max_line_length)) for c in added[:max_items]],
        removed=[LineChange(c.line, truncate(c.content, max_line_length)) for c in removed[:max_items]],
        changed=[
            ElementChange(c.ref, truncate(c.before, max_element_length), truncate(c.after, max_element_length))
            for c in changed[:max_items]
        ],
        total_added=len(added),
        total_removed=len(removed),
        total_changed=len(changed),
    )
