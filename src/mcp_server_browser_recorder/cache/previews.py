"""Preview strategies shown alongside a fresh cache key.

Each strategy takes the cached lines and a limit and returns the preview lines
plus any structure hints. The snapshot heuristics are best-effort regex matches
over the accessibility-style outline, not a parse of it.
"""

import re
from collections.abc import Callable

from ..utils import truncate
from .models import StructureHint

PreviewStrategy = Callable[[list[str], int], tuple[list[str], list[StructureHint]]]

_LANDMARK_RE = re.compile(r"^- (main|nav|header|footer|aside|article|section|iframe|dialog|form)", re.IGNORECASE)
_REF_RE = re.compile(r"\[ref=([a-z0-9]+)\]")
_INTERACTIVE_RE = re.compile(r"(button|link|textbox|checkbox|combobox|table|grid)", re.IGNORECASE)

# Ref hints stop being collected once this many hints exist
_REF_HINT_CUTOFF = 20


def first_lines(lines: list[str], limit: int) -> tuple[list[str], list[StructureHint]]:
    """Plain head of the output."""
    return lines[:limit], []


def structure_hints(lines: list[str], limit: int) -> tuple[list[str], list[StructureHint]]:
    """Landmarks and interactive elements of a page snapshot."""
    hints: list[StructureHint] = []
    for i, line in enumerate(lines):
        if _LANDMARK_RE.match(line):
            hints.append(StructureHint(line=i + 1, element=truncate(line.strip()[2:], 48)))

        ref_match = _REF_RE.search(line)
        if ref_match and len(hints) < _REF_HINT_CUTOFF and _INTERACTIVE_RE.search(line):
            hints.append(StructureHint(line=i + 1, element=truncate(line.strip(), 60), ref=ref_match.group(1)))

    hints = hints[:limit]
    return [h.element for h in hints], hints


def error_lines(lines: list[str], limit: int) -> tuple[list[str], list[StructureHint]]:
    """First few ``[error]`` lines of a console log."""
    preview = []
    hints = []
    for i, line in enumerate(lines):
        if len(preview) >= limit:
            break
        if line.startswith("[error]"):
            preview.append(truncate(line, 100))
            hints.append(StructureHint(line=i + 1, element=truncate(line, 100)))
    return preview, hints
