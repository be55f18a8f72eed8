"""Heuristic detection of UI transitions between two consecutive snapshots.

Best-effort keyword matching over the snapshot text. The rule table is
order-sensitive: within a rule the first keyword whose presence flips decides
the event, and each rule emits at most one event per comparison.
"""

from __future__ import annotations

from dataclasses import dataclass

from .models import EventKind, SignificantEvent


@dataclass(frozen=True, slots=True)
class EventRule:
    """Keywords for one signal and the events its transitions map to.

    ``disappeared`` is None for one-way signals (errors have no "resolved").
    """

    name: str
    keywords: tuple[str, ...]
    appeared: EventKind
    disappeared: EventKind | None = None


EVENT_RULES: tuple[EventRule, ...] = (
    EventRule(
        name="loading",
        keywords=("loading", "spinner", "skeleton", "progressbar"),
        appeared=EventKind.LOADING_STARTED,
        disappeared=EventKind.LOADING_ENDED,
    ),
    EventRule(
        name="dialog",
        keywords=("dialog", "modal", "alertdialog", "popup"),
        appeared=EventKind.DIALOG_APPEARED,
        disappeared=EventKind.DIALOG_CLOSED,
    ),
    EventRule(
        name="error",
        keywords=("error",),
        appeared=EventKind.ERROR_APPEARED,
    ),
)


def detect_events(
    previous: str,
    current: str,
    relative_time_ms: int,
    rules: tuple[EventRule, ...] = EVENT_RULES,
) -> list[SignificantEvent]:
    """Return the events implied by going from ``previous`` to ``current``."""
    prev_lower = previous.lower()
    curr_lower = current.lower()

    events: list[SignificantEvent] = []
    for rule in rules:
        for keyword in rule.keywords:
            was_present = keyword in prev_lower
            is_present = keyword in curr_lower
            if not was_present and is_present:
                events.append(SignificantEvent(relative_time_ms, rule.appeared, keyword))
                break
            if was_present and not is_present and rule.disappeared is not None:
                events.append(SignificantEvent(relative_time_ms, rule.disappeared, keyword))
                break
    return events
