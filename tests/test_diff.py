"""Tests for snapshot diffing and event detection."""

from mcp_server_browser_recorder.recording.diff import MAX_DIFF_ITEMS, diff_snapshots, extract_refs
from mcp_server_browser_recorder.recording.events import detect_events
from mcp_server_browser_recorder.recording.models import EventKind

BEFORE = '- main\n  - button "Save" [ref=e1]\n  - text: draft'
AFTER = '- main\n  - button "Save" [disabled] [ref=e1]\n  - text: saved'


class TestDiffSnapshots:
    def test_identical_snapshots_have_no_diff(self):
        diff = diff_snapshots(BEFORE, BEFORE)

        assert diff.is_empty
        assert diff.added == diff.removed == diff.changed == []

    def test_added_and_removed_swap_when_reversed(self):
        forward = diff_snapshots(BEFORE, AFTER)
        backward = diff_snapshots(AFTER, BEFORE)

        assert [c.content for c in forward.added] == [c.content for c in backward.removed]
        assert [c.content for c in forward.removed] == [c.content for c in backward.added]

    def test_line_numbers_come_from_their_side(self):
        diff = diff_snapshots("a\nb", "b\nc\nd")

        assert [(c.line, c.content) for c in diff.added] == [(2, "c"), (3, "d")]
        assert [(c.line, c.content) for c in diff.removed] == [(1, "a")]

    def test_changed_element_by_ref(self):
        diff = diff_snapshots(BEFORE, AFTER)

        assert diff.total_changed == 1
        change = diff.changed[0]
        assert change.ref == "e1"
        assert change.before == '- button "Save" [ref=e1]'
        assert change.after == '- button "Save" [disabled] [ref=e1]'

    def test_reordered_lines_are_not_changes(self):
        assert diff_snapshots("a\nb\nc", "c\na\nb").is_empty

    def test_lists_capped_but_totals_exact(self):
        before = ""
        after = "\n".join(f"item {i}" for i in range(50))

        diff = diff_snapshots(before, after)

        assert len(diff.added) == MAX_DIFF_ITEMS
        assert diff.total_added == 50

    def test_long_lines_truncated(self):
        diff = diff_snapshots("", "x" * 300, max_line_length=200)

        assert diff.added[0].content == "x" * 200 + "..."

    def test_element_lines_truncated(self):
        before = "- text: " + "a" * 100 + " [ref=e9]"
        after = "- text: " + "b" * 100 + " [ref=e9]"

        change = diff_snapshots(before, after).changed[0]

        assert len(change.before) == 83
        assert change.before.endswith("...")


def test_extract_refs_last_occurrence_wins():
    refs = extract_refs(['- link "a" [ref=e1]', '- link "b" [ref=e1]', "- text: none"])

    assert refs == {"e1": '- link "b" [ref=e1]'}


class TestDetectEvents:
    def test_loading_started_then_ended(self):
        idle = "- main\n  - text: ready"
        loading = '- main\n  - progressbar "Loading" [ref=e4]'

        started = detect_events(idle, loading, 150)
        ended = detect_events(loading, idle, 400)

        assert [(e.kind, e.relative_time_ms) for e in started] == [(EventKind.LOADING_STARTED, 150)]
        assert [(e.kind, e.relative_time_ms) for e in ended] == [(EventKind.LOADING_ENDED, 400)]

    def test_one_event_per_rule(self):
        events = detect_events("- main", '- dialog "Confirm" [ref=e1]\n  - text: modal popup', 0)

        assert [e.kind for e in events] == [EventKind.DIALOG_APPEARED]
        assert events[0].detail == "dialog"

    def test_error_has_no_disappeared_event(self):
        appeared = detect_events("- main", "- alert: Error saving", 10)
        gone = detect_events("- alert: Error saving", "- main", 20)

        assert [e.kind for e in appeared] == [EventKind.ERROR_APPEARED]
        assert gone == []

    def test_unchanged_text_has_no_events(self):
        text = '- progressbar "Loading" [ref=e1]'

        assert detect_events(text, text, 0) == []
