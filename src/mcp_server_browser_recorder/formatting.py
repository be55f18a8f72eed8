"""Markdown rendering of cache and recording results for tool responses."""

from .cache.console import ConsoleStats
from .cache.models import Page, PutResult, SearchResult
from .recording.diff import SnapshotDiff
from .recording.models import RecordingInfo, RecordingMatch
from .recording.session import RecordingSession

_TYPE_ICONS = {"error": "❌", "warning": "⚠️", "info": "ℹ️"}


def _icon(msg_type: str) -> str:
    return _TYPE_ICONS.get(msg_type, "📝")


def _more_hint(page: Page) -> str:
    if page.next_start_line is None:
        return ""
    return f"\n\n_More available. Next: start_line={page.next_start_line}_"


def format_cached_output(result: PutResult, tool_name: str) -> str:
    msg = "## Output Too Large - Cached\n\n"
    msg += f"**Tool:** {tool_name}\n"
    msg += f"**Total Lines:** {result.total_lines}\n"
    msg += f"**Cache ID:** `{result.key}`\n\n"
    msg += f"### Preview (first {len(result.preview)} lines)\n"
    msg += "```\n" + "\n".join(result.preview) + "\n```\n\n"
    msg += "### Commands\n"
    msg += f'- **Get lines:** `get_cached_output` cache_id="{result.key}" start_line=1 end_line=50\n'
    msg += f'- **Search:** `search_cached_output` cache_id="{result.key}" query="..."\n'
    return msg


def format_snapshot_notice(result: PutResult, url: str, title: str) -> str:
    """Notice returned instead of a snapshot that is too large to inline."""
    msg = "### Snapshot Too Large - Cached for Navigation\n\n"
    msg += f"**Page:** {title}\n"
    msg += f"**URL:** {url}\n"
    msg += f"**Total Lines:** {result.total_lines}\n"
    msg += f"**Cache ID:** `{result.key}`\n\n"
    msg += f"The snapshot is {result.total_lines} lines which would consume too many tokens.\n"
    msg += "Use these tools to navigate:\n\n"
    msg += "1. **Get specific lines:**\n"
    msg += f'   `get_cached_snapshot` with cache_id="{result.key}", start_line=1, end_line=100\n\n'
    msg += "2. **Search in snapshot:**\n"
    msg += f'   `search_cached_snapshot` with cache_id="{result.key}", query="button"\n\n'

    if result.hints:
        msg += "### Structure Overview (key elements):\n"
        for hint in result.hints:
            if hint.ref:
                msg += f"- Line {hint.line}: {hint.element} [ref={hint.ref}]\n"
            else:
                msg += f"- Line {hint.line}: {hint.element}\n"
    return msg


def format_snapshot(text: str, url: str, title: str) -> str:
    return f"- Page URL: {url}\n- Page Title: {title}\n- Page Snapshot:\n```yaml\n{text}\n```"


def format_page(page: Page, fence: str = "") -> str:
    text = f"Lines {page.start_line}-{page.end_line} of {page.total_lines}:\n"
    text += f"```{fence}\n" + page.content + "\n```"
    return text + _more_hint(page)


def format_search(result: SearchResult) -> str:
    text = f'Search "{result.query}" - {result.total_matches} matches:\n\n'
    if not result.matches:
        return text + "_No matches found._\n"
    for match in result.matches:
        text += f"Line {match.line}: {match.content}\n"
    return text


def format_console_summary(stats: ConsoleStats, put: PutResult, inline_log: str | None = None) -> str:
    text = "## Console Messages\n\n"
    text += "| Stat | Count |\n"
    text += "|------|-------|\n"
    text += f"| Total | {stats.total} |\n"
    text += f"| ❌ Errors | {stats.errors} |\n"
    text += f"| ⚠️ Warnings | {stats.warnings} |\n"
    text += f"| 📝 Logs | {stats.logs} |\n"
    text += f"| ℹ️ Info | {stats.info} |\n"
    text += f"| Debug | {stats.debug} |\n\n"
    text += f"**Cache ID:** `{put.key}`\n\n"

    if inline_log is not None:
        text += "### Messages\n```\n" + inline_log + "\n```\n\n"
    elif put.preview:
        text += "### Error Preview\n"
        for line in put.preview:
            text += f"- {line}\n"
        text += "\n"

    text += "### Commands\n"
    text += f'- **Errors:** `browser_console_by_type` type="error" cache_id="{put.key}"\n'
    text += f'- **Search:** `browser_console_search` query="..." cache_id="{put.key}"\n'
    text += f'- **Paginate:** `get_cached_console` cache_id="{put.key}"\n'
    return text


def format_console_lines(result: SearchResult, key: str, title: str) -> str:
    text = f"## {title}\n"
    text += f"Showing {len(result.matches)} of {result.total_matches}\n"
    text += f"**Cache ID:** `{key}`\n\n"
    if not result.matches:
        return text + "_No matches found._\n"
    for match in result.matches:
        msg_type = match.content[1 : match.content.find("]")] if match.content.startswith("[") else "log"
        text += f"{_icon(msg_type)} **L{match.line}** {match.content}\n"
    return text


def format_recording_summary(info: RecordingInfo) -> str:
    text = "## Recording Complete\n\n" if not info.is_active else "## Recording Started\n\n"
    text += "| Property | Value |\n"
    text += "|----------|-------|\n"
    text += f"| Recording ID | `{info.id}` |\n"
    text += f"| Action | {info.trigger_kind} |\n"
    text += f"| Duration | {info.duration_ms}ms |\n"
    text += f"| Snapshots | {info.total_snapshots} |\n"
    text += f"| Changes | {info.changes} |\n"
    text += f"| Stopped | {info.stop_reason.value if info.stop_reason else '-'} |\n\n"
    text += _format_events(info)

    text += "### Next Steps\n"
    text += f'- View changes: `browser_recording_diff` recording_id="{info.id}" index=1\n'
    text += f'- View snapshot: `browser_recording_snapshot` recording_id="{info.id}" index=0\n'
    text += f'- Search: `browser_recording_search` recording_id="{info.id}" query="..."\n'
    return text


def format_recording_info(info: RecordingInfo) -> str:
    status = "🔴 Recording" if info.is_active else f"✅ {info.stop_reason.value if info.stop_reason else 'stopped'}"
    text = f"## Recording: {info.id}\n\n"
    text += "| Property | Value |\n"
    text += "|----------|-------|\n"
    text += f"| Action | {info.trigger_kind} |\n"
    text += f"| Params | {', '.join(f'{k}={v}' for k, v in info.trigger_params.items())} |\n"
    text += f"| Created | {info.created_at.isoformat()} |\n"
    text += f"| Duration | {info.duration_ms}ms |\n"
    text += f"| Snapshots | {info.total_snapshots} |\n"
    text += f"| Status | {status} |\n"
    if info.error:
        text += f"| Error | {info.error} |\n"
    text += "\n"
    return text + _format_events(info)


def _format_events(info: RecordingInfo) -> str:
    if not info.events:
        return ""
    text = "### Detected Events\n"
    for event in info.events:
        detail = f" ({event['detail']})" if event.get("detail") else ""
        text += f"- **{event['time_ms']}ms**: {event['kind']}{detail}\n"
    if info.total_events > len(info.events):
        text += f"- _... {info.total_events - len(info.events)} more_\n"
    return text + "\n"


def format_recording_list(sessions: list[RecordingSession]) -> str:
    if not sessions:
        return "No recordings available."
    text = f"## Recordings ({len(sessions)})\n\n"
    text += "| ID | Action | Snapshots | Duration | Status |\n"
    text += "|----|--------|-----------|----------|--------|\n"
    for session in sessions:
        status = "🔴" if session.is_active else f"✅ {session.stop_reason.value if session.stop_reason else ''}"
        text += (
            f"| `{session.id}` | {session.trigger_kind} | {session.total_snapshots} | "
            f"{session.duration_so_far_ms}ms | {status} |\n"
        )
    return text


def format_diff(from_index: int, to_index: int, diff: SnapshotDiff) -> str:
    text = f"## Diff: Snapshot {from_index} → {to_index}\n\n"
    text += (
        f"**Summary:** +{diff.total_added} added, -{diff.total_removed} removed, ~{diff.total_changed} changed\n\n"
    )
    if diff.is_empty:
        return text + "_No changes detected._\n"

    if diff.added:
        text += "### Added\n"
        for item in diff.added:
            text += f"+ L{item.line}: {item.content}\n"
        text += "\n"
    if diff.removed:
        text += "### Removed\n"
        for item in diff.removed:
            text += f"- L{item.line}: {item.content}\n"
        text += "\n"
    if diff.changed:
        text += "### Changed Elements\n"
        for change in diff.changed:
            text += f"~ [ref={change.ref}]\n"
            text += f"  Before: {change.before}\n"
            text += f"  After: {change.after}\n"
    return text


def format_recording_snapshot(index: int, page: Page) -> str:
    text = f"## Snapshot {index}\n"
    text += f"Lines {page.start_line}-{page.end_line} of {page.total_lines}\n\n"
    text += "```yaml\n" + page.content + "\n```"
    return text + _more_hint(page)


def format_recording_search(query: str, matches: list[RecordingMatch]) -> str:
    text = f'## Search: "{query}"\n'
    text += f"Found {len(matches)} results\n\n"
    if not matches:
        return text + "_No matches found._\n"
    for match in matches:
        text += f"**[{match.snapshot_index}:{match.line}]** {match.content}\n"
    return text
