"""MCP server exposing browser state recording and cached output navigation as tools."""

import asyncio
import json
import logging
import os
import sys
import time
from contextlib import asynccontextmanager


def _configure_stdio_logging() -> None:
    """Configure logging for stdio MCP mode - all logs MUST go to stderr.

    In stdio mode, stdout is reserved exclusively for JSON-RPC messages.
    Any logging or print() to stdout corrupts the protocol stream.
    """
    # Suppress noisy loggers from dependencies BEFORE they're imported
    os.environ.setdefault("BROWSER_USE_LOGGING_LEVEL", "warning")

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    root = logging.getLogger()
    root.handlers = [stderr_handler]
    root.setLevel(logging.WARNING)

    for logger_name in ["httpx", "httpcore", "urllib3", "asyncio", "browser_use", "cdp_use", "bubus"]:
        dep_logger = logging.getLogger(logger_name)
        dep_logger.setLevel(logging.WARNING)
        dep_logger.handlers = [stderr_handler]
        dep_logger.propagate = False


# Configure logging BEFORE importing browser_use and other noisy dependencies
_configure_stdio_logging()

# ruff: noqa: E402 - Intentional late imports after logging configuration
from fastmcp import FastMCP
from pydantic import ValidationError

from .cache import OutputCaches, format_console_log, messages_by_type, search_messages
from .cache.console import query_type
from .config import AppSettings, settings
from .exceptions import ActionFailedError, BrowserError, InvalidArgumentError, NotFoundError
from .formatting import (
    format_cached_output,
    format_console_lines,
    format_console_summary,
    format_diff,
    format_page,
    format_recording_info,
    format_recording_list,
    format_recording_search,
    format_recording_snapshot,
    format_recording_summary,
    format_search,
    format_snapshot,
    format_snapshot_notice,
)
from .host import AutomationHost, BrowserUseHost
from .observability import setup_structured_logging
from .recording import ActionSpec, RecordingRegistry

# Apply configured log level (may override the default WARNING)
logger = logging.getLogger("mcp_server_browser_recorder")
logger.setLevel(getattr(logging, settings.server.logging_level.upper()))

# Track server start time for uptime calculation
_server_start_time = time.time()


def serve(host: AutomationHost | None = None, app_settings: AppSettings = settings) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        host: What recordings and snapshots are taken from. Defaults to a
            lazily started browser-use session.
        app_settings: Cache, recording and browser limits.
    """
    setup_structured_logging(app_settings.server.logging_level)

    caches = OutputCaches.from_settings(app_settings)
    registry = RecordingRegistry.from_settings(app_settings.recording)
    automation_host: AutomationHost = host if host is not None else BrowserUseHost(app_settings.browser)
    max_events = app_settings.recording.max_events_shown

    @asynccontextmanager
    async def _server_lifespan(server: FastMCP):
        yield
        await registry.shutdown()
        caches.shutdown()
        await automation_host.close()
        logger.info("Recordings, caches and browser shut down")

    server = FastMCP("mcp_server_browser_recorder", lifespan=_server_lifespan)

    def _respond(text: str, tool_name: str) -> str:
        """Return ``text``, or a cached-output notice when it is too long to inline."""
        if not caches.output.needs_caching(text):
            return text
        result = caches.output.put(text, tool_name)
        return format_cached_output(result, tool_name)

    async def _capture_console() -> str:
        """Cache the current console log and return its key."""
        target = await automation_host.get_target()
        log_text, stats = format_console_log(await target.console_messages())
        return caches.console.put(log_text, "browser_console_messages", metadata={"stats": stats.to_dict()}).key

    # --- Snapshot Tools ---

    @server.tool()
    async def browser_snapshot() -> str:
        """
        Capture an outline of the current page.

        Large snapshots are cached and a navigation notice with a structure
        overview is returned instead; use get_cached_snapshot and
        search_cached_snapshot to read them.

        Returns:
            The page outline, or a cache notice for large pages
        """
        try:
            target = await automation_host.get_target()
            text = await target.capture_state()
            page = await target.page_info()
        except Exception as e:
            logger.error(f"Snapshot failed: {e}")
            return f"Error: {e}"

        if not caches.snapshot.needs_caching(text):
            return format_snapshot(text, page["url"], page["title"])
        result = caches.snapshot.put(text, "browser_snapshot", metadata=page)
        return format_snapshot_notice(result, page["url"], page["title"])

    @server.tool()
    async def get_cached_snapshot(cache_id: str, start_line: int = 1, end_line: int | None = None) -> str:
        """
        Get a range of lines from a cached snapshot.

        Args:
            cache_id: Cache ID from browser_snapshot
            start_line: First line, 1-indexed (default 1)
            end_line: Last line, inclusive (default start_line + 99)

        Returns:
            The requested lines with a hint for the next page
        """
        try:
            page = caches.snapshot.paginate(cache_id, start_line, end_line)
        except (NotFoundError, InvalidArgumentError) as e:
            return f"Error: {e}"
        return format_page(page, fence="yaml")

    @server.tool()
    async def search_cached_snapshot(cache_id: str, query: str, max_results: int = 20) -> str:
        """
        Case-insensitive search in a cached snapshot.

        Args:
            cache_id: Cache ID from browser_snapshot
            query: Text to look for, e.g. "button" or an element name
            max_results: Maximum matches to return (default 20)

        Returns:
            Matching lines with their line numbers
        """
        try:
            result = caches.snapshot.search(cache_id, query, max_results)
        except NotFoundError as e:
            return f"Error: {e}"
        return format_search(result)

    # --- Output Cache Tools ---

    @server.tool()
    async def get_cached_output(cache_id: str, start_line: int = 1, end_line: int | None = None) -> str:
        """
        Get a range of lines from a cached tool output.

        Args:
            cache_id: Cache ID from a cached-output notice
            start_line: First line, 1-indexed (default 1)
            end_line: Last line, inclusive (default start_line + 49)

        Returns:
            The requested lines with a hint for the next page
        """
        try:
            page = caches.output.paginate(cache_id, start_line, end_line)
        except (NotFoundError, InvalidArgumentError) as e:
            return f"Error: {e}"
        return format_page(page)

    @server.tool()
    async def search_cached_output(cache_id: str, query: str, max_results: int = 20) -> str:
        """
        Case-insensitive search in a cached tool output.

        Args:
            cache_id: Cache ID from a cached-output notice
            query: Text to look for
            max_results: Maximum matches to return (default 20)

        Returns:
            Matching lines with their line numbers
        """
        try:
            result = caches.output.search(cache_id, query, max_results)
        except NotFoundError as e:
            return f"Error: {e}"
        return format_search(result)

    # --- Console Tools ---

    @server.tool()
    async def browser_console_messages() -> str:
        """
        Collect the page's console messages and uncaught exceptions.

        The full log is always cached so it can be filtered and searched
        later; small logs are also shown inline.

        Returns:
            Message statistics, the log or an error preview, and a cache ID
        """
        try:
            target = await automation_host.get_target()
            messages = await target.console_messages()
        except Exception as e:
            logger.error(f"Console capture failed: {e}")
            return f"Error: {e}"

        if not messages:
            return "No console messages."

        log_text, stats = format_console_log(messages)
        result = caches.console.put(log_text, "browser_console_messages", metadata={"stats": stats.to_dict()})
        inline_log = None if caches.console.needs_caching(log_text) else log_text
        return format_console_summary(stats, result, inline_log)

    @server.tool()
    async def browser_console_search(
        query: str,
        cache_id: str | None = None,
        type: str | None = None,
        max_results: int = 20,
    ) -> str:
        """
        Search console messages.

        Args:
            query: Text to look for
            cache_id: Console cache ID (default: capture the current console)
            type: Only search one type: error, warning, info, debug, log (default: all)
            max_results: Maximum matches to return (default 20)

        Returns:
            Matching messages with their line numbers
        """
        try:
            query_type(type)
            key = cache_id or await _capture_console()
            result = search_messages(caches.console, key, query, max_results, type)
        except (NotFoundError, InvalidArgumentError) as e:
            return f"Error: {e}"
        except BrowserError as e:
            logger.error(f"Console capture failed: {e}")
            return f"Error: {e}"
        return format_console_lines(result, key, f'Console search: "{query}"')

    @server.tool()
    async def browser_console_by_type(type: str, cache_id: str | None = None, max_results: int = 50) -> str:
        """
        Get console messages of one type.

        Args:
            type: error, warning, info, debug, log or all
            cache_id: Console cache ID (default: capture the current console)
            max_results: Maximum messages to return (default 50)

        Returns:
            Messages of that type, with the total count
        """
        try:
            query_type(type)
            key = cache_id or await _capture_console()
            result = messages_by_type(caches.console, key, type, max_results)
        except (NotFoundError, InvalidArgumentError) as e:
            return f"Error: {e}"
        except BrowserError as e:
            logger.error(f"Console capture failed: {e}")
            return f"Error: {e}"
        title = "All console messages" if result.query == "all" else f"Console {result.query} messages"
        return format_console_lines(result, key, title)

    @server.tool()
    async def get_cached_console(cache_id: str, start_line: int = 1, end_line: int | None = None) -> str:
        """
        Get a range of lines from a cached console log.

        Args:
            cache_id: Console cache ID
            start_line: First line, 1-indexed (default 1)
            end_line: Last line, inclusive (default start_line + 49)

        Returns:
            The requested messages with a hint for the next page
        """
        try:
            page = caches.console.paginate(cache_id, start_line, end_line)
        except (NotFoundError, InvalidArgumentError) as e:
            return f"Error: {e}"
        return format_page(page)

    # --- Recording Tools ---

    @server.tool()
    async def browser_action_record(
        action: str,
        ref: str | None = None,
        element: str | None = None,
        text: str | None = None,
        url: str | None = None,
        key: str | None = None,
        duration: int | None = None,
        interval: int | None = None,
        idle_threshold: int | None = None,
        wait: bool = True,
    ) -> str:
        """
        Perform an action and record how the page changes afterwards.

        Snapshots are taken every `interval` ms until the page has been idle
        for `idle_threshold` ms, `duration` ms have passed, or the snapshot
        limit is reached. Only one action is performed per recording.

        Args:
            action: click, type, navigate, press_key or wait
            ref: Element ref from a snapshot (click, type)
            element: Human-readable element description (click)
            text: Text to type (type). Not stored with the recording.
            url: URL to open (navigate)
            key: Key to press, e.g. Enter (press_key)
            duration: Maximum recording time in ms (default 10000, max 30000)
            interval: Time between snapshots in ms (default 100, min 50)
            idle_threshold: Stop after this long without changes, in ms (default 2000)
            wait: Wait for the recording to finish (default). With False the
                recording runs in the background; poll browser_recording_info.

        Returns:
            Recording summary with detected events and next steps
        """
        try:
            spec = ActionSpec(kind=action, ref=ref, element=element, text=text, url=url, key=key)
        except ValidationError:
            return f"Error: Unknown action '{action}'. Use: click, type, navigate, press_key, wait"

        try:
            target = await automation_host.get_target()
            session = registry.create(
                spec, target, duration_ms=duration, interval_ms=interval, idle_threshold_ms=idle_threshold
            )
        except (InvalidArgumentError, BrowserError) as e:
            return f"Error: {e}"

        task = registry.start(session)
        if not wait:
            return format_recording_summary(session.info(max_events))

        await asyncio.wait({task})
        if task.cancelled():
            return f"Error: Recording {session.id} was deleted before it finished"
        try:
            info = task.result()
        except ActionFailedError as e:
            return f"Error: {e}"
        return format_recording_summary(info)

    @server.tool()
    async def browser_recording_stop(recording_id: str) -> str:
        """
        Stop a running recording. Snapshots taken so far are kept.

        Args:
            recording_id: Recording ID

        Returns:
            Confirmation message
        """
        try:
            session = registry.get(recording_id)
        except NotFoundError as e:
            return f"Error: {e}"
        if not session.request_stop():
            reason = session.stop_reason.value if session.stop_reason else "stopped"
            return f"Recording {recording_id} already stopped ({reason})"
        return f"Stop requested for recording {recording_id}"

    @server.tool()
    async def browser_recording_diff(recording_id: str, index: int, to_index: int | None = None) -> str:
        """
        Show what changed between two snapshots of a recording.

        With only `index`, compares snapshot index-1 to index.

        Args:
            recording_id: Recording ID
            index: Snapshot index (or the "from" index when to_index is given)
            to_index: Optional "to" snapshot index

        Returns:
            Added, removed and changed lines
        """
        try:
            session = registry.get(recording_id)
            from_index, to_index, diff = session.diff(index, to_index)
        except NotFoundError as e:
            return f"Error: {e}"
        return _respond(format_diff(from_index, to_index, diff), "browser_recording_diff")

    @server.tool()
    async def browser_recording_snapshot(
        recording_id: str,
        index: int,
        start_line: int = 1,
        end_line: int | None = None,
    ) -> str:
        """
        Get lines of one snapshot of a recording.

        Args:
            recording_id: Recording ID
            index: Snapshot index (0 is the first capture after the action)
            start_line: First line, 1-indexed (default 1)
            end_line: Last line, inclusive (default start_line + 99)

        Returns:
            The requested lines with a hint for the next page
        """
        try:
            page = registry.get(recording_id).get_snapshot(index, start_line, end_line)
        except (NotFoundError, InvalidArgumentError) as e:
            return f"Error: {e}"
        return format_recording_snapshot(index, page)

    @server.tool()
    async def browser_recording_search(recording_id: str, query: str, max_results: int = 20) -> str:
        """
        Case-insensitive search across every snapshot of a recording.

        Args:
            recording_id: Recording ID
            query: Text to look for
            max_results: Maximum matches to return (default 20)

        Returns:
            Matches as [snapshot:line] content
        """
        try:
            matches = registry.get(recording_id).search(query, max_results)
        except NotFoundError as e:
            return f"Error: {e}"
        return _respond(format_recording_search(query, matches), "browser_recording_search")

    @server.tool()
    async def browser_recording_info(recording_id: str) -> str:
        """
        Get details of a recording: action, timing, snapshot count, status and events.

        Args:
            recording_id: Recording ID

        Returns:
            Recording details
        """
        try:
            session = registry.get(recording_id)
        except NotFoundError as e:
            return f"Error: {e}"
        return format_recording_info(session.info(max_events))

    @server.tool()
    async def browser_recording_list() -> str:
        """
        List recordings, oldest first.

        Returns:
            One row per recording
        """
        return _respond(format_recording_list(registry.list()), "browser_recording_list")

    @server.tool()
    async def browser_recording_delete(recording_id: str) -> str:
        """
        Delete a recording and its snapshots. A running recording is stopped.

        Args:
            recording_id: Recording ID, or "all"

        Returns:
            Confirmation message
        """
        if recording_id == "all":
            count = registry.delete_all()
            return f"Deleted {count} recordings"
        if registry.delete(recording_id):
            return f"Recording {recording_id} deleted"
        return f"Error: Recording {recording_id} not found"

    # --- Observability Tools ---

    @server.tool()
    async def health_check() -> str:
        """
        Health check endpoint with process stats, recordings and cache sizes.

        Returns:
            JSON object with server health status and statistics
        """
        import psutil

        process = psutil.Process()
        memory_info = process.memory_info()
        sessions = registry.list()

        return json.dumps(
            {
                "status": "healthy",
                "uptime_seconds": round(time.time() - _server_start_time, 1),
                "memory_mb": round(memory_info.rss / 1024 / 1024, 1),
                "recordings": len(sessions),
                "active_recordings": [
                    {
                        "recording_id": s.id,
                        "action": s.trigger_kind,
                        "snapshots": s.total_snapshots,
                        "state": s.state.value,
                    }
                    for s in sessions
                    if s.is_active
                ],
                "cache_entries": caches.stats(),
            },
            indent=2,
        )

    return server


server_instance = serve()


def main() -> None:
    """Entry point for MCP server."""
    transport = settings.server.transport

    if transport == "stdio":
        logger.info("Starting MCP browser recorder server (transport: stdio)")
        server_instance.run()
    elif transport in ("streamable-http", "sse"):
        logger.info(f"Starting MCP browser recorder server (transport: {transport})")
        logger.info(f"HTTP server at http://{settings.server.host}:{settings.server.port}/mcp")
        server_instance.run(transport=transport, host=settings.server.host, port=settings.server.port)
    else:
        raise ValueError(f"Unknown transport: {transport}")


if __name__ == "__main__":
    main()
