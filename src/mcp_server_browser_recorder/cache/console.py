"""Console message logs: normalisation, line format and per-type queries.

A console log is cached as plain text with one message per line:

    [error] Uncaught TypeError: x is undefined (at https://example.com/app.js:12)

so the generic cache can paginate and search it like any other output. The
``[type]`` prefix is what the type filters key on. Searches look at the
message text alone.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any, Literal

from ..exceptions import InvalidArgumentError
from ..utils import truncate
from .models import SearchMatch, SearchResult
from .store import ExpiringCache, LinePredicate

MessageType = Literal["error", "warning", "info", "debug", "log"]

MESSAGE_TYPES: tuple[MessageType, ...] = ("error", "warning", "info", "debug", "log")


@dataclass(frozen=True, slots=True)
class ConsoleMessage:
    """One console message as reported by the browser."""

    type: str
    text: str
    url: str | None = None
    line_number: int | None = None
    timestamp: float | None = None

    @property
    def location(self) -> str | None:
        if not self.url:
            return None
        if self.line_number is None:
            return self.url
        return f"{self.url}:{self.line_number}"


@dataclass(slots=True)
class ConsoleStats:
    total: int = 0
    errors: int = 0
    warnings: int = 0
    logs: int = 0
    info: int = 0
    debug: int = 0

    def add(self, msg_type: MessageType) -> None:
        self.total += 1
        if msg_type == "error":
            self.errors += 1
        elif msg_type == "warning":
            self.warnings += 1
        elif msg_type == "info":
            self.info += 1
        elif msg_type == "debug":
            self.debug += 1
        else:
            self.logs += 1

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def normalize_type(raw: str | None) -> MessageType:
    """Map browser console levels onto the five types we report."""
    t = (raw or "log").lower()
    if t in ("error", "assert"):
        return "error"
    if t in ("warning", "warn"):
        return "warning"
    if t == "info":
        return "info"
    if t in ("debug", "trace"):
        return "debug"
    return "log"


def format_message(message: ConsoleMessage, max_length: int = 500) -> str:
    """Render one message as a single cache line."""
    msg_type = normalize_type(message.type)
    text = truncate(message.text.replace("\r\n", "\\n").replace("\n", "\\n"), max_length)
    line = f"[{msg_type}] {text}"
    if message.location:
        line += f" (at {message.location})"
    return line


def format_console_log(messages: list[ConsoleMessage], max_length: int = 500) -> tuple[str, ConsoleStats]:
    """Render messages as cacheable text and count them by type."""
    stats = ConsoleStats()
    lines = []
    for message in messages:
        stats.add(normalize_type(message.type))
        lines.append(format_message(message, max_length))
    return "\n".join(lines), stats


_QUERY_ALIASES: dict[str, MessageType] = {"warn": "warning", "assert": "error", "trace": "debug"}

_LINE_RE = re.compile(r"^\[\w+\] (.*?)(?: \(at \S+\))?$")


def query_type(raw: str | None) -> MessageType | None:
    """Validate a type requested by a client; ``None`` means all types."""
    if raw is None or raw.lower() == "all":
        return None
    t = raw.lower()
    t = _QUERY_ALIASES.get(t, t)
    if t not in MESSAGE_TYPES:
        raise InvalidArgumentError(f"Unknown console message type '{raw}'. Use: all, {', '.join(MESSAGE_TYPES)}")
    return t  # type: ignore[return-value]


def message_text(line: str) -> str:
    """The message text of a cache line, without the ``[type]`` prefix or ``(at ...)`` location."""
    match = _LINE_RE.match(line)
    return match.group(1) if match else line


def type_filter(msg_type: str | None) -> LinePredicate | None:
    """Line predicate selecting one message type, or None for all types."""
    t = query_type(msg_type)
    if t is None:
        return None
    prefix = f"[{t}]"
    return lambda line: line.startswith(prefix)


def search_messages(
    cache: ExpiringCache,
    key: str,
    query: str,
    max_results: int = 20,
    msg_type: str | None = None,
) -> SearchResult:
    """Search message text only; type prefixes and source locations never match."""
    return cache.search(key, query, max_results, where=type_filter(msg_type), text_of=message_text)


def messages_by_type(cache: ExpiringCache, key: str, msg_type: str, max_results: int = 50) -> SearchResult:
    """All lines of one type; ``total_matches`` counts every one, not just those returned."""
    predicate = type_filter(msg_type)
    entry = cache.get(key)
    hits = [(i + 1, line) for i, line in enumerate(entry.lines) if predicate is None or predicate(line)]
    return SearchResult(
        query=query_type(msg_type) or "all",
        matches=[SearchMatch(line=n, content=truncate(line, cache.match_chars)) for n, line in hits[:max_results]],
        total_matches=len(hits),
    )


def console_message_from_cdp(event: dict[str, Any]) -> ConsoleMessage:
    """Build a message from a ``Runtime.consoleAPICalled`` event payload."""
    args = event.get("args") or []
    parts = []
    for arg in args:
        if "value" in arg:
            parts.append(str(arg["value"]))
        elif arg.get("description"):
            parts.append(str(arg["description"]))
        else:
            parts.append(str(arg.get("type", "")))
    frames = (event.get("stackTrace") or {}).get("callFrames") or []
    top = frames[0] if frames else {}
    return ConsoleMessage(
        type=str(event.get("type", "log")),
        text=" ".join(parts),
        url=top.get("url") or None,
        line_number=top.get("lineNumber"),
        timestamp=event.get("timestamp"),
    )


def console_message_from_exception(event: dict[str, Any]) -> ConsoleMessage:
    """Build an error message from a ``Runtime.exceptionThrown`` event payload."""
    details = event.get("exceptionDetails") or {}
    exception = details.get("exception") or {}
    text = exception.get("description") or details.get("text") or "Uncaught exception"
    return ConsoleMessage(
        type="error",
        text=str(text),
        url=details.get("url") or None,
        line_number=details.get("lineNumber"),
        timestamp=event.get("timestamp"),
    )
