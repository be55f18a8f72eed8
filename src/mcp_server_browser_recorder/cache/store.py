"""Bounded, expiring, line-addressable cache for oversized tool output.

One implementation serves all output kinds; the kinds differ only in their
limits, key prefix and preview strategy.

Eviction is strict FIFO by insertion: reads never promote an entry. Each entry
gets an asyncio timer that removes it once its lifetime is over, and every read
also checks the deadline, so an entry past ``expires_at`` is never served even
when it was inserted outside a running event loop.
"""

import asyncio
import logging
import secrets
import time
from collections.abc import Callable
from typing import Any

from ..config import CacheSettings
from ..exceptions import InvalidArgumentError, NotFoundError
from ..utils import count_lines, split_lines, truncate
from .models import CacheEntry, OutputKind, Page, PutResult, SearchMatch, SearchResult
from .previews import PreviewStrategy, first_lines

logger = logging.getLogger(__name__)

LinePredicate = Callable[[str], bool]


class ExpiringCache:
    """Keyed store of cached text with pagination and substring search.

    Usage:
        cache = ExpiringCache(OutputKind.OUTPUT, max_lines=100, max_entries=30)
        if cache.needs_caching(text):
            result = cache.put(text, "browser_snapshot")
            page = cache.paginate(result.key, 1, 50)
    """

    def __init__(
        self,
        kind: OutputKind,
        *,
        max_lines: int = 100,
        max_entries: int = 30,
        expiry_seconds: float = 30 * 60,
        page_size: int = 50,
        preview_lines: int = 20,
        match_chars: int = 150,
        preview: PreviewStrategy = first_lines,
        key_prefix: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.kind = kind
        self.max_lines = max_lines
        self.max_entries = max_entries
        self.expiry_seconds = expiry_seconds
        self.page_size = page_size
        self.preview_lines = preview_lines
        self.match_chars = match_chars
        self._preview = preview
        self._key_prefix = key_prefix if key_prefix is not None else f"{kind.value[:3]}_"
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}

    @classmethod
    def from_settings(
        cls,
        kind: OutputKind,
        cache_settings: CacheSettings,
        preview: PreviewStrategy = first_lines,
        **kwargs: Any,
    ) -> "ExpiringCache":
        return cls(
            kind,
            max_lines=cache_settings.max_lines,
            max_entries=cache_settings.max_entries,
            expiry_seconds=cache_settings.expiry_seconds,
            page_size=cache_settings.page_size,
            preview_lines=cache_settings.preview_lines,
            match_chars=cache_settings.match_chars,
            preview=preview,
            **kwargs,
        )

    def __len__(self) -> int:
        self._purge_expired()
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        try:
            self.get(key)  # type: ignore[arg-type]
        except NotFoundError:
            return False
        return True

    def keys(self) -> list[str]:
        """Live keys in insertion order."""
        self._purge_expired()
        return list(self._entries)

    def needs_caching(self, text: str) -> bool:
        """True when ``text`` has more lines than this cache's threshold."""
        if not text:
            return False
        return count_lines(text) > self.max_lines

    def put(self, text: str, label: str, metadata: dict[str, Any] | None = None) -> PutResult:
        """Store ``text`` under a fresh key, evicting the oldest entry when full."""
        self._purge_expired()
        while len(self._entries) >= self.max_entries:
            oldest_key = next(iter(self._entries))
            logger.debug(f"{self.kind.value} cache full, evicting {oldest_key}")
            self._remove(oldest_key)

        key = self._new_key()
        lines = split_lines(text)
        now = self._clock()
        entry = CacheEntry(
            key=key,
            raw_text=text,
            lines=lines,
            total_lines=len(lines),
            created_at=now,
            expires_at=now + self.expiry_seconds,
            source_label=label,
            metadata=dict(metadata or {}),
        )
        self._entries[key] = entry
        self._schedule_expiry(key)

        preview, hints = self._preview(lines, self.preview_lines)
        logger.info(f"Cached {entry.total_lines} lines of {self.kind.value} from {label} as {key}")
        return PutResult(key=key, total_lines=entry.total_lines, preview=preview, hints=hints)

    def get(self, key: str) -> CacheEntry:
        """Return the live entry for ``key``."""
        entry = self._entries.get(key)
        if entry is None:
            raise NotFoundError(f"Cache ID '{key}' not found or expired")
        if self._clock() >= entry.expires_at:
            self._remove(key)
            raise NotFoundError(f"Cache ID '{key}' not found or expired")
        return entry

    def paginate(self, key: str, start_line: int = 1, end_line: int | None = None) -> Page:
        """Return lines ``start_line..end_line`` (1-indexed, inclusive)."""
        entry = self.get(key)
        return paginate_lines(entry.lines, start_line, end_line, self.page_size)

    def search(
        self,
        key: str,
        query: str,
        max_results: int = 20,
        where: LinePredicate | None = None,
        text_of: Callable[[str], str] | None = None,
    ) -> SearchResult:
        """Case-insensitive substring search, in line order, stopping at ``max_results``.

        Args:
            key: Cache key
            query: Substring to look for
            max_results: Scan stops once this many matches are found
            where: Optional extra filter a line must pass to count as a match
            text_of: Optional projection of a line onto the text the query is tested against
        """
        entry = self.get(key)
        needle = query.lower()
        matches: list[SearchMatch] = []
        for i, line in enumerate(entry.lines):
            if len(matches) >= max_results:
                break
            if where is not None and not where(line):
                continue
            searched = line if text_of is None else text_of(line)
            if needle in searched.lower():
                matches.append(SearchMatch(line=i + 1, content=truncate(line, self.match_chars)))
        return SearchResult(query=query, matches=matches, total_matches=len(matches))

    def delete(self, key: str) -> bool:
        """Remove an entry and cancel its expiry timer."""
        if key not in self._entries:
            return False
        self._remove(key)
        return True

    def shutdown(self) -> None:
        """Drop every entry and cancel all pending timers."""
        for key in list(self._entries):
            self._remove(key)
        logger.debug(f"{self.kind.value} cache shut down")

    # --- internals ---

    def _new_key(self) -> str:
        while True:
            key = self._key_prefix + secrets.token_hex(4)
            if key not in self._entries:
                return key

    def _schedule_expiry(self, key: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the deadline check on read still enforces expiry
            return
        self._timers[key] = loop.call_later(self.expiry_seconds, self._expire, key)

    def _expire(self, key: str) -> None:
        self._timers.pop(key, None)
        if self._entries.pop(key, None) is not None:
            logger.debug(f"{self.kind.value} cache entry {key} expired")

    def _remove(self, key: str) -> None:
        self._entries.pop(key, None)
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()

    def _purge_expired(self) -> None:
        now = self._clock()
        for key in [k for k, e in self._entries.items() if now >= e.expires_at]:
            self._remove(key)


def paginate_lines(lines: list[str], start_line: int = 1, end_line: int | None = None, page_size: int = 50) -> Page:
    """Slice ``lines`` by a 1-indexed inclusive range.

    ``end_line`` defaults to ``start_line + page_size - 1``; both ends are
    clamped to the available lines.
    """
    total = len(lines)
    start = max(1, start_line)
    if end_line is None:
        end = min(start + page_size - 1, total)
    else:
        if end_line < start:
            raise InvalidArgumentError(f"end_line ({end_line}) must not be before start_line ({start})")
        end = min(end_line, total)
    if start > total:
        raise InvalidArgumentError(f"start_line {start} is past the last line ({total})")

    return Page(
        content="\n".join(lines[start - 1 : end]),
        start_line=start,
        end_line=end,
        total_lines=total,
        has_more=end < total,
    )
