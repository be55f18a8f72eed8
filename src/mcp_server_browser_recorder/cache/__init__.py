"""Expiring caches for oversized tool output (snapshots, generic output, console logs)."""

from ..config import AppSettings
from .console import ConsoleMessage, ConsoleStats, format_console_log, messages_by_type, search_messages, type_filter
from .models import CacheEntry, OutputKind, Page, PutResult, SearchMatch, SearchResult, StructureHint
from .previews import error_lines, first_lines, structure_hints
from .store import ExpiringCache, paginate_lines


class OutputCaches:
    """The three cache instances a server owns, one per output kind."""

    def __init__(self, snapshot: ExpiringCache, output: ExpiringCache, console: ExpiringCache):
        self._caches = {
            OutputKind.SNAPSHOT: snapshot,
            OutputKind.OUTPUT: output,
            OutputKind.CONSOLE: console,
        }

    @classmethod
    def from_settings(cls, app_settings: AppSettings) -> "OutputCaches":
        return cls(
            snapshot=ExpiringCache.from_settings(
                OutputKind.SNAPSHOT, app_settings.snapshot_cache, preview=structure_hints, key_prefix=""
            ),
            output=ExpiringCache.from_settings(
                OutputKind.OUTPUT, app_settings.output_cache, preview=first_lines, key_prefix="out_"
            ),
            console=ExpiringCache.from_settings(
                OutputKind.CONSOLE, app_settings.console_cache, preview=error_lines, key_prefix="con_"
            ),
        )

    def __getitem__(self, kind: OutputKind) -> ExpiringCache:
        return self._caches[kind]

    @property
    def snapshot(self) -> ExpiringCache:
        return self._caches[OutputKind.SNAPSHOT]

    @property
    def output(self) -> ExpiringCache:
        return self._caches[OutputKind.OUTPUT]

    @property
    def console(self) -> ExpiringCache:
        return self._caches[OutputKind.CONSOLE]

    def stats(self) -> dict[str, int]:
        return {kind.value: len(cache) for kind, cache in self._caches.items()}

    def shutdown(self) -> None:
        for cache in self._caches.values():
            cache.shutdown()


__all__ = [
    "CacheEntry",
    "ConsoleMessage",
    "ConsoleStats",
    "ExpiringCache",
    "OutputCaches",
    "OutputKind",
    "Page",
    "PutResult",
    "SearchMatch",
    "SearchResult",
    "StructureHint",
    "error_lines",
    "first_lines",
    "format_console_log",
    "messages_by_type",
    "paginate_lines",
    "search_messages",
    "structure_hints",
    "type_filter",
]
