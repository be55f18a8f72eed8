"""Tests for console log formatting and per-type queries."""

import pytest

from mcp_server_browser_recorder.cache import OutputKind
from mcp_server_browser_recorder.cache.console import (
    ConsoleMessage,
    console_message_from_cdp,
    console_message_from_exception,
    format_console_log,
    format_message,
    message_text,
    messages_by_type,
    normalize_type,
    query_type,
    search_messages,
    type_filter,
)
from mcp_server_browser_recorder.cache.previews import error_lines
from mcp_server_browser_recorder.cache.store import ExpiringCache
from mcp_server_browser_recorder.exceptions import InvalidArgumentError


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("error", "error"),
        ("assert", "error"),
        ("warn", "warning"),
        ("warning", "warning"),
        ("info", "info"),
        ("trace", "debug"),
        ("debug", "debug"),
        ("table", "log"),
        (None, "log"),
    ],
)
def test_normalize_type(raw, expected):
    assert normalize_type(raw) == expected


class TestFormatMessage:
    def test_with_location(self):
        msg = ConsoleMessage(type="warn", text="deprecated", url="https://x.test/app.js", line_number=12)

        assert format_message(msg) == "[warning] deprecated (at https://x.test/app.js:12)"

    def test_without_location(self):
        assert format_message(ConsoleMessage(type="log", text="hi")) == "[log] hi"

    def test_newlines_escaped(self):
        line = format_message(ConsoleMessage(type="error", text="a\nb"))

        assert "\n" not in line
        assert line == "[error] a\\nb"

    def test_format_console_log_counts(self):
        messages = [
            ConsoleMessage(type="error", text="e1"),
            ConsoleMessage(type="assert", text="e2"),
            ConsoleMessage(type="warn", text="w"),
            ConsoleMessage(type="log", text="l"),
            ConsoleMessage(type="info", text="i"),
        ]

        text, stats = format_console_log(messages)

        assert text.count("\n") == 4
        assert stats.to_dict() == {"total": 5, "errors": 2, "warnings": 1, "logs": 1, "info": 1, "debug": 0}


class TestTypeQueries:
    @pytest.fixture
    def cache_and_key(self):
        cache = ExpiringCache(OutputKind.CONSOLE, max_lines=50, max_entries=20, preview=error_lines, key_prefix="con_")
        lines = [f"[error] failure {i}" for i in range(5)] + ["[log] failure in log", "[warning] careful"]
        return cache, cache.put("\n".join(lines), "console").key

    def test_type_filter_all(self):
        assert type_filter(None) is None
        assert type_filter("all") is None

    def test_search_with_type_filter(self, cache_and_key):
        cache, key = cache_and_key

        result = cache.search(key, "failure", where=type_filter("log"))

        assert [m.line for m in result.matches] == [6]

    def test_messages_by_type_total_uncapped(self, cache_and_key):
        cache, key = cache_and_key

        result = messages_by_type(cache, key, "error", max_results=2)

        assert len(result.matches) == 2
        assert result.total_matches == 5
        assert result.query == "error"

    def test_messages_by_type_normalizes(self, cache_and_key):
        cache, key = cache_and_key

        result = messages_by_type(cache, key, "warn")

        assert [m.content for m in result.matches] == ["[warning] careful"]

    def test_messages_by_type_all(self, cache_and_key):
        cache, key = cache_and_key

        result = messages_by_type(cache, key, "all", max_results=3)

        assert result.query == "all"
        assert result.total_matches == 7

    @pytest.mark.parametrize("bad", ["fatal", "errors", ""])
    def test_unknown_type_rejected(self, cache_and_key, bad):
        cache, key = cache_and_key

        with pytest.raises(InvalidArgumentError, match="Unknown console message type"):
            messages_by_type(cache, key, bad)
        with pytest.raises(InvalidArgumentError):
            search_messages(cache, key, "failure", msg_type=bad)

    def test_query_type_aliases(self):
        assert query_type("WARN") == "warning"
        assert query_type("assert") == "error"
        assert query_type("all") is None
        assert query_type(None) is None


class TestMessageSearch:
    @pytest.fixture
    def cache_and_key(self):
        cache = ExpiringCache(OutputKind.CONSOLE, max_lines=50, max_entries=20, preview=error_lines, key_prefix="con_")
        lines = [
            "[error] Failed to fetch (at https://x.test/app.js:3)",
            "[log] hello",
            "[warning] error budget low (at https://x.test/lib.js)",
        ]
        return cache, cache.put("\n".join(lines), "console").key

    def test_type_prefix_not_searched(self, cache_and_key):
        cache, key = cache_and_key

        result = search_messages(cache, key, "error")

        assert [m.line for m in result.matches] == [3]

    def test_location_not_searched(self, cache_and_key):
        cache, key = cache_and_key

        assert search_messages(cache, key, "app.js").total_matches == 0
        assert search_messages(cache, key, "fetch").matches[0].content.endswith("(at https://x.test/app.js:3)")

    def test_type_filter_combined(self, cache_and_key):
        cache, key = cache_and_key

        assert search_messages(cache, key, "error", msg_type="error").total_matches == 0
        assert search_messages(cache, key, "budget", msg_type="warn").total_matches == 1

    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("[error] boom (at https://x.test/a.js:1)", "boom"),
            ("[log] plain", "plain"),
            ("[info] see (at the docs)", "see (at the docs)"),
            ("no prefix", "no prefix"),
        ],
    )
    def test_message_text(self, line, expected):
        assert message_text(line) == expected


class TestCdpEvents:
    def test_console_api_called(self):
        event = {
            "type": "warning",
            "args": [
                {"type": "string", "value": "slow"},
                {"type": "number", "value": 3},
                {"type": "object", "description": "Object"},
            ],
            "stackTrace": {"callFrames": [{"url": "https://x.test/a.js", "lineNumber": 7}]},
            "timestamp": 123.0,
        }

        msg = console_message_from_cdp(event)

        assert msg.type == "warning"
        assert msg.text == "slow 3 Object"
        assert msg.location == "https://x.test/a.js:7"

    def test_exception_thrown(self):
        event = {
            "timestamp": 1.0,
            "exceptionDetails": {
                "text": "Uncaught",
                "url": "https://x.test/b.js",
                "lineNumber": 2,
                "exception": {"description": "TypeError: x is undefined"},
            },
        }

        msg = console_message_from_exception(event)

        assert msg.type == "error"
        assert msg.text == "TypeError: x is undefined"
        assert format_message(msg) == "[error] TypeError: x is undefined (at https://x.test/b.js:2)"
