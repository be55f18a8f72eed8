"""Configuration management using Pydantic settings with optional file persistence."""

import json
import os
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Paths ---

APP_NAME = "mcp-server-browser-recorder"


def get_config_dir() -> Path:
    """Get the configuration directory (e.g. ~/.config/mcp-server-browser-recorder)."""
    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", Path.home() / ".config")).expanduser()
    else:
        base = Path("~/.config").expanduser()

    return base / APP_NAME


CONFIG_FILE = get_config_dir() / "config.json"


def load_config_file() -> dict[str, Any]:
    """Load settings from the JSON config file if it exists."""
    if not CONFIG_FILE.exists():
        return {}

    try:
        text = CONFIG_FILE.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        return json.loads(text)
    except (OSError, json.JSONDecodeError):
        return {}


def save_config_file(config_data: dict[str, Any]) -> None:
    """Save settings to the JSON config file."""
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(config_data, indent=2), encoding="utf-8")


class CacheSettings(BaseSettings):
    """Limits for one expiring output cache."""

    max_lines: int = Field(default=100, description="Outputs with more lines than this are cached")
    max_entries: int = Field(default=30, description="Entries kept before the oldest is evicted")
    expiry_seconds: float = Field(default=30 * 60, description="Lifetime of a cached entry")
    page_size: int = Field(default=50, description="Default number of lines per page")
    preview_lines: int = Field(default=20, description="Lines shown in the preview")
    match_chars: int = Field(default=150, description="Search matches are truncated to this length")


class SnapshotCacheSettings(CacheSettings):
    """Cache for full page snapshots."""

    model_config = SettingsConfigDict(env_prefix="MCP_SNAPSHOT_CACHE_")

    max_lines: int = Field(default=300)
    max_entries: int = Field(default=50)
    page_size: int = Field(default=100)
    preview_lines: int = Field(default=15)
    match_chars: int = Field(default=100)


class OutputCacheSettings(CacheSettings):
    """Cache for any other oversized tool output."""

    model_config = SettingsConfigDict(env_prefix="MCP_OUTPUT_CACHE_")


class ConsoleCacheSettings(CacheSettings):
    """Cache for console message logs."""

    model_config = SettingsConfigDict(env_prefix="MCP_CONSOLE_CACHE_")

    max_lines: int = Field(default=50)
    max_entries: int = Field(default=20)
    preview_lines: int = Field(default=3)
    match_chars: int = Field(default=200)


class RecordingSettings(BaseSettings):
    """Recording session limits."""

    model_config = SettingsConfigDict(env_prefix="MCP_RECORDING_")

    max_recordings: int = Field(default=5, description="Recordings kept before the oldest is deleted")
    max_snapshots: int = Field(default=200, description="Snapshots per recording")
    default_duration_ms: int = Field(default=10_000)
    max_duration_ms: int = Field(default=30_000, description="Requested durations are clamped to this")
    default_interval_ms: int = Field(default=100)
    min_interval_ms: int = Field(default=50)
    idle_stop_ms: int = Field(default=2_000, description="Stop when nothing changed for this long")
    max_line_length: int = Field(default=200, description="Diff and search lines are truncated to this")
    snapshot_page_size: int = Field(default=100)
    max_events_shown: int = Field(default=20)


class BrowserSettings(BaseSettings):
    """Browser configuration."""

    model_config = SettingsConfigDict(env_prefix="MCP_BROWSER_")

    headless: bool = Field(default=True)
    cdp_url: Optional[str] = Field(default=None, description="Attach to an existing browser via CDP")
    proxy_server: Optional[str] = Field(default=None, description="Proxy server URL (e.g., http://host:8080)")
    proxy_bypass: Optional[str] = Field(default=None, description="Comma-separated hosts to bypass proxy")
    action_timeout_ms: int = Field(default=5_000, description="Timeout for click/type/navigate actions")
    console_buffer: int = Field(default=1_000, description="Console messages kept per browser session")


TransportType = Literal["stdio", "streamable-http", "sse"]


class ServerSettings(BaseSettings):
    """Server configuration."""

    model_config = SettingsConfigDict(env_prefix="MCP_SERVER_")

    logging_level: str = Field(default="INFO")
    transport: TransportType = Field(default="stdio", description="MCP transport: stdio, streamable-http, or sse")
    host: str = Field(default="127.0.0.1", description="Host for HTTP transports")
    port: int = Field(default=8383, description="Port for HTTP transports")


class AppSettings(BaseSettings):
    """Root application settings.

    Priority: Environment Variables > Config File > Defaults
    """

    model_config = SettingsConfigDict(env_prefix="MCP_", extra="ignore")

    snapshot_cache: SnapshotCacheSettings = Field(default_factory=SnapshotCacheSettings)
    output_cache: OutputCacheSettings = Field(default_factory=OutputCacheSettings)
    console_cache: ConsoleCacheSettings = Field(default_factory=ConsoleCacheSettings)
    recording: RecordingSettings = Field(default_factory=RecordingSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    def save(self) -> Path:
        """Save current configuration to file."""
        save_config_file(self.model_dump(mode="json", exclude_none=True))
        return CONFIG_FILE


def _load_section(section_cls: type[BaseSettings], file_section: dict[str, Any]) -> BaseSettings:
    """Build one section from its file values, letting env vars win field by field."""
    from_env = section_cls()
    # Fields read from the environment are the only ones marked as set
    env_values = from_env.model_dump(include=from_env.model_fields_set)
    return section_cls(**{**file_section, **env_values})


def _load_settings() -> AppSettings:
    """Load settings with file config as base, env vars overlay."""
    file_data = load_config_file()
    sections = {
        name: _load_section(field.annotation, file_data[name])
        for name, field in AppSettings.model_fields.items()
        if isinstance(file_data.get(name), dict)
    }
    return AppSettings(**sections)


settings = _load_settings()
