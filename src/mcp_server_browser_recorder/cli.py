"""CLI interface for the browser recorder MCP server."""

import json

import typer

from .config import CONFIG_FILE, settings

app = typer.Typer(help="Record how a browser page changes after an action, over MCP")


@app.command()
def config(
    as_json: bool = typer.Option(False, "--json", help="Print the full effective settings as JSON"),
    save: bool = typer.Option(False, "--save", help="Write the effective settings to the config file"),
) -> None:
    """Show current configuration."""
    if save:
        path = settings.save()
        print(f"Saved configuration to {path}")

    if as_json:
        print(json.dumps(settings.model_dump(mode="json"), indent=2))
        return

    print(f"Config file: {CONFIG_FILE}{'' if CONFIG_FILE.exists() else ' (not found)'}")
    print(f"Headless: {settings.browser.headless}")
    print(f"CDP URL: {settings.browser.cdp_url or '(launch new browser)'}")
    print(f"Proxy: {settings.browser.proxy_server or '(none)'}")
    print(f"Max Recordings: {settings.recording.max_recordings}")
    print(f"Max Snapshots: {settings.recording.max_snapshots}")
    print(f"Max Duration: {settings.recording.max_duration_ms}ms")
    print(f"Snapshot Cache Threshold: {settings.snapshot_cache.max_lines} lines")
    print(f"Output Cache Threshold: {settings.output_cache.max_lines} lines")
    print(f"Console Cache Threshold: {settings.console_cache.max_lines} lines")
    print(f"Transport: {settings.server.transport}")


@app.command()
def server(
    transport: str = typer.Option(None, "--transport", "-t", help="stdio, streamable-http or sse"),
    port: int = typer.Option(None, "--port", "-p", help="Port for HTTP transports"),
) -> None:
    """Run the MCP server."""
    if transport is not None:
        settings.server.transport = transport  # type: ignore[assignment]
    if port is not None:
        settings.server.port = port

    from .server import main

    main()


if __name__ == "__main__":
    app()
