"""
Daemon commands: run, stop, status.
"""

import json
import socket
from pathlib import Path
from typing import Annotated, Optional
from urllib.error import URLError
from urllib.request import Request, urlopen

import typer
from rich import print as rprint
from rich.table import Table

from ._shared import app, console, UrlOption, base_url


STATE_STYLES = {
    "NO_CLIENT": "dim",
    "REAL_ACTIVE": "green",
    "GHOST_ACTIVE": "magenta",
    "TRANSITIONING": "yellow",
}


@app.command("run")
def run_cmd(
    host: Annotated[Optional[str], typer.Option("--host", help="Interface to bind")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port for heartbeat/status endpoints")] = None,
    target_url: Annotated[
        Optional[str], typer.Option("--target-url", help="Address the stand-in opens (default: this server)")
    ] = None,
    interval: Annotated[Optional[float], typer.Option("--interval", "-i", help="Liveness check interval in seconds")] = None,
    debounce: Annotated[Optional[float], typer.Option("--debounce", help="Debounce before committing a transition")] = None,
    timeout: Annotated[Optional[float], typer.Option("--timeout", help="Heartbeat timeout in seconds")] = None,
    show_browser: Annotated[bool, typer.Option("--show-browser", help="Run the stand-in with a visible window")] = False,
    log_file: Annotated[Optional[Path], typer.Option("--log-file", help="Log file (default: ~/.silent-client/silent_client.log)")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
):
    """Run the silent-client daemon in the foreground.

    Serves the heartbeat/status endpoints and substitutes a headless
    stand-in browser whenever no real client has been seen for the
    heartbeat timeout.
    """
    from ..config import load_settings
    from ..daemon import SilentClientDaemon, is_daemon_running, get_daemon_pid
    from ..exceptions import ConfigError
    from ..logging_config import setup_daemon_logging

    if is_daemon_running():
        rprint(f"[yellow]Silent client already running[/yellow] (PID {get_daemon_pid()})")
        raise typer.Exit(1)

    try:
        settings = load_settings({
            "host": host,
            "port": port,
            "target_url": target_url,
            "check_interval": interval,
            "debounce_time": debounce,
            "heartbeat_timeout": timeout,
        })
    except ConfigError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    if show_browser:
        settings.headless = False

    setup_daemon_logging(log_file=log_file, verbose=verbose)

    display_host = "localhost" if settings.host in ("127.0.0.1", "0.0.0.0") else settings.host
    console.rule("[bold]Silent Client[/bold]", style="dim")
    console.print(f"  Heartbeat: POST http://{display_host}:{settings.port}/heartbeat")
    console.print(f"  Status:    GET  http://{display_host}:{settings.port}/status")
    console.print(f"  Beacon:    GET  http://{display_host}:{settings.port}/beacon.js")
    console.print(f"  Stand-in:  {settings.agent_url}")
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    try:
        SilentClientDaemon(settings).run()
    except OSError as e:
        rprint(f"[red]Error:[/red] could not start server on port {settings.port}: {e}")
        raise typer.Exit(1)


@app.command("stop")
def stop_cmd():
    """Stop the running daemon (retracts the stand-in before exiting)."""
    from ..daemon import get_daemon_pid, is_daemon_running, stop_daemon
    from ..settings import DEFAULT_SHUTDOWN_DEADLINE

    pid = get_daemon_pid()
    if pid is None:
        rprint("[dim]Silent client is not running[/dim]")
        return

    if not stop_daemon(timeout=DEFAULT_SHUTDOWN_DEADLINE + 2):
        rprint("[red]Failed to stop silent client[/red]")
        raise typer.Exit(1)

    if is_daemon_running():
        rprint(f"[yellow]Stop requested[/yellow] (PID {pid} still shutting down)")
    else:
        rprint(f"[green]✓[/green] Silent client stopped (was PID {pid})")


def fetch_status(url: str, timeout: float = 3.0) -> Optional[dict]:
    """GET {url}/status; None if the server can't be reached."""
    req = Request(f"{url}/status", method="GET")
    try:
        with urlopen(req, timeout=timeout) as resp:
            return json.loads(resp.read().decode("utf-8"))
    except (URLError, socket.timeout, json.JSONDecodeError, OSError):
        return None


@app.command("status")
def status_cmd(
    url: UrlOption = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print raw JSON")] = False,
):
    """Show the committed state and whether a real client is connected."""
    server = base_url(url)
    data = fetch_status(server)
    if data is None:
        rprint(f"[red]Silent client not reachable at {server}[/red]")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(data, indent=2))
        return

    state = str(data.get("state", "unknown"))
    style = STATE_STYLES.get(state, "white")
    table = Table(show_header=False, box=None)
    table.add_row("State", f"[{style}]{state}[/{style}]")
    table.add_row("Real client", "[green]alive[/green]" if data.get("realClientAlive") else "[dim]absent[/dim]")
    if data.get("pendingTarget"):
        table.add_row("Pending", str(data["pendingTarget"]))
    if "agentActive" in data:
        table.add_row("Stand-in", "running" if data["agentActive"] else "none")
    if data.get("lastError"):
        table.add_row("Last error", f"[red]{data['lastError']}[/red]")
    console.print(table)
