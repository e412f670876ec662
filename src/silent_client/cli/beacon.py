"""
Beacon command: report presence from this machine.
"""

import time
from typing import Annotated

import typer
from rich import print as rprint

from ._shared import app, UrlOption, base_url


@app.command("beacon")
def beacon_cmd(
    url: UrlOption = None,
    interval: Annotated[float, typer.Option("--interval", "-i", help="Seconds between heartbeats")] = 2.0,
):
    """Send heartbeats in the foreground until interrupted (Ctrl+C)."""
    from ..beacon import is_agent_context, start_beacon
    from ..settings import HEARTBEAT_PATH

    if is_agent_context():
        rprint("[yellow]Running as the stand-in agent; heartbeats suppressed.[/yellow]")
        raise typer.Exit(1)

    target = f"{base_url(url)}{HEARTBEAT_PATH}"
    beacon = start_beacon(target, interval)
    rprint(f"Beacon sending to {target} every {interval}s. Press Ctrl+C to stop.")

    try:
        while True:
            mode = "stand-in was active" if beacon.ghosting else "ok"
            print(f"\rSent: {beacon.sent}  Failed: {beacon.failures}  ({mode})".ljust(60), end="", flush=True)
            time.sleep(1.0)
    except KeyboardInterrupt:
        print("\nStopping beacon...")
        beacon.stop(timeout=2.0)
