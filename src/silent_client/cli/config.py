"""
Config commands: init, show, path.
"""

from typing import Annotated

import typer
from rich import print as rprint

from ._shared import config_app, console


CONFIG_TEMPLATE = """\
# Silent Client configuration
# Location: ~/.silent-client/config.yaml

# Heartbeat/status server
# server:
#   host: 127.0.0.1
#   port: 8000

# Address the stand-in opens (default: http://localhost:<port>)
# target_url: http://localhost:3000

# Liveness detection (seconds)
# monitor:
#   heartbeat_timeout: 10
#   check_interval: 2
#   debounce_time: 3
#   max_spawn_attempts: 3  # per spawn_window
#   spawn_window: 60

# Stand-in browser
# agent:
#   launch_timeout: 30
#   teardown_timeout: 10
#   headless: true

# Max seconds to wait for the stand-in to close on shutdown
# shutdown_deadline: 5
"""


@config_app.callback(invoke_without_command=True)
def config_default(ctx: typer.Context):
    """Show effective configuration (default when no subcommand given)."""
    if ctx.invoked_subcommand is None:
        _config_show()


@config_app.command("init")
def config_init(
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Overwrite existing config file")
    ] = False,
):
    """Create a config file with documented defaults.

    Creates ~/.silent-client/config.yaml with all options commented out.
    """
    from .. import config as config_module

    path = config_module.CONFIG_PATH
    if path.exists() and not force:
        rprint(f"[yellow]Config already exists:[/yellow] {path}")
        rprint("[dim]Use --force to overwrite[/dim]")
        raise typer.Exit(1)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(CONFIG_TEMPLATE)
    rprint(f"[green]✓[/green] Created {path}")


@config_app.command("show")
def config_show():
    """Show effective configuration (file + environment + defaults)."""
    _config_show()


@config_app.command("path")
def config_path():
    """Print the config file location."""
    from .. import config as config_module

    print(config_module.CONFIG_PATH)


def _config_show():
    from .. import config as config_module
    from ..exceptions import ConfigError

    path = config_module.CONFIG_PATH
    if path.exists():
        rprint(f"[dim]Config file: {path}[/dim]")
    else:
        rprint(f"[dim]No config file ({path}), using defaults[/dim]")

    try:
        settings = config_module.load_settings()
    except ConfigError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    for key, value in settings.to_dict().items():
        console.print(f"  [bold]{key}[/bold]: {value}")
