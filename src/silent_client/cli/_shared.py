"""
Shared CLI state: Typer apps, console and common options.
"""

from typing import Annotated, Optional

import typer
from rich.console import Console

# Main app
app = typer.Typer(
    name="silent-client",
    help="Keep a service occupied with a stand-in agent while no real client is connected",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Config subcommand group
config_app = typer.Typer(
    name="config",
    help="Manage configuration",
    no_args_is_help=False,
    invoke_without_command=True,
)
app.add_typer(config_app, name="config")

# Console for rich output
console = Console()

UrlOption = Annotated[
    Optional[str],
    typer.Option(
        "--url",
        "-u",
        help="Base URL of the silent-client server (default: from config)",
    ),
]


def base_url(url: Optional[str]) -> str:
    """Server base URL from --url or effective settings."""
    if url:
        return url.rstrip("/")
    from ..config import load_settings

    settings = load_settings()
    host = "localhost" if settings.host in ("127.0.0.1", "0.0.0.0") else settings.host
    return f"http://{host}:{settings.port}"
