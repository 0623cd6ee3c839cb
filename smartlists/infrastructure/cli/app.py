"""Smartlists CLI - Main application entry point and app structure."""

import asyncio
from importlib.metadata import PackageNotFoundError, version
from typing import Annotated

from rich.console import Console
import typer

from smartlists.config import get_logger, log_startup_info, settings, setup_loguru_logger
from smartlists.infrastructure.cli import library_commands, playlist_commands, setup_commands

try:
    VERSION = version("smartlists")
except PackageNotFoundError:
    VERSION = "0.0.0"

console = Console(width=80)
logger = get_logger(__name__)

app = typer.Typer(
    help=f"🎵 Smartlists v{VERSION} - Rule-based smart playlists synced to Spotify",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
)

app.add_typer(
    playlist_commands.app,
    name="playlist",
    help="Create, preview and sync smart playlists",
    rich_help_panel="🎵 Smart Playlists",
)
app.add_typer(
    library_commands.app,
    name="library",
    help="Mirror your Spotify library and manage tags",
    rich_help_panel="📚 Library",
)
app.add_typer(
    setup_commands.app,
    name="setup",
    help="Seed default playlists and onboard",
    rich_help_panel="⚙️ System",
)
setup_commands.register_setup_commands(app)


@app.command(name="version", rich_help_panel="⚙️ System")
def version_command() -> None:
    """Show version information."""
    console.print(f"[bold bright_blue]🎵 Smartlists[/bold bright_blue] [dim]v{VERSION}[/dim]")


@app.callback()
def init_cli(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output"),
    ] = False,
) -> None:
    """Initialize Smartlists CLI."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    setup_loguru_logger(verbose)
    if verbose:
        asyncio.run(log_startup_info())


def main() -> int:
    """Application entry point."""
    try:
        return app() or 0
    except Exception:
        logger.exception("Unhandled exception")
        return 1
