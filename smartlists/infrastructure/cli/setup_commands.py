"""Setup commands for Smartlists CLI: schema creation, seeding and onboarding."""

import asyncio
from typing import Annotated

from rich.console import Console
import typer

from smartlists.application.use_cases import SeedDefaultPlaylistsUseCase, enqueue_onboarding
from smartlists.config import get_logger
from smartlists.infrastructure.cli.async_helpers import (
    database_runtime,
    interactive_async_operation,
    sync_runtime,
)
from smartlists.infrastructure.cli.ui import command_error_handler, display_job
from smartlists.infrastructure.persistence.database.db_connection import dispose_engine, init_db
from smartlists.infrastructure.persistence.unit_of_work import get_unit_of_work

console = Console()
logger = get_logger(__name__)

app = typer.Typer(help="First-run setup")


def register_setup_commands(root: typer.Typer) -> None:
    """Register top-level setup commands with the Typer app."""
    root.command(
        name="init-db",
        help="Initialize the database schema",
        rich_help_panel="⚙️ System",
    )(initialize_database)


@command_error_handler
def initialize_database() -> None:
    """Create database tables that don't yet exist; existing tables are untouched."""

    async def _run() -> None:
        try:
            await init_db()
        finally:
            await dispose_engine()

    with console.status("[bold blue]Initializing database schema..."):
        asyncio.run(_run())
    console.print("[bold green]✓ Database initialized[/bold green]")


@app.command(name="seed")
@interactive_async_operation()
async def seed_playlists() -> None:
    """Create the default smart playlists that don't exist yet."""
    async with database_runtime():
        created = await SeedDefaultPlaylistsUseCase().execute(get_unit_of_work())

    if not created:
        console.print("[yellow]Default playlists already exist.[/yellow]")
    for playlist in created:
        console.print(
            f"[bold green]✓ {playlist.name}[/bold green] [dim]({playlist.track_count} tracks)[/dim]"
        )


@app.command(name="onboard")
@interactive_async_operation()
async def onboard(
    account: Annotated[
        str, typer.Option("--account", "-a", help="Account key for idempotent onboarding")
    ] = "default",
) -> None:
    """Mirror your Spotify library once and seed the default smart playlists."""
    async with sync_runtime() as runtime:
        job_id = await enqueue_onboarding(
            runtime.runner, runtime.uow_factory, runtime.platform, account
        )
        (job,) = await runtime.wait_with_progress([job_id])
    display_job(job)
