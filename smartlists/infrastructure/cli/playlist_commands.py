"""Smart playlist commands for Smartlists CLI."""

import json
from pathlib import Path
from typing import Annotated, Any

from rich.console import Console
import typer

from smartlists.application.use_cases import (
    CreateSmartPlaylistCommand,
    CreateSmartPlaylistUseCase,
    MaterializePlaylistUseCase,
    SyncAllPlaylistsUseCase,
    UpdateSmartPlaylistCommand,
    UpdateSmartPlaylistUseCase,
    enqueue_smart_playlist_sync,
)
from smartlists.config import get_logger
from smartlists.infrastructure.cli.async_helpers import (
    database_runtime,
    interactive_async_operation,
    sync_runtime,
)
from smartlists.infrastructure.cli.ui import display_job, display_playlists, display_tracks
from smartlists.infrastructure.persistence.unit_of_work import get_unit_of_work

console = Console()
logger = get_logger(__name__)

app = typer.Typer(help="Create, preview and sync smart playlists")


def _load_criteria(criteria: str | None, criteria_file: Path | None) -> dict[str, Any]:
    if criteria_file is not None:
        raw = criteria_file.read_text()
    elif criteria is not None:
        raw = criteria
    else:
        raise typer.BadParameter("Provide --criteria or --criteria-file")
    try:
        document = json.loads(raw)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"Criteria is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise typer.BadParameter("Criteria must be a JSON object")
    return document


@app.command(name="list")
@interactive_async_operation()
async def list_playlists(
    active_only: Annotated[
        bool, typer.Option("--active-only", "-a", help="Hide disabled playlists")
    ] = False,
) -> None:
    """List smart playlists."""
    async with database_runtime(), get_unit_of_work() as uow:
        playlists = await uow.get_smart_playlist_repository().list_playlists(active_only)
    display_playlists(playlists)


@app.command(name="create")
@interactive_async_operation()
async def create_playlist(
    name: Annotated[str, typer.Argument(help="Playlist name")],
    criteria: Annotated[
        str | None, typer.Option("--criteria", "-c", help="Criteria document as JSON")
    ] = None,
    criteria_file: Annotated[
        Path | None,
        typer.Option("--criteria-file", "-f", exists=True, help="Path to a criteria JSON file"),
    ] = None,
    description: Annotated[
        str | None, typer.Option("--description", "-d", help="Playlist description")
    ] = None,
) -> None:
    """Create a smart playlist from a criteria document."""
    document = _load_criteria(criteria, criteria_file)
    async with database_runtime():
        playlist, materialized = await CreateSmartPlaylistUseCase().execute(
            CreateSmartPlaylistCommand(name=name, criteria=document, description=description),
            get_unit_of_work(),
        )
    console.print(
        f"[bold green]✓ Created '{playlist.name}'[/bold green] "
        f"[dim](id {playlist.id}, {len(materialized)} tracks)[/dim]"
    )


@app.command(name="update")
@interactive_async_operation()
async def update_playlist(
    playlist_id: Annotated[int, typer.Argument(help="Smart playlist ID")],
    criteria: Annotated[
        str | None, typer.Option("--criteria", "-c", help="Replacement criteria as JSON")
    ] = None,
    criteria_file: Annotated[
        Path | None,
        typer.Option("--criteria-file", "-f", exists=True, help="Path to a criteria JSON file"),
    ] = None,
    active: Annotated[
        bool | None, typer.Option("--enable/--disable", help="Enable or soft-disable")
    ] = None,
) -> None:
    """Replace a playlist's criteria or toggle whether it is synced."""
    document = (
        _load_criteria(criteria, criteria_file) if criteria or criteria_file else None
    )
    async with database_runtime():
        playlist = await UpdateSmartPlaylistUseCase().execute(
            UpdateSmartPlaylistCommand(playlist_id=playlist_id, criteria=document, is_active=active),
            get_unit_of_work(),
        )
    console.print(
        f"[bold green]✓ Updated '{playlist.name}'[/bold green] [dim]({playlist.track_count} tracks)[/dim]"
    )


@app.command(name="preview")
@interactive_async_operation()
async def preview_playlist(
    playlist_id: Annotated[int, typer.Argument(help="Smart playlist ID")],
    limit: Annotated[int, typer.Option("--limit", "-l", help="Rows to show")] = 25,
) -> None:
    """Show the tracks a smart playlist currently matches."""
    async with database_runtime(), get_unit_of_work() as uow:
        playlist, materialized = await MaterializePlaylistUseCase().execute_by_id(
            playlist_id, uow, persist=False
        )
        library = await uow.get_library_repository().load_library_view()

    by_id = library.tracks_by_id()
    tracks = [by_id[track_id] for track_id in materialized.track_ids[:limit]]
    display_tracks(f"{playlist.name} ({len(materialized)} tracks)", tracks)


@app.command(name="sync")
@interactive_async_operation()
async def sync_playlist(
    playlist_id: Annotated[int, typer.Argument(help="Smart playlist ID")],
    force: Annotated[
        bool, typer.Option("--force", help="Sync even if nothing changed")
    ] = False,
) -> None:
    """Sync one smart playlist to Spotify."""
    async with sync_runtime() as runtime:
        job_id = await enqueue_smart_playlist_sync(
            runtime.runner, runtime.uow_factory, runtime.platform, playlist_id, force
        )
        (job,) = await runtime.wait_with_progress([job_id])
    display_job(job)


@app.command(name="sync-all")
@interactive_async_operation()
async def sync_all_playlists(
    force: Annotated[
        bool, typer.Option("--force", help="Sync even if nothing changed")
    ] = False,
) -> None:
    """Sync every active smart playlist that already exists on Spotify."""
    async with sync_runtime() as runtime:
        job_ids = await SyncAllPlaylistsUseCase(
            runner=runtime.runner,
            uow_factory=runtime.uow_factory,
            platform=runtime.platform,
        ).execute(force=force)
        jobs = await runtime.wait_with_progress(job_ids)

    if not jobs:
        console.print("[yellow]No playlists to sync.[/yellow]")
    failed = 0
    for job in jobs:
        try:
            display_job(job)
        except typer.Exit:
            failed += 1
    if failed:
        raise typer.Exit(code=1)
