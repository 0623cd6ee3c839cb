"""Library commands for Smartlists CLI: mirror from Spotify, rate, tag and import plays."""

from typing import Annotated

from rich.console import Console
from rich.table import Table
import typer

from smartlists.application.use_cases import (
    AssignTagCommand,
    AssignTagUseCase,
    RateTrackCommand,
    RateTrackUseCase,
    enqueue_library_mirror,
    enqueue_play_import,
)
from smartlists.domain.entities import SyncOptions
from smartlists.infrastructure.cli.async_helpers import (
    database_runtime,
    interactive_async_operation,
    sync_runtime,
)
from smartlists.infrastructure.cli.ui import display_job, display_tracks
from smartlists.infrastructure.persistence.unit_of_work import get_unit_of_work

console = Console()

app = typer.Typer(help="Mirror your Spotify library, rate and tag tracks")


@app.command(name="mirror")
@interactive_async_operation()
async def mirror_library(
    force_refresh: Annotated[
        bool,
        typer.Option("--force-refresh", help="Re-read playlists even if their snapshot is unchanged"),
    ] = False,
    liked: Annotated[bool, typer.Option("--liked/--no-liked", help="Mirror liked songs")] = True,
    albums: Annotated[bool, typer.Option("--albums/--no-albums", help="Mirror saved albums")] = True,
    playlists: Annotated[
        bool, typer.Option("--playlists/--no-playlists", help="Mirror your playlists")
    ] = True,
    audio_features: Annotated[
        bool,
        typer.Option("--audio-features/--no-audio-features", help="Fetch missing audio features"),
    ] = True,
) -> None:
    """Bring the local library in line with your Spotify library."""
    options = SyncOptions(
        force_refresh_playlists=force_refresh,
        sync_albums=albums,
        sync_liked_tracks=liked,
        sync_playlists=playlists,
        sync_audio_features=audio_features,
    )
    async with sync_runtime() as runtime:
        job_id = await enqueue_library_mirror(
            runtime.runner, runtime.uow_factory, runtime.platform, options
        )
        (job,) = await runtime.wait_with_progress([job_id])
    display_job(job)


@app.command(name="tags")
@interactive_async_operation()
async def list_tags() -> None:
    """List tags."""
    async with database_runtime(), get_unit_of_work() as uow:
        tags = await uow.get_library_repository().list_tags()

    table = Table(title="Tags", show_header=True)
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Color")
    for tag in tags:
        table.add_row(str(tag.id), tag.name, f"[{tag.color}]■[/] {tag.color}")
    console.print(table)


@app.command(name="tag-create")
@interactive_async_operation()
async def create_tag(
    name: Annotated[str, typer.Argument(help="Tag name")],
    color: Annotated[str | None, typer.Option("--color", help="Hex color")] = None,
) -> None:
    """Create a tag."""
    async with database_runtime(), get_unit_of_work() as uow:
        tag = await uow.get_library_repository().create_tag(name, color)
    console.print(f"[bold green]✓ Created tag '{tag.name}'[/bold green] [dim](id {tag.id})[/dim]")


@app.command(name="tag-rename")
@interactive_async_operation()
async def rename_tag(
    tag_id: Annotated[int, typer.Argument(help="Tag ID")],
    name: Annotated[str, typer.Argument(help="New name")],
) -> None:
    """Rename a tag; smart playlists keep matching the same tracks."""
    async with database_runtime(), get_unit_of_work() as uow:
        tag = await uow.get_library_repository().rename_tag(tag_id, name)
    console.print(f"[bold green]✓ Renamed tag {tag.id} to '{tag.name}'[/bold green]")


@app.command(name="tracks")
@interactive_async_operation()
async def list_tracks() -> None:
    """List library tracks with their IDs, ratings and play counts."""
    async with database_runtime(), get_unit_of_work() as uow:
        library = await uow.get_library_repository().load_library_view()
    display_tracks(f"Library ({len(library)} tracks)", library.tracks)


@app.command(name="rate")
@interactive_async_operation()
async def rate_track(
    track_id: Annotated[int, typer.Argument(help="Track ID (see 'library tracks')")],
    rating: Annotated[
        float | None, typer.Argument(help="0.5 to 5 in half stars; omit with --clear")
    ] = None,
    clear: Annotated[bool, typer.Option("--clear", help="Remove the rating")] = False,
) -> None:
    """Rate a track; smart playlists pick the change up on their next sync."""
    if rating is None and not clear:
        raise typer.BadParameter("Give a rating or pass --clear")
    async with database_runtime():
        track = await RateTrackUseCase().execute(
            RateTrackCommand(track_id=track_id, rating=None if clear else rating),
            get_unit_of_work(),
        )
    shown = f"{track.rating:g}" if track.rating is not None else "no rating"
    console.print(f"[bold green]✓ '{track.title}' now has {shown}[/bold green]")


@app.command(name="tag-assign")
@interactive_async_operation()
async def assign_tag(
    track_id: Annotated[int, typer.Argument(help="Track ID (see 'library tracks')")],
    tag: Annotated[str, typer.Argument(help="Tag name or ID")],
) -> None:
    """Tag a track."""
    async with database_runtime():
        track = await AssignTagUseCase().execute(
            AssignTagCommand(track_id=track_id, tag=tag), get_unit_of_work()
        )
    console.print(f"[bold green]✓ Tagged '{track.title}'[/bold green]")


@app.command(name="plays")
@interactive_async_operation()
async def import_plays() -> None:
    """Import recently played tracks into play counts."""
    async with sync_runtime() as runtime:
        job_id = await enqueue_play_import(runtime.runner, runtime.uow_factory, runtime.platform)
        (job,) = await runtime.wait_with_progress([job_id])
    display_job(job)
