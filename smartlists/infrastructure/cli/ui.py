"""UI helpers for CLI interaction.

This module provides reusable UI components and helpers for the CLI,
keeping the presentation logic separate from business logic.
"""

from collections.abc import Callable, Sequence
import functools

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TextColumn, TimeElapsedColumn
from rich.table import Table
import typer

from smartlists.config import get_logger
from smartlists.domain.entities import JobStatus, SmartPlaylist, SyncJob, Track

console = Console()
logger = get_logger(__name__)


def command_error_handler[**P, R](func: Callable[P, R]) -> Callable[P, R]:
    """Decorator to standardize error handling for CLI commands.

    Logs the failure with full traceback, prints a clean message and exits
    with code 1.
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        operation = func.__name__.strip("_").replace("_", " ")

        with logger.contextualize(operation=operation):
            try:
                logger.debug(f"Executing {operation}")
                return func(*args, **kwargs)

            except typer.Exit:
                raise

            except typer.Abort:
                logger.info(f"Operation {operation} aborted by user")
                raise

            except Exception as e:
                logger.exception(f"Error during {operation}")
                console.print(f"\n[bold red]✗ Error during {operation}:[/bold red] {e}")
                raise typer.Exit(code=1) from e

    return wrapper


def display_playlists(playlists: Sequence[SmartPlaylist]) -> None:
    if not playlists:
        console.print("[yellow]No smart playlists yet.[/yellow]")
        return

    table = Table(title="Smart Playlists", show_header=True)
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Tracks", justify="right")
    table.add_column("Active")
    table.add_column("Spotify", style="green")
    table.add_column("Last Synced", style="dim")

    for playlist in playlists:
        table.add_row(
            str(playlist.id),
            playlist.name,
            str(playlist.track_count),
            "[green]✓[/green]" if playlist.is_active else "[red]✗[/red]",
            playlist.spotify_playlist_id or "-",
            playlist.last_synced_at.strftime("%Y-%m-%d %H:%M") if playlist.last_synced_at else "never",
        )
    console.print(table)


def display_tracks(title: str, tracks: Sequence[Track]) -> None:
    table = Table(title=title, show_header=True)
    table.add_column("#", style="dim", justify="right")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Artist")
    table.add_column("Album", style="dim")
    table.add_column("Rating", justify="right", style="yellow")
    table.add_column("Plays", justify="right")

    for position, track in enumerate(tracks, start=1):
        table.add_row(
            str(position),
            str(track.id),
            track.title,
            track.artist,
            track.album,
            f"{track.rating:g}" if track.rating is not None else "-",
            str(track.play_count),
        )
    console.print(table)


def display_job(job: SyncJob | None) -> None:
    """Print the terminal state of a sync job; exits 1 if the job failed."""
    if job is None:
        console.print("[red]Job not found[/red]")
        raise typer.Exit(code=1)

    if job.status is JobStatus.COMPLETED:
        console.print(f"[bold green]✓ {job.kind} sync completed[/bold green] [dim]({job.id})[/dim]")
    elif job.status is JobStatus.FAILED:
        console.print(f"[bold red]✗ {job.kind} sync failed:[/bold red] {job.error}")
    else:
        console.print(f"[yellow]Job {job.id} is still {job.status}[/yellow]")

    if job.result is not None:
        table = Table(show_header=False, box=None)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")
        table.add_row("Total tracks", str(job.result.total_tracks))
        table.add_row("New tracks", str(job.result.new_tracks))
        table.add_row("Updated tracks", str(job.result.updated_tracks))
        table.add_row("Errors", str(len(job.result.errors)))
        console.print(table)
        for error in job.result.errors:
            console.print(f"  [red]•[/red] {error}")

    if job.status is JobStatus.FAILED:
        raise typer.Exit(code=1)


class JobProgressDisplay:
    """Renders job progress updates as rich progress bars, one per job."""

    def __init__(self) -> None:
        self.progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        )
        self._tasks: dict[str, TaskID] = {}

    def __enter__(self) -> "JobProgressDisplay":
        self.progress.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.progress.stop()

    def __call__(self, job: SyncJob) -> None:
        if job.id not in self._tasks:
            self._tasks[job.id] = self.progress.add_task(str(job.kind), total=None)
        current = job.progress
        self.progress.update(
            self._tasks[job.id],
            description=f"{job.kind} · {current.message or current.phase or job.status}",
            completed=current.current,
            total=current.total or None,
        )
