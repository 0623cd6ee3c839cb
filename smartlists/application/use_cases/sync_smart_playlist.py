"""Sync one smart playlist outward to the streaming platform.

Pipeline: materialize -> change-detection gate -> (create playlist) -> read
current external membership -> diff -> chunked apply -> record sync.

The gate compares the fresh fingerprint with the fingerprint the external
playlist is known to hold, so an unchanged playlist is skipped before any
external call is made. The synced fingerprint only moves forward after every
chunk succeeded; partial failure leaves it untouched so the next run retries.
"""

from collections.abc import Callable
from typing import Literal

from attrs import define, field

from smartlists.application.services.jobs import JobContext, SyncJobRunner, playlist_target
from smartlists.application.services.reconciler import PlaylistReconciler
from smartlists.application.use_cases.materialize_playlist import MaterializePlaylistUseCase
from smartlists.application.utilities.progress import NoOpProgressReporter, ProgressReporter
from smartlists.config import get_logger, settings
from smartlists.domain.entities import (
    AppliedResult,
    JobKind,
    MaterializedResult,
    PlaylistDiff,
    SmartPlaylist,
    SyncResult,
)
from smartlists.domain.exceptions import SyncFailedError
from smartlists.domain.repositories import PlaylistPlatform, UnitOfWorkProtocol
from smartlists.domain.sync import should_sync

logger = get_logger(__name__)

SyncStatus = Literal["skipped", "created", "updated", "unchanged", "partial"]


def external_playlist_name(playlist: SmartPlaylist) -> str:
    """Name used for the playlist on the streaming platform."""
    prefix = settings.sync.playlist_name_prefix
    return f"{prefix} {playlist.name}" if prefix else playlist.name


def external_playlist_description(playlist: SmartPlaylist) -> str:
    return playlist.description or settings.sync.default_description


@define(frozen=True, slots=True)
class SyncSmartPlaylistCommand:
    playlist_id: int
    force: bool = False


@define(frozen=True, slots=True)
class SyncSmartPlaylistResult:
    """Outcome of one outbound sync pass."""

    playlist: SmartPlaylist
    status: SyncStatus
    materialized: MaterializedResult
    diff: PlaylistDiff | None = None
    applied: AppliedResult | None = None

    def to_sync_result(self) -> SyncResult:
        applied = self.applied or AppliedResult()
        return SyncResult(
            total_tracks=len(self.materialized),
            new_tracks=len(applied.added),
            updated_tracks=len(applied.removed),
            errors=[str(error) for error in applied.errors],
        )


@define(slots=True)
class SyncSmartPlaylistUseCase:
    """Reconciles a smart playlist's external copy with its criteria."""

    platform: PlaylistPlatform
    materializer: MaterializePlaylistUseCase = field(factory=MaterializePlaylistUseCase)
    chunk_size: int = field(factory=lambda: settings.api.spotify_write_chunk_size)
    chunk_delay: float = field(factory=lambda: settings.api.spotify_chunk_delay)
    timeout: float | None = field(factory=lambda: settings.api.spotify_request_timeout)

    async def execute(
        self,
        command: SyncSmartPlaylistCommand,
        uow: UnitOfWorkProtocol,
        progress: ProgressReporter | None = None,
    ) -> SyncSmartPlaylistResult:
        """Run one sync pass.

        Raises:
            NotFoundError: unknown playlist
            FatalExternalError: auth revoked or playlist deleted upstream
            JobCancelledError: cancelled between chunks
            SyncFailedError: every write chunk failed
        """
        reporter = progress or NoOpProgressReporter()

        async with uow:
            playlist_repo = uow.get_smart_playlist_repository()
            playlist = await playlist_repo.get_by_id(command.playlist_id)

            reporter.report("tracks", 0, 1, "Evaluating criteria")
            library = await uow.get_library_repository().load_library_view()
            materialized = await self.materializer.execute(playlist, library, uow)
            await uow.commit()
            reporter.report("tracks", 1, 1, f"{len(materialized)} tracks match")

            if not should_sync(playlist, materialized.fingerprint, command.force):
                logger.info(
                    f"Skipping '{playlist.name}': no changes since last sync",
                    playlist_id=playlist.id,
                )
                return SyncSmartPlaylistResult(
                    playlist=playlist, status="skipped", materialized=materialized
                )

            cap = playlist.criteria.limit or settings.sync.max_playlist_tracks
            desired = list(materialized.external_ids[:cap])
            reporter.check_cancelled()

            created = playlist.spotify_playlist_id is None
            if created:
                external_id = await self.platform.create_playlist(
                    external_playlist_name(playlist),
                    external_playlist_description(playlist),
                )
                # Persist right away so a failed apply never creates a duplicate
                playlist = await playlist_repo.set_spotify_playlist_id(playlist.id, external_id)
                await uow.commit()
                current: list[str] = []
                logger.info(
                    f"Created external playlist for '{playlist.name}'",
                    playlist_id=playlist.id,
                    spotify_playlist_id=external_id,
                )
            else:
                external_id = playlist.spotify_playlist_id
                await self.platform.update_playlist_details(
                    external_id,
                    external_playlist_name(playlist),
                    external_playlist_description(playlist),
                )
                current = await self.platform.get_playlist_item_ids(external_id)

            reconciler = PlaylistReconciler(
                writer=self.platform,
                chunk_size=self.chunk_size,
                chunk_delay=self.chunk_delay,
                timeout=self.timeout,
            )
            diff = reconciler.reconcile(external_id, desired, current)
            applied = await reconciler.apply(diff, reporter)

            outcome = SyncSmartPlaylistResult(
                playlist=playlist,
                status="created" if created else "updated",
                materialized=materialized,
                diff=diff,
                applied=applied,
            )

            if applied.all_chunks_failed:
                raise SyncFailedError(
                    f"All {len(applied.errors)} write chunks failed for '{playlist.name}'",
                    outcome.to_sync_result(),
                )

            if not applied.is_complete:
                logger.warning(
                    f"Partial sync of '{playlist.name}'; fingerprint left unchanged",
                    playlist_id=playlist.id,
                    failed_chunks=len(applied.errors),
                )
                return SyncSmartPlaylistResult(
                    playlist=playlist,
                    status="partial",
                    materialized=materialized,
                    diff=diff,
                    applied=applied,
                )

            playlist = await playlist_repo.mark_synced(
                playlist.id, external_id, materialized.fingerprint
            )
            await uow.commit()

            logger.info(
                f"Synced '{playlist.name}'",
                playlist_id=playlist.id,
                added=len(applied.added),
                removed=len(applied.removed),
            )
            return SyncSmartPlaylistResult(
                playlist=playlist,
                status=outcome.status if diff.has_changes else "unchanged",
                materialized=materialized,
                diff=diff,
                applied=applied,
            )


async def enqueue_smart_playlist_sync(
    runner: SyncJobRunner,
    uow_factory: Callable[[], UnitOfWorkProtocol],
    platform: PlaylistPlatform,
    playlist_id: int,
    force: bool = False,
) -> str:
    """Trigger a background sync for one smart playlist and return the job ID."""
    use_case = SyncSmartPlaylistUseCase(platform=platform)

    async def work(context: JobContext) -> SyncResult:
        result = await use_case.execute(
            SyncSmartPlaylistCommand(playlist_id=playlist_id, force=force),
            uow_factory(),
            context,
        )
        return result.to_sync_result()

    return await runner.enqueue(
        JobKind.SMART_PLAYLIST,
        playlist_target(playlist_id),
        work,
        payload={"playlist_id": playlist_id, "force": force},
    )
