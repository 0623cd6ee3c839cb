"""Mirror the remote library (liked songs, saved albums, playlists) locally.

Inbound sync runs the same diff and chunked apply as the outbound direction
with the roles swapped: the remote collection is ``desired``, the tracks
attached to the matching local source are ``current``, and the writer is the
local library. Tracks leaving a source only lose that source; they are never
deleted.

Playlists whose snapshot ID is unchanged since the last successful mirror are
skipped unless a refresh is forced. Playlists owned by a smart playlist are
excluded so outbound writes never loop back in. Library tracks without stored
audio features are enriched last.
"""

import asyncio
from collections.abc import Callable, Sequence

from attrs import define, field

from smartlists.application.services.enrichment import fetch_audio_features
from smartlists.application.services.jobs import LIBRARY_MIRROR_TARGET, JobContext, SyncJobRunner
from smartlists.application.services.reconciler import PlaylistReconciler
from smartlists.application.utilities.progress import NoOpProgressReporter, ProgressReporter
from smartlists.config import get_logger, settings
from smartlists.domain.entities import (
    JobKind,
    MirroredPlaylist,
    RemoteTrack,
    SourceType,
    SyncOptions,
    SyncResult,
    TrackSource,
    utc_now,
)
from smartlists.domain.exceptions import FatalExternalError
from smartlists.domain.repositories import (
    LibraryRepositoryProtocol,
    PlaylistPlatform,
    UnitOfWorkProtocol,
)
from smartlists.domain.sync import AffectedEntityTracker, should_mirror

logger = get_logger(__name__)


class LibrarySourceWriter:
    """Applies a mirror diff to the tracks attached to one local source."""

    def __init__(
        self,
        repository: LibraryRepositoryProtocol,
        source: TrackSource,
        remote_tracks: dict[str, RemoteTrack],
        tracker: AffectedEntityTracker,
    ) -> None:
        self.repository = repository
        self.source = source
        self.remote_tracks = remote_tracks
        self.tracker = tracker
        self.new_ids: set[str] = set()
        self.updated_ids: set[str] = set()

    async def add_items(self, _playlist_id: str | None, item_ids: Sequence[str]) -> int:
        tracks = [self.remote_tracks[i] for i in item_ids if i in self.remote_tracks]
        new_ids, updated_ids = await self.repository.upsert_remote_tracks(tracks)
        self.new_ids.update(new_ids)
        self.updated_ids.update(updated_ids)

        for track in tracks:
            self.tracker.add_track(track.external_id)
            if track.album_id:
                self.tracker.add_album(track.album_id)
            if track.artist_id:
                self.tracker.add_artist(track.artist_id)

        return await self.repository.attach_source([t.external_id for t in tracks], self.source)

    async def remove_items(self, _playlist_id: str | None, item_ids: Sequence[str]) -> int:
        owners = await self.repository.get_album_artist_ids(item_ids)
        for external_id, (album_id, artist_id) in owners.items():
            self.tracker.add_track(external_id)
            if album_id:
                self.tracker.add_album(album_id)
            if artist_id:
                self.tracker.add_artist(artist_id)
        self.updated_ids.update(item_ids)
        return await self.repository.detach_source(item_ids, self.source)


@define(slots=True)
class MirrorLibraryUseCase:
    """Brings the local library in line with the user's remote library."""

    platform: PlaylistPlatform
    tracker: AffectedEntityTracker = field(factory=AffectedEntityTracker)
    chunk_size: int = field(factory=lambda: settings.sync.mirror_chunk_size)
    playlist_delay: float = field(factory=lambda: settings.sync.scheduled_playlist_delay)

    async def execute(
        self,
        uow: UnitOfWorkProtocol,
        options: SyncOptions | None = None,
        progress: ProgressReporter | None = None,
    ) -> SyncResult:
        """Mirror every enabled collection and refresh affected aggregates."""
        options = options or SyncOptions()
        reporter = progress or NoOpProgressReporter()
        result = SyncResult()
        seen: set[str] = set()

        async with uow:
            repository = uow.get_library_repository()

            if options.sync_liked_tracks:
                reporter.report("tracks", 0, 1, "Fetching liked songs")
                liked = await self.platform.get_liked_tracks()
                result = result.merge(
                    await self._mirror_source(
                        repository, TrackSource(SourceType.LIKED_SONGS), liked, reporter, seen
                    )
                )
                reporter.report("tracks", 1, 1, f"{len(liked)} liked songs")
                await uow.commit()

            if options.sync_albums:
                result = result.merge(await self._mirror_albums(repository, reporter, seen))
                await uow.commit()

            if options.sync_playlists:
                result = result.merge(
                    await self._mirror_playlists(uow, repository, options, reporter, seen)
                )

            if options.sync_audio_features:
                result = result.merge(await self._enrich_audio_features(repository, reporter))

            summary = self.tracker.summary()
            if summary.album_ids or summary.artist_ids:
                await repository.recompute_aggregates(summary.album_ids, summary.artist_ids)
            self.tracker.clear()
            await uow.commit()

        result = SyncResult(
            total_tracks=len(seen),
            new_tracks=result.new_tracks,
            updated_tracks=result.updated_tracks,
            errors=result.errors,
        )
        logger.info(
            "Library mirror complete",
            affected_albums=len(summary.album_ids),
            affected_artists=len(summary.artist_ids),
            **result.to_dict(),
        )
        return result

    async def _mirror_albums(
        self,
        repository: LibraryRepositoryProtocol,
        reporter: ProgressReporter,
        seen: set[str],
    ) -> SyncResult:
        reporter.report("albums", 0, 0, "Fetching saved albums")
        albums = await self.platform.get_saved_albums()
        result = SyncResult()

        for index, album in enumerate(albums):
            reporter.check_cancelled()
            reporter.report("albums", index, len(albums), album.name)
            source = TrackSource(SourceType.ALBUM, album.external_id, album.name)
            result = result.merge(
                await self._mirror_source(repository, source, album.tracks, reporter, seen)
            )

        # Albums no longer saved lose their source on every track
        saved = {album.external_id for album in albums}
        for source in await repository.list_sources(SourceType.ALBUM):
            if source.source_id not in saved:
                result = result.merge(
                    await self._mirror_source(repository, source, [], reporter, seen)
                )

        reporter.report("albums", len(albums), len(albums), f"{len(albums)} albums")
        return result

    async def _mirror_playlists(
        self,
        uow: UnitOfWorkProtocol,
        repository: LibraryRepositoryProtocol,
        options: SyncOptions,
        reporter: ProgressReporter,
        seen: set[str],
    ) -> SyncResult:
        mirror_repo = uow.get_mirror_repository()
        owned = await uow.get_smart_playlist_repository().get_spotify_playlist_ids()
        snapshots = await mirror_repo.get_snapshot_ids()

        reporter.report("playlists", 0, 0, "Fetching playlists")
        playlists = [
            p for p in await self.platform.get_user_playlists() if p.external_id not in owned
        ]
        result = SyncResult()
        skipped = 0

        for index, playlist in enumerate(playlists):
            reporter.check_cancelled()
            reporter.report("playlists", index, len(playlists), playlist.name)

            if not should_mirror(
                playlist.snapshot_id,
                snapshots.get(playlist.external_id),
                options.force_refresh_playlists,
            ):
                skipped += 1
                continue

            if index > 0 and self.playlist_delay > 0:
                await asyncio.sleep(self.playlist_delay)

            tracks = await self.platform.get_playlist_tracks(playlist.external_id)
            source = TrackSource(SourceType.PLAYLIST, playlist.external_id, playlist.name)
            playlist_result = await self._mirror_source(
                repository, source, tracks, reporter, seen
            )
            result = result.merge(playlist_result)

            # A failed chunk leaves the snapshot stale so the next run retries
            if not playlist_result.errors:
                await mirror_repo.save_snapshot(
                    MirroredPlaylist(
                        external_id=playlist.external_id,
                        name=playlist.name,
                        snapshot_id=playlist.snapshot_id,
                        last_mirrored_at=utc_now(),
                    )
                )
            await uow.commit()

        reporter.report("playlists", len(playlists), len(playlists), f"{skipped} unchanged")
        logger.info(
            f"Mirrored {len(playlists) - skipped} of {len(playlists)} playlists",
            excluded=len(owned),
            skipped=skipped,
        )
        return result

    async def _enrich_audio_features(
        self, repository: LibraryRepositoryProtocol, reporter: ProgressReporter
    ) -> SyncResult:
        missing = await repository.get_ids_missing_audio_features()
        if not missing:
            return SyncResult()

        reporter.report("audio_features", 0, len(missing), "Fetching audio features")
        try:
            features = await fetch_audio_features(self.platform, missing)
        except FatalExternalError as e:
            logger.warning(f"Skipping audio features: {e}")
            return SyncResult(errors=[f"audio features: {e}"])

        saved = await repository.save_audio_features(features)
        reporter.report("audio_features", len(missing), len(missing), f"{saved} tracks enriched")
        return SyncResult()

    async def _mirror_source(
        self,
        repository: LibraryRepositoryProtocol,
        source: TrackSource,
        remote_tracks: Sequence[RemoteTrack],
        reporter: ProgressReporter,
        seen: set[str],
    ) -> SyncResult:
        by_id = {track.external_id: track for track in remote_tracks}
        seen.update(by_id)
        current = await repository.get_source_track_ids(source)

        writer = LibrarySourceWriter(repository, source, by_id, self.tracker)
        reconciler = PlaylistReconciler(
            writer=writer, chunk_size=self.chunk_size, chunk_delay=0, timeout=None
        )
        diff = reconciler.reconcile(source.source_id, list(by_id), current)
        applied = await reconciler.apply(diff, reporter)

        logger.debug(
            "Mirrored source",
            source_type=str(source.source_type),
            source_id=source.source_id,
            added=len(applied.added),
            removed=len(applied.removed),
        )
        return SyncResult(
            total_tracks=len(by_id),
            new_tracks=len(writer.new_ids),
            updated_tracks=len(writer.updated_ids),
            errors=[str(error) for error in applied.errors],
        )


async def enqueue_library_mirror(
    runner: SyncJobRunner,
    uow_factory: Callable[[], UnitOfWorkProtocol],
    platform: PlaylistPlatform,
    options: SyncOptions | None = None,
) -> str:
    """Trigger a background library mirror and return the job ID."""
    options = options or SyncOptions()

    async def work(context: JobContext) -> SyncResult:
        return await MirrorLibraryUseCase(platform=platform).execute(
            uow_factory(), options, context
        )

    return await runner.enqueue(
        JobKind.LIBRARY_MIRROR,
        LIBRARY_MIRROR_TARGET,
        work,
        payload={
            "force_refresh_playlists": options.force_refresh_playlists,
            "sync_albums": options.sync_albums,
            "sync_liked_tracks": options.sync_liked_tracks,
            "sync_playlists": options.sync_playlists,
            "sync_audio_features": options.sync_audio_features,
        },
    )
