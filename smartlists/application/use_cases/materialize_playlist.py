"""Materialize a smart playlist: evaluate its criteria and fingerprint the result.

Materialization is idempotent: an unchanged library and unchanged criteria
always produce the same ordered track list and the same fingerprint.
"""

from datetime import datetime

from attrs import define

from smartlists.config import get_logger
from smartlists.domain.entities import LibraryView, MaterializedResult, SmartPlaylist
from smartlists.domain.repositories import UnitOfWorkProtocol
from smartlists.domain.rules import evaluate
from smartlists.domain.sync import fingerprint

logger = get_logger(__name__)


@define(frozen=True, slots=True)
class MaterializePlaylistUseCase:
    """Computes the canonical "should contain" set for one smart playlist."""

    async def execute(
        self,
        playlist: SmartPlaylist,
        library: LibraryView,
        uow: UnitOfWorkProtocol | None = None,
        now: datetime | None = None,
    ) -> MaterializedResult:
        """Evaluate the playlist's criteria against a library snapshot.

        Args:
            playlist: Smart playlist to materialize
            library: Immutable library snapshot
            uow: When given, track count and fingerprint are stored on the
                playlist record within this unit of work
            now: Reference time for relative-date rules

        Returns:
            Ordered track IDs, their external IDs, and the fingerprint
        """
        track_ids = evaluate(playlist.criteria, library, now)
        external_ids = library.external_ids_for(track_ids)
        result = MaterializedResult(
            track_ids=track_ids,
            external_ids=external_ids,
            fingerprint=fingerprint(external_ids),
        )

        if uow is not None and playlist.id is not None:
            await uow.get_smart_playlist_repository().save_materialization(
                playlist.id, len(track_ids), result.fingerprint
            )

        logger.info(
            f"Materialized '{playlist.name}' with {len(result)} tracks",
            playlist_id=playlist.id,
            fingerprint=result.fingerprint[:12],
        )
        return result

    async def execute_by_id(
        self,
        playlist_id: int,
        uow: UnitOfWorkProtocol,
        persist: bool = True,
    ) -> tuple[SmartPlaylist, MaterializedResult]:
        """Load a playlist and the current library, then materialize."""
        playlist = await uow.get_smart_playlist_repository().get_by_id(playlist_id)
        library = await uow.get_library_repository().load_library_view()
        result = await self.execute(playlist, library, uow if persist else None)
        return playlist, result
