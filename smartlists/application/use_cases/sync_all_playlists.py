"""Scheduled sync of every active smart playlist that has an external copy."""

import asyncio
from collections.abc import Callable

from attrs import define, field

from smartlists.application.services.jobs import SyncJobRunner
from smartlists.application.use_cases.sync_smart_playlist import enqueue_smart_playlist_sync
from smartlists.config import get_logger, settings
from smartlists.domain.exceptions import ConcurrencyConflict
from smartlists.domain.repositories import PlaylistPlatform, UnitOfWorkProtocol

logger = get_logger(__name__)


@define(slots=True)
class SyncAllPlaylistsUseCase:
    """Enqueues one sync job per eligible playlist.

    Soft-disabled playlists and playlists never pushed outward are left
    alone. Jobs are started one at a time with a short pause between them to
    stay under the platform's rate limits.
    """

    runner: SyncJobRunner
    uow_factory: Callable[[], UnitOfWorkProtocol]
    platform: PlaylistPlatform
    delay: float = field(factory=lambda: settings.sync.scheduled_playlist_delay)

    async def execute(self, force: bool = False) -> list[str]:
        """Start the sync jobs and return their IDs."""
        async with self.uow_factory() as uow:
            playlists = await uow.get_smart_playlist_repository().list_playlists(active_only=True)

        eligible = [p for p in playlists if p.is_synced_outward and p.id is not None]
        job_ids: list[str] = []

        for index, playlist in enumerate(eligible):
            if index > 0 and self.delay > 0:
                await asyncio.sleep(self.delay)
            try:
                job_id = await enqueue_smart_playlist_sync(
                    self.runner, self.uow_factory, self.platform, playlist.id, force
                )
            except ConcurrencyConflict as e:
                logger.info(f"Skipping '{playlist.name}': {e}", playlist_id=playlist.id)
                continue
            job_ids.append(job_id)

        logger.info(
            f"Scheduled {len(job_ids)} playlist syncs",
            eligible=len(eligible),
            total=len(playlists),
        )
        return job_ids
