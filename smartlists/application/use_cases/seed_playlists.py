"""Onboarding: mirror the library once, then seed default smart playlists.

Seeding runs under an idempotency key so repeated onboarding triggers for the
same account create the defaults exactly once.
"""

from collections.abc import Callable
from typing import Any

from attrs import define, field

from smartlists.application.services.jobs import ONBOARDING_TARGET, JobContext, SyncJobRunner
from smartlists.application.use_cases.materialize_playlist import MaterializePlaylistUseCase
from smartlists.application.use_cases.mirror_library import MirrorLibraryUseCase
from smartlists.config import get_logger
from smartlists.domain.entities import (
    JobKind,
    PlaylistCriteria,
    SmartPlaylist,
    SyncOptions,
    SyncResult,
)
from smartlists.domain.repositories import PlaylistPlatform, UnitOfWorkProtocol

logger = get_logger(__name__)

DEFAULT_SMART_PLAYLISTS: tuple[dict[str, Any], ...] = (
    {
        "name": "My Favorites",
        "description": "Your 5-star tracks",
        "criteria": {
            "rules": [{"field": "rating", "operator": "equals", "numberValue": 5}],
            "logic": "and",
            "orderBy": "ratedAt",
            "orderDirection": "desc",
        },
    },
    {
        "name": "Highly Rated",
        "description": "Tracks rated above 3.5 stars",
        "criteria": {
            "rules": [{"field": "rating", "operator": "greaterThan", "numberValue": 3.5}],
            "logic": "and",
            "orderBy": "rating",
            "orderDirection": "desc",
        },
    },
    {
        "name": "Recently Added",
        "description": "Tracks added in the last 14 days",
        "criteria": {
            "rules": [{"field": "dateAdded", "operator": "inLast", "daysValue": 14}],
            "logic": "and",
            "orderBy": "dateAdded",
            "orderDirection": "desc",
        },
    },
)


def onboarding_key(account: str) -> str:
    return f"onboarding:{account}"


@define(slots=True)
class SeedDefaultPlaylistsUseCase:
    """Creates the default smart playlists that do not exist yet."""

    definitions: tuple[dict[str, Any], ...] = field(default=DEFAULT_SMART_PLAYLISTS)
    materializer: MaterializePlaylistUseCase = field(factory=MaterializePlaylistUseCase)

    async def execute(self, uow: UnitOfWorkProtocol) -> list[SmartPlaylist]:
        """Seed the defaults and materialize them against the current library."""
        created: list[SmartPlaylist] = []

        async with uow:
            playlist_repo = uow.get_smart_playlist_repository()
            library = await uow.get_library_repository().load_library_view()

            for definition in self.definitions:
                if await playlist_repo.find_by_name(definition["name"]) is not None:
                    logger.debug(f"Default playlist '{definition['name']}' already exists")
                    continue

                playlist = await playlist_repo.create(
                    SmartPlaylist(
                        name=definition["name"],
                        description=definition.get("description"),
                        criteria=PlaylistCriteria.from_dict(definition["criteria"]),
                    )
                )
                materialized = await self.materializer.execute(playlist, library, uow)
                created.append(
                    playlist.with_materialization(len(materialized), materialized.fingerprint)
                )

            await uow.commit()

        logger.info(f"Seeded {len(created)} default smart playlists")
        return created


async def enqueue_onboarding(
    runner: SyncJobRunner,
    uow_factory: Callable[[], UnitOfWorkProtocol],
    platform: PlaylistPlatform,
    account: str = "default",
) -> str:
    """Trigger onboarding for an account; repeated triggers return the first job."""

    async def work(context: JobContext) -> SyncResult:
        result = await MirrorLibraryUseCase(platform=platform).execute(
            uow_factory(), SyncOptions(), context
        )
        context.check_cancelled()
        context.report("seed", 0, 1, "Creating default smart playlists")
        seeded = await SeedDefaultPlaylistsUseCase().execute(uow_factory())
        context.report("seed", 1, 1, f"{len(seeded)} playlists created")
        return result

    return await runner.enqueue(
        JobKind.ONBOARDING,
        ONBOARDING_TARGET,
        work,
        payload={"account": account},
        idempotency_key=onboarding_key(account),
    )
