"""User edits to library tracks: ratings, tag assignments and play history.

These feed the rule evaluator directly. A rating, a tag or a new play changes
which smart playlists a track belongs to on the next materialization or sync.
"""

from collections.abc import Callable

from attrs import define

from smartlists.application.services.jobs import PLAY_IMPORT_TARGET, JobContext, SyncJobRunner
from smartlists.config import get_logger
from smartlists.domain.entities import JobKind, SyncResult, Tag, Track
from smartlists.domain.exceptions import NotFoundError, ValidationError
from smartlists.domain.repositories import (
    LibraryRepositoryProtocol,
    PlaylistPlatform,
    UnitOfWorkProtocol,
)

logger = get_logger(__name__)


@define(frozen=True, slots=True)
class RateTrackCommand:
    track_id: int
    rating: float | None


@define(frozen=True, slots=True)
class AssignTagCommand:
    track_id: int
    tag: str


@define(slots=True)
class RateTrackUseCase:
    """Sets or clears a track's rating."""

    async def execute(self, command: RateTrackCommand, uow: UnitOfWorkProtocol) -> Track:
        """Raises ValidationError for ratings off the half-star scale."""
        async with uow:
            repository = uow.get_library_repository()
            track = await repository.get_track(command.track_id)
            try:
                rated = track.with_rating(command.rating)
            except ValueError as e:
                raise ValidationError(str(e), "rating") from e
            saved = await repository.save_track(rated)
            await uow.commit()

        logger.info(f"Rated '{saved.title}'", track_id=saved.id, rating=saved.rating)
        return saved


async def resolve_tag(repository: LibraryRepositoryProtocol, tag: str) -> Tag:
    """Find a tag by numeric ID or case-insensitive name."""
    tags = await repository.list_tags()
    wanted = tag.strip()
    for candidate in tags:
        if str(candidate.id) == wanted or candidate.name.lower() == wanted.lower():
            return candidate
    raise NotFoundError("Tag", tag)


@define(slots=True)
class AssignTagUseCase:
    """Tags a track; assigning the same tag twice changes nothing."""

    async def execute(self, command: AssignTagCommand, uow: UnitOfWorkProtocol) -> Track:
        async with uow:
            repository = uow.get_library_repository()
            track = await repository.get_track(command.track_id)
            tag = await resolve_tag(repository, command.tag)
            await repository.assign_tag(track.id, tag.id)
            tagged = await repository.get_track(track.id)
            await uow.commit()

        logger.info(f"Tagged '{tagged.title}' with '{tag.name}'", track_id=tagged.id)
        return tagged


@define(slots=True)
class ImportRecentPlaysUseCase:
    """Pulls the recently-played history into play counts and last-played times."""

    platform: PlaylistPlatform
    limit: int = 50

    async def execute(self, uow: UnitOfWorkProtocol) -> SyncResult:
        plays = await self.platform.get_recently_played(self.limit)
        async with uow:
            recorded = await uow.get_library_repository().record_plays(plays)
            await uow.commit()

        logger.info(f"Imported {recorded} of {len(plays)} recent plays")
        return SyncResult(total_tracks=len(plays), updated_tracks=recorded)


async def enqueue_play_import(
    runner: SyncJobRunner,
    uow_factory: Callable[[], UnitOfWorkProtocol],
    platform: PlaylistPlatform,
) -> str:
    """Trigger a background recently-played import and return the job ID."""

    async def work(context: JobContext) -> SyncResult:
        context.report("plays", 0, 1, "Fetching recently played")
        result = await ImportRecentPlaysUseCase(platform=platform).execute(uow_factory())
        context.report("plays", 1, 1, f"{result.updated_tracks} plays recorded")
        return result

    return await runner.enqueue(JobKind.PLAY_IMPORT, PLAY_IMPORT_TARGET, work)
