"""Authoring use cases: create smart playlists, edit criteria, toggle activity.

Criteria documents are validated before anything is stored. Tag rules may name
tags; names are bound to tag IDs at authoring time.
"""

from typing import Any

from attrs import define, field

from smartlists.application.use_cases.materialize_playlist import MaterializePlaylistUseCase
from smartlists.config import get_logger
from smartlists.domain.entities import (
    LibraryView,
    MaterializedResult,
    PlaylistCriteria,
    SmartPlaylist,
    bind_tag_names,
)
from smartlists.domain.exceptions import ValidationError
from smartlists.domain.repositories import UnitOfWorkProtocol

logger = get_logger(__name__)


def parse_criteria_document(document: dict[str, Any], library: LibraryView) -> PlaylistCriteria:
    """Bind tag names to IDs and validate a criteria document."""
    return PlaylistCriteria.from_dict(bind_tag_names(document, library.tag_id_by_name()))


@define(frozen=True, slots=True)
class CreateSmartPlaylistCommand:
    name: str
    criteria: dict[str, Any]
    description: str | None = None


@define(frozen=True, slots=True)
class UpdateSmartPlaylistCommand:
    playlist_id: int
    criteria: dict[str, Any] | None = None
    is_active: bool | None = None


@define(slots=True)
class CreateSmartPlaylistUseCase:
    """Creates a smart playlist and materializes it once."""

    materializer: MaterializePlaylistUseCase = field(factory=MaterializePlaylistUseCase)

    async def execute(
        self, command: CreateSmartPlaylistCommand, uow: UnitOfWorkProtocol
    ) -> tuple[SmartPlaylist, MaterializedResult]:
        """Raises ValidationError for a malformed document or a duplicate name."""
        async with uow:
            playlist_repo = uow.get_smart_playlist_repository()
            if await playlist_repo.find_by_name(command.name) is not None:
                raise ValidationError(f"smart playlist '{command.name}' already exists", "name")

            library = await uow.get_library_repository().load_library_view()
            criteria = parse_criteria_document(command.criteria, library)

            playlist = await playlist_repo.create(
                SmartPlaylist(
                    name=command.name,
                    criteria=criteria,
                    description=command.description,
                )
            )
            materialized = await self.materializer.execute(playlist, library, uow)
            await uow.commit()

        logger.info(f"Created smart playlist '{playlist.name}'", playlist_id=playlist.id)
        return (
            playlist.with_materialization(len(materialized), materialized.fingerprint),
            materialized,
        )


@define(slots=True)
class UpdateSmartPlaylistUseCase:
    """Replaces criteria and/or toggles activity, re-materializing on edit."""

    materializer: MaterializePlaylistUseCase = field(factory=MaterializePlaylistUseCase)

    async def execute(
        self, command: UpdateSmartPlaylistCommand, uow: UnitOfWorkProtocol
    ) -> SmartPlaylist:
        async with uow:
            playlist_repo = uow.get_smart_playlist_repository()
            playlist = await playlist_repo.get_by_id(command.playlist_id)

            if command.criteria is not None:
                library = await uow.get_library_repository().load_library_view()
                criteria = parse_criteria_document(command.criteria, library)
                playlist = await playlist_repo.update_criteria(playlist.id, criteria)
                materialized = await self.materializer.execute(playlist, library, uow)
                playlist = playlist.with_materialization(
                    len(materialized), materialized.fingerprint
                )

            if command.is_active is not None and command.is_active != playlist.is_active:
                playlist = await playlist_repo.set_active(playlist.id, command.is_active)

            await uow.commit()

        logger.info(f"Updated smart playlist '{playlist.name}'", playlist_id=playlist.id)
        return playlist
