"""Integration fixtures: real use cases over an in-memory database and a fake platform."""

import pytest

from smartlists.application.services import InMemoryJobStore, SyncJobRunner
from smartlists.domain.entities import PlaylistCriteria, SmartPlaylist


@pytest.fixture
def seed_library(uow_factory):
    """Async helper that stores tracks and returns them with database IDs."""

    async def seed(tracks):
        async with uow_factory() as uow:
            repo = uow.get_library_repository()
            return [await repo.save_track(track) for track in tracks]

    return seed


@pytest.fixture
def create_playlist(uow_factory):
    """Async helper that stores a smart playlist from a criteria document."""

    async def create(name, document, **values):
        async with uow_factory() as uow:
            return await uow.get_smart_playlist_repository().create(
                SmartPlaylist(name=name, criteria=PlaylistCriteria.from_dict(document), **values)
            )

    return create


@pytest.fixture
def load_playlist(uow_factory):
    async def load(playlist_id):
        async with uow_factory() as uow:
            return await uow.get_smart_playlist_repository().get_by_id(playlist_id)

    return load


@pytest.fixture
async def runner():
    runner = SyncJobRunner(store=InMemoryJobStore(), conflict_policy="join")
    yield runner
    await runner.shutdown()
