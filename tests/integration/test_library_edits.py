"""Library edits and membership changes flowing through to smart playlists."""

from datetime import timedelta

import pytest

from smartlists.application.use_cases import (
    AssignTagCommand,
    AssignTagUseCase,
    ImportRecentPlaysUseCase,
    MaterializePlaylistUseCase,
    MirrorLibraryUseCase,
    RateTrackCommand,
    RateTrackUseCase,
    SyncSmartPlaylistCommand,
    SyncSmartPlaylistUseCase,
    enqueue_play_import,
)
from smartlists.domain.entities import JobStatus, PlayEvent, SyncOptions
from smartlists.domain.exceptions import FatalExternalError, NotFoundError, ValidationError
from tests.fixtures.models import FIVE_STARS, NOW, make_remote_track, make_track

EVERYTHING = {"rules": [], "orderBy": "title", "orderDirection": "asc"}
PLAYED = {"rules": [{"field": "playCount", "operator": "greaterThan", "numberValue": 0}]}


@pytest.fixture
def sync(platform, uow_factory):
    use_case = SyncSmartPlaylistUseCase(platform=platform, chunk_size=2, chunk_delay=0)

    async def run(playlist_id):
        return await use_case.execute(
            SyncSmartPlaylistCommand(playlist_id=playlist_id), uow_factory()
        )

    return run


@pytest.fixture
def materialize(uow_factory):
    async def run(playlist_id):
        async with uow_factory() as uow:
            _, result = await MaterializePlaylistUseCase().execute_by_id(
                playlist_id, uow, persist=False
            )
        return result.external_ids

    return run


class TestLibraryMembership:
    async def test_unliked_track_leaves_synced_playlist(
        self, uow_factory, platform, create_playlist, sync, materialize
    ):
        mirror = MirrorLibraryUseCase(platform=platform, chunk_size=2, playlist_delay=0)
        platform.liked = [make_remote_track(1), make_remote_track(2)]
        await mirror.execute(uow_factory())
        playlist = await create_playlist("Everything", EVERYTHING)
        await sync(playlist.id)
        assert platform.playlists["created-1"] == ["sp0001", "sp0002"]

        platform.liked = [make_remote_track(1)]
        await mirror.execute(uow_factory())
        result = await sync(playlist.id)

        assert result.status == "updated"
        assert platform.playlists["created-1"] == ["sp0001"]
        assert await materialize(playlist.id) == ("sp0001",)

    async def test_relinking_a_track_brings_back_its_rating(
        self, uow_factory, platform, seed_library, create_playlist, materialize
    ):
        await seed_library([make_track(1, id=None, rating=5.0, sources=frozenset())])
        playlist = await create_playlist("Favorites", FIVE_STARS)
        mirror = MirrorLibraryUseCase(platform=platform, chunk_size=2, playlist_delay=0)
        await mirror.execute(uow_factory())
        assert await materialize(playlist.id) == ()

        platform.liked = [make_remote_track(1)]
        await mirror.execute(uow_factory())

        assert await materialize(playlist.id) == ("sp0001",)


class TestRateTrack:
    async def test_rating_moves_track_into_and_out_of_playlist(
        self, uow_factory, platform, seed_library, create_playlist, sync
    ):
        _, second, _ = await seed_library([make_track(n, id=None) for n in (1, 2, 3)])
        playlist = await create_playlist("Favorites", FIVE_STARS)
        await sync(playlist.id)
        assert platform.playlists["created-1"] == []

        rated = await RateTrackUseCase().execute(
            RateTrackCommand(track_id=second.id, rating=5.0), uow_factory()
        )
        await sync(playlist.id)

        assert rated.rated_at is not None
        assert platform.playlists["created-1"] == ["sp0002"]

        cleared = await RateTrackUseCase().execute(
            RateTrackCommand(track_id=second.id, rating=None), uow_factory()
        )
        await sync(playlist.id)

        assert cleared.rating is None
        assert cleared.rated_at is None
        assert platform.playlists["created-1"] == []

    async def test_off_scale_rating_is_rejected(self, uow_factory, seed_library):
        (track,) = await seed_library([make_track(1, id=None, rating=3.0)])

        with pytest.raises(ValidationError) as exc_info:
            await RateTrackUseCase().execute(
                RateTrackCommand(track_id=track.id, rating=4.3), uow_factory()
            )

        assert exc_info.value.path == "rating"
        async with uow_factory() as uow:
            assert (await uow.get_library_repository().get_track(track.id)).rating == 3.0

    async def test_unknown_track(self, uow_factory):
        with pytest.raises(NotFoundError):
            await RateTrackUseCase().execute(
                RateTrackCommand(track_id=7, rating=4.0), uow_factory()
            )


class TestAssignTag:
    async def test_tagging_adds_track_to_tag_playlist(
        self, uow_factory, seed_library, create_playlist, materialize
    ):
        first, _ = await seed_library([make_track(1, id=None), make_track(2, id=None)])
        async with uow_factory() as uow:
            tag = await uow.get_library_repository().create_tag("Workout")
        playlist = await create_playlist(
            "Gym", {"rules": [{"field": "tag", "operator": "hasTag", "textValue": str(tag.id)}]}
        )
        assert await materialize(playlist.id) == ()

        tagged = await AssignTagUseCase().execute(
            AssignTagCommand(track_id=first.id, tag="workout"), uow_factory()
        )
        again = await AssignTagUseCase().execute(
            AssignTagCommand(track_id=first.id, tag=str(tag.id)), uow_factory()
        )

        assert tagged.tag_ids == {tag.id}
        assert again.tag_ids == {tag.id}
        assert await materialize(playlist.id) == ("sp0001",)

    async def test_unknown_tag(self, uow_factory, seed_library):
        (track,) = await seed_library([make_track(1, id=None)])

        with pytest.raises(NotFoundError):
            await AssignTagUseCase().execute(
                AssignTagCommand(track_id=track.id, tag="Nope"), uow_factory()
            )


class TestImportRecentPlays:
    async def test_plays_move_track_into_played_playlist(
        self, uow_factory, platform, seed_library, create_playlist, materialize
    ):
        await seed_library([make_track(1, id=None), make_track(2, id=None)])
        playlist = await create_playlist("Played", PLAYED)
        assert await materialize(playlist.id) == ()
        played_at = NOW - timedelta(hours=1)
        platform.recently_played = [
            PlayEvent("sp0002", played_at),
            PlayEvent("sp0002", played_at - timedelta(minutes=5)),
            PlayEvent("not-in-library", played_at),
        ]

        result = await ImportRecentPlaysUseCase(platform=platform).execute(uow_factory())

        assert result.total_tracks == 3
        assert result.updated_tracks == 2
        assert await materialize(playlist.id) == ("sp0002",)
        async with uow_factory() as uow:
            view = await uow.get_library_repository().load_library_view()
        track = {t.external_id: t for t in view.tracks}["sp0002"]
        assert track.play_count == 2
        assert track.last_played_at == played_at

    async def test_overlapping_history_is_counted_once(
        self, uow_factory, platform, seed_library
    ):
        (track,) = await seed_library([make_track(1, id=None)])
        platform.recently_played = [PlayEvent("sp0001", NOW)]
        use_case = ImportRecentPlaysUseCase(platform=platform)

        await use_case.execute(uow_factory())
        second = await use_case.execute(uow_factory())

        assert second.updated_tracks == 0
        async with uow_factory() as uow:
            assert (await uow.get_library_repository().get_track(track.id)).play_count == 1

    async def test_background_import(self, runner, uow_factory, platform, seed_library):
        await seed_library([make_track(1, id=None)])
        platform.recently_played = [PlayEvent("sp0001", NOW)]

        job = await runner.wait(await enqueue_play_import(runner, uow_factory, platform))

        assert job.status is JobStatus.COMPLETED
        assert job.kind == "play_import"
        assert job.result.updated_tracks == 1


class TestAudioFeatureEnrichment:
    async def test_mirror_stores_features_for_library_tracks(
        self, uow_factory, platform
    ):
        mirror = MirrorLibraryUseCase(platform=platform, chunk_size=2, playlist_delay=0)
        platform.liked = [make_remote_track(1), make_remote_track(2)]
        platform.audio_features = {"sp0001": {"energy": 0.9}}

        await mirror.execute(uow_factory())
        platform.calls.clear()
        await mirror.execute(uow_factory())

        assert ("get_audio_features", ("sp0002",)) in platform.calls
        async with uow_factory() as uow:
            missing = await uow.get_library_repository().get_ids_missing_audio_features()
        assert missing == ["sp0002"]

    async def test_enrichment_can_be_turned_off(self, uow_factory, platform):
        mirror = MirrorLibraryUseCase(platform=platform, chunk_size=2, playlist_delay=0)
        platform.liked = [make_remote_track(1)]

        await mirror.execute(uow_factory(), SyncOptions(sync_audio_features=False))

        assert "get_audio_features" not in platform.call_names()

    async def test_fatal_enrichment_error_is_reported_without_failing_the_mirror(
        self, uow_factory, platform, monkeypatch
    ):
        async def forbidden(_external_ids):
            raise FatalExternalError("audio features are not available", http_status=403)

        monkeypatch.setattr(platform, "get_audio_features", forbidden)
        mirror = MirrorLibraryUseCase(platform=platform, chunk_size=2, playlist_delay=0)
        platform.liked = [make_remote_track(1)]

        result = await mirror.execute(uow_factory())

        assert result.new_tracks == 1
        assert len(result.errors) == 1
        assert result.errors[0].startswith("audio features:")
