"""Repository tests against an in-memory SQLite database."""

from datetime import UTC, datetime

import pytest

from smartlists.domain.entities import (
    MirroredPlaylist,
    PlayEvent,
    PlaylistCriteria,
    SmartPlaylist,
    SourceType,
    SyncJob,
    SyncResult,
    TrackSource,
)
from smartlists.domain.exceptions import NotFoundError, ValidationError
from smartlists.infrastructure.persistence.database.db_models import DBAlbum, DBArtist
from smartlists.infrastructure.persistence.repositories import (
    LibraryRepository,
    MirrorRepository,
    SmartPlaylistRepository,
    SyncJobRepository,
)
from smartlists.infrastructure.persistence.unit_of_work import get_unit_of_work
from tests.fixtures.models import make_remote_track, make_track

LIKED = TrackSource(SourceType.LIKED_SONGS)


@pytest.fixture
def library_repo(db_session):
    return LibraryRepository(db_session)


@pytest.fixture
def playlist_repo(db_session):
    return SmartPlaylistRepository(db_session)


def favorites(name: str = "Favorites") -> SmartPlaylist:
    return SmartPlaylist(
        name=name,
        criteria=PlaylistCriteria.from_dict(
            {"rules": [{"field": "rating", "operator": "equals", "numberValue": 5}]}
        ),
    )


class TestLibraryRepository:
    async def test_save_track_round_trips_tags_and_sources(self, library_repo):
        tag = await library_repo.create_tag("Chill")
        track = make_track(
            1,
            id=None,
            rating=4.5,
            tag_ids={tag.id},
            sources={LIKED, TrackSource(SourceType.PLAYLIST, "pl-1", "Road Trip")},
        )

        saved = await library_repo.save_track(track)
        view = await library_repo.load_library_view()

        assert saved.id is not None
        (loaded,) = view.tracks
        assert loaded.rating == 4.5
        assert loaded.tag_ids == {tag.id}
        assert LIKED in loaded.sources
        assert loaded.has_source(SourceType.PLAYLIST, "pl-1")
        assert view.tags[tag.id].name == "Chill"

    async def test_save_track_updates_existing_by_external_id(self, library_repo):
        first = await library_repo.save_track(make_track(1, id=None, rating=3.0))

        updated = await library_repo.save_track(make_track(1, id=None, rating=5.0, title="New"))

        assert updated.id == first.id
        assert updated.rating == 5.0
        assert updated.title == "New"

    async def test_upsert_never_touches_user_fields(self, library_repo):
        await library_repo.save_track(make_track(1, id=None, rating=5.0, play_count=9))

        new_ids, updated_ids = await library_repo.upsert_remote_tracks([
            make_remote_track(1, title="Renamed"),
            make_remote_track(2),
        ])
        (track_1, track_2) = (
            await library_repo.load_library_view(include_detached=True)
        ).tracks

        assert new_ids == ["sp0002"]
        assert updated_ids == ["sp0001"]
        assert track_1.title == "Renamed"
        assert track_1.rating == 5.0
        assert track_1.play_count == 9
        assert track_2.rating is None

    async def test_upsert_creates_album_and_artist_rows(self, library_repo, db_session):
        await library_repo.upsert_remote_tracks([make_remote_track(1), make_remote_track(2)])

        album = await db_session.get(DBAlbum, 1)
        artist = await db_session.get(DBArtist, 1)

        assert album.spotify_id == "album-1"
        assert artist.spotify_id == "artist-1"

    async def test_attach_and_detach_sources(self, library_repo):
        await library_repo.upsert_remote_tracks([make_remote_track(n) for n in (1, 2, 3)])
        album = TrackSource(SourceType.ALBUM, "album-1", "Remote Album")

        assert await library_repo.attach_source(["sp0001", "sp0002", "sp0003"], album) == 3
        assert await library_repo.attach_source(["sp0001"], album) == 0
        assert await library_repo.attach_source(["sp0001"], LIKED) == 1

        assert await library_repo.detach_source(["sp0002"], album) == 1

        assert await library_repo.get_source_track_ids(album) == ["sp0001", "sp0003"]
        assert await library_repo.get_source_track_ids(LIKED) == ["sp0001"]
        assert await library_repo.list_sources(SourceType.ALBUM) == [album]

        view = await library_repo.load_library_view(include_detached=True)
        tracks = {t.external_id: t for t in view.tracks}
        assert tracks["sp0002"].sources == frozenset()
        assert len(tracks["sp0001"].sources) == 2

    async def test_recompute_aggregates_counts_only_sourced_tracks(self, library_repo, db_session):
        await library_repo.upsert_remote_tracks([make_remote_track(n) for n in (1, 2, 3)])
        await library_repo.attach_source(["sp0001", "sp0002"], LIKED)
        for n, rating in ((1, 4.0), (2, 5.0), (3, 1.0)):
            await library_repo.save_track(rated_track(n, rating))

        await library_repo.recompute_aggregates(["album-1"], ["artist-1"])
        album = await db_session.get(DBAlbum, 1)

        assert album.track_count == 2
        assert album.average_rating == pytest.approx(4.5)

    async def test_tags(self, library_repo):
        tag = await library_repo.create_tag("Chill", "#00ff00")

        with pytest.raises(ValidationError):
            await library_repo.create_tag("chill")
        with pytest.raises(NotFoundError):
            await library_repo.rename_tag(999, "Nope")

        renamed = await library_repo.rename_tag(tag.id, "Relaxing")

        assert renamed.id == tag.id
        assert [t.name for t in await library_repo.list_tags()] == ["Relaxing"]

    async def test_assign_tag_is_idempotent(self, library_repo):
        track = await library_repo.save_track(make_track(1, id=None))
        tag = await library_repo.create_tag("Gym")

        await library_repo.assign_tag(track.id, tag.id)
        await library_repo.assign_tag(track.id, tag.id)

        (loaded,) = (await library_repo.load_library_view()).tracks
        assert loaded.tag_ids == {tag.id}

    async def test_library_view_leaves_out_tracks_without_sources(self, library_repo):
        await library_repo.upsert_remote_tracks([make_remote_track(1), make_remote_track(2)])
        await library_repo.attach_source(["sp0001", "sp0002"], LIKED)
        await library_repo.detach_source(["sp0002"], LIKED)

        view = await library_repo.load_library_view()
        everything = await library_repo.load_library_view(include_detached=True)

        assert [t.external_id for t in view.tracks] == ["sp0001"]
        assert [t.external_id for t in everything.tracks] == ["sp0001", "sp0002"]

    async def test_get_track(self, library_repo):
        saved = await library_repo.save_track(make_track(1, id=None, rating=3.5))

        assert (await library_repo.get_track(saved.id)).rating == 3.5
        with pytest.raises(NotFoundError):
            await library_repo.get_track(999)

    async def test_record_plays_counts_each_play_once(self, library_repo):
        await library_repo.save_track(make_track(1, id=None, play_count=2))
        first = datetime(2024, 6, 1, 8, 0, tzinfo=UTC)
        second = datetime(2024, 6, 1, 9, 0, tzinfo=UTC)

        recorded = await library_repo.record_plays([
            PlayEvent("sp0001", first),
            PlayEvent("sp0001", second),
            PlayEvent("sp0001", second),
            PlayEvent("unknown", second),
        ])
        again = await library_repo.record_plays([PlayEvent("sp0001", second)])
        (track,) = (await library_repo.load_library_view()).tracks

        assert recorded == 2
        assert again == 0
        assert track.play_count == 4
        assert track.last_played_at == second

    async def test_audio_features_are_stored_once_found(self, library_repo):
        await library_repo.save_track(make_track(1, id=None))
        await library_repo.save_track(make_track(2, id=None))

        saved = await library_repo.save_audio_features({"sp0001": {"energy": 0.8}, "sp0002": None})

        assert saved == 1
        assert await library_repo.get_ids_missing_audio_features() == ["sp0002"]


def rated_track(n: int, rating: float):
    """Library-side copy of a remote track carrying a user rating."""
    return make_track(
        n,
        id=None,
        title=f"Remote {n}",
        artist="Remote Artist",
        album="Remote Album",
        artist_id="artist-1",
        album_id="album-1",
        rating=rating,
        added_at=datetime(2024, 5, 31, tzinfo=UTC),
    )


class TestSmartPlaylistRepository:
    async def test_create_and_load_criteria(self, playlist_repo):
        created = await playlist_repo.create(favorites())

        loaded = await playlist_repo.get_by_id(created.id)

        assert loaded.criteria == favorites().criteria
        assert loaded.is_active
        assert loaded.spotify_playlist_id is None
        assert await playlist_repo.find_by_name("Favorites") == loaded
        assert await playlist_repo.find_by_name("Missing") is None

    async def test_get_missing_playlist(self, playlist_repo):
        with pytest.raises(NotFoundError):
            await playlist_repo.get_by_id(42)

    async def test_sync_bookkeeping(self, playlist_repo):
        playlist = await playlist_repo.create(favorites())

        materialized = await playlist_repo.save_materialization(playlist.id, 3, "fp-1")
        assert materialized.fingerprint == "fp-1"
        assert materialized.synced_fingerprint is None

        with_remote = await playlist_repo.set_spotify_playlist_id(playlist.id, "remote-1")
        assert with_remote.synced_fingerprint is None

        synced = await playlist_repo.mark_synced(playlist.id, "remote-1", "fp-1")
        assert synced.synced_fingerprint == "fp-1"
        assert synced.last_synced_at is not None

    async def test_active_filter_and_owned_ids(self, playlist_repo):
        active = await playlist_repo.create(favorites("Active"))
        disabled = await playlist_repo.create(favorites("Disabled"))
        await playlist_repo.set_spotify_playlist_id(active.id, "remote-a")
        await playlist_repo.set_spotify_playlist_id(disabled.id, "remote-d")
        await playlist_repo.set_active(disabled.id, False)

        listed = await playlist_repo.list_playlists(active_only=True)

        assert [p.name for p in listed] == ["Active"]
        assert len(await playlist_repo.list_playlists()) == 2
        assert await playlist_repo.get_spotify_playlist_ids() == {"remote-a", "remote-d"}

    async def test_update_criteria(self, playlist_repo):
        playlist = await playlist_repo.create(favorites())
        criteria = PlaylistCriteria.from_dict({"rules": [], "limit": 5})

        updated = await playlist_repo.update_criteria(playlist.id, criteria)

        assert updated.criteria.limit == 5


class TestMirrorRepository:
    async def test_save_snapshot_upserts(self, db_session):
        repo = MirrorRepository(db_session)

        await repo.save_snapshot(MirroredPlaylist(external_id="pl", name="A", snapshot_id="s1"))
        await repo.save_snapshot(MirroredPlaylist(external_id="pl", name="B", snapshot_id="s2"))

        assert await repo.get_snapshot_ids() == {"pl": "s2"}


class TestSyncJobRepository:
    async def test_save_and_update(self, db_session):
        repo = SyncJobRepository(db_session)
        job = SyncJob(id="job-1", kind="smart_playlist", target="smart-playlist:1")

        await repo.save(job)
        await repo.save(job.start().complete(SyncResult(total_tracks=4)))
        loaded = await repo.get("job-1")

        assert loaded.status == "completed"
        assert loaded.result == SyncResult(total_tracks=4)
        assert await repo.get("missing") is None

    async def test_claim_is_guarded_by_idempotency_key(self, db_session):
        repo = SyncJobRepository(db_session)
        first = SyncJob(id="job-1", kind="onboarding", target="onboarding", idempotency_key="k")
        second = SyncJob(id="job-2", kind="onboarding", target="onboarding", idempotency_key="k")

        stored, created = await repo.claim(first)
        again, created_again = await repo.claim(second)

        assert created
        assert stored.id == "job-1"
        assert not created_again
        assert again.id == "job-1"


class TestUnitOfWork:
    async def test_commits_on_clean_exit(self, session_factory):
        async with get_unit_of_work(session_factory) as uow:
            await uow.get_smart_playlist_repository().create(favorites())

        async with get_unit_of_work(session_factory) as uow:
            assert await uow.get_smart_playlist_repository().find_by_name("Favorites")

    async def test_rolls_back_on_error(self, session_factory):
        with pytest.raises(RuntimeError):
            async with get_unit_of_work(session_factory) as uow:
                await uow.get_smart_playlist_repository().create(favorites())
                raise RuntimeError("boom")

        async with get_unit_of_work(session_factory) as uow:
            assert await uow.get_smart_playlist_repository().find_by_name("Favorites") is None

    async def test_explicit_commit_survives_later_error(self, session_factory):
        with pytest.raises(RuntimeError):
            async with get_unit_of_work(session_factory) as uow:
                repo = uow.get_smart_playlist_repository()
                await repo.create(favorites("Kept"))
                await uow.commit()
                await repo.create(favorites("Lost"))
                raise RuntimeError("boom")

        async with get_unit_of_work(session_factory) as uow:
            names = [p.name for p in await uow.get_smart_playlist_repository().list_playlists()]

        assert names == ["Kept"]
