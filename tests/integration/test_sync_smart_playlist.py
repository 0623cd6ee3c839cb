"""Outbound sync of smart playlists against a real database and a fake platform."""

import pytest

from smartlists.application.use_cases import (
    SyncAllPlaylistsUseCase,
    SyncSmartPlaylistCommand,
    SyncSmartPlaylistUseCase,
    UpdateSmartPlaylistCommand,
    UpdateSmartPlaylistUseCase,
    enqueue_smart_playlist_sync,
)
from smartlists.config import settings
from smartlists.domain.entities import JobStatus
from smartlists.domain.exceptions import (
    FatalExternalError,
    NotFoundError,
    SyncFailedError,
    TransientExternalError,
)
from smartlists.domain.sync import fingerprint
from tests.fixtures.models import FIVE_STARS, make_track


def five_star_library(count: int, *, unrated: int = 0):
    tracks = [make_track(n, id=None, rating=5.0) for n in range(1, count + 1)]
    tracks += [make_track(n, id=None) for n in range(count + 1, count + unrated + 1)]
    return tracks


@pytest.fixture
def use_case(platform):
    return SyncSmartPlaylistUseCase(platform=platform, chunk_size=2, chunk_delay=0)


async def run_sync(use_case, uow_factory, playlist_id, force=False):
    return await use_case.execute(
        SyncSmartPlaylistCommand(playlist_id=playlist_id, force=force), uow_factory()
    )


class TestFirstSync:
    async def test_creates_playlist_and_pushes_matching_tracks(
        self, use_case, uow_factory, platform, seed_library, create_playlist, load_playlist
    ):
        await seed_library(five_star_library(3, unrated=2))
        playlist = await create_playlist("Favorites", FIVE_STARS)

        result = await run_sync(use_case, uow_factory, playlist.id)
        stored = await load_playlist(playlist.id)

        assert result.status == "created"
        assert stored.spotify_playlist_id == "created-1"
        assert platform.details["created-1"][0] == "[Smartlists] Favorites"
        assert platform.playlists["created-1"] == ["sp0001", "sp0002", "sp0003"]
        assert stored.synced_fingerprint == fingerprint(["sp0001", "sp0002", "sp0003"])
        assert stored.track_count == 3
        assert stored.last_synced_at is not None

    async def test_unknown_playlist(self, use_case, uow_factory):
        with pytest.raises(NotFoundError):
            await run_sync(use_case, uow_factory, 404)

    async def test_empty_result_still_creates_external_playlist(
        self, use_case, uow_factory, platform, create_playlist, load_playlist
    ):
        playlist = await create_playlist("Favorites", FIVE_STARS)

        result = await run_sync(use_case, uow_factory, playlist.id)

        assert result.status == "unchanged"
        assert platform.playlists == {"created-1": []}
        assert (await load_playlist(playlist.id)).synced_fingerprint == fingerprint([])


class TestChangeDetection:
    async def test_unchanged_playlist_makes_no_external_calls(
        self, use_case, uow_factory, platform, seed_library, create_playlist
    ):
        await seed_library(five_star_library(3))
        playlist = await create_playlist("Favorites", FIVE_STARS)
        await run_sync(use_case, uow_factory, playlist.id)
        platform.calls.clear()

        result = await run_sync(use_case, uow_factory, playlist.id)

        assert result.status == "skipped"
        assert platform.calls == []

    async def test_library_change_pushes_only_the_difference(
        self, use_case, uow_factory, platform, seed_library, create_playlist
    ):
        await seed_library(five_star_library(3))
        playlist = await create_playlist("Favorites", FIVE_STARS)
        await run_sync(use_case, uow_factory, playlist.id)
        await seed_library([make_track(4, id=None, rating=5.0)])
        platform.calls.clear()

        result = await run_sync(use_case, uow_factory, playlist.id)

        assert result.status == "updated"
        assert platform.call_names() == [
            "update_playlist_details",
            "get_playlist_item_ids",
            "add_items",
        ]
        assert platform.calls[-1] == ("add_items", "created-1", ("sp0004",))

    async def test_force_bypasses_the_gate(
        self, use_case, uow_factory, platform, seed_library, create_playlist
    ):
        await seed_library(five_star_library(2))
        playlist = await create_playlist("Favorites", FIVE_STARS)
        await run_sync(use_case, uow_factory, playlist.id)
        platform.calls.clear()

        result = await run_sync(use_case, uow_factory, playlist.id, force=True)

        assert result.status == "unchanged"
        assert "get_playlist_item_ids" in platform.call_names()
        assert "add_items" not in platform.call_names()

    async def test_tracks_drifting_out_of_criteria_are_removed(
        self, use_case, uow_factory, platform, seed_library, create_playlist
    ):
        await seed_library(five_star_library(4))
        playlist = await create_playlist("Favorites", FIVE_STARS)
        await run_sync(use_case, uow_factory, playlist.id)

        await UpdateSmartPlaylistUseCase().execute(
            UpdateSmartPlaylistCommand(
                playlist_id=playlist.id,
                criteria={
                    "rules": [
                        {"field": "title", "operator": "equals", "textValue": "Track 1"},
                        {"field": "title", "operator": "equals", "textValue": "Track 2"},
                    ],
                    "logic": "or",
                },
            ),
            uow_factory(),
        )
        result = await run_sync(use_case, uow_factory, playlist.id)

        assert result.status == "updated"
        assert sorted(platform.playlists["created-1"]) == ["sp0001", "sp0002"]
        assert len(result.applied.removed) == 2

    async def test_edits_made_on_the_platform_are_overwritten(
        self, use_case, uow_factory, platform, seed_library, create_playlist
    ):
        await seed_library(five_star_library(2))
        playlist = await create_playlist("Favorites", FIVE_STARS)
        await run_sync(use_case, uow_factory, playlist.id)
        platform.playlists["created-1"].append("stranger")

        await run_sync(use_case, uow_factory, playlist.id, force=True)

        assert platform.playlists["created-1"] == ["sp0001", "sp0002"]

    async def test_track_cap(
        self, use_case, uow_factory, platform, seed_library, create_playlist, monkeypatch
    ):
        monkeypatch.setattr(settings.sync, "max_playlist_tracks", 2)
        await seed_library(five_star_library(5))
        playlist = await create_playlist("Favorites", FIVE_STARS)

        await run_sync(use_case, uow_factory, playlist.id)

        assert platform.playlists["created-1"] == ["sp0001", "sp0002"]


class TestPartialFailure:
    async def test_failed_chunk_keeps_synced_fingerprint(
        self, use_case, uow_factory, platform, seed_library, create_playlist, load_playlist
    ):
        await seed_library(five_star_library(5))
        playlist = await create_playlist("Favorites", FIVE_STARS)
        platform.failures[2] = TransientExternalError("rate limited", http_status=429)

        result = await run_sync(use_case, uow_factory, playlist.id)
        stored = await load_playlist(playlist.id)

        assert result.status == "partial"
        assert platform.playlists["created-1"] == ["sp0001", "sp0002", "sp0005"]
        assert stored.spotify_playlist_id == "created-1"
        assert stored.synced_fingerprint is None

    async def test_next_run_retries_only_the_missing_items(
        self, use_case, uow_factory, platform, seed_library, create_playlist, load_playlist
    ):
        await seed_library(five_star_library(5))
        playlist = await create_playlist("Favorites", FIVE_STARS)
        platform.failures[2] = TransientExternalError("rate limited", http_status=429)
        await run_sync(use_case, uow_factory, playlist.id)
        platform.calls.clear()

        result = await run_sync(use_case, uow_factory, playlist.id)

        assert result.status == "updated"
        assert "create_playlist" not in platform.call_names()
        assert platform.calls[-1] == ("add_items", "created-1", ("sp0003", "sp0004"))
        assert sorted(platform.playlists["created-1"]) == [f"sp{n:04d}" for n in range(1, 6)]
        assert (await load_playlist(playlist.id)).synced_fingerprint is not None

    async def test_every_chunk_failing_raises(
        self, use_case, uow_factory, platform, seed_library, create_playlist, load_playlist
    ):
        await seed_library(five_star_library(3))
        playlist = await create_playlist("Favorites", FIVE_STARS)
        for write in (1, 2):
            platform.failures[write] = TransientExternalError("unavailable", http_status=503)

        with pytest.raises(SyncFailedError) as exc_info:
            await run_sync(use_case, uow_factory, playlist.id)

        assert len(exc_info.value.result.errors) == 2
        stored = await load_playlist(playlist.id)
        assert stored.spotify_playlist_id == "created-1"
        assert stored.synced_fingerprint is None

    async def test_fatal_error_aborts(
        self, use_case, uow_factory, platform, seed_library, create_playlist, load_playlist
    ):
        await seed_library(five_star_library(3))
        playlist = await create_playlist("Favorites", FIVE_STARS)
        platform.failures[1] = FatalExternalError("token revoked", http_status=401)

        with pytest.raises(FatalExternalError):
            await run_sync(use_case, uow_factory, playlist.id)

        assert platform.call_names().count("add_items") == 1
        assert (await load_playlist(playlist.id)).synced_fingerprint is None


class TestBackgroundSync:
    async def test_enqueued_sync_reports_counts(
        self, runner, uow_factory, platform, seed_library, create_playlist
    ):
        await seed_library(five_star_library(3))
        playlist = await create_playlist("Favorites", FIVE_STARS)

        job_id = await enqueue_smart_playlist_sync(runner, uow_factory, platform, playlist.id)
        job = await runner.wait(job_id)

        assert job.status is JobStatus.COMPLETED
        assert job.result.total_tracks == 3
        assert job.result.new_tracks == 3
        assert job.payload == {"playlist_id": playlist.id, "force": False}

    async def test_failed_sync_fails_job_with_partial_result(
        self, runner, uow_factory, platform, seed_library, create_playlist
    ):
        await seed_library(five_star_library(1))
        playlist = await create_playlist("Favorites", FIVE_STARS)
        platform.failures[1] = TransientExternalError("unavailable", http_status=503)

        job = await runner.wait(
            await enqueue_smart_playlist_sync(runner, uow_factory, platform, playlist.id)
        )

        assert job.status is JobStatus.FAILED
        assert job.error.startswith("All 1 write chunks failed")
        assert job.result.total_tracks == 1

    async def test_sync_all_only_touches_active_synced_playlists(
        self, runner, uow_factory, platform, seed_library, create_playlist
    ):
        await seed_library(five_star_library(2))
        synced = await create_playlist("Synced", FIVE_STARS, spotify_playlist_id="remote-1")
        await create_playlist("Local only", FIVE_STARS)
        await create_playlist(
            "Disabled", FIVE_STARS, spotify_playlist_id="remote-2", is_active=False
        )
        platform.playlists["remote-1"] = []

        job_ids = await SyncAllPlaylistsUseCase(
            runner=runner, uow_factory=uow_factory, platform=platform, delay=0
        ).execute()
        (job,) = [await runner.wait(job_id) for job_id in job_ids]

        assert job.status is JobStatus.COMPLETED
        assert job.payload["playlist_id"] == synced.id
        assert platform.playlists["remote-1"] == ["sp0001", "sp0002"]
        assert "remote-2" not in platform.playlists
