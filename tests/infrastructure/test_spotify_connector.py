"""Tests for the Spotify connector with a mocked spotipy client."""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
import requests
import spotipy

from smartlists.config import settings
from smartlists.domain.exceptions import FatalExternalError, TransientExternalError
from smartlists.infrastructure.connectors.spotify import (
    SpotifyConnector,
    classify_spotify_error,
    convert_spotify_playlist,
    convert_spotify_track,
    parse_spotify_date,
)


def spotify_track(track_id: str, name: str = "Song") -> dict:
    return {
        "id": track_id,
        "name": name,
        "duration_ms": 210_000,
        "artists": [{"id": "ar1", "name": "Artist One"}, {"id": "ar2", "name": "Artist Two"}],
        "album": {
            "id": "al1",
            "name": "Album",
            "release_date": "1999",
            "release_date_precision": "year",
        },
    }


@pytest.fixture
def client():
    return MagicMock(spec=spotipy.Spotify)


@pytest.fixture
def connector(client):
    return SpotifyConnector(client=client)


class TestErrorClassification:
    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_rate_limits_and_server_errors_are_transient(self, status):
        error = classify_spotify_error(spotipy.SpotifyException(status, -1, "failed"))

        assert isinstance(error, TransientExternalError)
        assert error.http_status == status

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_client_errors_are_fatal(self, status):
        error = classify_spotify_error(spotipy.SpotifyException(status, -1, "failed"))

        assert isinstance(error, FatalExternalError)

    def test_transport_errors_are_transient(self):
        assert isinstance(
            classify_spotify_error(requests.exceptions.Timeout("read timed out")),
            TransientExternalError,
        )
        assert isinstance(
            classify_spotify_error(requests.exceptions.ConnectionError()),
            TransientExternalError,
        )

    async def test_write_errors_are_translated_and_not_retried(self, connector, client):
        client.playlist_add_items.side_effect = spotipy.SpotifyException(429, -1, "slow down")

        with pytest.raises(TransientExternalError):
            await connector.add_items("pl", ["t1"])

        assert client.playlist_add_items.call_count == 1

    async def test_revoked_auth_is_fatal(self, connector, client):
        client.playlist_remove_all_occurrences_of_items.side_effect = spotipy.SpotifyException(
            401, -1, "token revoked"
        )

        with pytest.raises(FatalExternalError) as exc_info:
            await connector.remove_items("pl", ["t1"])

        assert exc_info.value.http_status == 401

    async def test_reads_retry_transient_errors(self, connector, client, monkeypatch):
        monkeypatch.setattr(settings.api, "spotify_retry_count", 2)
        client.playlist.side_effect = [
            spotipy.SpotifyException(503, -1, "unavailable"),
            {"snapshot_id": "snap-2"},
        ]

        assert await connector.get_playlist_snapshot_id("pl") == "snap-2"
        assert client.playlist.call_count == 2


class TestWrites:
    async def test_add_items_sends_track_uris(self, connector, client):
        client.playlist_add_items.return_value = {"snapshot_id": "snap-1"}

        snapshot = await connector.add_items("pl", ["t1", "spotify:track:t2"])

        assert snapshot == "snap-1"
        client.playlist_add_items.assert_called_once_with(
            "pl", ["spotify:track:t1", "spotify:track:t2"]
        )

    async def test_at_most_one_hundred_items_per_call(self, connector, client):
        with pytest.raises(ValueError):
            await connector.add_items("pl", [f"t{i}" for i in range(101)])

        client.playlist_add_items.assert_not_called()

    async def test_remove_items(self, connector, client):
        client.playlist_remove_all_occurrences_of_items.return_value = {"snapshot_id": "snap-3"}

        assert await connector.remove_items("pl", ["t1"]) == "snap-3"
        client.playlist_remove_all_occurrences_of_items.assert_called_once_with(
            "pl", ["spotify:track:t1"]
        )

    async def test_create_playlist_for_current_user(self, connector, client):
        client.current_user.return_value = {"id": "alice"}
        client.user_playlist_create.return_value = {"id": "new-pl"}

        playlist_id = await connector.create_playlist("[Smartlists] Favorites", "desc")

        assert playlist_id == "new-pl"
        client.user_playlist_create.assert_called_once_with(
            user="alice", name="[Smartlists] Favorites", public=False, description="desc"
        )

    async def test_create_playlist_without_id_is_fatal(self, connector, client):
        client.current_user.return_value = {"id": "alice"}
        client.user_playlist_create.return_value = {}

        with pytest.raises(FatalExternalError):
            await connector.create_playlist("name")


class TestReads:
    async def test_playlist_item_ids_follow_pages_and_skip_local_files(self, connector, client):
        client.playlist_items.return_value = {
            "items": [
                {"is_local": False, "track": {"id": "t1"}},
                {"is_local": True, "track": {"id": None}},
            ],
            "next": "page-2",
        }
        client.next.return_value = {
            "items": [{"is_local": False, "track": {"id": "t2"}}, None],
            "next": None,
        }

        assert await connector.get_playlist_item_ids("pl") == ["t1", "t2"]

    async def test_liked_tracks(self, connector, client):
        client.current_user_saved_tracks.return_value = {
            "items": [{"added_at": "2024-05-01T10:00:00Z", "track": spotify_track("t1")}],
            "next": None,
        }

        (track,) = await connector.get_liked_tracks()

        assert track.external_id == "t1"
        assert track.artist == "Artist One, Artist Two"
        assert track.artist_id == "ar1"
        assert track.album_id == "al1"
        assert track.added_at == datetime(2024, 5, 1, 10, tzinfo=UTC)
        assert track.release_date == datetime(1999, 1, 1, tzinfo=UTC)

    async def test_saved_albums_include_every_track_page(self, connector, client):
        album = {
            "id": "al1",
            "name": "Album",
            "artists": [{"name": "Artist One"}],
            "release_date": "2001-02-03",
            "tracks": {"items": [{"id": "t1", "name": "One", "artists": []}], "next": "more"},
        }
        client.current_user_saved_albums.return_value = {"items": [{"album": album}], "next": None}
        client.next.return_value = {"items": [{"id": "t2", "name": "Two", "artists": []}], "next": None}

        (remote,) = await connector.get_saved_albums()

        assert remote.external_id == "al1"
        assert [t.external_id for t in remote.tracks] == ["t1", "t2"]
        assert all(t.album_id == "al1" for t in remote.tracks)

    async def test_user_playlists(self, connector, client):
        client.current_user_playlists.return_value = {
            "items": [
                {
                    "id": "pl1",
                    "name": "Road Trip",
                    "snapshot_id": "s1",
                    "owner": {"id": "alice"},
                    "tracks": {"total": 12},
                }
            ],
            "next": None,
        }

        (playlist,) = await connector.get_user_playlists()

        assert playlist.snapshot_id == "s1"
        assert playlist.owner_id == "alice"
        assert playlist.total_tracks == 12

    async def test_audio_features_are_keyed_by_requested_id(self, connector, client):
        client.audio_features.return_value = [
            {"id": "relinked", "energy": 0.8, "tempo": 128, "key": 5},
            None,
        ]

        features = await connector.get_audio_features(["t1", "t2"])

        assert features == {"t1": {"energy": 0.8, "tempo": 128.0}, "t2": None}

    async def test_recently_played_uses_the_saved_id_of_relinked_tracks(self, connector, client):
        relinked = spotify_track("market-copy") | {"linked_from": {"id": "t1"}}
        client.current_user_recently_played.return_value = {
            "items": [
                {"played_at": "2024-06-01T08:30:00.123Z", "track": relinked},
                {"played_at": "2024-06-01T08:00:00Z", "track": spotify_track("t2")},
                {"played_at": None, "track": spotify_track("t3")},
            ]
        }

        plays = await connector.get_recently_played(limit=100)

        client.current_user_recently_played.assert_called_once_with(limit=50)
        assert [p.external_id for p in plays] == ["t1", "t2"]
        assert plays[1].played_at == datetime(2024, 6, 1, 8, tzinfo=UTC)
        assert plays[0].duration_ms == 210_000



class TestConversion:
    @pytest.mark.parametrize(
        ("value", "precision", "expected"),
        [
            ("2020", "year", datetime(2020, 1, 1, tzinfo=UTC)),
            ("2020-06", "month", datetime(2020, 6, 1, tzinfo=UTC)),
            ("2020-06-15", "day", datetime(2020, 6, 15, tzinfo=UTC)),
            (None, "day", None),
            ("not-a-date", "day", None),
        ],
    )
    def test_parse_spotify_date(self, value, precision, expected):
        assert parse_spotify_date(value, precision) == expected

    def test_track_without_album_uses_enclosing_album(self):
        track = convert_spotify_track(
            {"id": "t1", "name": "One", "artists": []}, album={"id": "al9", "name": "Nine"}
        )

        assert track.album_id == "al9"
        assert track.album == "Nine"
        assert track.artist_id is None

    def test_playlist_without_owner(self):
        playlist = convert_spotify_playlist({"id": "pl", "name": "X"})

        assert playlist.owner_id is None
        assert playlist.total_tracks == 0
