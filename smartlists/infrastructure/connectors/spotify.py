"""Spotify service connector with domain model conversion.

This module provides a connector for the Spotify API using the spotipy library
(https://spotipy.readthedocs.io/) to handle authentication, error
classification, and conversion between Spotify objects and domain models.

Key components:
- SpotifyConnector: OAuth-authenticated client implementing the playlist
  platform and audio-feature protocols
- translate_spotify_errors: Maps spotipy and transport errors onto the
  transient/fatal taxonomy used by the reconciler
- Conversion utilities: Transform Spotify API responses to domain models

Writes (add, remove, create, update) are never retried here: the reconciler
isolates a failed chunk and the next sync retries it. Reads retry transient
failures with exponential backoff.
"""

import asyncio
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
import functools
from typing import Any

from attrs import define, field
import backoff
import requests
import spotipy
from spotipy.oauth2 import SpotifyOAuth

from smartlists.config import get_logger, resilient_operation, settings
from smartlists.domain.entities import PlayEvent, RemoteAlbum, RemotePlaylist, RemoteTrack
from smartlists.domain.exceptions import FatalExternalError, TransientExternalError

# Get contextual logger with service binding
logger = get_logger(__name__).bind(service="spotify")

SPOTIFY_SCOPES = [
    "playlist-modify-public",
    "playlist-modify-private",
    "playlist-read-private",
    "playlist-read-collaborative",
    "user-library-read",
    "user-read-recently-played",
]

MAX_ITEMS_PER_WRITE = 100
MAX_AUDIO_FEATURE_IDS = 100

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

AUDIO_FEATURE_KEYS = (
    "acousticness",
    "danceability",
    "energy",
    "instrumentalness",
    "liveness",
    "loudness",
    "speechiness",
    "tempo",
    "valence",
)


def classify_spotify_error(error: Exception) -> TransientExternalError | FatalExternalError:
    """Map a spotipy or transport error onto the domain error taxonomy."""
    if isinstance(error, spotipy.SpotifyException):
        status = error.http_status
        message = error.msg or str(error)
        if status in TRANSIENT_STATUS_CODES:
            return TransientExternalError(message, "spotify", status)
        return FatalExternalError(message, "spotify", status)
    if isinstance(error, requests.exceptions.Timeout | requests.exceptions.ConnectionError):
        return TransientExternalError(str(error) or type(error).__name__, "spotify")
    return FatalExternalError(str(error) or type(error).__name__, "spotify")


def translate_spotify_errors(func: Callable) -> Callable:
    """Re-raise Spotify failures as transient or fatal domain errors."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except (spotipy.SpotifyException, requests.exceptions.RequestException) as e:
            raise classify_spotify_error(e) from e

    return wrapper


def _retry_reads(func: Callable) -> Callable:
    return backoff.on_exception(
        backoff.expo,
        TransientExternalError,
        max_tries=lambda: settings.api.spotify_retry_count,
        max_time=lambda: settings.api.spotify_retry_max_delay,
    )(func)


def track_uri(external_id: str) -> str:
    return external_id if external_id.startswith("spotify:") else f"spotify:track:{external_id}"


@define(slots=True)
class SpotifyConnector:
    """Thin wrapper around spotipy with domain model conversion.

    Implements the playlist platform used by outbound sync and the inbound
    mirror, and the batched audio-feature lookup used for enrichment.
    Blocking spotipy calls run in worker threads.
    """

    client: spotipy.Spotify | None = field(default=None, repr=False)
    _user_id: str | None = field(default=None, init=False, repr=False)

    def __attrs_post_init__(self) -> None:
        """Initialize Spotify client with OAuth configuration."""
        if self.client is not None:
            return
        logger.debug("Initializing Spotify connector")
        credentials = settings.credentials
        self.client = spotipy.Spotify(
            auth_manager=SpotifyOAuth(
                client_id=credentials.spotify_client_id or None,
                client_secret=credentials.spotify_client_secret or None,
                redirect_uri=credentials.spotify_redirect_uri,
                scope=SPOTIFY_SCOPES,
                open_browser=True,
                cache_handler=spotipy.CacheFileHandler(
                    cache_path=str(credentials.spotify_cache_path)
                ),
            ),
            requests_timeout=int(settings.api.spotify_request_timeout),
            retries=0,
        )

    async def _call(self, method: Callable, *args: Any, **kwargs: Any) -> Any:
        return await asyncio.to_thread(method, *args, **kwargs)

    async def _collect_pages(self, page: dict[str, Any] | None) -> list[dict[str, Any]]:
        """Follow ``next`` links and return every item across pages."""
        items: list[dict[str, Any]] = []
        while page:
            items.extend(item for item in page.get("items", []) if item)
            if not page.get("next"):
                break
            page = await self._call(self.client.next, page)
        return items

    async def _current_user_id(self) -> str:
        if self._user_id is None:
            me = await self._call(self.client.current_user) or {}
            if not me.get("id"):
                raise FatalExternalError("Could not resolve current Spotify user", "spotify")
            self._user_id = me["id"]
        return self._user_id

    # -------------------------------------------------------------------------
    # WRITES
    # -------------------------------------------------------------------------

    @resilient_operation("spotify_add_items")
    @translate_spotify_errors
    async def add_items(self, playlist_id: str | None, item_ids: Sequence[str]) -> str | None:
        """Append up to 100 tracks to a playlist; returns the new snapshot ID."""
        if not item_ids:
            return None
        if len(item_ids) > MAX_ITEMS_PER_WRITE:
            raise ValueError(f"At most {MAX_ITEMS_PER_WRITE} items per call, got {len(item_ids)}")

        response = await self._call(
            self.client.playlist_add_items,
            playlist_id,
            [track_uri(i) for i in item_ids],
        )
        logger.debug(f"Added {len(item_ids)} tracks", playlist_id=playlist_id)
        return (response or {}).get("snapshot_id")

    @resilient_operation("spotify_remove_items")
    @translate_spotify_errors
    async def remove_items(self, playlist_id: str | None, item_ids: Sequence[str]) -> str | None:
        """Remove every occurrence of up to 100 tracks; returns the new snapshot ID."""
        if not item_ids:
            return None
        if len(item_ids) > MAX_ITEMS_PER_WRITE:
            raise ValueError(f"At most {MAX_ITEMS_PER_WRITE} items per call, got {len(item_ids)}")

        response = await self._call(
            self.client.playlist_remove_all_occurrences_of_items,
            playlist_id,
            [track_uri(i) for i in item_ids],
        )
        logger.debug(f"Removed {len(item_ids)} tracks", playlist_id=playlist_id)
        return (response or {}).get("snapshot_id")

    @resilient_operation("spotify_create_playlist")
    @translate_spotify_errors
    async def create_playlist(self, name: str, description: str | None = None) -> str:
        """Create an empty private playlist and return its Spotify ID."""
        logger.info(f"Creating Spotify playlist: {name}")
        playlist = await self._call(
            self.client.user_playlist_create,
            user=await self._current_user_id(),
            name=name,
            public=False,
            description=description or "",
        )
        if not playlist or not playlist.get("id"):
            raise FatalExternalError("Failed to create playlist, received no ID", "spotify")
        return playlist["id"]

    @resilient_operation("spotify_update_playlist_details")
    @translate_spotify_errors
    async def update_playlist_details(
        self, playlist_id: str, name: str, description: str | None = None
    ) -> None:
        await self._call(
            self.client.playlist_change_details,
            playlist_id,
            name=name,
            description=description or "",
        )

    # -------------------------------------------------------------------------
    # READS
    # -------------------------------------------------------------------------

    @resilient_operation("spotify_get_playlist_snapshot_id")
    @_retry_reads
    @translate_spotify_errors
    async def get_playlist_snapshot_id(self, playlist_id: str) -> str:
        playlist = await self._call(self.client.playlist, playlist_id, fields="snapshot_id")
        return (playlist or {}).get("snapshot_id", "")

    @resilient_operation("spotify_get_playlist_item_ids")
    @_retry_reads
    @translate_spotify_errors
    async def get_playlist_item_ids(self, playlist_id: str) -> list[str]:
        """Current membership in playlist order; local files are skipped."""
        first = await self._call(
            self.client.playlist_items,
            playlist_id,
            fields="items(is_local,track(id)),next",
            limit=settings.api.spotify_read_page_size,
            additional_types=("track",),
        )
        items = await self._collect_pages(first)
        return [
            item["track"]["id"]
            for item in items
            if not item.get("is_local") and item.get("track") and item["track"].get("id")
        ]

    @resilient_operation("spotify_get_playlist_tracks")
    @_retry_reads
    @translate_spotify_errors
    async def get_playlist_tracks(self, playlist_id: str) -> list[RemoteTrack]:
        first = await self._call(
            self.client.playlist_items,
            playlist_id,
            limit=settings.api.spotify_read_page_size,
            additional_types=("track",),
        )
        items = await self._collect_pages(first)
        tracks = [
            convert_spotify_track(item["track"], added_at=item.get("added_at"))
            for item in items
            if not item.get("is_local") and item.get("track") and item["track"].get("id")
        ]
        logger.debug(f"Fetched {len(tracks)} tracks", playlist_id=playlist_id)
        return tracks

    @resilient_operation("spotify_get_user_playlists")
    @_retry_reads
    @translate_spotify_errors
    async def get_user_playlists(self) -> list[RemotePlaylist]:
        first = await self._call(self.client.current_user_playlists, limit=50)
        playlists = [convert_spotify_playlist(item) for item in await self._collect_pages(first)]
        logger.info(f"Fetched {len(playlists)} playlists")
        return playlists

    @resilient_operation("spotify_get_liked_tracks")
    @_retry_reads
    @translate_spotify_errors
    async def get_liked_tracks(self) -> list[RemoteTrack]:
        """Every saved track, with the save time as ``added_at``."""
        first = await self._call(
            self.client.current_user_saved_tracks,
            limit=settings.api.spotify_liked_page_size,
        )
        items = await self._collect_pages(first)
        tracks = [
            convert_spotify_track(item["track"], added_at=item.get("added_at"))
            for item in items
            if item.get("track") and item["track"].get("id")
        ]
        logger.info(f"Fetched {len(tracks)} liked tracks")
        return tracks

    @resilient_operation("spotify_get_saved_albums")
    @_retry_reads
    @translate_spotify_errors
    async def get_saved_albums(self) -> list[RemoteAlbum]:
        first = await self._call(self.client.current_user_saved_albums, limit=50)
        albums = []
        for item in await self._collect_pages(first):
            album = item.get("album")
            if not album:
                continue
            track_items = await self._collect_pages(album.get("tracks"))
            albums.append(
                convert_spotify_album(album, track_items, added_at=item.get("added_at"))
            )
        logger.info(f"Fetched {len(albums)} saved albums")
        return albums

    @resilient_operation("spotify_get_recently_played")
    @_retry_reads
    @translate_spotify_errors
    async def get_recently_played(self, limit: int = 50) -> list[PlayEvent]:
        """The most recent plays, newest first.

        Relinked tracks are reported under the ID the user actually saved,
        which is the one the library knows.
        """
        response = await self._call(
            self.client.current_user_recently_played, limit=min(limit, 50)
        )
        plays = []
        for item in (response or {}).get("items", []):
            track = item.get("track") or {}
            external_id = (track.get("linked_from") or {}).get("id") or track.get("id")
            played_at = parse_spotify_date(item.get("played_at"))
            if external_id and played_at:
                plays.append(
                    PlayEvent(
                        external_id=external_id,
                        played_at=played_at,
                        duration_ms=track.get("duration_ms") or 0,
                    )
                )
        logger.info(f"Fetched {len(plays)} recent plays")
        return plays


    @resilient_operation("spotify_get_audio_features")
    @_retry_reads
    @translate_spotify_errors
    async def get_audio_features(
        self, external_ids: Sequence[str]
    ) -> dict[str, dict[str, float] | None]:
        """Audio features keyed by the requested ID; unknown IDs map to None."""
        if len(external_ids) > MAX_AUDIO_FEATURE_IDS:
            raise ValueError(
                f"At most {MAX_AUDIO_FEATURE_IDS} IDs per call, got {len(external_ids)}"
            )
        response = await self._call(self.client.audio_features, list(external_ids)) or []
        features: dict[str, dict[str, float] | None] = dict.fromkeys(external_ids)
        # Results are positional; relinked tracks may report a different ID
        for requested_id, data in zip(external_ids, response, strict=False):
            if data:
                features[requested_id] = {
                    key: float(data[key]) for key in AUDIO_FEATURE_KEYS if data.get(key) is not None
                }
        return features


def parse_spotify_date(value: str | None, precision: str = "day") -> datetime | None:
    """Parse a Spotify release date or ISO timestamp into an aware datetime."""
    if not value:
        return None
    try:
        if "T" in value:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        if precision == "year":
            return datetime.strptime(value, "%Y").replace(tzinfo=UTC)
        if precision == "month":
            return datetime.strptime(value, "%Y-%m").replace(tzinfo=UTC)
        return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=UTC)
    except ValueError as e:
        logger.warning(f"Failed to parse date '{value}': {e}")
        return None


def convert_spotify_track(
    spotify_track: dict[str, Any],
    added_at: str | None = None,
    album: dict[str, Any] | None = None,
) -> RemoteTrack:
    """Convert Spotify track data to a RemoteTrack.

    Simplified track objects (album track listings) carry no album, so the
    enclosing album is passed explicitly.
    """
    album = album or spotify_track.get("album") or {}
    artists = spotify_track.get("artists") or []

    return RemoteTrack(
        external_id=spotify_track["id"],
        title=spotify_track.get("name", ""),
        artist=", ".join(a["name"] for a in artists if a.get("name")),
        album=album.get("name", ""),
        artist_id=artists[0].get("id") if artists else None,
        album_id=album.get("id"),
        duration_ms=spotify_track.get("duration_ms") or 0,
        release_date=parse_spotify_date(
            album.get("release_date"), album.get("release_date_precision", "day")
        ),
        added_at=parse_spotify_date(added_at),
    )


def convert_spotify_album(
    spotify_album: dict[str, Any],
    track_items: list[dict[str, Any]],
    added_at: str | None = None,
) -> RemoteAlbum:
    artists = spotify_album.get("artists") or []
    return RemoteAlbum(
        external_id=spotify_album["id"],
        name=spotify_album.get("name", ""),
        artist=", ".join(a["name"] for a in artists if a.get("name")),
        tracks=[
            convert_spotify_track(track, added_at=added_at, album=spotify_album)
            for track in track_items
            if track.get("id")
        ],
    )


def convert_spotify_playlist(spotify_playlist: dict[str, Any]) -> RemotePlaylist:
    """Convert Spotify playlist listing data to a RemotePlaylist."""
    return RemotePlaylist(
        external_id=spotify_playlist["id"],
        name=spotify_playlist.get("name", ""),
        snapshot_id=spotify_playlist.get("snapshot_id"),
        owner_id=(spotify_playlist.get("owner") or {}).get("id"),
        total_tracks=(spotify_playlist.get("tracks") or {}).get("total", 0),
    )
