"""Essential test fixtures for domain models and a fake streaming platform."""

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from smartlists.domain.entities import (
    LibraryView,
    PlayEvent,
    RemoteAlbum,
    RemotePlaylist,
    RemoteTrack,
    SourceType,
    Tag,
    Track,
    TrackSource,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def make_track(track_id: int, **overrides) -> Track:
    """Liked library track with a stable external ID derived from its internal ID."""
    values = {
        "external_id": f"sp{track_id:04d}",
        "title": f"Track {track_id}",
        "artist": "Test Artist",
        "album": "Test Album",
        "duration_ms": 200_000,
        "added_at": NOW - timedelta(days=30),
        "sources": frozenset({TrackSource(SourceType.LIKED_SONGS)}),
        "id": track_id,
    }
    values.update(overrides)
    return Track(**values)


def make_library(tracks: Sequence[Track], tags: Sequence[Tag] = ()) -> LibraryView:
    return LibraryView(tracks=tracks, tags={tag.id: tag for tag in tags}, captured_at=NOW)


def make_remote_track(n: int, **overrides) -> RemoteTrack:
    values = {
        "external_id": f"sp{n:04d}",
        "title": f"Remote {n}",
        "artist": "Remote Artist",
        "album": "Remote Album",
        "artist_id": "artist-1",
        "album_id": "album-1",
        "duration_ms": 180_000,
        "added_at": NOW - timedelta(days=1),
    }
    values.update(overrides)
    return RemoteTrack(**values)


class FakePlatform:
    """In-memory stand-in for the Spotify connector.

    Every call is recorded in ``calls``. ``failures`` maps the 1-based number
    of a write call (add or remove) to the exception that call raises.
    """

    def __init__(self) -> None:
        self.playlists: dict[str, list[str]] = {}
        self.details: dict[str, tuple[str, str | None]] = {}
        self.snapshots: dict[str, str] = {}
        self.calls: list[tuple] = []
        self.failures: dict[int, Exception] = {}
        self.liked: list[RemoteTrack] = []
        self.albums: list[RemoteAlbum] = []
        self.user_playlists: list[RemotePlaylist] = []
        self.playlist_tracks: dict[str, list[RemoteTrack]] = {}
        self.audio_features: dict[str, dict[str, float]] = {}
        self.recently_played: list[PlayEvent] = []
        self._writes = 0
        self._created = 0

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def _write(self, name: str, playlist_id: str | None, item_ids: Sequence[str]) -> None:
        self.calls.append((name, playlist_id, tuple(item_ids)))
        self._writes += 1
        error = self.failures.pop(self._writes, None)
        if error is not None:
            raise error

    async def add_items(self, playlist_id: str | None, item_ids: Sequence[str]) -> str:
        self._write("add_items", playlist_id, item_ids)
        self.playlists[playlist_id].extend(item_ids)
        return f"snap-{self._writes}"

    async def remove_items(self, playlist_id: str | None, item_ids: Sequence[str]) -> str:
        self._write("remove_items", playlist_id, item_ids)
        removed = set(item_ids)
        self.playlists[playlist_id] = [i for i in self.playlists[playlist_id] if i not in removed]
        return f"snap-{self._writes}"

    async def create_playlist(self, name: str, description: str | None = None) -> str:
        self.calls.append(("create_playlist", name))
        self._created += 1
        playlist_id = f"created-{self._created}"
        self.playlists[playlist_id] = []
        self.details[playlist_id] = (name, description)
        return playlist_id

    async def update_playlist_details(
        self, playlist_id: str, name: str, description: str | None = None
    ) -> None:
        self.calls.append(("update_playlist_details", playlist_id))
        self.details[playlist_id] = (name, description)

    async def get_playlist_snapshot_id(self, playlist_id: str) -> str:
        self.calls.append(("get_playlist_snapshot_id", playlist_id))
        return self.snapshots.get(playlist_id, "")

    async def get_playlist_item_ids(self, playlist_id: str) -> list[str]:
        self.calls.append(("get_playlist_item_ids", playlist_id))
        return list(self.playlists[playlist_id])

    async def get_playlist_tracks(self, playlist_id: str) -> list[RemoteTrack]:
        self.calls.append(("get_playlist_tracks", playlist_id))
        return list(self.playlist_tracks.get(playlist_id, []))

    async def get_user_playlists(self) -> list[RemotePlaylist]:
        self.calls.append(("get_user_playlists",))
        return list(self.user_playlists)

    async def get_liked_tracks(self) -> list[RemoteTrack]:
        self.calls.append(("get_liked_tracks",))
        return list(self.liked)

    async def get_saved_albums(self) -> list[RemoteAlbum]:
        self.calls.append(("get_saved_albums",))
        return list(self.albums)

    async def get_audio_features(
        self, external_ids: Sequence[str]
    ) -> dict[str, dict[str, float] | None]:
        self.calls.append(("get_audio_features", tuple(external_ids)))
        return {i: self.audio_features.get(i) for i in external_ids}

    async def get_recently_played(self, limit: int = 50) -> list[PlayEvent]:
        self.calls.append(("get_recently_played", limit))
        return list(self.recently_played[:limit])


FIVE_STARS = {
    "rules": [{"field": "rating", "operator": "equals", "numberValue": 5}],
    "orderBy": "title",
    "orderDirection": "asc",
}
