"""Domain repository and collaborator interfaces.

These protocols define the contracts for data access and external platform
calls without depending on infrastructure implementations.
"""

from collections.abc import Awaitable, Iterable, Sequence
from typing import TYPE_CHECKING, Any, Protocol, Self

if TYPE_CHECKING:
    from smartlists.domain.entities import (
        LibraryView,
        MirroredPlaylist,
        PlayEvent,
        PlaylistCriteria,
        RemoteAlbum,
        RemotePlaylist,
        RemoteTrack,
        SmartPlaylist,
        SyncJob,
        Tag,
        Track,
        TrackSource,
    )


class LibraryRepositoryProtocol(Protocol):
    """Repository interface for library tracks, tags and aggregates."""

    def load_library_view(self, include_detached: bool = False) -> Awaitable["LibraryView"]:
        """Load an immutable snapshot of library tracks with tags and sources.

        Only tracks held by at least one source are included unless
        include_detached is set.
        """
        ...

    def get_track(self, track_id: int) -> Awaitable["Track"]:
        """Get a track by internal ID or raise NotFoundError."""
        ...

    def save_track(self, track: "Track") -> Awaitable["Track"]:
        """Insert or update a track by external ID."""
        ...

    def upsert_remote_tracks(
        self, tracks: Sequence["RemoteTrack"]
    ) -> Awaitable[tuple[list[str], list[str]]]:
        """Upsert platform metadata.

        Returns:
            Tuple of (new external IDs, updated external IDs)
        """
        ...

    def get_source_track_ids(self, source: "TrackSource") -> Awaitable[list[str]]:
        """External IDs of tracks attached to a source."""
        ...

    def list_sources(self, source_type: str) -> Awaitable[list["TrackSource"]]:
        """Distinct sources of one type currently attached to any track."""
        ...

    def attach_source(self, external_ids: Sequence[str], source: "TrackSource") -> Awaitable[int]:
        """Attach a source descriptor to tracks; returns rows attached."""
        ...

    def detach_source(self, external_ids: Sequence[str], source: "TrackSource") -> Awaitable[int]:
        """Detach a source descriptor from tracks; tracks themselves are kept."""
        ...

    def get_album_artist_ids(
        self, external_ids: Sequence[str]
    ) -> Awaitable[dict[str, tuple[str | None, str | None]]]:
        """Map track external IDs to (album ID, artist ID)."""
        ...

    def recompute_aggregates(
        self, album_ids: Iterable[str], artist_ids: Iterable[str]
    ) -> Awaitable[int]:
        """Refresh cached counts and ratings on albums and artists."""
        ...

    def create_tag(self, name: str, color: str | None = None) -> Awaitable["Tag"]:
        """Create a tag."""
        ...

    def rename_tag(self, tag_id: int, name: str) -> Awaitable["Tag"]:
        """Rename a tag; rules reference tags by ID so membership is unaffected."""
        ...

    def list_tags(self) -> Awaitable[list["Tag"]]:
        """All tags."""
        ...

    def assign_tag(self, track_id: int, tag_id: int) -> Awaitable[None]:
        """Tag a track."""
        ...

    def record_plays(self, plays: Sequence["PlayEvent"]) -> Awaitable[int]:
        """Store new plays and bump play statistics; returns plays recorded."""
        ...

    def get_ids_missing_audio_features(self) -> Awaitable[list[str]]:
        """External IDs of library tracks with no stored audio features."""
        ...

    def save_audio_features(
        self, features: dict[str, dict[str, float] | None]
    ) -> Awaitable[int]:
        """Store fetched audio features; None entries are skipped."""
        ...


class SmartPlaylistRepositoryProtocol(Protocol):
    """Repository interface for smart playlist records."""

    def create(self, playlist: "SmartPlaylist") -> Awaitable["SmartPlaylist"]:
        """Persist a new smart playlist."""
        ...

    def get_by_id(self, playlist_id: int) -> Awaitable["SmartPlaylist"]:
        """Get a playlist or raise NotFoundError."""
        ...

    def find_by_name(self, name: str) -> Awaitable["SmartPlaylist | None"]:
        """Find a playlist by exact name."""
        ...

    def list_playlists(self, active_only: bool = False) -> Awaitable[list["SmartPlaylist"]]:
        """List playlists, optionally only active ones."""
        ...

    def update_criteria(
        self, playlist_id: int, criteria: "PlaylistCriteria"
    ) -> Awaitable["SmartPlaylist"]:
        """Replace a playlist's criteria."""
        ...

    def set_active(self, playlist_id: int, is_active: bool) -> Awaitable["SmartPlaylist"]:
        """Enable or soft-disable a playlist."""
        ...

    def save_materialization(
        self, playlist_id: int, track_count: int, fingerprint: str
    ) -> Awaitable["SmartPlaylist"]:
        """Store the cached track count and materialization fingerprint."""
        ...

    def set_spotify_playlist_id(
        self, playlist_id: int, spotify_playlist_id: str
    ) -> Awaitable["SmartPlaylist"]:
        """Record the external playlist created for a smart playlist."""
        ...

    def mark_synced(
        self, playlist_id: int, spotify_playlist_id: str, synced_fingerprint: str
    ) -> Awaitable["SmartPlaylist"]:
        """Record a fully successful sync."""
        ...

    def get_spotify_playlist_ids(self) -> Awaitable[set[str]]:
        """External IDs of every playlist owned by a smart playlist."""
        ...


class MirrorRepositoryProtocol(Protocol):
    """Repository interface for mirrored external playlist snapshots."""

    def get_snapshot_ids(self) -> Awaitable[dict[str, str | None]]:
        """Map external playlist IDs to the last mirrored snapshot ID."""
        ...

    def save_snapshot(self, playlist: "MirroredPlaylist") -> Awaitable["MirroredPlaylist"]:
        """Record the snapshot ID of a successfully mirrored playlist."""
        ...


class SyncJobRepositoryProtocol(Protocol):
    """Repository interface for job records."""

    def save(self, job: "SyncJob") -> Awaitable["SyncJob"]:
        """Insert or update a job by job ID."""
        ...

    def get(self, job_id: str) -> Awaitable["SyncJob | None"]:
        """Get a job by job ID."""
        ...

    def claim(self, job: "SyncJob") -> Awaitable[tuple["SyncJob", bool]]:
        """Insert a job guarded by its idempotency key.

        Returns:
            Tuple of (stored job, created) where ``created`` is False when a
            job with the same key already existed
        """
        ...


class UnitOfWorkProtocol(Protocol):
    """Transaction boundary sharing one session across repositories."""

    async def __aenter__(self) -> Self: ...

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    def get_library_repository(self) -> LibraryRepositoryProtocol: ...

    def get_smart_playlist_repository(self) -> SmartPlaylistRepositoryProtocol: ...

    def get_mirror_repository(self) -> MirrorRepositoryProtocol: ...

    def get_job_repository(self) -> SyncJobRepositoryProtocol: ...


# === External collaborators ===


class PlaylistWriter(Protocol):
    """Target of a chunked diff apply: one call per chunk."""

    def add_items(self, playlist_id: str | None, item_ids: Sequence[str]) -> Awaitable[Any]: ...

    def remove_items(self, playlist_id: str | None, item_ids: Sequence[str]) -> Awaitable[Any]: ...


class AudioFeatureClient(Protocol):
    """Batched audio-feature lookup by external track ID."""

    def get_audio_features(
        self, external_ids: Sequence[str]
    ) -> Awaitable[dict[str, dict[str, float] | None]]: ...


class PlaylistPlatform(PlaylistWriter, AudioFeatureClient, Protocol):
    """External platform client used by outbound sync and inbound mirroring."""

    def create_playlist(self, name: str, description: str | None = None) -> Awaitable[str]: ...

    def update_playlist_details(
        self, playlist_id: str, name: str, description: str | None = None
    ) -> Awaitable[None]: ...

    def get_playlist_snapshot_id(self, playlist_id: str) -> Awaitable[str]: ...

    def get_playlist_item_ids(self, playlist_id: str) -> Awaitable[list[str]]: ...

    def get_playlist_tracks(self, playlist_id: str) -> Awaitable[list["RemoteTrack"]]: ...

    def get_user_playlists(self) -> Awaitable[list["RemotePlaylist"]]: ...

    def get_liked_tracks(self) -> Awaitable[list["RemoteTrack"]]: ...

    def get_saved_albums(self) -> Awaitable[list["RemoteAlbum"]]: ...

    def get_recently_played(self, limit: int = 50) -> Awaitable[list["PlayEvent"]]: ...
