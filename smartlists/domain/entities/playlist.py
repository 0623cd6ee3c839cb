"""Playlist-related domain entities."""

from datetime import datetime

import attrs
from attrs import define, field, validators

from .criteria import PlaylistCriteria
from .shared import ensure_utc, utc_now
from .track import RemoteTrack


@define(frozen=True, slots=True)
class SmartPlaylist:
    """Playlist whose membership is computed from criteria.

    ``fingerprint`` is the hash of the most recent materialization.
    ``synced_fingerprint`` is the hash the external playlist is known to hold
    and only moves forward after a fully successful sync.
    """

    name: str = field(validator=validators.min_len(1))
    criteria: PlaylistCriteria = field(validator=validators.instance_of(PlaylistCriteria))
    description: str | None = field(default=None)
    is_active: bool = field(default=True)
    spotify_playlist_id: str | None = field(default=None)
    track_count: int = field(default=0)
    fingerprint: str | None = field(default=None)
    synced_fingerprint: str | None = field(default=None)
    last_synced_at: datetime | None = field(default=None, converter=ensure_utc)
    created_at: datetime | None = field(default=None, converter=ensure_utc)
    updated_at: datetime | None = field(default=None, converter=ensure_utc)
    id: int | None = field(default=None)

    @property
    def is_synced_outward(self) -> bool:
        return self.spotify_playlist_id is not None

    def with_criteria(self, criteria: PlaylistCriteria) -> "SmartPlaylist":
        return attrs.evolve(self, criteria=criteria)

    def with_materialization(self, track_count: int, fingerprint: str) -> "SmartPlaylist":
        return attrs.evolve(self, track_count=track_count, fingerprint=fingerprint)

    def with_sync(
        self,
        spotify_playlist_id: str,
        synced_fingerprint: str,
        synced_at: datetime | None = None,
    ) -> "SmartPlaylist":
        return attrs.evolve(
            self,
            spotify_playlist_id=spotify_playlist_id,
            synced_fingerprint=synced_fingerprint,
            last_synced_at=synced_at or utc_now(),
        )


@define(frozen=True, slots=True)
class RemotePlaylist:
    """Playlist as listed by the external platform."""

    external_id: str
    name: str
    snapshot_id: str | None = None
    owner_id: str | None = None
    total_tracks: int = 0


@define(frozen=True, slots=True)
class RemoteAlbum:
    """Saved album on the external platform with its tracks in order."""

    external_id: str
    name: str
    artist: str = ""
    tracks: tuple[RemoteTrack, ...] = field(factory=tuple, converter=tuple)


@define(frozen=True, slots=True)
class MirroredPlaylist:
    """Local record of an external playlist mirrored into the library."""

    external_id: str
    name: str
    snapshot_id: str | None = None
    last_mirrored_at: datetime | None = field(default=None, converter=ensure_utc)
    id: int | None = None


@define(frozen=True, slots=True)
class MaterializedResult:
    """Concrete membership of a smart playlist at one point in time."""

    track_ids: tuple[int, ...] = field(factory=tuple, converter=tuple)
    external_ids: tuple[str, ...] = field(factory=tuple, converter=tuple)
    fingerprint: str = ""

    def __len__(self) -> int:
        return len(self.track_ids)
