"""Track-related domain entities.

Pure track representations and related value objects with zero external dependencies.
"""

from datetime import datetime
from enum import StrEnum

import attrs
from attrs import define, field, validators

from .shared import ensure_utc, utc_now


class SourceType(StrEnum):
    """How a track entered the library."""

    LIKED_SONGS = "liked_songs"
    ALBUM = "album"
    PLAYLIST = "playlist"
    ARTIST_TOP_TRACKS = "artist_top_tracks"


def _validate_rating(_instance: object, attribute: attrs.Attribute, value: float | None) -> None:
    if value is None:
        return
    if not 0.5 <= value <= 5.0 or not float(value * 2).is_integer():
        raise ValueError(
            f"{attribute.name} must be between 0.5 and 5.0 in 0.5 steps, got {value}"
        )


@define(frozen=True, slots=True)
class TrackSource:
    """Descriptor of one way a track came into the library."""

    source_type: SourceType = field(converter=SourceType)
    source_id: str | None = field(default=None)
    source_name: str | None = field(default=None)


@define(frozen=True, slots=True)
class Tag:
    """User-defined label with a display color."""

    name: str = field(validator=validators.instance_of(str))
    color: str = field(default="#6b7280")
    id: int | None = field(default=None)


@define(frozen=True, slots=True)
class Track:
    """Immutable library track.

    Rule evaluation reads every attribute here; tag membership is held as a
    set of tag IDs so rules stay stable when tags are renamed.
    """

    external_id: str = field(validator=validators.instance_of(str))
    title: str = field(validator=validators.instance_of(str))
    artist: str = field(validator=validators.instance_of(str))
    album: str = field(default="")
    duration_ms: int = field(default=0, validator=validators.ge(0))
    rating: float | None = field(default=None, validator=_validate_rating)
    rated_at: datetime | None = field(default=None, converter=ensure_utc)
    play_count: int = field(default=0, validator=validators.ge(0))
    last_played_at: datetime | None = field(default=None, converter=ensure_utc)
    added_at: datetime = field(factory=utc_now, converter=ensure_utc)
    release_date: datetime | None = field(default=None, converter=ensure_utc)
    tag_ids: frozenset[int] = field(factory=frozenset, converter=frozenset)
    sources: frozenset[TrackSource] = field(factory=frozenset, converter=frozenset)
    artist_id: str | None = field(default=None)
    album_id: str | None = field(default=None)
    id: int | None = field(default=None)

    def with_id(self, db_id: int) -> "Track":
        """Set the internal database ID for this track."""
        if not isinstance(db_id, int) or db_id <= 0:
            raise ValueError(
                f"Invalid database ID: {db_id}. Must be a positive integer.",
            )
        return attrs.evolve(self, id=db_id)

    def with_tags(self, tag_ids: set[int] | frozenset[int]) -> "Track":
        """Create a new track with the given tag IDs."""
        return attrs.evolve(self, tag_ids=frozenset(tag_ids))

    def with_rating(self, rating: float | None, rated_at: datetime | None = None) -> "Track":
        """Create a new track with an updated rating; None clears it."""
        if rating is None:
            return attrs.evolve(self, rating=None, rated_at=None)
        return attrs.evolve(self, rating=rating, rated_at=rated_at or utc_now())

    def has_source(self, source_type: SourceType, source_id: str | None = None) -> bool:
        """Check whether the track entered the library through the given source."""
        return any(
            s.source_type == source_type and (source_id is None or s.source_id == source_id)
            for s in self.sources
        )


@define(frozen=True, slots=True)
class RemoteTrack:
    """Track as reported by the external platform before it is persisted."""

    external_id: str
    title: str
    artist: str
    album: str = ""
    artist_id: str | None = None
    album_id: str | None = None
    duration_ms: int = 0
    release_date: datetime | None = field(default=None, converter=ensure_utc)
    added_at: datetime | None = field(default=None, converter=ensure_utc)


@define(frozen=True, slots=True)
class PlayEvent:
    """One entry of the platform's recently-played history."""

    external_id: str
    played_at: datetime = field(converter=ensure_utc)
    duration_ms: int = 0
