"""Immutable library snapshot handed to the rule evaluator."""

from collections.abc import Iterable, Mapping
from datetime import datetime

from attrs import define, field

from .shared import ensure_utc, utc_now
from .track import Tag, Track


@define(frozen=True, slots=True)
class LibraryView:
    """Point-in-time view of a user's library.

    Evaluations for different playlists may share one view concurrently since
    nothing here is ever mutated.
    """

    tracks: tuple[Track, ...] = field(factory=tuple, converter=tuple)
    tags: Mapping[int, Tag] = field(factory=dict)
    captured_at: datetime = field(factory=utc_now, converter=ensure_utc)

    def __len__(self) -> int:
        return len(self.tracks)

    def tracks_by_id(self) -> dict[int, Track]:
        return {track.id: track for track in self.tracks if track.id is not None}

    def external_ids_for(self, track_ids: Iterable[int]) -> list[str]:
        """Map internal IDs to external IDs, preserving order."""
        by_id = self.tracks_by_id()
        return [by_id[track_id].external_id for track_id in track_ids if track_id in by_id]

    def tag_id_by_name(self) -> dict[str, int]:
        return {tag.name: tag_id for tag_id, tag in self.tags.items()}
