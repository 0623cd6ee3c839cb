"""Accumulator of entities touched during one sync pass."""

from smartlists.domain.entities.sync import AffectedEntitySummary


class AffectedEntityTracker:
    """Collects track, album and artist IDs so aggregates are refreshed once.

    Repeated touches of the same entity count once. The tracker is consumed by
    the aggregate recompute step and cleared afterwards.
    """

    def __init__(self) -> None:
        self._track_ids: set[str] = set()
        self._album_ids: set[str] = set()
        self._artist_ids: set[str] = set()

    def add_track(self, track_id: str) -> None:
        self._track_ids.add(track_id)

    def add_album(self, album_id: str) -> None:
        self._album_ids.add(album_id)

    def add_artist(self, artist_id: str) -> None:
        self._artist_ids.add(artist_id)

    def clear(self) -> None:
        self._track_ids.clear()
        self._album_ids.clear()
        self._artist_ids.clear()

    def summary(self) -> AffectedEntitySummary:
        return AffectedEntitySummary(
            track_ids=sorted(self._track_ids),
            album_ids=sorted(self._album_ids),
            artist_ids=sorted(self._artist_ids),
        )

    def __bool__(self) -> bool:
        return bool(self._track_ids or self._album_ids or self._artist_ids)
