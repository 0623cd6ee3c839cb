"""Rule evaluation: filter, order and truncate a library snapshot.

``evaluate`` is total for a valid ``PlaylistCriteria``: malformed documents are
rejected when they are parsed, so nothing here raises on user input. Output is
deterministic for a fixed snapshot and reference time, which the sync
reconciler relies on when diffing.
"""

from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from smartlists.config import get_logger
from smartlists.domain.entities.criteria import OrderDirection, OrderField, PlaylistCriteria
from smartlists.domain.entities.library import LibraryView
from smartlists.domain.entities.shared import ensure_utc, utc_now
from smartlists.domain.entities.track import Track
from smartlists.domain.rules.predicates import compile_criteria

logger = get_logger(__name__)


def _casefold(value: str | None) -> str | None:
    return value.casefold() if value is not None else None


ORDER_KEYS: dict[OrderField, Callable[[Track], Any]] = {
    OrderField.TITLE: lambda t: _casefold(t.title),
    OrderField.ARTIST: lambda t: _casefold(t.artist),
    OrderField.ALBUM: lambda t: _casefold(t.album),
    OrderField.RATING: lambda t: t.rating,
    OrderField.RATED_AT: lambda t: t.rated_at,
    OrderField.PLAY_COUNT: lambda t: t.play_count,
    OrderField.DURATION: lambda t: t.duration_ms,
    OrderField.LAST_PLAYED: lambda t: t.last_played_at,
    OrderField.DATE_ADDED: lambda t: t.added_at,
}


def sort_tracks(
    tracks: Iterable[Track],
    order_by: OrderField,
    direction: OrderDirection,
) -> list[Track]:
    """Sort tracks with nulls last and ties broken by internal ID ascending.

    Tracks are first ordered by ID; the value sort is stable (also when
    reversed), so equal values keep ascending-ID order in both directions.
    """
    key = ORDER_KEYS[order_by]
    by_id = sorted(tracks, key=lambda t: t.id or 0)

    present = [t for t in by_id if key(t) is not None]
    missing = [t for t in by_id if key(t) is None]
    present.sort(key=key, reverse=direction is OrderDirection.DESC)
    return present + missing


def evaluate(
    criteria: PlaylistCriteria,
    library: LibraryView,
    now: datetime | None = None,
) -> list[int]:
    """Evaluate criteria against a library snapshot.

    Args:
        criteria: Validated criteria document
        library: Immutable library snapshot
        now: Reference time for relative-date rules (defaults to current UTC time)

    Returns:
        Internal track IDs in criteria order, truncated to ``criteria.limit``
    """
    reference = ensure_utc(now) or utc_now()
    predicate = compile_criteria(criteria, reference)

    matching = [t for t in library.tracks if t.id is not None and predicate(t)]
    ordered = sort_tracks(matching, criteria.order_by, criteria.order_direction)

    if criteria.limit is not None:
        ordered = ordered[: criteria.limit]

    logger.debug(
        "Evaluated criteria",
        rules=len(criteria.rules),
        logic=str(criteria.logic),
        library_size=len(library.tracks),
        matched=len(matching),
        returned=len(ordered),
    )
    return [t.id for t in ordered]
