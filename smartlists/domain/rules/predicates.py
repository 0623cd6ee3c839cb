"""
Pure predicates compiled from playlist rules.

Each rule variant compiles to a ``Track -> bool`` function built from curried
primitives, so a compiled criteria document is simply a composition of
partially applied predicates. Nothing here performs I/O or mutates input.
"""

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from toolz import curry

from smartlists.domain.entities.criteria import (
    ExistenceRule,
    NumericRule,
    PlaylistCriteria,
    PlaylistRule,
    RelativeDateRule,
    RuleField,
    RuleLogic,
    RuleOperator,
    TagRule,
    TextRule,
)
from smartlists.domain.entities.track import Track

TrackPredicate = Callable[[Track], bool]

TEXT_FIELDS: dict[RuleField, Callable[[Track], str]] = {
    RuleField.TITLE: lambda t: t.title,
    RuleField.ARTIST: lambda t: t.artist,
    RuleField.ALBUM: lambda t: t.album,
}

NUMERIC_FIELDS: dict[RuleField, Callable[[Track], float | None]] = {
    RuleField.RATING: lambda t: t.rating,
    RuleField.PLAY_COUNT: lambda t: t.play_count,
    RuleField.DURATION: lambda t: t.duration_ms,
}

DATE_FIELDS: dict[RuleField, Callable[[Track], datetime | None]] = {
    RuleField.LAST_PLAYED: lambda t: t.last_played_at,
    RuleField.DATE_ADDED: lambda t: t.added_at,
}


def field_value(track: Track, field: RuleField) -> Any:
    """Raw value of a rule field; an empty tag set counts as null."""
    if field is RuleField.TAG:
        return track.tag_ids or None
    for accessors in (TEXT_FIELDS, NUMERIC_FIELDS, DATE_FIELDS):
        if field in accessors:
            return accessors[field](track)
    return None


# === Primitive predicates ===


@curry
def text_matches(field: RuleField, operator: RuleOperator, needle: str, track: Track) -> bool:
    """Case-insensitive text comparison; negative operators invert the positive match."""
    haystack = (TEXT_FIELDS[field](track) or "").casefold()
    match operator:
        case RuleOperator.CONTAINS:
            return needle in haystack
        case RuleOperator.NOT_CONTAINS:
            return needle not in haystack
        case RuleOperator.EQUALS:
            return haystack == needle
        case RuleOperator.NOT_EQUALS:
            return haystack != needle
        case RuleOperator.STARTS_WITH:
            return haystack.startswith(needle)
        case RuleOperator.ENDS_WITH:
            return haystack.endswith(needle)
    return False


@curry
def number_matches(field: RuleField, operator: RuleOperator, target: float, track: Track) -> bool:
    """Numeric comparison. A null value fails every comparison."""
    value = NUMERIC_FIELDS[field](track)
    if value is None:
        return False

    # Ratings live on a half-star grid; compare in half-star units
    if field is RuleField.RATING:
        value, target = round(value * 2), round(target * 2)

    match operator:
        case RuleOperator.EQUALS:
            return value == target
        case RuleOperator.NOT_EQUALS:
            return value != target
        case RuleOperator.GREATER_THAN:
            return value > target
        case RuleOperator.LESS_THAN:
            return value < target
    return False


@curry
def date_matches(field: RuleField, operator: RuleOperator, cutoff: datetime, track: Track) -> bool:
    """Relative window test; a null timestamp fails inLast and passes notInLast."""
    timestamp = DATE_FIELDS[field](track)
    if operator is RuleOperator.IN_LAST:
        return timestamp is not None and timestamp >= cutoff
    return timestamp is None or timestamp < cutoff


@curry
def tag_matches(operator: RuleOperator, tag_id: int | None, track: Track) -> bool:
    """Tag membership by ID."""
    match operator:
        case RuleOperator.HAS_TAG:
            return tag_id in track.tag_ids
        case RuleOperator.NOT_HAS_TAG:
            return tag_id not in track.tag_ids
        case RuleOperator.HAS_ANY_TAG:
            return bool(track.tag_ids)
        case RuleOperator.HAS_NO_TAGS:
            return not track.tag_ids
    return False


@curry
def value_exists(field: RuleField, operator: RuleOperator, track: Track) -> bool:
    present = field_value(track, field) is not None
    return present if operator is RuleOperator.IS_NOT_NULL else not present


# === Compilation ===


def compile_rule(rule: PlaylistRule, now: datetime) -> TrackPredicate:
    """Compile one rule into a track predicate evaluated relative to ``now``."""
    match rule:
        case TextRule():
            return text_matches(rule.field, rule.operator, rule.text_value.casefold())
        case NumericRule():
            return number_matches(rule.field, rule.operator, rule.number_value)
        case RelativeDateRule():
            cutoff = now - timedelta(days=rule.days_value)
            return date_matches(rule.field, rule.operator, cutoff)
        case TagRule():
            return tag_matches(rule.operator, rule.tag_id)
        case ExistenceRule():
            return value_exists(rule.field, rule.operator)
    raise TypeError(f"Unsupported rule type: {type(rule).__name__}")


def combine_predicates(predicates: list[TrackPredicate], logic: RuleLogic) -> TrackPredicate:
    """Join predicates uniformly with AND or OR.

    With no predicates every track is accepted, whatever the logic.
    """
    if not predicates:
        return lambda track: True
    if logic is RuleLogic.OR:
        return lambda track: any(p(track) for p in predicates)
    return lambda track: all(p(track) for p in predicates)


def compile_criteria(criteria: PlaylistCriteria, now: datetime) -> TrackPredicate:
    """Compile a whole criteria document into a single predicate."""
    return combine_predicates([compile_rule(rule, now) for rule in criteria.rules], criteria.logic)
