"""Smart playlist criteria model.

A criteria document is an ordered list of rules combined uniformly with AND or
OR, plus an ordering and an optional limit. Rules form a closed tagged union:

    PlaylistRule = TextRule | NumericRule | RelativeDateRule | TagRule | ExistenceRule

Each variant carries only the value slot it needs. ``FIELD_CATEGORIES`` and
``CATEGORY_OPERATORS`` are the load-time table deciding which variant and
operators a field accepts. Every constructor validates, so an instance that
exists is a valid rule; ``PlaylistCriteria.from_dict`` is the boundary that
turns a JSON document into one, raising ``ValidationError`` otherwise.
"""

from collections.abc import Mapping, Sequence
from enum import StrEnum
import math
from typing import Any

import attrs
from attrs import define

from smartlists.domain.exceptions import ValidationError


class RuleField(StrEnum):
    """Track attribute a rule tests."""

    TITLE = "title"
    ARTIST = "artist"
    ALBUM = "album"
    RATING = "rating"
    PLAY_COUNT = "playCount"
    DURATION = "duration"
    LAST_PLAYED = "lastPlayed"
    DATE_ADDED = "dateAdded"
    TAG = "tag"


class RuleOperator(StrEnum):
    """Comparison a rule applies."""

    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    IN_LAST = "inLast"
    NOT_IN_LAST = "notInLast"
    HAS_TAG = "hasTag"
    NOT_HAS_TAG = "notHasTag"
    HAS_ANY_TAG = "hasAnyTag"
    HAS_NO_TAGS = "hasNoTags"
    IS_NULL = "isNull"
    IS_NOT_NULL = "isNotNull"


class RuleLogic(StrEnum):
    AND = "and"
    OR = "or"


class OrderDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"


class OrderField(StrEnum):
    """Attributes a criteria document may order by."""

    TITLE = "title"
    ARTIST = "artist"
    ALBUM = "album"
    RATING = "rating"
    RATED_AT = "ratedAt"
    PLAY_COUNT = "playCount"
    DURATION = "duration"
    LAST_PLAYED = "lastPlayed"
    DATE_ADDED = "dateAdded"


class FieldCategory(StrEnum):
    TEXT = "text"
    NUMERIC = "numeric"
    RELATIVE_DATE = "relative_date"
    TAG = "tag"


FIELD_CATEGORIES: dict[RuleField, FieldCategory] = {
    RuleField.TITLE: FieldCategory.TEXT,
    RuleField.ARTIST: FieldCategory.TEXT,
    RuleField.ALBUM: FieldCategory.TEXT,
    RuleField.RATING: FieldCategory.NUMERIC,
    RuleField.PLAY_COUNT: FieldCategory.NUMERIC,
    RuleField.DURATION: FieldCategory.NUMERIC,
    RuleField.LAST_PLAYED: FieldCategory.RELATIVE_DATE,
    RuleField.DATE_ADDED: FieldCategory.RELATIVE_DATE,
    RuleField.TAG: FieldCategory.TAG,
}

CATEGORY_OPERATORS: dict[FieldCategory, frozenset[RuleOperator]] = {
    FieldCategory.TEXT: frozenset({
        RuleOperator.CONTAINS,
        RuleOperator.NOT_CONTAINS,
        RuleOperator.EQUALS,
        RuleOperator.NOT_EQUALS,
        RuleOperator.STARTS_WITH,
        RuleOperator.ENDS_WITH,
    }),
    FieldCategory.NUMERIC: frozenset({
        RuleOperator.EQUALS,
        RuleOperator.NOT_EQUALS,
        RuleOperator.GREATER_THAN,
        RuleOperator.LESS_THAN,
    }),
    FieldCategory.RELATIVE_DATE: frozenset({
        RuleOperator.IN_LAST,
        RuleOperator.NOT_IN_LAST,
    }),
    FieldCategory.TAG: frozenset({
        RuleOperator.HAS_TAG,
        RuleOperator.NOT_HAS_TAG,
        RuleOperator.HAS_ANY_TAG,
        RuleOperator.HAS_NO_TAGS,
    }),
}

EXISTENCE_OPERATORS = frozenset({RuleOperator.IS_NULL, RuleOperator.IS_NOT_NULL})
VALUELESS_OPERATORS = EXISTENCE_OPERATORS | {
    RuleOperator.HAS_ANY_TAG,
    RuleOperator.HAS_NO_TAGS,
}

# Document key carrying the value for each category
VALUE_SLOTS: dict[FieldCategory, str] = {
    FieldCategory.TEXT: "textValue",
    FieldCategory.NUMERIC: "numberValue",
    FieldCategory.RELATIVE_DATE: "daysValue",
    FieldCategory.TAG: "textValue",
}
ALL_VALUE_SLOTS = ("textValue", "numberValue", "daysValue")

ORDER_FIELD_ALIASES: dict[str, OrderField] = {
    "addedAt": OrderField.DATE_ADDED,
    "lastPlayedAt": OrderField.LAST_PLAYED,
    "totalPlayCount": OrderField.PLAY_COUNT,
}


def _check_category(field: RuleField, operator: RuleOperator, category: FieldCategory) -> None:
    if FIELD_CATEGORIES[field] is not category:
        raise ValidationError(f"field '{field}' is not a {category} field")
    if operator not in CATEGORY_OPERATORS[category]:
        raise ValidationError(f"operator '{operator}' is not allowed for field '{field}'")


@define(frozen=True, slots=True)
class TextRule:
    """Case-insensitive string comparison on title, artist or album."""

    field: RuleField = attrs.field(converter=RuleField)
    operator: RuleOperator = attrs.field(converter=RuleOperator)
    text_value: str = attrs.field()

    def __attrs_post_init__(self) -> None:
        _check_category(self.field, self.operator, FieldCategory.TEXT)
        if not isinstance(self.text_value, str):
            raise ValidationError(f"textValue for '{self.field}' must be a string")

    def to_dict(self) -> dict[str, Any]:
        return {"field": str(self.field), "operator": str(self.operator), "textValue": self.text_value}


@define(frozen=True, slots=True)
class NumericRule:
    """Numeric comparison on rating, play count or duration (milliseconds)."""

    field: RuleField = attrs.field(converter=RuleField)
    operator: RuleOperator = attrs.field(converter=RuleOperator)
    number_value: float = attrs.field()

    def __attrs_post_init__(self) -> None:
        _check_category(self.field, self.operator, FieldCategory.NUMERIC)
        value = self.number_value
        if isinstance(value, bool) or not isinstance(value, int | float) or not math.isfinite(value):
            raise ValidationError(f"numberValue for '{self.field}' must be a finite number")
        if value < 0:
            raise ValidationError(f"numberValue for '{self.field}' must not be negative")
        if self.field is RuleField.RATING and (value > 5 or not float(value * 2).is_integer()):
            raise ValidationError("rating values must be between 0 and 5 in 0.5 steps")

    def to_dict(self) -> dict[str, Any]:
        return {"field": str(self.field), "operator": str(self.operator), "numberValue": self.number_value}


@define(frozen=True, slots=True)
class RelativeDateRule:
    """Window test on last-played or date-added relative to now."""

    field: RuleField = attrs.field(converter=RuleField)
    operator: RuleOperator = attrs.field(converter=RuleOperator)
    days_value: int = attrs.field()

    def __attrs_post_init__(self) -> None:
        _check_category(self.field, self.operator, FieldCategory.RELATIVE_DATE)
        if isinstance(self.days_value, bool) or not isinstance(self.days_value, int):
            raise ValidationError(f"daysValue for '{self.field}' must be an integer")
        if self.days_value <= 0:
            raise ValidationError(f"daysValue for '{self.field}' must be positive")

    def to_dict(self) -> dict[str, Any]:
        return {"field": str(self.field), "operator": str(self.operator), "daysValue": self.days_value}


@define(frozen=True, slots=True)
class TagRule:
    """Tag membership test resolved by tag ID."""

    operator: RuleOperator = attrs.field(converter=RuleOperator)
    tag_id: int | None = attrs.field(default=None)

    @property
    def field(self) -> RuleField:
        return RuleField.TAG

    def __attrs_post_init__(self) -> None:
        _check_category(RuleField.TAG, self.operator, FieldCategory.TAG)
        if self.operator in VALUELESS_OPERATORS:
            if self.tag_id is not None:
                raise ValidationError(f"operator '{self.operator}' takes no value")
        elif isinstance(self.tag_id, bool) or not isinstance(self.tag_id, int) or self.tag_id <= 0:
            raise ValidationError(f"operator '{self.operator}' requires a tag ID")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"field": str(RuleField.TAG), "operator": str(self.operator)}
        if self.tag_id is not None:
            data["textValue"] = str(self.tag_id)
        return data


@define(frozen=True, slots=True)
class ExistenceRule:
    """isNull / isNotNull on any field."""

    field: RuleField = attrs.field(converter=RuleField)
    operator: RuleOperator = attrs.field(converter=RuleOperator)

    def __attrs_post_init__(self) -> None:
        if self.operator not in EXISTENCE_OPERATORS:
            raise ValidationError(f"operator '{self.operator}' is not an existence check")

    def to_dict(self) -> dict[str, Any]:
        return {"field": str(self.field), "operator": str(self.operator)}


type PlaylistRule = TextRule | NumericRule | RelativeDateRule | TagRule | ExistenceRule

RULE_TYPES = (TextRule, NumericRule, RelativeDateRule, TagRule, ExistenceRule)


def _parse_tag_id(raw: Any) -> int:
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    raise ValidationError(f"tag rules reference tags by numeric ID, got {raw!r}")


def parse_rule(data: Any, path: str = "rule") -> PlaylistRule:
    """Build the rule variant for one document entry.

    Raises:
        ValidationError: unknown field or operator, operator not allowed for
            the field, or value slots not matching the operator's arity.
    """
    if not isinstance(data, Mapping):
        raise ValidationError("rule must be an object", path)

    try:
        field = RuleField(data.get("field"))
    except ValueError:
        raise ValidationError(f"unknown field {data.get('field')!r}", path) from None
    try:
        operator = RuleOperator(data.get("operator"))
    except ValueError:
        raise ValidationError(f"unknown operator {data.get('operator')!r}", path) from None

    populated = {slot for slot in ALL_VALUE_SLOTS if data.get(slot) is not None}

    try:
        if operator in EXISTENCE_OPERATORS:
            if populated:
                raise ValidationError(f"operator '{operator}' takes no value")
            return ExistenceRule(field=field, operator=operator)

        category = FIELD_CATEGORIES[field]
        _check_category(field, operator, category)

        if operator in VALUELESS_OPERATORS:
            if populated:
                raise ValidationError(f"operator '{operator}' takes no value")
            return TagRule(operator=operator)

        expected = VALUE_SLOTS[category]
        if populated != {expected}:
            raise ValidationError(
                f"field '{field}' with operator '{operator}' requires exactly '{expected}'"
            )
        value = data[expected]

        match category:
            case FieldCategory.TEXT:
                return TextRule(field=field, operator=operator, text_value=value)
            case FieldCategory.NUMERIC:
                return NumericRule(field=field, operator=operator, number_value=value)
            case FieldCategory.RELATIVE_DATE:
                if isinstance(value, float) and value.is_integer():
                    value = int(value)
                return RelativeDateRule(field=field, operator=operator, days_value=value)
            case FieldCategory.TAG:
                return TagRule(operator=operator, tag_id=_parse_tag_id(value))
    except ValidationError as e:
        if e.path is None:
            raise ValidationError(e.message, path) from None
        raise

    raise ValidationError(f"unsupported field '{field}'", path)


def normalize_order_field(value: Any) -> OrderField:
    """Resolve an order field name, accepting storage-style aliases."""
    if isinstance(value, str) and value in ORDER_FIELD_ALIASES:
        return ORDER_FIELD_ALIASES[value]
    try:
        return OrderField(value)
    except ValueError:
        raise ValidationError(f"cannot order by {value!r}", "orderBy") from None


def _validate_limit(_instance: object, _attribute: attrs.Attribute, value: int | None) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError("limit must be a positive integer", "limit")


def _validate_rules(_instance: object, _attribute: attrs.Attribute, value: tuple) -> None:
    for index, rule in enumerate(value):
        if not isinstance(rule, RULE_TYPES):
            raise ValidationError("not a playlist rule", f"rules[{index}]")


@define(frozen=True, slots=True)
class PlaylistCriteria:
    """Validated criteria document."""

    rules: tuple[PlaylistRule, ...] = attrs.field(
        factory=tuple, converter=tuple, validator=_validate_rules
    )
    logic: RuleLogic = attrs.field(default=RuleLogic.AND, converter=RuleLogic)
    order_by: OrderField = attrs.field(default=OrderField.DATE_ADDED, converter=normalize_order_field)
    order_direction: OrderDirection = attrs.field(
        default=OrderDirection.DESC, converter=OrderDirection
    )
    limit: int | None = attrs.field(default=None, validator=_validate_limit)

    @classmethod
    def from_dict(cls, data: Any) -> "PlaylistCriteria":
        """Parse a criteria document.

        Raises:
            ValidationError: the document or any of its rules is malformed
        """
        if not isinstance(data, Mapping):
            raise ValidationError("criteria must be an object")

        raw_rules = data.get("rules") or []
        if not isinstance(raw_rules, Sequence) or isinstance(raw_rules, str):
            raise ValidationError("rules must be a list", "rules")
        rules = [parse_rule(rule, f"rules[{i}]") for i, rule in enumerate(raw_rules)]

        logic = str(data.get("logic") or RuleLogic.AND).lower()
        if logic not in RuleLogic:
            raise ValidationError(f"unknown logic {data.get('logic')!r}", "logic")

        direction = str(data.get("orderDirection") or OrderDirection.DESC).lower()
        if direction not in OrderDirection:
            raise ValidationError(
                f"unknown direction {data.get('orderDirection')!r}", "orderDirection"
            )

        return cls(
            rules=rules,
            logic=RuleLogic(logic),
            order_by=data.get("orderBy") or OrderField.DATE_ADDED,
            order_direction=OrderDirection(direction),
            limit=data.get("limit"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "rules": [rule.to_dict() for rule in self.rules],
            "logic": str(self.logic),
            "orderBy": str(self.order_by),
            "orderDirection": str(self.order_direction),
        }
        if self.limit is not None:
            data["limit"] = self.limit
        return data


def bind_tag_names(document: Mapping[str, Any], tag_ids_by_name: Mapping[str, int]) -> dict[str, Any]:
    """Replace tag names in hasTag/notHasTag rules with tag IDs.

    Authoring surfaces let users pick tags by name; stored criteria always
    reference the ID so a later rename does not change membership.

    Raises:
        ValidationError: a referenced tag name does not exist
    """
    lookup = {name.casefold(): tag_id for name, tag_id in tag_ids_by_name.items()}
    bound = dict(document)
    rules = []
    for index, rule in enumerate(document.get("rules") or []):
        rule = dict(rule) if isinstance(rule, Mapping) else rule
        if (
            isinstance(rule, dict)
            and rule.get("field") == RuleField.TAG
            and isinstance(rule.get("textValue"), str)
            and not rule["textValue"].strip().isdigit()
        ):
            name = rule["textValue"].strip().casefold()
            if name not in lookup:
                raise ValidationError(f"unknown tag {rule['textValue']!r}", f"rules[{index}]")
            rule["textValue"] = str(lookup[name])
        rules.append(rule)
    bound["rules"] = rules
    return bound
