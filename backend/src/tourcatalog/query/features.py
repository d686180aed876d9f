"""Translate REST-style request parameters into a QueryDescriptor.

Four independent steps run in a fixed order: filter, sort, project,
paginate. Each step is a pure function of (descriptor, params) that
replaces only its own part of the descriptor, so running a step twice
yields the same result.

    GET /tours?difficulty=easy&duration[lte]=5&sort=-price&fields=name,price&page=2

    descriptor = QueryFeatures(params, entity).build()
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import replace
from typing import Any

from tourcatalog.errors import QueryParseError
from tourcatalog.metadata.loader import VERSION_FIELD, EntityModel
from tourcatalog.query.types import (
    BRACKET_OPERATORS,
    Eq,
    In,
    Predicate,
    Projection,
    ProjectionMode,
    QueryDescriptor,
    SortDirection,
    SortKey,
)
from tourcatalog.validation.coercion import CoercionError, coerce_value

RESERVED_PARAMS = ("page", "sort", "limit", "fields")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100
DEFAULT_SORT = (SortKey("createdAt", SortDirection.DESC),)

# field[op] with a non-empty field name
BRACKET_KEY = re.compile(r"^(?P<field>[A-Za-z_][\w.]*)\[(?P<op>[^\[\]]*)\]$")
PLAIN_KEY = re.compile(r"^[A-Za-z_][\w.]*$")

RequestParams = Mapping[str, str | Sequence[str]]

# Shortcut for the "top 5 cheap tours" listing
TOP_CHEAP_TOURS: dict[str, str] = {
    "limit": "5",
    "sort": "-ratingsAverage,price",
    "fields": "name,price,ratingsAverage,summary,difficulty",
}


def normalize_params(params: RequestParams) -> dict[str, str | tuple[str, ...]]:
    """Collapse single-element lists and freeze multi-value lists as tuples."""
    result: dict[str, str | tuple[str, ...]] = {}
    for key, value in params.items():
        if isinstance(value, str):
            result[key] = value
        elif len(value) == 1:
            result[key] = str(value[0])
        else:
            result[key] = tuple(str(v) for v in value)
    return result


def _single(params: Mapping[str, Any], key: str) -> str | None:
    """Read a scalar parameter; the last occurrence wins for repeated keys."""
    value = params.get(key)
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return str(value[-1]) if value else None
    return str(value)


def _split_list(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def _check_field(entity: EntityModel | None, name: str, param: str, extra: tuple[str, ...] = ()) -> None:
    if entity is None:
        return
    if name in entity.field_names or name in extra:
        return
    raise QueryParseError(f"Unknown field '{name}' in '{param}'", param=param)


def _coerce_filter_value(entity: EntityModel | None, field_name: str, raw: str, param: str) -> Any:
    if entity is None:
        return raw
    field = entity.get_field(field_name)
    field_type = field.items if field and field.type == "array" else (field.type if field else "string")
    try:
        return coerce_value(field_type or "string", raw)
    except CoercionError as e:
        raise QueryParseError(f"Invalid value {raw!r} for '{field_name}': {e}", param=param) from None


# =============================================================================
# Steps
# =============================================================================


def parse_filter_param(
    key: str,
    value: str | tuple[str, ...],
    entity: EntityModel | None = None,
) -> Predicate:
    """Parse one `field=value` or `field[op]=value` parameter into a predicate."""
    match = BRACKET_KEY.match(key)
    if match:
        field_name, op = match.group("field"), match.group("op")
        predicate_type = BRACKET_OPERATORS.get(op)
        if predicate_type is None:
            raise QueryParseError(
                f"Unsupported filter operator '{op}' in '{key}'. "
                f"Supported: {', '.join(BRACKET_OPERATORS)}",
                param=key,
            )
        if isinstance(value, tuple):
            raise QueryParseError(f"'{key}' expects a single value", param=key)
        _check_field(entity, field_name, key)
        return predicate_type(field_name, _coerce_filter_value(entity, field_name, value, key))

    if not PLAIN_KEY.match(key):
        raise QueryParseError(f"Malformed filter parameter '{key}'", param=key)

    _check_field(entity, key, key)
    if isinstance(value, tuple):
        return In(key, tuple(_coerce_filter_value(entity, key, v, key) for v in value))
    return Eq(key, _coerce_filter_value(entity, key, value, key))


def apply_filter(
    descriptor: QueryDescriptor,
    params: Mapping[str, Any],
    entity: EntityModel | None = None,
) -> QueryDescriptor:
    """Replace the descriptor's predicates with those parsed from params.

    Every key except page/sort/limit/fields is a filter. Keys are processed
    in sorted order so the same mapping always yields the same tuple.
    """
    predicates = tuple(
        parse_filter_param(key, params[key], entity)
        for key in sorted(params)
        if key not in RESERVED_PARAMS
    )
    return replace(descriptor, predicates=predicates)


def apply_sort(
    descriptor: QueryDescriptor,
    params: Mapping[str, Any],
    entity: EntityModel | None = None,
) -> QueryDescriptor:
    """Composite ordering from `sort=-price,ratingsAverage`; newest first by default."""
    raw = _single(params, "sort")
    keys: list[SortKey] = []
    seen: set[str] = set()

    for part in _split_list(raw or ""):
        direction = SortDirection.ASC
        name = part
        if part.startswith("-"):
            direction = SortDirection.DESC
            name = part[1:]
        if not name:
            raise QueryParseError(f"Empty sort field in '{raw}'", param="sort")
        _check_field(entity, name, "sort")
        if name in seen:
            continue
        seen.add(name)
        keys.append(SortKey(name, direction))

    return replace(descriptor, sort=tuple(keys) or DEFAULT_SORT)


def apply_projection(
    descriptor: QueryDescriptor,
    params: Mapping[str, Any],
    entity: EntityModel | None = None,
) -> QueryDescriptor:
    """Inclusion (`fields=name,price`) or exclusion (`fields=-images`) projection.

    Without a `fields` parameter only the internal revision field is hidden.
    """
    raw = _single(params, "fields")
    names = _split_list(raw or "")
    if not names:
        return replace(descriptor, projection=Projection())

    excluded = [n for n in names if n.startswith("-")]
    if excluded and len(excluded) != len(names):
        raise QueryParseError(
            "Projection cannot mix inclusion and exclusion", param="fields"
        )

    mode = ProjectionMode.EXCLUDE if excluded else ProjectionMode.INCLUDE
    fields: list[str] = []
    for name in names:
        name = name.lstrip("-")
        if not name:
            raise QueryParseError(f"Empty field name in '{raw}'", param="fields")
        _check_field(entity, name, "fields", extra=(VERSION_FIELD,))
        if name not in fields:
            fields.append(name)

    return replace(descriptor, projection=Projection(mode=mode, fields=tuple(fields)))


def _positive_int(raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value > 0 else default


def apply_pagination(
    descriptor: QueryDescriptor,
    params: Mapping[str, Any],
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int | None = None,
) -> QueryDescriptor:
    """Skip/limit from `page` and `limit`; invalid values fall back to defaults.

    `limit` is unbounded unless `max_limit` is configured.
    """
    page = _positive_int(_single(params, "page"), DEFAULT_PAGE)
    limit = _positive_int(_single(params, "limit"), default_limit)
    if max_limit is not None:
        limit = min(limit, max_limit)
    return replace(descriptor, skip=(page - 1) * limit, limit=limit)


# =============================================================================
# Fluent pipeline
# =============================================================================


class QueryFeatures:
    """Fluent wrapper over the four query steps.

    Example:
        features = QueryFeatures(params, entity).filter().sort().limit_fields().paginate()
        descriptor = features.descriptor
    """

    def __init__(
        self,
        params: RequestParams,
        entity: EntityModel | None = None,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int | None = None,
        descriptor: QueryDescriptor | None = None,
    ):
        self.params = normalize_params(params)
        self.entity = entity
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.descriptor = descriptor or QueryDescriptor()

    def filter(self) -> "QueryFeatures":
        self.descriptor = apply_filter(self.descriptor, self.params, self.entity)
        return self

    def sort(self) -> "QueryFeatures":
        self.descriptor = apply_sort(self.descriptor, self.params, self.entity)
        return self

    def limit_fields(self) -> "QueryFeatures":
        self.descriptor = apply_projection(self.descriptor, self.params, self.entity)
        return self

    def paginate(self) -> "QueryFeatures":
        self.descriptor = apply_pagination(
            self.descriptor, self.params, self.default_limit, self.max_limit
        )
        return self

    def build(self) -> QueryDescriptor:
        """Run filter, sort, project and paginate in order."""
        return self.filter().sort().limit_fields().paginate().descriptor
