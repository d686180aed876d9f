"""Structured query types.

Defines the storage-agnostic query descriptor produced by the query
feature pipeline:
- Predicates: tagged variants per comparison operator
- SortKey / Projection: ordering and field selection
- QueryDescriptor: filter + sort + projection + pagination
- Aggregation stages consumed by CollectionStore.aggregate()
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable

from tourcatalog.metadata.loader import VERSION_FIELD


# =============================================================================
# Predicates
# =============================================================================


@dataclass(frozen=True)
class Predicate:
    """Base predicate: a comparison of one document field against a value."""

    field: str
    value: Any

    op = ""

    def to_dict(self) -> dict[str, Any]:
        value = list(self.value) if isinstance(self.value, tuple) else self.value
        return {"field": self.field, "operator": self.op, "value": value}


@dataclass(frozen=True)
class Eq(Predicate):
    op = "eq"


@dataclass(frozen=True)
class Ne(Predicate):
    op = "ne"


@dataclass(frozen=True)
class Gt(Predicate):
    op = "gt"


@dataclass(frozen=True)
class Gte(Predicate):
    op = "gte"


@dataclass(frozen=True)
class Lt(Predicate):
    op = "lt"


@dataclass(frozen=True)
class Lte(Predicate):
    op = "lte"


@dataclass(frozen=True)
class In(Predicate):
    """Membership predicate. `value` is a tuple of candidates."""

    op = "in"


# Operators accepted in bracketed request parameters, e.g. duration[lte]=5
BRACKET_OPERATORS: dict[str, type[Predicate]] = {
    "gte": Gte,
    "gt": Gt,
    "lte": Lte,
    "lt": Lt,
}


# =============================================================================
# Sort and projection
# =============================================================================


class SortDirection(Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortKey:
    field: str
    direction: SortDirection = SortDirection.ASC

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "direction": self.direction.value}


class ProjectionMode(Enum):
    INCLUDE = "include"
    EXCLUDE = "exclude"


@dataclass(frozen=True)
class Projection:
    """Inclusion or exclusion projection over top-level fields."""

    mode: ProjectionMode = ProjectionMode.EXCLUDE
    fields: tuple[str, ...] = (VERSION_FIELD,)

    def with_hidden(self, hidden: tuple[str, ...]) -> "Projection":
        """Return a projection that also hides `hidden` fields.

        Hidden fields are only dropped from exclusion projections; an
        inclusion projection that names one explicitly keeps it.
        """
        if self.mode == ProjectionMode.INCLUDE:
            return self
        extra = tuple(f for f in hidden if f not in self.fields)
        return replace(self, fields=self.fields + extra)

    def to_dict(self) -> dict[str, Any]:
        return {"mode": self.mode.value, "fields": list(self.fields)}


# =============================================================================
# Query descriptor
# =============================================================================


@dataclass(frozen=True)
class QueryDescriptor:
    """Storage-agnostic representation of one read.

    Predicates are AND-ed. `limit=None` means no cap.
    """

    predicates: tuple[Predicate, ...] = ()
    sort: tuple[SortKey, ...] = ()
    projection: Projection = field(default_factory=Projection)
    skip: int = 0
    limit: int | None = None

    def where(self, *predicates: Predicate) -> "QueryDescriptor":
        """Return a descriptor with additional predicates appended."""
        return replace(self, predicates=self.predicates + tuple(predicates))

    def to_dict(self) -> dict[str, Any]:
        return {
            "filter": [p.to_dict() for p in self.predicates],
            "sort": [s.to_dict() for s in self.sort],
            "projection": self.projection.to_dict(),
            "skip": self.skip,
            "limit": self.limit,
        }


# =============================================================================
# Aggregation stages
# =============================================================================


@dataclass(frozen=True)
class MatchStage:
    predicates: tuple[Predicate, ...]


@dataclass(frozen=True)
class UnwindStage:
    """Emit one document per element of an array field."""

    field: str


@dataclass(frozen=True)
class Accumulator:
    """A group accumulator: one of sum, avg, min, max, count, push."""

    op: str
    field: str | None = None


@dataclass(frozen=True)
class GroupStage:
    """Group documents by a field, optionally transformed by `key`.

    The group key is emitted as `id` on each output document.
    """

    by: str | None
    accumulators: dict[str, Accumulator]
    key: Callable[[Any], Any] | None = None


@dataclass(frozen=True)
class SortStage:
    keys: tuple[SortKey, ...]


@dataclass(frozen=True)
class LimitStage:
    count: int


@dataclass(frozen=True)
class AddFieldsStage:
    """Set fields from other fields: {target: source}."""

    fields: dict[str, str]


Stage = MatchStage | UnwindStage | GroupStage | SortStage | LimitStage | AddFieldsStage
