"""In-process evaluation of query descriptors and aggregation pipelines.

Shared by every CollectionStore so that predicate, ordering and
projection semantics are identical across backends:
- A predicate against an array field matches if any element matches.
- `Ne` matches documents where the field is missing.
- Sorting places missing/None values lowest and is stable across keys.
"""

import copy
from collections.abc import Iterable
from typing import Any

from tourcatalog.errors import QueryParseError
from tourcatalog.query.types import (
    AddFieldsStage,
    Eq,
    GroupStage,
    Gt,
    Gte,
    In,
    LimitStage,
    Lt,
    Lte,
    MatchStage,
    Ne,
    Predicate,
    Projection,
    ProjectionMode,
    QueryDescriptor,
    SortDirection,
    SortKey,
    SortStage,
    Stage,
    UnwindStage,
)

ID_FIELD = "id"

_MISSING = object()

_COMPARATORS = {
    Gt: lambda a, b: a > b,
    Gte: lambda a, b: a >= b,
    Lt: lambda a, b: a < b,
    Lte: lambda a, b: a <= b,
}


def get_value(document: dict[str, Any], path: str, default: Any = None) -> Any:
    """Read a possibly dotted path (`startLocation.address`)."""
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def _candidates(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list) else [value]


def _equals(actual: Any, expected: Any) -> bool:
    if isinstance(actual, list) and not isinstance(expected, list):
        return expected in actual
    return actual == expected


def matches_predicate(document: dict[str, Any], predicate: Predicate) -> bool:
    actual = get_value(document, predicate.field, _MISSING)

    if isinstance(predicate, Eq):
        return actual is not _MISSING and _equals(actual, predicate.value)
    if isinstance(predicate, Ne):
        return actual is _MISSING or not _equals(actual, predicate.value)
    if isinstance(predicate, In):
        if actual is _MISSING:
            return False
        return any(_equals(actual, v) for v in predicate.value)

    compare = _COMPARATORS.get(type(predicate))
    if compare is None:
        raise QueryParseError(f"Unsupported predicate operator '{predicate.op}'")
    if actual is _MISSING or actual is None:
        return False
    try:
        return any(
            v is not None and compare(v, predicate.value) for v in _candidates(actual)
        )
    except TypeError:
        raise QueryParseError(
            f"Cannot compare '{predicate.field}' with {predicate.value!r}",
            param=predicate.field,
        ) from None


def matches(document: dict[str, Any], predicates: Iterable[Predicate]) -> bool:
    """True when the document satisfies every predicate (AND)."""
    return all(matches_predicate(document, p) for p in predicates)


def sort_documents(
    documents: list[dict[str, Any]], keys: Iterable[SortKey]
) -> list[dict[str, Any]]:
    """Composite ordering in listed key order. Input order breaks remaining ties."""
    result = list(documents)
    # Python's sort is stable, so sorting by the least significant key first
    # yields the composite ordering.
    for key in reversed(tuple(keys)):
        def sort_key(doc: dict[str, Any], name: str = key.field) -> tuple[bool, Any]:
            value = get_value(doc, name)
            return (value is not None, value if value is not None else 0)

        try:
            result.sort(key=sort_key, reverse=key.direction == SortDirection.DESC)
        except TypeError:
            raise QueryParseError(
                f"Cannot sort on '{key.field}': values are not comparable",
                param="sort",
            ) from None
    return result


def project(document: dict[str, Any], projection: Projection) -> dict[str, Any]:
    if projection.mode == ProjectionMode.INCLUDE:
        return {
            k: v
            for k, v in document.items()
            if k == ID_FIELD or k in projection.fields
        }
    return {k: v for k, v in document.items() if k not in projection.fields}


def apply_query(
    documents: Iterable[dict[str, Any]], query: QueryDescriptor
) -> list[dict[str, Any]]:
    """Filter, sort, paginate and project documents. Returns copies."""
    selected = [d for d in documents if matches(d, query.predicates)]
    selected = sort_documents(selected, query.sort)
    end = None if query.limit is None else query.skip + query.limit
    return [copy.deepcopy(project(d, query.projection)) for d in selected[query.skip:end]]


# =============================================================================
# Aggregation
# =============================================================================


def _accumulate(op: str, values: list[Any], count: int) -> Any:
    present = [v for v in values if v is not None]
    if op == "count":
        return count
    if op == "sum":
        return sum(present)
    if op == "avg":
        return sum(present) / len(present) if present else None
    if op == "min":
        return min(present) if present else None
    if op == "max":
        return max(present) if present else None
    if op == "push":
        return list(values)
    raise QueryParseError(f"Unsupported accumulator '{op}'")


def _group(documents: list[dict[str, Any]], stage: GroupStage) -> list[dict[str, Any]]:
    groups: dict[Any, list[dict[str, Any]]] = {}
    for doc in documents:
        key = get_value(doc, stage.by) if stage.by else None
        if stage.key is not None:
            key = stage.key(key)
        groups.setdefault(key, []).append(doc)

    output = []
    for key, members in groups.items():
        row: dict[str, Any] = {ID_FIELD: key}
        for name, acc in stage.accumulators.items():
            if acc.field is None:
                values = [1] * len(members)
            else:
                values = [get_value(m, acc.field) for m in members]
            try:
                row[name] = _accumulate(acc.op, values, len(members))
            except TypeError:
                raise QueryParseError(
                    f"Cannot apply '{acc.op}' to '{acc.field}'"
                ) from None
        output.append(row)
    return output


def _unwind(documents: list[dict[str, Any]], field: str) -> list[dict[str, Any]]:
    output = []
    for doc in documents:
        values = doc.get(field)
        if not isinstance(values, list):
            continue
        for value in values:
            unwound = dict(doc)
            unwound[field] = value
            output.append(unwound)
    return output


def run_stage(documents: list[dict[str, Any]], stage: Stage) -> list[dict[str, Any]]:
    if isinstance(stage, MatchStage):
        return [d for d in documents if matches(d, stage.predicates)]
    if isinstance(stage, UnwindStage):
        return _unwind(documents, stage.field)
    if isinstance(stage, GroupStage):
        return _group(documents, stage)
    if isinstance(stage, SortStage):
        return sort_documents(documents, stage.keys)
    if isinstance(stage, LimitStage):
        return documents[: stage.count]
    if isinstance(stage, AddFieldsStage):
        output = []
        for doc in documents:
            updated = dict(doc)
            for target, source in stage.fields.items():
                updated[target] = get_value(doc, source)
            output.append(updated)
        return output
    raise QueryParseError(f"Unsupported aggregation stage {type(stage).__name__}")


def run_pipeline(
    documents: Iterable[dict[str, Any]], stages: Iterable[Stage]
) -> list[dict[str, Any]]:
    """Run aggregation stages in order over copies of the documents."""
    result = [copy.deepcopy(d) for d in documents]
    for stage in stages:
        result = run_stage(result, stage)
    return result
