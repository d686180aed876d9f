"""Query feature pipeline: request parameters to a structured query."""

from tourcatalog.query.features import (
    DEFAULT_LIMIT,
    DEFAULT_SORT,
    RESERVED_PARAMS,
    TOP_CHEAP_TOURS,
    QueryFeatures,
    apply_filter,
    apply_pagination,
    apply_projection,
    apply_sort,
    normalize_params,
    parse_filter_param,
)
from tourcatalog.query.types import (
    Accumulator,
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

__all__ = [
    "Accumulator",
    "AddFieldsStage",
    "DEFAULT_LIMIT",
    "DEFAULT_SORT",
    "Eq",
    "GroupStage",
    "Gt",
    "Gte",
    "In",
    "LimitStage",
    "Lt",
    "Lte",
    "MatchStage",
    "Ne",
    "Predicate",
    "Projection",
    "ProjectionMode",
    "QueryDescriptor",
    "QueryFeatures",
    "RESERVED_PARAMS",
    "SortDirection",
    "SortKey",
    "SortStage",
    "Stage",
    "TOP_CHEAP_TOURS",
    "UnwindStage",
    "apply_filter",
    "apply_pagination",
    "apply_projection",
    "apply_sort",
    "normalize_params",
    "parse_filter_param",
]
