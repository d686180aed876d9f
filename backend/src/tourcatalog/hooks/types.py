"""Hook system types for the tour catalog.

Defines the core data structures for the lifecycle hook pipeline:
- HookDefinition: metadata describing when a hook should run
- HookContext: per-operation state threaded through pre- and post- hooks
- HookResult: return value from hook functions
"""

from dataclasses import dataclass, field
from typing import Any

from tourcatalog.errors import ObservabilityFault
from tourcatalog.metadata.loader import HookConfig
from tourcatalog.query.types import QueryDescriptor, Stage
from tourcatalog.validation.types import Operation

PRE_PERSIST = "prePersist"
POST_PERSIST = "postPersist"
PRE_QUERY = "preQuery"
POST_QUERY = "postQuery"
PRE_AGGREGATE = "preAggregate"

# Failures at these points abort the wrapped operation
PRE_HOOK_POINTS = (PRE_PERSIST, PRE_QUERY, PRE_AGGREGATE)
POST_HOOK_POINTS = (POST_PERSIST, POST_QUERY)


@dataclass
class HookDefinition:
    """Definition of a hook from entity metadata.

    Attributes:
        name: Registered hook name (e.g., "deriveSlug")
        on: Operations this hook applies to; None means every operation
        description: Human-readable description
    """

    name: str
    on: list[Operation] | None = None
    description: str = ""

    def applies_to(self, operation: Operation) -> bool:
        return self.on is None or operation in self.on

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HookDefinition":
        """Create HookDefinition from YAML/JSON dict."""
        operations = data.get("on")
        if isinstance(operations, str):
            operations = [operations]

        return cls(
            name=data["name"],
            on=[Operation(op) for op in operations] if operations else None,
            description=data.get("description", ""),
        )

    @classmethod
    def from_config(cls, config: HookConfig) -> "HookDefinition":
        return cls(
            name=config.name,
            on=[Operation(op) for op in config.on] if config.on else None,
            description=config.description,
        )


@dataclass
class HookContext:
    """Runtime context passed to every hook function.

    One context is created per operation and the same instance flows
    through its pre- and post- hooks, so a pre-hook's mutation is what
    the operation and the post-hooks observe.

    Attributes:
        entity_name: Name of the entity being operated on
        operation: The current operation
        record: Record about to be written (persist) or the written copy (postPersist)
        original: Previous record state (update only)
        changes: Dict of changed fields (update only)
        query: Query descriptor for reads
        pipeline: Aggregation stages for aggregates
        result: Operation result, set before post- hooks run
        started_at: perf_counter() timestamp recorded by a pre-query hook
        elapsed_ms: Duration computed by a post-query hook
        faults: Post-hook failures collected during the operation
    """

    entity_name: str
    operation: Operation
    record: dict[str, Any] | None = None
    original: dict[str, Any] | None = None
    changes: dict[str, Any] | None = None
    query: QueryDescriptor | None = None
    pipeline: list[Stage] = field(default_factory=list)
    result: Any = None
    started_at: float | None = None
    elapsed_ms: float | None = None
    faults: list[ObservabilityFault] = field(default_factory=list)


@dataclass
class HookResult:
    """Return value from hook functions.

    Attributes:
        update: Fields to merge into the context record (prePersist)
        abort: Error message to abort the operation (pre- hooks only)
    """

    update: dict[str, Any] | None = None
    abort: str | None = None


def compute_changes(
    record: dict[str, Any], original: dict[str, Any] | None
) -> dict[str, Any] | None:
    """Compute a diff of changed fields between record and original.

    Returns None if original is None (create operations).
    """
    if original is None:
        return None

    return {
        key: value
        for key, value in record.items()
        if key not in original or original[key] != value
    }
