"""Error taxonomy for the tour catalog.

Pre-operation failures (validation, uniqueness, query parsing, pre-* hooks)
are raised to the caller before any state changes. Post-operation faults
are logged and collected on the hook context, never raised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tourcatalog.validation.types import ValidationError


class CatalogError(Exception):
    """Base class for all catalog errors."""

    code = "CATALOG_ERROR"

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": str(self)}


class ValidationFailed(CatalogError):
    """One or more field-level violations; the write was rejected in full."""

    code = "VALIDATION_FAILED"

    def __init__(self, errors: list[ValidationError]):
        self.errors = list(errors)
        fields = ", ".join(sorted({e.field for e in self.errors if e.field}))
        super().__init__(f"Validation failed for: {fields or 'record'}")

    @property
    def fields(self) -> list[str]:
        return [e.field for e in self.errors if e.field]

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["errors"] = [e.to_dict() for e in self.errors]
        return result


class UniquenessConflict(CatalogError):
    """A unique field collided with an existing document."""

    code = "UNIQUENESS_CONFLICT"

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(f"Duplicate value for '{field}': {value!r}")

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result.update({"field": self.field, "value": self.value})
        return result


class QueryParseError(CatalogError):
    """Malformed filter, sort or projection input."""

    code = "QUERY_PARSE_ERROR"

    def __init__(self, message: str, param: str | None = None):
        self.param = param
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.param:
            result["param"] = self.param
        return result


class HookExecutionError(CatalogError):
    """A pre-operation hook failed and aborted the wrapped operation."""

    code = "HOOK_EXECUTION_ERROR"

    def __init__(self, hook_name: str, hook_point: str, reason: str):
        self.hook_name = hook_name
        self.hook_point = hook_point
        self.reason = reason
        super().__init__(f"{hook_point} hook '{hook_name}' failed: {reason}")

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result.update({"hook": self.hook_name, "hookPoint": self.hook_point})
        return result


class ObservabilityFault(CatalogError):
    """A post-operation hook failed. The operation result stands."""

    code = "OBSERVABILITY_FAULT"

    def __init__(self, hook_name: str, hook_point: str, reason: str):
        self.hook_name = hook_name
        self.hook_point = hook_point
        self.reason = reason
        super().__init__(f"{hook_point} hook '{hook_name}' failed: {reason}")

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result.update({"hook": self.hook_name, "hookPoint": self.hook_point})
        return result
