"""Core types for the catalog validation system.

This module defines the foundational types used across validation:
- Operation: the kind of operation a record or query is part of
- ValidationError: a single field-level violation
- ValidationContext / ValidationResult: validator input and output
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class Operation(Enum):
    """The type of operation being validated or intercepted."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    FIND = "find"
    FIND_ONE = "findOne"
    COUNT = "count"
    AGGREGATE = "aggregate"


WRITE_OPERATIONS = (Operation.CREATE, Operation.UPDATE)


@dataclass(frozen=True)
class ValidationError:
    """A single validation error.

    Attributes:
        message: Human-readable message
        code: Machine-readable name of the violated rule (e.g., "MIN_LENGTH")
        field: Field name this error relates to, or None for entity-level errors
    """

    message: str
    code: str
    field: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "field": self.field,
        }


@dataclass
class ValidationContext:
    """Context passed to validators during validation.

    Attributes:
        entity_name: Name of the entity being validated
        record: The data being validated (coerced, with defaults applied)
        operation: CREATE or UPDATE
        original_record: For UPDATE, the existing record; None for CREATE
    """

    entity_name: str
    record: dict[str, Any]
    operation: Operation
    original_record: dict[str, Any] | None = None


class Validator(Protocol):
    """Protocol that all validators must implement."""

    async def validate(self, ctx: ValidationContext) -> list[ValidationError]:
        """Validate the record in context. Empty list means valid."""
        ...


@dataclass
class ValidationResult:
    """Result of validating a record."""

    valid: bool
    errors: list[ValidationError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
        }
