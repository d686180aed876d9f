"""Catalog validation system.

Turns a raw input payload into a coerced, defaulted record or a complete
list of field violations:
- coercion: cast input to declared field types
- validators: field-level constraint checks generated from metadata
- services: defaults, validation, virtual fields, lifecycle coordination

Usage:
    from tourcatalog.validation import EntityLifecycle, Operation

    result = await EntityLifecycle().prepare(data, Operation.CREATE, entity)
    if not result.validation.valid:
        ...
"""

from tourcatalog.validation.coercion import coerce_record, coerce_value
from tourcatalog.validation.derivations import (
    DerivationRegistry,
    derivation,
    register_builtin_derivations,
)
from tourcatalog.validation.services import (
    DefaultingService,
    EntityLifecycle,
    LifecycleResult,
    ValidationService,
    VirtualFieldService,
)
from tourcatalog.validation.types import (
    Operation,
    ValidationContext,
    ValidationError,
    ValidationResult,
    Validator,
    WRITE_OPERATIONS,
)

__all__ = [
    # Types
    "Operation",
    "ValidationContext",
    "ValidationError",
    "ValidationResult",
    "Validator",
    "WRITE_OPERATIONS",
    # Coercion
    "coerce_record",
    "coerce_value",
    # Derivations
    "DerivationRegistry",
    "derivation",
    "register_builtin_derivations",
    # Services
    "DefaultingService",
    "EntityLifecycle",
    "LifecycleResult",
    "ValidationService",
    "VirtualFieldService",
]
