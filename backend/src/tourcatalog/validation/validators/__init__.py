"""Field-level validators generated from entity metadata."""

from tourcatalog.validation.validators.field_constraints import (
    FieldConstraintValidator,
    generate_field_validators,
    geo_point_problem,
)

__all__ = [
    "FieldConstraintValidator",
    "generate_field_validators",
    "geo_point_problem",
]
