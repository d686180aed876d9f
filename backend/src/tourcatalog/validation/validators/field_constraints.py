"""Field-level constraint validators.

These validators are automatically generated from field metadata to enforce:
- required: Field must have a non-empty value
- type: Value must already be of the declared type (after coercion)
- min/max: Numeric bounds
- minLength/maxLength: String length bounds
- pattern: Regex pattern matching
- enum: Value must be one of the declared options
- array / geoPoint: Element and shape checks
"""

import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from tourcatalog.metadata.loader import FieldDefinition, ValidationRules
from tourcatalog.validation.types import (
    Operation,
    ValidationContext,
    ValidationError,
)


# =============================================================================
# Type checks
# =============================================================================


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "number": _is_number,
    "boolean": lambda v: isinstance(v, bool),
    "datetime": lambda v: isinstance(v, datetime),
}


def geo_point_problem(value: Any, with_day: bool = False) -> str | None:
    """Describe what is wrong with a geo point, or None if it is valid."""
    if not isinstance(value, dict):
        return "must be a geo point object"
    if value.get("type", "Point") != "Point":
        return "type must be 'Point'"
    coordinates = value.get("coordinates")
    if coordinates is not None:
        if (
            not isinstance(coordinates, list)
            or len(coordinates) != 2
            or not all(_is_number(c) for c in coordinates)
        ):
            return "coordinates must be [longitude, latitude]"
    for key in ("address", "description"):
        if value.get(key) is not None and not isinstance(value[key], str):
            return f"{key} must be text"
    if with_day and value.get("day") is not None and not _is_number(value["day"]):
        return "day must be a number"
    return None


# =============================================================================
# Field Constraint Validator
# =============================================================================


@dataclass
class FieldConstraintValidator:
    """Validates a single field against its metadata constraints."""

    field: FieldDefinition

    async def validate(self, ctx: ValidationContext) -> list[ValidationError]:
        """Validate field constraints."""
        errors: list[ValidationError] = []

        field_name = self.field.name
        value = ctx.record.get(field_name)
        rules = self.field.validation

        # Auto-populated fields get their values from the system
        if self.field.auto and ctx.operation == Operation.CREATE:
            return errors

        # Required check
        if rules.required:
            if self._is_empty(value):
                errors.append(ValidationError(
                    message=f"A {ctx.entity_name.lower()} must have a {self.field.display_name.lower()}",
                    code="REQUIRED",
                    field=field_name,
                ))
                # Don't continue validation if required field is empty
                return errors

        # Skip remaining validation if value is empty (optional field)
        if self._is_empty(value):
            return errors

        type_error = self._validate_type(value)
        if type_error:
            errors.append(ValidationError(
                message=type_error,
                code=f"INVALID_{self.field.type.upper()}",
                field=field_name,
            ))
            return errors  # Don't continue if type is invalid

        if self.field.type == "number":
            errors.extend(self._validate_numeric_bounds(value, rules))

        if self.field.type == "string":
            errors.extend(self._validate_string_length(value, rules))
            if rules.pattern:
                pattern_error = self._validate_pattern(value, rules.pattern)
                if pattern_error:
                    errors.append(pattern_error)

        if self.field.type == "enum":
            errors.extend(self._validate_options(value))

        return errors

    def _is_empty(self, value: Any) -> bool:
        """Check if a value is considered empty."""
        if value is None:
            return True
        if isinstance(value, str) and value.strip() == "":
            return True
        if isinstance(value, (list, dict)) and len(value) == 0:
            return True
        return False

    def _validate_type(self, value: Any) -> str | None:
        """Validate value against its declared type. Returns error message or None."""
        field_type = self.field.type
        label = self.field.display_name

        if field_type in TYPE_CHECKS:
            if not TYPE_CHECKS[field_type](value):
                return f"{label} must be of type {field_type}"

        elif field_type == "enum":
            if not isinstance(value, str):
                return f"{label} must be text"

        elif field_type == "geoPoint":
            problem = geo_point_problem(value)
            if problem:
                return f"{label}: {problem}"

        elif field_type == "array":
            if not isinstance(value, list):
                return f"{label} must be a list"
            item_type = self.field.items or "string"
            for index, item in enumerate(value):
                if item_type == "geoPoint":
                    problem = geo_point_problem(item, with_day=True)
                    if problem:
                        return f"{label}[{index}]: {problem}"
                elif item_type in TYPE_CHECKS and not TYPE_CHECKS[item_type](item):
                    return f"{label}[{index}] must be of type {item_type}"

        return None

    def _validate_numeric_bounds(
        self, value: Any, rules: ValidationRules
    ) -> list[ValidationError]:
        """Validate numeric min/max bounds."""
        errors = []

        if rules.min is not None and value < rules.min:
            errors.append(ValidationError(
                message=rules.message or f"{self.field.display_name} must be at least {rules.min}",
                code="MIN_VALUE",
                field=self.field.name,
            ))

        if rules.max is not None and value > rules.max:
            errors.append(ValidationError(
                message=rules.message or f"{self.field.display_name} must be at most {rules.max}",
                code="MAX_VALUE",
                field=self.field.name,
            ))

        return errors

    def _validate_string_length(
        self, value: str, rules: ValidationRules
    ) -> list[ValidationError]:
        """Validate string length bounds."""
        errors = []
        length = len(value)

        if rules.min_length is not None and length < rules.min_length:
            errors.append(ValidationError(
                message=rules.message or (
                    f"{self.field.display_name} must be at least {rules.min_length} characters"
                ),
                code="MIN_LENGTH",
                field=self.field.name,
            ))

        if rules.max_length is not None and length > rules.max_length:
            errors.append(ValidationError(
                message=rules.message or (
                    f"{self.field.display_name} must be at most {rules.max_length} characters"
                ),
                code="MAX_LENGTH",
                field=self.field.name,
            ))

        return errors

    def _validate_pattern(self, value: str, pattern: str) -> ValidationError | None:
        """Validate value against custom regex pattern."""
        try:
            if not re.match(pattern, value):
                return ValidationError(
                    message=self.field.validation.message or f"{self.field.display_name} format is invalid",
                    code="PATTERN_MISMATCH",
                    field=self.field.name,
                )
        except re.error:
            # Invalid regex pattern in metadata
            return None

        return None

    def _validate_options(self, value: Any) -> list[ValidationError]:
        """Validate an enum value is one of the allowed options."""
        valid_values = [opt.get("value") for opt in self.field.options or []]
        if value in valid_values:
            return []

        return [ValidationError(
            message=self.field.validation.message or (
                f"'{value}' is not a valid option for {self.field.display_name}"
            ),
            code="INVALID_OPTION",
            field=self.field.name,
        )]


# =============================================================================
# Field Validator Generator
# =============================================================================


def generate_field_validators(
    fields: list[FieldDefinition],
) -> list[FieldConstraintValidator]:
    """Generate field constraint validators from field definitions.

    Every field with a checkable type or any constraint gets a validator;
    plain `id` fields are skipped.

    Args:
        fields: List of field definitions from entity metadata

    Returns:
        List of FieldConstraintValidator instances
    """
    validators = []

    for field in fields:
        rules = field.validation

        needs_validation = (
            rules.required
            or rules.min is not None
            or rules.max is not None
            or rules.min_length is not None
            or rules.max_length is not None
            or rules.pattern is not None
            or field.type != "id"
        )

        if needs_validation:
            validators.append(FieldConstraintValidator(field=field))

    return validators
