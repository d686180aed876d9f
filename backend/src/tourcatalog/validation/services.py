"""Validation and defaulting services for the catalog.

This module provides the services that prepare a record for persistence:
1. coerce_record: Casts raw input to declared types (see coercion.py)
2. DefaultingService: Applies static defaults and auto fields
3. ValidationService: Runs all field validators and collects every error
4. VirtualFieldService: Adds read-time derived fields
5. EntityLifecycle: Coordinates 1-3 for a single write
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from tourcatalog.metadata.loader import EntityModel
from tourcatalog.validation.coercion import coerce_record
from tourcatalog.validation.derivations import DerivationRegistry
from tourcatalog.validation.types import (
    Operation,
    ValidationContext,
    ValidationError,
    ValidationResult,
    Validator,
)
from tourcatalog.validation.validators.field_constraints import (
    generate_field_validators,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Defaulting Service
# =============================================================================


class DefaultingService:
    """Service for applying defaults to records.

    Static defaults come from the `default:` key of a field and are applied
    once, at creation. Auto-populated fields (createdAt) are computed from
    the clock at creation and left untouched afterwards.
    """

    def __init__(self, clock: Any = None):
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def apply_defaults(
        self,
        record: dict[str, Any],
        entity: EntityModel,
        operation: Operation,
    ) -> dict[str, Any]:
        """Apply static field defaults to a record.

        Returns:
            Record with defaults applied
        """
        result = dict(record)
        if operation != Operation.CREATE:
            return result

        for field in entity.fields:
            if field.default is None or field.auto:
                continue
            if self._is_empty(result.get(field.name)):
                # Copy mutable defaults so records never share them
                default = field.default
                result[field.name] = list(default) if isinstance(default, list) else default

        return result

    def apply_auto_fields(
        self,
        record: dict[str, Any],
        entity: EntityModel,
        operation: Operation,
    ) -> dict[str, Any]:
        """Apply auto-populated fields (createdAt)."""
        result = dict(record)
        if operation != Operation.CREATE:
            return result

        for field in entity.fields:
            # Skip if field already has a value
            if not field.auto or result.get(field.name) is not None:
                continue
            if field.auto == "now":
                result[field.name] = self.clock()

        return result

    def _is_empty(self, value: Any) -> bool:
        """Check if a value is considered empty for defaulting purposes."""
        if value is None:
            return True
        if isinstance(value, str) and value.strip() == "":
            return True
        return False


# =============================================================================
# Validation Service
# =============================================================================


class ValidationService:
    """Runs every field validator for an entity and collects all errors.

    Validators run concurrently; a validator that raises is reported as an
    entity-level error rather than aborting the others.
    """

    async def validate(
        self,
        ctx: ValidationContext,
        field_validators: list[Validator],
    ) -> ValidationResult:
        all_errors: list[ValidationError] = []

        if field_validators:
            tasks = [v.validate(ctx) for v in field_validators]
            results = await asyncio.gather(*tasks, return_exceptions=True)

            for result in results:
                if isinstance(result, Exception):
                    logger.exception("Field validator raised", exc_info=result)
                    all_errors.append(
                        ValidationError(
                            message=f"Field validator error: {result}",
                            code="FIELD_VALIDATOR_ERROR",
                        )
                    )
                else:
                    all_errors.extend(result)

        return ValidationResult(valid=len(all_errors) == 0, errors=all_errors)


# =============================================================================
# Virtual Fields
# =============================================================================


class VirtualFieldService:
    """Computes read-time derived fields declared under `virtuals:`."""

    def apply(self, entity: EntityModel, record: dict[str, Any]) -> dict[str, Any]:
        if not entity.virtuals:
            return record

        result = dict(record)
        for virtual in entity.virtuals:
            fn = DerivationRegistry.get(virtual.derive)
            value = fn(result, virtual.params)
            if value is not None:
                result[virtual.name] = value
        return result

    def strip(self, entity: EntityModel, record: dict[str, Any]) -> dict[str, Any]:
        """Remove virtual fields so they are never written."""
        names = {v.name for v in entity.virtuals}
        return {k: v for k, v in record.items() if k not in names}


# =============================================================================
# Entity Lifecycle Coordinator
# =============================================================================


@dataclass
class LifecycleResult:
    """Result of preparing a record (coercion + defaults + validation)."""

    record: dict[str, Any]
    validation: ValidationResult


class EntityLifecycle:
    """Coordinates the entity save lifecycle.

    Lifecycle:
    1. Coerce input to declared types, dropping undeclared fields
    2. Apply defaults and auto fields (create only)
    3. Validate every field, collecting all violations
    4. Persist (if valid), done by the caller
    """

    def __init__(
        self,
        defaulting_service: DefaultingService | None = None,
        validation_service: ValidationService | None = None,
    ):
        self.defaulting_service = defaulting_service or DefaultingService()
        self.validation_service = validation_service or ValidationService()

    async def prepare(
        self,
        record: dict[str, Any],
        operation: Operation,
        entity: EntityModel,
        original: dict[str, Any] | None = None,
    ) -> LifecycleResult:
        """Prepare a record for persistence without persisting it."""
        # Phase 1: Coerce
        prepared_record, cast_errors = coerce_record(entity, record)

        # Phase 2: Defaults and auto fields
        prepared_record = self.defaulting_service.apply_defaults(
            prepared_record, entity, operation
        )
        prepared_record = self.defaulting_service.apply_auto_fields(
            prepared_record, entity, operation
        )

        # Phase 3: Validate fields that survived coercion
        failed = {e.field for e in cast_errors}
        ctx = ValidationContext(
            entity_name=entity.name,
            record=prepared_record,
            operation=operation,
            original_record=original,
        )
        validators = [
            v for v in generate_field_validators(entity.fields)
            if v.field.name not in failed
        ]
        validation = await self.validation_service.validate(ctx, validators)

        errors = cast_errors + validation.errors
        return LifecycleResult(
            record=prepared_record,
            validation=ValidationResult(valid=not errors, errors=errors),
        )
