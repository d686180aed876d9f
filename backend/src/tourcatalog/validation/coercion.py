"""Cast raw input values to their declared field types.

Runs before defaults and validation. Strips fields the entity does not
declare, trims strings marked `trim`, and converts numeric strings,
ISO-8601 strings and boolean literals. Values that cannot be cast are
reported as field errors and left untouched for the caller to discard.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any

from tourcatalog.metadata.loader import VERSION_FIELD, EntityModel, FieldDefinition
from tourcatalog.validation.types import ValidationError

logger = logging.getLogger(__name__)

TRUE_LITERALS = {"true", "1", "yes"}
FALSE_LITERALS = {"false", "0", "no"}


class CoercionError(ValueError):
    pass


def to_number(value: Any) -> int | float:
    """Cast to int when integral, float otherwise."""
    if isinstance(value, bool):
        raise CoercionError("must be a number")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            value = float(text)
        except ValueError:
            raise CoercionError("must be a number") from None
    if isinstance(value, float):
        if not math.isfinite(value):
            raise CoercionError("must be a finite number")
        return value
    raise CoercionError("must be a number")


def to_datetime(value: Any) -> datetime:
    """Cast to a timezone-aware datetime (naive values are taken as UTC)."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise CoercionError("must be a valid datetime") from None
    else:
        raise CoercionError("must be a valid datetime")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_LITERALS:
            return True
        if text in FALSE_LITERALS:
            return False
    if value in (0, 1):
        return bool(value)
    raise CoercionError("must be a boolean")


SCALAR_CASTS = {
    "number": to_number,
    "datetime": to_datetime,
    "boolean": to_boolean,
}


def coerce_value(field_type: str, value: Any) -> Any:
    """Cast a single value to `field_type`. Unknown types pass through."""
    if value is None:
        return None
    cast = SCALAR_CASTS.get(field_type)
    if cast:
        return cast(value)
    return value


def _coerce_geo_point(value: Any) -> Any:
    if not isinstance(value, dict):
        return value
    point = dict(value)
    point.setdefault("type", "Point")
    coordinates = point.get("coordinates")
    if isinstance(coordinates, (list, tuple)):
        point["coordinates"] = [to_number(c) for c in coordinates]
    if point.get("day") is not None:
        point["day"] = to_number(point["day"])
    return point


def _coerce_field(field: FieldDefinition, value: Any) -> Any:
    if value is None:
        return None

    if field.type == "array":
        if not isinstance(value, (list, tuple)):
            value = [value]
        if field.items == "geoPoint":
            return [_coerce_geo_point(v) for v in value]
        return [coerce_value(field.items or "string", v) for v in value]

    if field.type == "geoPoint":
        return _coerce_geo_point(value)

    if field.type == "string" and isinstance(value, str) and field.validation.trim:
        return value.strip()

    return coerce_value(field.type, value)


def coerce_record(
    entity: EntityModel, record: dict[str, Any]
) -> tuple[dict[str, Any], list[ValidationError]]:
    """Coerce a raw record against the entity's declared fields.

    Returns:
        (coerced record, list of cast errors). Fields that failed to cast
        keep their raw value so the report can echo it.
    """
    result: dict[str, Any] = {}
    errors: list[ValidationError] = []
    declared = {f.name: f for f in entity.fields}

    for key, value in record.items():
        field = declared.get(key)
        if field is None:
            if key != VERSION_FIELD:
                logger.debug("Dropping undeclared field '%s' on %s", key, entity.name)
            else:
                result[key] = value
            continue

        try:
            result[key] = _coerce_field(field, value)
        except (CoercionError, TypeError) as e:
            result[key] = value
            errors.append(ValidationError(
                message=f"{field.display_name} {e}",
                code=f"INVALID_{field.type.upper()}",
                field=key,
            ))

    return result, errors
