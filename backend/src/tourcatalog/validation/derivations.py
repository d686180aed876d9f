"""Derivation registry for read-time virtual fields.

Virtual fields are declared in entity metadata and computed from a loaded
record every time it is read. They are never persisted.

Usage:
    @derivation("weeksFromDays")
    def weeks_from_days(record, params):
        return record[params["field"]] / 7
"""

from collections.abc import Callable
from typing import Any

# Derivation signature: (record, params) -> value
DerivationFn = Callable[[dict[str, Any], dict[str, Any]], Any]


class DerivationRegistry:
    """Registry for virtual field derivations.

    Follows the same pattern as HookRegistry: derivations are registered
    by name and referenced from the `virtuals:` section of entity metadata.
    """

    _derivations: dict[str, DerivationFn] = {}

    @classmethod
    def register(cls, name: str, fn: DerivationFn) -> None:
        """Register a derivation by name. Re-registering is a no-op."""
        if name in cls._derivations:
            return
        cls._derivations[name] = fn

    @classmethod
    def get(cls, name: str) -> DerivationFn:
        if name not in cls._derivations:
            raise ValueError(
                f"Derivation '{name}' is not registered. "
                "Derivations must be explicitly registered at application startup."
            )
        return cls._derivations[name]

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name in cls._derivations

    @classmethod
    def list_registered(cls) -> list[str]:
        return sorted(cls._derivations.keys())

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._derivations.clear()


def derivation(name: str) -> Callable[[DerivationFn], DerivationFn]:
    """Decorator to register a derivation function."""

    def decorator(fn: DerivationFn) -> DerivationFn:
        DerivationRegistry.register(name, fn)
        return fn

    return decorator


def weeks_from_days(record: dict[str, Any], params: dict[str, Any]) -> float | None:
    days = record.get(params.get("field", "duration"))
    if days is None or isinstance(days, bool) or not isinstance(days, (int, float)):
        return None
    return days / 7


def register_builtin_derivations() -> None:
    """Register framework-provided derivations."""
    DerivationRegistry.register("weeksFromDays", weeks_from_days)
