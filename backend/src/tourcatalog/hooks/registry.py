"""Hook registry for the tour catalog.

Hooks are registered by name and referenced from the `hooks:` section
of entity metadata. Follows the same pattern as DerivationRegistry.
"""

import logging
from collections.abc import Awaitable, Callable

from tourcatalog.hooks.types import HookContext, HookResult

# Hook function signature: async (HookContext) -> HookResult | None
HookFn = Callable[[HookContext], Awaitable[HookResult | None]]

logger = logging.getLogger(__name__)


class HookRegistry:
    """Registry for hook implementations.

    Hooks must be registered before an entity referencing them is used,
    typically via register_builtin_hooks() or the @hook decorator.

    Example:
        @hook("deriveSlug")
        async def derive_slug(ctx: HookContext) -> HookResult:
            ...
    """

    _hooks: dict[str, HookFn] = {}

    @classmethod
    def register(cls, name: str, hook_fn: HookFn) -> None:
        """Register a hook function by name.

        The first registration wins. Registering a different function under
        a taken name is ignored with a warning.
        """
        existing = cls._hooks.get(name)
        if existing is not None:
            if existing is not hook_fn:
                logger.warning(
                    "Hook '%s' is already registered; ignoring %s",
                    name,
                    getattr(hook_fn, "__qualname__", repr(hook_fn)),
                )
            return
        cls._hooks[name] = hook_fn

    @classmethod
    def get(cls, name: str) -> HookFn:
        """Get a registered hook function by name.

        Raises:
            ValueError: If hook is not registered
        """
        if name not in cls._hooks:
            raise ValueError(
                f"Hook '{name}' is not registered. "
                "Hooks must be explicitly registered at application startup."
            )
        return cls._hooks[name]

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name in cls._hooks

    @classmethod
    def list_registered(cls) -> list[str]:
        return sorted(cls._hooks.keys())

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._hooks.clear()


def hook(name: str) -> Callable[[HookFn], HookFn]:
    """Decorator to register a hook function.

    Usage:
        @hook("startQueryTimer")
        async def start_query_timer(ctx: HookContext) -> None:
            ...
    """

    def decorator(fn: HookFn) -> HookFn:
        HookRegistry.register(name, fn)
        return fn

    return decorator
