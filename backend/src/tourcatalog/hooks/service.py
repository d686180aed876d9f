"""Hook execution service for the tour catalog.

Orchestrates the execution of hooks at each lifecycle point: sequential
ordering, result merging, abort handling for pre- hooks and fault
isolation for post- hooks.
"""

import logging
from typing import Any

from tourcatalog.errors import HookExecutionError, ObservabilityFault
from tourcatalog.hooks.registry import HookRegistry
from tourcatalog.hooks.types import (
    POST_HOOK_POINTS,
    HookContext,
    HookDefinition,
    HookResult,
)
from tourcatalog.metadata.loader import EntityModel

logger = logging.getLogger(__name__)


class HookService:
    """Orchestrates hook execution for entity lifecycle events.

    Hooks within a hook point execute sequentially in declared order.
    Each hook's update output is merged into the context record before
    the next hook runs.
    """

    def definitions_for(self, entity: EntityModel, hook_point: str) -> list[HookDefinition]:
        """Hook definitions declared on an entity for one hook point."""
        return [HookDefinition.from_config(c) for c in entity.hooks.get(hook_point, [])]

    async def run(self, entity: EntityModel, hook_point: str, context: HookContext) -> HookResult | None:
        """Run the hooks an entity declares for `hook_point`."""
        return await self.run_hooks(hook_point, self.definitions_for(entity, hook_point), context)

    async def run_hooks(
        self,
        hook_point: str,
        definitions: list[HookDefinition],
        context: HookContext,
    ) -> HookResult | None:
        """Execute hooks for a given hook point.

        Args:
            hook_point: The lifecycle point (prePersist, postPersist, preQuery, ...)
            definitions: Hook definitions from entity metadata (in declared order)
            context: The per-operation hook context

        Returns:
            Merged HookResult with all updates applied, or None if nothing
            was updated.

        Raises:
            HookExecutionError: If a pre- hook raises or aborts. Post- hook
                failures are logged and recorded on context.faults instead.
        """
        if not definitions:
            return None

        is_post = hook_point in POST_HOOK_POINTS
        merged_updates: dict[str, Any] = {}

        for definition in definitions:
            if not definition.applies_to(context.operation):
                continue

            try:
                hook_fn = HookRegistry.get(definition.name)
                result = await hook_fn(context)
            except Exception as e:
                if is_post:
                    self._record_fault(context, definition.name, hook_point, str(e))
                    continue
                raise HookExecutionError(definition.name, hook_point, str(e)) from e

            if result is None:
                continue

            if result.abort:
                if is_post:
                    self._record_fault(context, definition.name, hook_point, result.abort)
                    continue
                raise HookExecutionError(definition.name, hook_point, result.abort)

            # Merge updates into context record (compounding)
            if result.update:
                if context.record is None:
                    context.record = {}
                context.record.update(result.update)
                merged_updates.update(result.update)

        if merged_updates:
            return HookResult(update=merged_updates)

        return None

    def _record_fault(
        self, context: HookContext, hook_name: str, hook_point: str, reason: str
    ) -> None:
        fault = ObservabilityFault(hook_name, hook_point, reason)
        logger.error(
            "%s hook '%s' failed for %s: %s",
            hook_point,
            hook_name,
            context.entity_name,
            reason,
        )
        context.faults.append(fault)
