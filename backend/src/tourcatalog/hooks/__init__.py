"""Tour catalog lifecycle hook pipeline.

Provides extension points for logic that runs around persistence and
retrieval:
- prePersist: Before a create/update reaches storage (can modify record, can abort)
- postPersist: After the write (observability only, failures never undo it)
- preQuery: Before a read (can rewrite the query descriptor, can abort)
- postQuery: After a read (observability only)
- preAggregate: Before an aggregation (can rewrite the pipeline, can abort)

Usage:
    from tourcatalog.hooks import hook, HookContext, HookResult

    @hook("deriveSlug")
    async def derive_slug(ctx: HookContext) -> HookResult:
        return HookResult(update={"slug": slugify(ctx.record["name"])})
"""

from tourcatalog.hooks.builtins import register_builtin_hooks, slugify
from tourcatalog.hooks.registry import HookRegistry, hook
from tourcatalog.hooks.service import HookService
from tourcatalog.hooks.types import (
    POST_HOOK_POINTS,
    PRE_HOOK_POINTS,
    HookContext,
    HookDefinition,
    HookResult,
    compute_changes,
)
from tourcatalog.metadata.loader import VALID_HOOK_POINTS

__all__ = [
    "HookContext",
    "HookDefinition",
    "HookRegistry",
    "HookResult",
    "HookService",
    "POST_HOOK_POINTS",
    "PRE_HOOK_POINTS",
    "VALID_HOOK_POINTS",
    "compute_changes",
    "hook",
    "register_builtin_hooks",
    "slugify",
]
