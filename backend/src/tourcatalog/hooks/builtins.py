"""Built-in hooks referenced by the bundled Tour metadata."""

import logging
import re
import time

from tourcatalog.hooks.registry import HookRegistry
from tourcatalog.hooks.types import HookContext, HookResult
from tourcatalog.query.types import MatchStage, Ne

logger = logging.getLogger(__name__)

SECRET_FIELD = "secretTour"


def slugify(value: str, separator: str = "-") -> str:
    """Lower-case `value` and collapse runs of non-alphanumerics to `separator`."""
    slug = value.lower().strip()
    slug = re.sub(r"[^a-z0-9]+", separator, slug)
    return slug.strip(separator)


async def derive_slug(ctx: HookContext) -> HookResult | None:
    name = (ctx.record or {}).get("name")
    if not isinstance(name, str):
        return None
    return HookResult(update={"slug": slugify(name)})


async def log_persisted_document(ctx: HookContext) -> None:
    logger.info(
        "%s %s persisted: %s", ctx.entity_name, ctx.operation.value, ctx.record
    )


async def exclude_secret_tours(ctx: HookContext) -> None:
    if ctx.query is None:
        raise ValueError("no query descriptor on context")
    ctx.query = ctx.query.where(Ne(SECRET_FIELD, True))


async def start_query_timer(ctx: HookContext) -> None:
    ctx.started_at = time.perf_counter()


async def report_query_duration(ctx: HookContext) -> None:
    if ctx.started_at is None:
        raise ValueError("query timer was never started")
    ctx.elapsed_ms = (time.perf_counter() - ctx.started_at) * 1000
    logger.info(
        "%s %s took %.2f ms",
        ctx.entity_name,
        ctx.operation.value,
        ctx.elapsed_ms,
    )


async def exclude_secret_tours_from_pipeline(ctx: HookContext) -> None:
    ctx.pipeline.insert(0, MatchStage((Ne(SECRET_FIELD, True),)))


BUILTIN_HOOKS = {
    "deriveSlug": derive_slug,
    "logPersistedDocument": log_persisted_document,
    "excludeSecretTours": exclude_secret_tours,
    "startQueryTimer": start_query_timer,
    "reportQueryDuration": report_query_duration,
    "excludeSecretToursFromPipeline": exclude_secret_tours_from_pipeline,
}


def register_builtin_hooks() -> None:
    """Register the hooks the bundled metadata declares. Safe to call repeatedly."""
    for name, fn in BUILTIN_HOOKS.items():
        HookRegistry.register(name, fn)
