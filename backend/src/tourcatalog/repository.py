"""Entity repositories: the single path between callers and the store.

Writes run coercion, defaults and validation, then the prePersist hooks,
then the store write, then the postPersist hooks. Every read goes through
a method decorated with @read_operation, which always runs the preQuery
and postQuery hooks around the store call. Every aggregation goes through
aggregate(), which always runs the preAggregate hooks.
"""

import copy
import functools
import logging
from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from tourcatalog.errors import ValidationFailed
from tourcatalog.hooks.service import HookService
from tourcatalog.hooks.types import (
    POST_PERSIST,
    POST_QUERY,
    PRE_AGGREGATE,
    PRE_PERSIST,
    PRE_QUERY,
    HookContext,
    compute_changes,
)
from tourcatalog.metadata.loader import VERSION_FIELD, EntityModel
from tourcatalog.persistence.adapter import CollectionStore
from tourcatalog.query.features import (
    DEFAULT_LIMIT,
    TOP_CHEAP_TOURS,
    QueryFeatures,
    RequestParams,
)
from tourcatalog.query.types import (
    Accumulator,
    AddFieldsStage,
    Eq,
    GroupStage,
    Gte,
    LimitStage,
    Lt,
    MatchStage,
    QueryDescriptor,
    SortDirection,
    SortKey,
    SortStage,
    Stage,
    UnwindStage,
)
from tourcatalog.validation.services import EntityLifecycle, VirtualFieldService
from tourcatalog.validation.types import Operation

logger = logging.getLogger(__name__)


def read_operation(operation: Operation):
    """Run a store read between the entity's preQuery and postQuery hooks.

    The decorated method is called as `fn(self, ctx)` after the preQuery
    hooks have rewritten `ctx.query`, and must execute that descriptor.
    The wrapper takes the initial QueryDescriptor and returns the context,
    with the read's result on `ctx.result`.
    """

    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(self: "EntityRepository", query: QueryDescriptor) -> HookContext:
            ctx = HookContext(
                entity_name=self.entity.name,
                operation=operation,
                query=query,
            )
            await self.hook_service.run(self.entity, PRE_QUERY, ctx)
            ctx.result = await fn(self, ctx)
            await self.hook_service.run(self.entity, POST_QUERY, ctx)
            return ctx

        return wrapper

    return decorator


class EntityRepository:
    """Create, update, delete and query documents of one entity."""

    def __init__(
        self,
        entity: EntityModel,
        store: CollectionStore,
        hook_service: HookService | None = None,
        lifecycle: EntityLifecycle | None = None,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int | None = None,
    ):
        self.entity = entity
        self.store = store
        self.hook_service = hook_service or HookService()
        self.lifecycle = lifecycle or EntityLifecycle()
        self.virtuals = VirtualFieldService()
        self.default_limit = default_limit
        self.max_limit = max_limit

    @property
    def collection(self) -> str:
        return self.entity.collection

    async def initialize(self) -> None:
        await self.store.initialize_collection(self.entity)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def describe(self, params: RequestParams | None = None) -> QueryDescriptor:
        """Build the descriptor a read with these request params would run."""
        descriptor = QueryFeatures(
            params or {},
            self.entity,
            default_limit=self.default_limit,
            max_limit=self.max_limit,
        ).build()
        return replace(
            descriptor,
            projection=descriptor.projection.with_hidden(self.entity.hidden_fields),
        )

    def _present(self, document: dict[str, Any]) -> dict[str, Any]:
        return self.virtuals.apply(self.entity, document)

    def _writable(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Caller input without read-only fields."""
        read_only = {f.name for f in self.entity.fields if f.read_only}
        return {k: v for k, v in data.items() if k not in read_only}

    @read_operation(Operation.FIND)
    async def _find(self, ctx: HookContext) -> list[dict[str, Any]]:
        documents = await self.store.find(self.collection, ctx.query)
        return [self._present(d) for d in documents]

    @read_operation(Operation.FIND_ONE)
    async def _find_one(self, ctx: HookContext) -> dict[str, Any] | None:
        documents = await self.store.find(
            self.collection, replace(ctx.query, skip=0, limit=1)
        )
        return self._present(documents[0]) if documents else None

    @read_operation(Operation.COUNT)
    async def _count(self, ctx: HookContext) -> int:
        return await self.store.count(self.collection, ctx.query.predicates)

    async def find_with_context(self, params: RequestParams | None = None) -> HookContext:
        """Run a find and return its hook context (result, timing, faults)."""
        return await self._find(self.describe(params))

    async def find(self, params: RequestParams | None = None) -> list[dict[str, Any]]:
        ctx = await self._find(self.describe(params))
        return ctx.result

    async def find_one(self, params: RequestParams | None = None) -> dict[str, Any] | None:
        ctx = await self._find_one(self.describe(params))
        return ctx.result

    async def get(self, id: str) -> dict[str, Any] | None:
        """Fetch one document by id through the standard read path."""
        query = self.describe().where(Eq(self.entity.primary_key, id))
        ctx = await self._find_one(query)
        return ctx.result

    async def count(self, params: RequestParams | None = None) -> int:
        ctx = await self._count(self.describe(params))
        return ctx.result

    async def aggregate(self, stages: list[Stage]) -> list[dict[str, Any]]:
        """Run an aggregation pipeline after the preAggregate hooks."""
        ctx = HookContext(
            entity_name=self.entity.name,
            operation=Operation.AGGREGATE,
            pipeline=list(stages),
        )
        await self.hook_service.run(self.entity, PRE_AGGREGATE, ctx)
        ctx.result = await self.store.aggregate(self.collection, ctx.pipeline)
        return ctx.result

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _persist(
        self,
        operation: Operation,
        data: dict[str, Any],
        original: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        # Phase 1: coerce, default and validate
        result = await self.lifecycle.prepare(data, operation, self.entity, original)
        if not result.validation.valid:
            raise ValidationFailed(result.validation.errors)

        ctx = HookContext(
            entity_name=self.entity.name,
            operation=operation,
            record=result.record,
            original=original,
            changes=compute_changes(result.record, original),
        )

        # Phase 2: prePersist hooks mutate ctx.record in place
        await self.hook_service.run(self.entity, PRE_PERSIST, ctx)

        # Phase 3: write
        record = self.virtuals.strip(self.entity, ctx.record)
        if operation == Operation.CREATE:
            saved = await self.store.create(self.collection, record)
        else:
            saved = await self.store.update(self.collection, original["id"], record)
            if saved is None:
                return None

        # Phase 4: postPersist hooks see copies of the committed document
        ctx.record = copy.deepcopy(saved)
        ctx.result = copy.deepcopy(saved)
        await self.hook_service.run(self.entity, POST_PERSIST, ctx)

        return self._present(saved)

    async def create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Validate and persist a new document.

        Raises:
            ValidationFailed: If any field violates its constraints
            UniquenessConflict: If a unique field collides
            HookExecutionError: If a prePersist hook fails
        """
        return await self._persist(Operation.CREATE, self._writable(data))

    async def update(self, id: str, changes: Mapping[str, Any]) -> dict[str, Any] | None:
        """Merge changes into an existing document and persist it.

        Returns None when no document has this id.
        """
        original = await self.store.get(self.collection, id)
        if original is None:
            return None

        merged = {
            k: v for k, v in original.items() if k not in ("id", VERSION_FIELD)
        }
        merged.update(self._writable(changes))
        return await self._persist(Operation.UPDATE, merged, original)

    async def delete(self, id: str) -> bool:
        deleted = await self.store.delete(self.collection, id)
        if deleted:
            logger.info("%s %s deleted", self.entity.name, id)
        return deleted

    async def clear(self) -> int:
        return await self.store.clear(self.collection)


def _upper(value: Any) -> Any:
    return value.upper() if isinstance(value, str) else value


def _month(value: Any) -> int | None:
    return value.month if isinstance(value, datetime) else None


class TourRepository(EntityRepository):
    """Tour-specific listings and reports."""

    async def top_cheap(self) -> list[dict[str, Any]]:
        """The five best-rated tours, cheapest first among equal ratings."""
        return await self.find(TOP_CHEAP_TOURS)

    async def tour_stats(self) -> list[dict[str, Any]]:
        """Per-difficulty statistics over tours rated 4.5 or higher."""
        return await self.aggregate([
            MatchStage((Gte("ratingsAverage", 4.5),)),
            GroupStage(
                by="difficulty",
                key=_upper,
                accumulators={
                    "numTours": Accumulator("count"),
                    "numRatings": Accumulator("sum", "ratingsQuantity"),
                    "avgRating": Accumulator("avg", "ratingsAverage"),
                    "avgPrice": Accumulator("avg", "price"),
                    "minPrice": Accumulator("min", "price"),
                    "maxPrice": Accumulator("max", "price"),
                },
            ),
            SortStage((SortKey("avgPrice"),)),
        ])

    async def monthly_plan(self, year: int) -> list[dict[str, Any]]:
        """Number of tour starts per month of `year`, busiest month first."""
        rows = await self.aggregate([
            UnwindStage("startDates"),
            MatchStage((
                Gte("startDates", datetime(year, 1, 1, tzinfo=timezone.utc)),
                Lt("startDates", datetime(year + 1, 1, 1, tzinfo=timezone.utc)),
            )),
            GroupStage(
                by="startDates",
                key=_month,
                accumulators={
                    "numTourStarts": Accumulator("count"),
                    "tours": Accumulator("push", "name"),
                },
            ),
            AddFieldsStage({"month": "id"}),
            SortStage((SortKey("numTourStarts", SortDirection.DESC),)),
            LimitStage(12),
        ])
        return [{k: v for k, v in row.items() if k != "id"} for row in rows]
