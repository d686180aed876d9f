"""CollectionStore Protocol: shared interface for all document stores."""

from typing import Any, Protocol, runtime_checkable

from tourcatalog.metadata.loader import EntityModel
from tourcatalog.query.types import Predicate, QueryDescriptor, Stage


@runtime_checkable
class CollectionStore(Protocol):
    """Interface all collection stores must implement.

    Documents are plain dicts keyed by `id`. Stores assign `id` and the
    revision counter on create, enforce unique fields, and raise
    UniquenessConflict on collisions and QueryParseError for queries
    they cannot evaluate.
    """

    async def initialize_collection(self, entity: EntityModel) -> None: ...

    async def find(
        self, collection: str, query: QueryDescriptor
    ) -> list[dict[str, Any]]: ...

    async def count(
        self, collection: str, predicates: tuple[Predicate, ...] = ()
    ) -> int: ...

    async def get(self, collection: str, id: str) -> dict[str, Any] | None: ...

    async def create(
        self, collection: str, document: dict[str, Any]
    ) -> dict[str, Any]: ...

    async def update(
        self, collection: str, id: str, document: dict[str, Any]
    ) -> dict[str, Any] | None: ...

    async def delete(self, collection: str, id: str) -> bool: ...

    async def aggregate(
        self, collection: str, stages: list[Stage]
    ) -> list[dict[str, Any]]: ...

    async def clear(self, collection: str) -> int: ...

    async def close(self) -> None: ...
