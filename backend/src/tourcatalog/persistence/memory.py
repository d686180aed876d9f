"""In-memory collection store."""

import copy
import logging
import uuid
from typing import Any

from tourcatalog.errors import UniquenessConflict
from tourcatalog.metadata.loader import VERSION_FIELD, EntityModel
from tourcatalog.persistence.matching import ID_FIELD, apply_query, matches, run_pipeline
from tourcatalog.query.types import Predicate, QueryDescriptor, Stage

logger = logging.getLogger(__name__)


class MemoryCollectionStore:
    """Dict-backed store. Every read and write copies documents."""

    def __init__(self):
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._unique: dict[str, list[str]] = {}

    async def initialize_collection(self, entity: EntityModel) -> None:
        self._collections.setdefault(entity.collection, {})
        self._unique[entity.collection] = entity.unique_fields

    def _documents(self, collection: str) -> dict[str, dict[str, Any]]:
        if collection not in self._collections:
            raise RuntimeError(f"Collection '{collection}' is not initialized")
        return self._collections[collection]

    def _check_unique(
        self, collection: str, document: dict[str, Any], exclude_id: str | None = None
    ) -> None:
        for field in self._unique.get(collection, []):
            value = document.get(field)
            if value is None:
                continue
            for other_id, other in self._documents(collection).items():
                if other_id != exclude_id and other.get(field) == value:
                    raise UniquenessConflict(field, value)

    async def find(self, collection: str, query: QueryDescriptor) -> list[dict[str, Any]]:
        return apply_query(self._documents(collection).values(), query)

    async def count(self, collection: str, predicates: tuple[Predicate, ...] = ()) -> int:
        return sum(1 for d in self._documents(collection).values() if matches(d, predicates))

    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        document = self._documents(collection).get(id)
        return copy.deepcopy(document) if document is not None else None

    async def create(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        documents = self._documents(collection)
        self._check_unique(collection, document)

        stored = copy.deepcopy(document)
        stored[ID_FIELD] = stored.get(ID_FIELD) or uuid.uuid4().hex
        if stored[ID_FIELD] in documents:
            raise UniquenessConflict(ID_FIELD, stored[ID_FIELD])
        stored[VERSION_FIELD] = 0
        documents[stored[ID_FIELD]] = stored
        logger.debug("Created %s/%s", collection, stored[ID_FIELD])
        return copy.deepcopy(stored)

    async def update(
        self, collection: str, id: str, document: dict[str, Any]
    ) -> dict[str, Any] | None:
        documents = self._documents(collection)
        existing = documents.get(id)
        if existing is None:
            return None
        self._check_unique(collection, document, exclude_id=id)

        stored = copy.deepcopy(document)
        stored[ID_FIELD] = id
        stored[VERSION_FIELD] = existing.get(VERSION_FIELD, 0) + 1
        documents[id] = stored
        return copy.deepcopy(stored)

    async def delete(self, collection: str, id: str) -> bool:
        return self._documents(collection).pop(id, None) is not None

    async def aggregate(self, collection: str, stages: list[Stage]) -> list[dict[str, Any]]:
        return run_pipeline(self._documents(collection).values(), stages)

    async def clear(self, collection: str) -> int:
        documents = self._documents(collection)
        removed = len(documents)
        documents.clear()
        return removed

    async def close(self) -> None:
        return None
