"""SQL collection store.

One table per collection. Documents are stored as JSON text alongside a
UNIQUE column per unique field, so the database enforces uniqueness, and
an autoincrement `seq` column that fixes insertion order.
Queries and pipelines are evaluated in-process by persistence.matching.

The store accepts a SQLAlchemy database URL string and creates its own
engine internally. Blocking calls run in a worker thread.
"""

import asyncio
import json
import logging
import re
import threading
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from tourcatalog.errors import UniquenessConflict
from tourcatalog.metadata.loader import VERSION_FIELD, EntityModel
from tourcatalog.persistence.matching import ID_FIELD, apply_query, matches, run_pipeline
from tourcatalog.query.types import Predicate, QueryDescriptor, Stage

logger = logging.getLogger(__name__)

IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
DATE_KEY = "$date"


def _identifier(name: str) -> str:
    if not IDENTIFIER.match(name):
        raise ValueError(f"Invalid collection or field name: {name!r}")
    return name


def _unique_column(field: str) -> str:
    return f"uq_{_identifier(field)}"


def _encode_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return {DATE_KEY: value.isoformat()}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _decode_hook(obj: dict[str, Any]) -> Any:
    if len(obj) == 1 and DATE_KEY in obj:
        return datetime.fromisoformat(obj[DATE_KEY])
    return obj


def encode_document(document: dict[str, Any]) -> str:
    return json.dumps(document, default=_encode_default)


def decode_document(raw: str) -> dict[str, Any]:
    return json.loads(raw, object_hook=_decode_hook)


def _is_memory_url(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


class SQLCollectionStore:
    """Collection store backed by SQLAlchemy Core."""

    def __init__(self, database_url: str):
        """Initialize the store.

        Args:
            database_url: SQLAlchemy-compatible database URL.
                          Examples:
                            "sqlite:///data/tours.db"
                            "sqlite://"  (in-memory)
        """
        self.database_url = database_url
        if _is_memory_url(database_url):
            # A single shared connection keeps the in-memory database alive
            self._engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self._engine = create_engine(database_url)
        self._metadata = MetaData()
        self._unique: dict[str, list[str]] = {}
        self._lock = threading.Lock()

    async def _run(self, fn, *args):
        def locked():
            with self._lock:
                return fn(*args)

        return await asyncio.to_thread(locked)

    # ------------------------------------------------------------------
    # Blocking helpers
    # ------------------------------------------------------------------

    def build_table(self, collection: str, unique_fields: list[str]) -> Table:
        """Table definition for a collection, for any SQLAlchemy dialect."""
        return Table(
            _identifier(collection),
            self._metadata,
            Column("seq", Integer, primary_key=True, autoincrement=True),
            Column("id", String(64), nullable=False, unique=True),
            Column("document", Text, nullable=False),
            *(Column(_unique_column(f), Text, unique=True) for f in unique_fields),
            extend_existing=True,
        )

    def _ensure_table(self, collection: str, unique_fields: list[str]) -> None:
        table = self.build_table(collection, unique_fields)
        with self._engine.begin() as conn:
            table.create(conn, checkfirst=True)
        self._unique[collection] = list(unique_fields)

    def _table(self, collection: str) -> str:
        if collection not in self._unique:
            raise RuntimeError(f"Collection '{collection}' is not initialized")
        return _identifier(collection)

    def _unique_params(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        params = {}
        for field in self._unique[collection]:
            value = document.get(field)
            params[_unique_column(field)] = (
                None if value is None else json.dumps(value, default=_encode_default)
            )
        return params

    def _conflict_from(self, collection: str, document: dict[str, Any], error: IntegrityError) -> UniquenessConflict:
        message = str(error.orig)
        for field in self._unique[collection]:
            if _unique_column(field) in message:
                return UniquenessConflict(field, document.get(field))
        return UniquenessConflict(ID_FIELD, document.get(ID_FIELD))

    def _load_all(self, collection: str) -> list[dict[str, Any]]:
        table = self._table(collection)
        with self._engine.connect() as conn:
            rows = conn.execute(text(f"SELECT document FROM {table} ORDER BY seq"))
            return [decode_document(raw) for raw in rows.scalars()]

    def _get(self, collection: str, id: str) -> dict[str, Any] | None:
        table = self._table(collection)
        with self._engine.connect() as conn:
            raw = conn.execute(
                text(f"SELECT document FROM {table} WHERE id = :id"), {"id": id}
            ).scalar()
        return decode_document(raw) if raw is not None else None

    def _insert(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        table = self._table(collection)
        stored = dict(document)
        stored[ID_FIELD] = stored.get(ID_FIELD) or uuid.uuid4().hex
        stored[VERSION_FIELD] = 0

        unique = self._unique_params(collection, stored)
        columns = ", ".join(["id", "document", *unique])
        values = ", ".join([":id", ":document", *(f":{c}" for c in unique)])
        try:
            with self._engine.connect() as conn:
                conn.execute(
                    text(f"INSERT INTO {table} ({columns}) VALUES ({values})"),
                    {"id": stored[ID_FIELD], "document": encode_document(stored), **unique},
                )
                conn.commit()
        except IntegrityError as e:
            raise self._conflict_from(collection, stored, e) from e
        logger.debug("Created %s/%s", collection, stored[ID_FIELD])
        return stored

    def _replace(self, collection: str, id: str, document: dict[str, Any]) -> dict[str, Any] | None:
        existing = self._get(collection, id)
        if existing is None:
            return None

        table = self._table(collection)
        stored = dict(document)
        stored[ID_FIELD] = id
        stored[VERSION_FIELD] = existing.get(VERSION_FIELD, 0) + 1

        unique = self._unique_params(collection, stored)
        assignments = ", ".join(["document = :document", *(f"{c} = :{c}" for c in unique)])
        try:
            with self._engine.connect() as conn:
                conn.execute(
                    text(f"UPDATE {table} SET {assignments} WHERE id = :id"),
                    {"id": id, "document": encode_document(stored), **unique},
                )
                conn.commit()
        except IntegrityError as e:
            raise self._conflict_from(collection, stored, e) from e
        return stored

    def _delete(self, collection: str, id: str) -> bool:
        table = self._table(collection)
        with self._engine.connect() as conn:
            result = conn.execute(text(f"DELETE FROM {table} WHERE id = :id"), {"id": id})
            deleted = result.rowcount
            conn.commit()
        return deleted > 0

    def _clear(self, collection: str) -> int:
        table = self._table(collection)
        with self._engine.connect() as conn:
            result = conn.execute(text(f"DELETE FROM {table}"))
            deleted = result.rowcount
            conn.commit()
        return deleted

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def initialize_collection(self, entity: EntityModel) -> None:
        await self._run(self._ensure_table, entity.collection, entity.unique_fields)

    async def find(self, collection: str, query: QueryDescriptor) -> list[dict[str, Any]]:
        documents = await self._run(self._load_all, collection)
        return apply_query(documents, query)

    async def count(self, collection: str, predicates: tuple[Predicate, ...] = ()) -> int:
        documents = await self._run(self._load_all, collection)
        return sum(1 for d in documents if matches(d, predicates))

    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        return await self._run(self._get, collection, id)

    async def create(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        return await self._run(self._insert, collection, document)

    async def update(
        self, collection: str, id: str, document: dict[str, Any]
    ) -> dict[str, Any] | None:
        return await self._run(self._replace, collection, id, document)

    async def delete(self, collection: str, id: str) -> bool:
        return await self._run(self._delete, collection, id)

    async def aggregate(self, collection: str, stages: list[Stage]) -> list[dict[str, Any]]:
        documents = await self._run(self._load_all, collection)
        return run_pipeline(documents, stages)

    async def clear(self, collection: str) -> int:
        return await self._run(self._clear, collection)

    async def close(self) -> None:
        self._engine.dispose()
