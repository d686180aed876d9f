"""Persistence layer - collection stores and query evaluation."""

from tourcatalog.persistence.adapter import CollectionStore
from tourcatalog.persistence.config import DatabaseConfig, create_store

__all__ = ["CollectionStore", "DatabaseConfig", "create_store"]
