"""Database configuration and store factory."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tourcatalog.persistence.adapter import CollectionStore

MEMORY_URL = "memory://"


@dataclass
class DatabaseConfig:
    """Database connection configuration.

    Supports memory:// and any SQLAlchemy URL (sqlite:///...).
    """

    url: str = MEMORY_URL

    @classmethod
    def from_env(cls) -> DatabaseConfig:
        """Create config from environment variables.

        Resolution order:
        1. TOURCATALOG_DATABASE_URL env var
        2. DATABASE_URL env var (standard)
        3. Default: memory://
        """
        url = os.environ.get("TOURCATALOG_DATABASE_URL") or os.environ.get("DATABASE_URL")
        return cls(url=url or MEMORY_URL)

    @property
    def is_memory(self) -> bool:
        return self.url == MEMORY_URL


def create_store(config: DatabaseConfig) -> CollectionStore:
    """Create a collection store based on the database URL scheme.

    Raises:
        ValueError: For URLs that are neither memory:// nor a SQLAlchemy URL.
    """
    if config.is_memory:
        from tourcatalog.persistence.memory import MemoryCollectionStore

        return MemoryCollectionStore()

    if "://" in config.url:
        from tourcatalog.persistence.sql import SQLCollectionStore

        return SQLCollectionStore(config.url)

    raise ValueError(f"Unsupported database URL scheme: {config.url}")
