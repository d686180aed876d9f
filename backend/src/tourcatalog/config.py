"""Runtime settings for the tour catalog."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from tourcatalog.persistence.config import DatabaseConfig
from tourcatalog.query.features import DEFAULT_LIMIT


def _int_env(name: str, default: int | None) -> int | None:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


@dataclass
class CatalogSettings:
    """Catalog configuration.

    Attributes:
        database: Store connection settings
        log_level: Root logging level name
        default_limit: Page size when a request gives no valid `limit`
        max_limit: Upper bound on `limit`; None leaves it unbounded
        metadata_path: Directory holding entities/*.yaml; None for bundled metadata
    """

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    log_level: str = "INFO"
    default_limit: int = DEFAULT_LIMIT
    max_limit: int | None = None
    metadata_path: Path | None = None

    @classmethod
    def from_env(cls) -> CatalogSettings:
        """Create settings from TOURCATALOG_* environment variables."""
        metadata_path = os.environ.get("TOURCATALOG_METADATA_PATH")
        return cls(
            database=DatabaseConfig.from_env(),
            log_level=os.environ.get("TOURCATALOG_LOG_LEVEL", "INFO").upper(),
            default_limit=_int_env("TOURCATALOG_DEFAULT_LIMIT", DEFAULT_LIMIT),
            max_limit=_int_env("TOURCATALOG_MAX_LIMIT", None),
            metadata_path=Path(metadata_path) if metadata_path else None,
        )
