"""Initialize catalog services for a process (CLI or embedding application)."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from tourcatalog.config import CatalogSettings
from tourcatalog.hooks import HookService, register_builtin_hooks
from tourcatalog.metadata.loader import MetadataLoader, load_catalog_metadata
from tourcatalog.persistence import CollectionStore, create_store
from tourcatalog.repository import EntityRepository, TourRepository
from tourcatalog.validation import register_builtin_derivations

logger = logging.getLogger(__name__)

# Entities with a specialised repository
REPOSITORY_CLASSES: dict[str, type[EntityRepository]] = {
    "Tour": TourRepository,
}


@dataclass
class CatalogServices:
    """Container for all initialized catalog services."""

    settings: CatalogSettings
    metadata_loader: MetadataLoader
    store: CollectionStore
    repositories: dict[str, EntityRepository] = field(default_factory=dict)

    def repository(self, entity_name: str) -> EntityRepository:
        if entity_name not in self.repositories:
            raise KeyError(f"Unknown entity '{entity_name}'")
        return self.repositories[entity_name]

    @property
    def tours(self) -> TourRepository:
        return self.repository("Tour")

    async def close(self) -> None:
        await self.store.close()


async def initialize_services(
    settings: CatalogSettings | None = None,
    store: CollectionStore | None = None,
) -> CatalogServices:
    """Register built-ins, load metadata, connect the store and build repositories."""
    settings = settings or CatalogSettings.from_env()

    register_builtin_hooks()
    register_builtin_derivations()

    metadata_loader = load_catalog_metadata(settings.metadata_path)

    if store is None:
        url = settings.database.url
        if url.startswith("sqlite:///") and url != "sqlite:///:memory:":
            Path(url.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)
        store = create_store(settings.database)

    hook_service = HookService()
    services = CatalogServices(
        settings=settings,
        metadata_loader=metadata_loader,
        store=store,
    )
    for name in metadata_loader.list_entities():
        entity = metadata_loader.get_entity(name)
        repo_class = REPOSITORY_CLASSES.get(name, EntityRepository)
        repository = repo_class(
            entity,
            store,
            hook_service,
            default_limit=settings.default_limit,
            max_limit=settings.max_limit,
        )
        await repository.initialize()
        services.repositories[name] = repository

    logger.debug("Initialized %d repositories", len(services.repositories))
    return services
