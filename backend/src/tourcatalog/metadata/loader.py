"""Load and resolve entity metadata from YAML files."""

from pathlib import Path
from dataclasses import dataclass, field
from typing import Any
import yaml

BUNDLED_METADATA_PATH = Path(__file__).parent

# Internal revision counter carried by every stored document
VERSION_FIELD = "_version"

VALID_HOOK_POINTS = (
    "prePersist",
    "postPersist",
    "preQuery",
    "postQuery",
    "preAggregate",
)


@dataclass
class ValidationRules:
    required: bool = False
    min: float | None = None
    max: float | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    trim: bool = False
    unique: bool = False
    message: str | None = None


@dataclass
class FieldDefinition:
    name: str
    type: str
    display_name: str
    primary_key: bool = False
    read_only: bool = False
    default: Any = None
    auto: str | None = None  # "now"
    options: list[dict] | None = None
    items: str | None = None  # element type for array fields
    select: bool = True  # False hides the field from default projections
    validation: ValidationRules = field(default_factory=ValidationRules)


@dataclass
class VirtualField:
    """A read-time derived field, never persisted."""

    name: str
    derive: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class HookConfig:
    """Hook definition from YAML metadata."""

    name: str
    on: list[str] | None = None
    description: str = ""


@dataclass
class EntityModel:
    name: str
    display_name: str
    plural_name: str
    collection: str
    primary_key: str
    fields: list[FieldDefinition]
    virtuals: list[VirtualField] = field(default_factory=list)
    hooks: dict[str, list[HookConfig]] = field(default_factory=dict)
    label_field: str | None = None

    def get_field(self, name: str) -> FieldDefinition | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def unique_fields(self) -> list[str]:
        return [f.name for f in self.fields if f.validation.unique]

    @property
    def hidden_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields if not f.select)


class MetadataLoader:
    """Loads entity definitions from YAML files."""

    def __init__(self, metadata_path: Path):
        self.metadata_path = metadata_path
        self.entities: dict[str, EntityModel] = {}

    def load_all(self) -> None:
        """Load all entities."""
        self._load_entities()
        self._validate_collections()

    def _validate_collections(self) -> None:
        """Validate collection names are unique across entities."""
        seen: dict[str, str] = {}  # collection -> entity name

        for entity_name, entity in self.entities.items():
            if entity.collection in seen:
                raise ValueError(
                    f"Duplicate collection '{entity.collection}' used by both "
                    f"'{seen[entity.collection]}' and '{entity_name}'"
                )
            seen[entity.collection] = entity_name

    def _load_entities(self) -> None:
        """Load entity definitions."""
        entities_path = self.metadata_path / "entities"
        if not entities_path.exists():
            return

        for yaml_file in sorted(entities_path.glob("*.yaml")):
            with open(yaml_file) as f:
                data = yaml.safe_load(f)
                if data and "entity" in data:
                    entity = self._resolve_entity(data)
                    self.entities[entity.name] = entity

    def _resolve_entity(self, data: dict) -> EntityModel:
        """Resolve an entity definition."""
        name = data["entity"]

        fields = [self._resolve_field(f) for f in data.get("fields", [])]

        # Find primary key
        primary_key = "id"
        for f in fields:
            if f.primary_key:
                primary_key = f.name
                break

        for f in fields:
            if f.type == "enum" and not f.options:
                raise ValueError(f"Enum field '{name}.{f.name}' declares no options")
            if f.type == "array" and not f.items:
                raise ValueError(f"Array field '{name}.{f.name}' declares no item type")

        virtuals = [
            VirtualField(
                name=v["name"],
                derive=v["derive"],
                params=v.get("params", {}),
            )
            for v in data.get("virtuals", [])
        ]

        plural_name = data.get("pluralName", name + "s")

        return EntityModel(
            name=name,
            display_name=data.get("displayName", name),
            plural_name=plural_name,
            collection=data.get("collection", plural_name.lower()),
            primary_key=primary_key,
            fields=fields,
            virtuals=virtuals,
            hooks=self._resolve_hooks(data.get("hooks", {})),
            label_field=data.get("labelField"),
        )

    def _resolve_field(self, data: dict) -> FieldDefinition:
        """Convert field dict to FieldDefinition."""
        name = data["name"]
        field_type = data.get("type", "string")

        # Generate display name from field name
        display_name = data.get("displayName", self._to_display_name(name))

        # Parse validation
        validation_data = data.get("validation", {})
        validation = ValidationRules(
            required=validation_data.get("required", False),
            min=validation_data.get("min"),
            max=validation_data.get("max"),
            min_length=validation_data.get("minLength"),
            max_length=validation_data.get("maxLength"),
            pattern=validation_data.get("pattern"),
            trim=validation_data.get("trim", False),
            unique=validation_data.get("unique", False),
            message=validation_data.get("message"),
        )

        options = data.get("options")
        if options:
            # Allow bare strings as shorthand for {value, label}
            options = [
                o if isinstance(o, dict) else {"value": o, "label": str(o).title()}
                for o in options
            ]

        return FieldDefinition(
            name=name,
            type=field_type,
            display_name=display_name,
            primary_key=data.get("primaryKey", False),
            read_only=data.get("readOnly", False),
            default=data.get("default"),
            auto=data.get("auto"),
            options=options,
            items=data.get("items"),
            select=data.get("select", True),
            validation=validation,
        )

    def _get_on(self, data: dict) -> list[str] | None:
        """Extract the 'on' field from a YAML dict.

        PyYAML parses the bare key `on:` as boolean True, so we check
        both the string key "on" and the boolean key True.
        """
        on = data.get("on") or data.get(True)
        if isinstance(on, str):
            on = [on]
        return on

    def _resolve_hooks(self, data: dict) -> dict[str, list[HookConfig]]:
        """Convert hooks dict from YAML to HookConfig lists by hook point."""
        hooks: dict[str, list[HookConfig]] = {}
        for point, hook_list in data.items():
            if point not in VALID_HOOK_POINTS:
                raise ValueError(
                    f"Unknown hook point '{point}'. "
                    f"Expected one of: {', '.join(VALID_HOOK_POINTS)}"
                )
            if isinstance(hook_list, list):
                hooks[point] = [self._resolve_hook(h) for h in hook_list]
        return hooks

    def _resolve_hook(self, data: dict) -> HookConfig:
        """Convert hook dict to HookConfig."""
        return HookConfig(
            name=data["name"],
            on=self._get_on(data),
            description=data.get("description", ""),
        )

    def _to_display_name(self, name: str) -> str:
        """Convert camelCase to Title Case."""
        result = []
        for i, char in enumerate(name):
            if char.isupper() and i > 0:
                result.append(" ")
            result.append(char)
        return "".join(result).title()

    def get_entity(self, name: str) -> EntityModel | None:
        """Get a resolved entity by name."""
        return self.entities.get(name)

    def list_entities(self) -> list[str]:
        """List all entity names."""
        return list(self.entities.keys())


def load_catalog_metadata(metadata_path: Path | None = None) -> MetadataLoader:
    """Load the bundled catalog metadata (or an override directory)."""
    loader = MetadataLoader(metadata_path or BUNDLED_METADATA_PATH)
    loader.load_all()
    return loader
