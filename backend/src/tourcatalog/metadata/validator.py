"""
metadata/validator.py: JSON Schema validation for entity YAML metadata files.

Usage:
    from tourcatalog.metadata.validator import validate_metadata_dir

    issues = validate_metadata_dir(Path("metadata"))
    for issue in issues:
        print(issue)

PyYAML quirk: the bare key ``on:`` is parsed as boolean ``True``, not the string
``"on"``.  We preprocess loaded dicts to rename that key before schema validation.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

logger = logging.getLogger(__name__)

_SCHEMAS_DIR = Path(__file__).parent / "schemas"
ENTITY_SCHEMA = "entity.schema.json"


@dataclass
class ValidationIssue:
    """A single validation finding for a metadata YAML file."""

    file: Path
    message: str
    path: str = ""          # location within the document, e.g. "fields[3]/validation"
    severity: str = "error" # "error" | "warning"

    def __str__(self) -> str:
        loc = f" at {self.path}" if self.path else ""
        return f"[{self.severity.upper()}] {self.file}{loc}: {self.message}"


def _load_schema(name: str = ENTITY_SCHEMA) -> dict[str, Any]:
    with (_SCHEMAS_DIR / name).open() as fh:
        return json.load(fh)


def _preprocess_on_key(obj: Any) -> Any:
    """Recursively rename the boolean key ``True`` to ``"on"``."""
    if isinstance(obj, dict):
        return {
            ("on" if k is True else k): _preprocess_on_key(v) for k, v in obj.items()
        }
    if isinstance(obj, list):
        return [_preprocess_on_key(item) for item in obj]
    return obj


def _json_path(error: ValidationError) -> str:
    parts = []
    for p in error.absolute_path:
        parts.append(f"[{p}]" if isinstance(p, int) else str(p))
    return "/".join(parts).replace("/[", "[")


def validate_yaml_file(
    yaml_path: Path,
    *,
    validator: Draft202012Validator | None = None,
) -> list[ValidationIssue]:
    """Validate one entity YAML file. Empty list means valid."""
    try:
        with yaml_path.open() as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        return [ValidationIssue(file=yaml_path, message=f"YAML parse error: {exc}")]

    if raw is None:
        return [
            ValidationIssue(file=yaml_path, message="File is empty or contains only whitespace")
        ]

    if validator is None:
        validator = Draft202012Validator(_load_schema())

    doc = _preprocess_on_key(raw)
    return [
        ValidationIssue(file=yaml_path, message=error.message, path=_json_path(error))
        for error in sorted(validator.iter_errors(doc), key=_json_path)
    ]


def validate_metadata_dir(metadata_dir: Path) -> list[ValidationIssue]:
    """Validate every ``entities/*.yaml`` file under *metadata_dir*."""
    entities_dir = metadata_dir / "entities"
    if not entities_dir.is_dir():
        return [
            ValidationIssue(
                file=metadata_dir,
                message=f"Entities directory does not exist: {entities_dir}",
            )
        ]

    validator = Draft202012Validator(_load_schema())
    issues: list[ValidationIssue] = []
    for yaml_file in sorted(entities_dir.glob("*.yaml")):
        file_issues = validate_yaml_file(yaml_file, validator=validator)
        if file_issues:
            logger.debug("%s: %d issue(s)", yaml_file.name, len(file_issues))
        issues.extend(file_issues)
    return issues
