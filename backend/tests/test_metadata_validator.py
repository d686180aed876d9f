"""
Tests for tourcatalog.metadata.validator

Covers:
  - _preprocess_on_key()           : PyYAML boolean True → "on" rename
  - validate_yaml_file()           : single-file validation (valid + invalid)
  - validate_metadata_dir()        : directory walk (bundled metadata passes)
"""
from __future__ import annotations

from pathlib import Path

import yaml

from tourcatalog.metadata.loader import BUNDLED_METADATA_PATH
from tourcatalog.metadata.validator import (
    ValidationIssue,
    _preprocess_on_key,
    validate_metadata_dir,
    validate_yaml_file,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _write_yaml(path: Path, data: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(data))
    return path


def _write_raw(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def _minimal_entity(**extra) -> dict:
    data = {
        "entity": "Guide",
        "fields": [
            {"name": "id", "type": "id", "primaryKey": True},
            {"name": "name", "type": "string", "validation": {"required": True}},
        ],
    }
    data.update(extra)
    return data


# ---------------------------------------------------------------------------
# _preprocess_on_key
# ---------------------------------------------------------------------------


class TestPreprocessOnKey:
    def test_renames_bool_true_to_on(self):
        assert _preprocess_on_key({True: ["create", "update"]}) == {"on": ["create", "update"]}

    def test_nested_lists(self):
        raw = {"hooks": {"prePersist": [{"name": "deriveSlug", True: "create"}]}}
        assert _preprocess_on_key(raw) == {
            "hooks": {"prePersist": [{"name": "deriveSlug", "on": "create"}]}
        }

    def test_scalars_untouched(self):
        assert _preprocess_on_key("easy") == "easy"


# ---------------------------------------------------------------------------
# validate_yaml_file
# ---------------------------------------------------------------------------


class TestValidateYamlFile:
    def test_minimal_entity_is_valid(self, tmp_path):
        path = _write_yaml(tmp_path / "guide.yaml", _minimal_entity())
        assert validate_yaml_file(path) == []

    def test_bare_on_key_accepted(self, tmp_path):
        path = _write_raw(
            tmp_path / "guide.yaml",
            "entity: Guide\n"
            "fields:\n"
            "  - name: name\n"
            "hooks:\n"
            "  prePersist:\n"
            "    - name: deriveSlug\n"
            "      on: [create]\n",
        )
        assert validate_yaml_file(path) == []

    def test_unknown_hook_point(self, tmp_path):
        path = _write_yaml(
            tmp_path / "guide.yaml",
            _minimal_entity(hooks={"afterSave": [{"name": "notify"}]}),
        )
        issues = validate_yaml_file(path)
        assert len(issues) == 1
        assert issues[0].path == "hooks"
        assert "afterSave" in issues[0].message

    def test_unknown_field_type(self, tmp_path):
        data = _minimal_entity()
        data["fields"].append({"name": "price", "type": "money"})
        issues = validate_yaml_file(_write_yaml(tmp_path / "guide.yaml", data))
        assert issues[0].path == "fields[2]/type"

    def test_unknown_validation_rule(self, tmp_path):
        data = _minimal_entity()
        data["fields"][1]["validation"]["lowercase"] = True
        issues = validate_yaml_file(_write_yaml(tmp_path / "guide.yaml", data))
        assert issues[0].path == "fields[1]/validation"

    def test_missing_fields(self, tmp_path):
        issues = validate_yaml_file(_write_yaml(tmp_path / "guide.yaml", {"entity": "Guide"}))
        assert any("'fields' is a required property" in i.message for i in issues)

    def test_empty_file(self, tmp_path):
        issues = validate_yaml_file(_write_raw(tmp_path / "empty.yaml", "\n"))
        assert "empty" in issues[0].message

    def test_yaml_parse_error(self, tmp_path):
        issues = validate_yaml_file(_write_raw(tmp_path / "broken.yaml", "entity: [unclosed\n"))
        assert issues[0].message.startswith("YAML parse error")

    def test_issue_str(self, tmp_path):
        issue = ValidationIssue(file=tmp_path / "x.yaml", message="bad", path="fields[0]")
        assert str(issue) == f"[ERROR] {tmp_path / 'x.yaml'} at fields[0]: bad"


# ---------------------------------------------------------------------------
# validate_metadata_dir
# ---------------------------------------------------------------------------


class TestValidateMetadataDir:
    def test_bundled_metadata_is_valid(self):
        assert validate_metadata_dir(BUNDLED_METADATA_PATH) == []

    def test_missing_entities_dir(self, tmp_path):
        issues = validate_metadata_dir(tmp_path)
        assert len(issues) == 1
        assert "does not exist" in issues[0].message

    def test_collects_issues_across_files(self, tmp_path):
        _write_yaml(tmp_path / "entities" / "a.yaml", {"entity": "lowercase", "fields": [{"name": "x"}]})
        _write_yaml(tmp_path / "entities" / "b.yaml", _minimal_entity())
        _write_yaml(tmp_path / "entities" / "c.yaml", {"entity": "C", "fields": []})
        issues = validate_metadata_dir(tmp_path)
        assert sorted(i.file.name for i in issues) == ["a.yaml", "c.yaml"]
