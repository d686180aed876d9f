"""Tests for resolving entity metadata from YAML."""

import pytest
import yaml

from tourcatalog.metadata.loader import MetadataLoader, load_catalog_metadata


@pytest.fixture(scope="module")
def tour():
    return load_catalog_metadata().get_entity("Tour")


def write_entity(tmp_path, filename: str, data: dict):
    entities = tmp_path / "entities"
    entities.mkdir(exist_ok=True)
    (entities / filename).write_text(yaml.dump(data))


class TestBundledTour:
    def test_basics(self, tour):
        assert tour.collection == "tours"
        assert tour.primary_key == "id"
        assert tour.label_field == "name"

    def test_constraints(self, tour):
        name = tour.get_field("name")
        assert name.validation.required
        assert name.validation.unique
        assert name.validation.trim
        assert (name.validation.min_length, name.validation.max_length) == (10, 40)
        rating = tour.get_field("ratingsAverage")
        assert (rating.validation.min, rating.validation.max, rating.default) == (1, 5, 4.5)

    def test_enum_options_normalized(self, tour):
        options = tour.get_field("difficulty").options
        assert options[0] == {"value": "easy", "label": "Easy"}
        assert [o["value"] for o in options] == ["easy", "medium", "difficult"]

    def test_unique_and_hidden_fields(self, tour):
        assert tour.unique_fields == ["name"]
        assert tour.hidden_fields == ("createdAt",)

    def test_display_name_generated(self, tour):
        assert tour.get_field("imageCover").display_name == "Image Cover"
        assert tour.get_field("priceDiscount").display_name == "Price Discount"

    def test_virtuals(self, tour):
        assert [(v.name, v.derive, v.params) for v in tour.virtuals] == [
            ("durationWeeks", "weeksFromDays", {"field": "duration"}),
        ]

    def test_hooks_in_declared_order(self, tour):
        assert [h.name for h in tour.hooks["preQuery"]] == ["excludeSecretTours", "startQueryTimer"]
        assert set(tour.hooks) == {
            "prePersist", "postPersist", "preQuery", "postQuery", "preAggregate",
        }


class TestLoaderErrors:
    def test_unknown_hook_point(self, tmp_path):
        write_entity(tmp_path, "guide.yaml", {
            "entity": "Guide",
            "fields": [{"name": "name"}],
            "hooks": {"afterSave": [{"name": "notify"}]},
        })
        with pytest.raises(ValueError, match="Unknown hook point 'afterSave'"):
            MetadataLoader(tmp_path).load_all()

    def test_duplicate_collection(self, tmp_path):
        write_entity(tmp_path, "a.yaml", {"entity": "Guide", "collection": "people", "fields": [{"name": "x"}]})
        write_entity(tmp_path, "b.yaml", {"entity": "Staff", "collection": "people", "fields": [{"name": "x"}]})
        with pytest.raises(ValueError, match="Duplicate collection 'people'"):
            MetadataLoader(tmp_path).load_all()

    def test_array_without_items(self, tmp_path):
        write_entity(tmp_path, "guide.yaml", {
            "entity": "Guide",
            "fields": [{"name": "tags", "type": "array"}],
        })
        with pytest.raises(ValueError, match="declares no item type"):
            MetadataLoader(tmp_path).load_all()

    def test_hook_on_string(self, tmp_path):
        write_entity(tmp_path, "guide.yaml", {
            "entity": "Guide",
            "fields": [{"name": "name"}],
            "hooks": {"prePersist": [{"name": "deriveSlug", "on": "create"}]},
        })
        loader = MetadataLoader(tmp_path)
        loader.load_all()
        guide = loader.get_entity("Guide")
        assert guide.hooks["prePersist"][0].on == ["create"]
        assert guide.collection == "guides"

    def test_missing_directory_loads_nothing(self, tmp_path):
        loader = MetadataLoader(tmp_path)
        loader.load_all()
        assert loader.list_entities() == []
