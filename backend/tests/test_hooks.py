"""Tests for the lifecycle hook pipeline."""

import logging

import pytest

from tourcatalog.errors import HookExecutionError, ObservabilityFault
from tourcatalog.hooks import (
    HookContext,
    HookDefinition,
    HookRegistry,
    HookResult,
    HookService,
    VALID_HOOK_POINTS,
    compute_changes,
    hook,
    register_builtin_hooks,
    slugify,
)
from tourcatalog.hooks.builtins import BUILTIN_HOOKS
from tourcatalog.metadata.loader import HookConfig, MetadataLoader, load_catalog_metadata
from tourcatalog.query.types import MatchStage, Ne, QueryDescriptor, UnwindStage
from tourcatalog.validation.types import Operation


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clear_hook_registry():
    """Clear hook registry before and after each test."""
    HookRegistry.clear()
    yield
    HookRegistry.clear()


@pytest.fixture
def hook_service():
    return HookService()


@pytest.fixture
def persist_context():
    return HookContext(
        entity_name="Tour",
        operation=Operation.CREATE,
        record={"name": "The Forest Hiker", "duration": 5},
    )


@pytest.fixture
def query_context():
    return HookContext(
        entity_name="Tour",
        operation=Operation.FIND,
        query=QueryDescriptor(),
    )


# =============================================================================
# compute_changes / slugify
# =============================================================================


class TestComputeChanges:
    def test_returns_none_for_create(self):
        assert compute_changes({"a": 1}, None) is None

    def test_detects_changed_and_new_fields(self):
        changes = compute_changes({"a": 1, "b": 99, "c": 3}, {"a": 1, "b": 2})
        assert changes == {"b": 99, "c": 3}

    def test_empty_when_no_changes(self):
        record = {"a": 1}
        assert compute_changes(record, record) == {}


class TestSlugify:
    @pytest.mark.parametrize(
        "name,slug",
        [
            ("The Forest Hiker", "the-forest-hiker"),
            ("  The Sea   Explorer  ", "the-sea-explorer"),
            ("The Snow-Adventurer!", "the-snow-adventurer"),
            ("Wine & Dine: Tuscany 2021", "wine-dine-tuscany-2021"),
        ],
    )
    def test_slugify(self, name, slug):
        assert slugify(name) == slug

    def test_custom_separator(self):
        assert slugify("The Park Camper", separator="_") == "the_park_camper"


# =============================================================================
# Registry
# =============================================================================


class TestHookRegistry:
    def test_register_and_get(self):
        async def my_hook(ctx):
            return None

        HookRegistry.register("myHook", my_hook)
        assert HookRegistry.get("myHook") is my_hook

    def test_conflicting_register_warns(self, caplog):
        async def hook_a(ctx):
            return None

        async def hook_b(ctx):
            return None

        HookRegistry.register("same", hook_a)
        with caplog.at_level(logging.WARNING, logger="tourcatalog.hooks.registry"):
            HookRegistry.register("same", hook_b)
        assert HookRegistry.get("same") is hook_a
        assert "'same' is already registered" in caplog.text
        assert "hook_b" in caplog.text

    def test_same_register_is_silent(self, caplog):
        async def hook_a(ctx):
            return None

        HookRegistry.register("same", hook_a)
        with caplog.at_level(logging.WARNING, logger="tourcatalog.hooks.registry"):
            HookRegistry.register("same", hook_a)
        assert HookRegistry.get("same") is hook_a
        assert caplog.records == []

    def test_get_unknown_raises(self):
        with pytest.raises(ValueError, match="not registered"):
            HookRegistry.get("missing")

    def test_list_and_clear(self):
        @hook("zeta")
        async def zeta(ctx):
            return None

        @hook("alpha")
        async def alpha(ctx):
            return None

        assert HookRegistry.list_registered() == ["alpha", "zeta"]
        HookRegistry.clear()
        assert not HookRegistry.is_registered("alpha")

    def test_decorator_preserves_function(self):
        @hook("preserved")
        async def preserved(ctx):
            return HookResult(update={"x": 1})

        assert preserved.__name__ == "preserved"

    def test_register_builtin_hooks(self):
        register_builtin_hooks()
        register_builtin_hooks()
        assert HookRegistry.list_registered() == sorted(BUILTIN_HOOKS)


# =============================================================================
# HookDefinition
# =============================================================================


class TestHookDefinition:
    def test_from_dict_defaults_to_every_operation(self):
        definition = HookDefinition.from_dict({"name": "deriveSlug"})
        assert definition.on is None
        assert definition.applies_to(Operation.UPDATE)
        assert definition.applies_to(Operation.FIND)

    def test_from_dict_string_on(self):
        definition = HookDefinition.from_dict({"name": "x", "on": "create"})
        assert definition.on == [Operation.CREATE]
        assert not definition.applies_to(Operation.UPDATE)

    def test_from_config(self):
        config = HookConfig(name="x", on=["find", "findOne"], description="d")
        definition = HookDefinition.from_config(config)
        assert definition.on == [Operation.FIND, Operation.FIND_ONE]
        assert definition.description == "d"


# =============================================================================
# HookService: pre- hooks
# =============================================================================


class TestPreHooks:
    @pytest.mark.asyncio
    async def test_empty_definitions_returns_none(self, hook_service, persist_context):
        assert await hook_service.run_hooks("prePersist", [], persist_context) is None

    @pytest.mark.asyncio
    async def test_sequential_execution_order(self, hook_service, persist_context):
        order = []

        @hook("first")
        async def first(ctx):
            order.append("first")

        @hook("second")
        async def second(ctx):
            order.append("second")

        definitions = [HookDefinition(name="second"), HookDefinition(name="first")]
        await hook_service.run_hooks("prePersist", definitions, persist_context)
        assert order == ["second", "first"]

    @pytest.mark.asyncio
    async def test_updates_compound_on_the_same_record(self, hook_service, persist_context):
        record = persist_context.record

        @hook("setSlug")
        async def set_slug(ctx):
            return HookResult(update={"slug": "x"})

        @hook("readSlug")
        async def read_slug(ctx):
            return HookResult(update={"seenSlug": ctx.record["slug"]})

        result = await hook_service.run_hooks(
            "prePersist",
            [HookDefinition(name="setSlug"), HookDefinition(name="readSlug")],
            persist_context,
        )
        assert result.update == {"slug": "x", "seenSlug": "x"}
        assert persist_context.record is record
        assert record["seenSlug"] == "x"

    @pytest.mark.asyncio
    async def test_operation_filtering(self, hook_service, persist_context):
        calls = []

        @hook("updateOnly")
        async def update_only(ctx):
            calls.append(ctx.operation)

        definition = HookDefinition(name="updateOnly", on=[Operation.UPDATE])
        await hook_service.run_hooks("prePersist", [definition], persist_context)
        assert calls == []

    @pytest.mark.asyncio
    async def test_abort_raises_and_stops(self, hook_service, persist_context):
        calls = []

        @hook("blocker")
        async def blocker(ctx):
            return HookResult(abort="not today")

        @hook("after")
        async def after(ctx):
            calls.append("after")

        with pytest.raises(HookExecutionError) as exc:
            await hook_service.run_hooks(
                "prePersist",
                [HookDefinition(name="blocker"), HookDefinition(name="after")],
                persist_context,
            )
        assert exc.value.hook_name == "blocker"
        assert exc.value.hook_point == "prePersist"
        assert exc.value.reason == "not today"
        assert calls == []

    @pytest.mark.asyncio
    async def test_exception_becomes_hook_execution_error(self, hook_service, query_context):
        @hook("broken")
        async def broken(ctx):
            raise RuntimeError("boom")

        with pytest.raises(HookExecutionError, match="boom"):
            await hook_service.run_hooks("preQuery", [HookDefinition(name="broken")], query_context)

    @pytest.mark.asyncio
    async def test_unregistered_pre_hook_aborts(self, hook_service, query_context):
        with pytest.raises(HookExecutionError, match="not registered"):
            await hook_service.run_hooks(
                "preQuery", [HookDefinition(name="missing")], query_context
            )


# =============================================================================
# HookService: post- hooks
# =============================================================================


class TestPostHooks:
    @pytest.mark.asyncio
    async def test_exception_is_recorded_not_raised(self, hook_service, persist_context, caplog):
        @hook("failing")
        async def failing(ctx):
            raise RuntimeError("log sink down")

        with caplog.at_level(logging.ERROR):
            result = await hook_service.run_hooks(
                "postPersist", [HookDefinition(name="failing")], persist_context
            )

        assert result is None
        assert len(persist_context.faults) == 1
        fault = persist_context.faults[0]
        assert isinstance(fault, ObservabilityFault)
        assert fault.hook_name == "failing"
        assert "log sink down" in caplog.text

    @pytest.mark.asyncio
    async def test_continues_after_failure(self, hook_service, persist_context):
        calls = []

        @hook("failing")
        async def failing(ctx):
            raise RuntimeError("boom")

        @hook("healthy")
        async def healthy(ctx):
            calls.append("healthy")

        await hook_service.run_hooks(
            "postQuery",
            [HookDefinition(name="failing"), HookDefinition(name="healthy")],
            persist_context,
        )
        assert calls == ["healthy"]
        assert len(persist_context.faults) == 1

    @pytest.mark.asyncio
    async def test_abort_in_post_hook_is_a_fault(self, hook_service, persist_context):
        @hook("refuses")
        async def refuses(ctx):
            return HookResult(abort="too late")

        await hook_service.run_hooks("postPersist", [HookDefinition(name="refuses")], persist_context)
        assert persist_context.faults[0].reason == "too late"

    @pytest.mark.asyncio
    async def test_unregistered_post_hook_is_a_fault(self, hook_service, persist_context):
        await hook_service.run_hooks("postQuery", [HookDefinition(name="missing")], persist_context)
        assert persist_context.faults[0].hook_name == "missing"


# =============================================================================
# Built-in hooks
# =============================================================================


class TestBuiltinHooks:
    @pytest.fixture(autouse=True)
    def builtins(self):
        register_builtin_hooks()

    @pytest.mark.asyncio
    async def test_derive_slug(self, hook_service, persist_context):
        await hook_service.run_hooks(
            "prePersist", [HookDefinition(name="deriveSlug")], persist_context
        )
        assert persist_context.record["slug"] == "the-forest-hiker"

    @pytest.mark.asyncio
    async def test_exclude_secret_tours_rewrites_query(self, hook_service, query_context):
        await hook_service.run_hooks(
            "preQuery", [HookDefinition(name="excludeSecretTours")], query_context
        )
        assert query_context.query.predicates == (Ne("secretTour", True),)

    @pytest.mark.asyncio
    async def test_query_timer(self, hook_service, query_context, caplog):
        await hook_service.run_hooks(
            "preQuery", [HookDefinition(name="startQueryTimer")], query_context
        )
        assert query_context.started_at is not None

        with caplog.at_level(logging.INFO):
            await hook_service.run_hooks(
                "postQuery", [HookDefinition(name="reportQueryDuration")], query_context
            )
        assert query_context.elapsed_ms >= 0
        assert "took" in caplog.text

    @pytest.mark.asyncio
    async def test_report_without_timer_is_a_fault(self, hook_service, query_context):
        await hook_service.run_hooks(
            "postQuery", [HookDefinition(name="reportQueryDuration")], query_context
        )
        assert query_context.elapsed_ms is None
        assert query_context.faults[0].hook_name == "reportQueryDuration"

    @pytest.mark.asyncio
    async def test_pipeline_exclusion_is_prepended(self, hook_service):
        ctx = HookContext(
            entity_name="Tour",
            operation=Operation.AGGREGATE,
            pipeline=[UnwindStage("startDates")],
        )
        await hook_service.run_hooks(
            "preAggregate", [HookDefinition(name="excludeSecretToursFromPipeline")], ctx
        )
        assert ctx.pipeline == [
            MatchStage((Ne("secretTour", True),)),
            UnwindStage("startDates"),
        ]

    @pytest.mark.asyncio
    async def test_log_persisted_document(self, hook_service, persist_context, caplog):
        with caplog.at_level(logging.INFO):
            await hook_service.run_hooks(
                "postPersist", [HookDefinition(name="logPersistedDocument")], persist_context
            )
        assert "The Forest Hiker" in caplog.text
        assert persist_context.faults == []


# =============================================================================
# Metadata hook parsing
# =============================================================================


class TestYamlHookParsing:
    def test_bundled_tour_hooks(self):
        tour = load_catalog_metadata().get_entity("Tour")
        names = {point: [h.name for h in hooks] for point, hooks in tour.hooks.items()}
        assert names == {
            "prePersist": ["deriveSlug"],
            "postPersist": ["logPersistedDocument"],
            "preQuery": ["excludeSecretTours", "startQueryTimer"],
            "postQuery": ["reportQueryDuration"],
            "preAggregate": ["excludeSecretToursFromPipeline"],
        }

    def test_definitions_for_entity(self, hook_service):
        tour = load_catalog_metadata().get_entity("Tour")
        definitions = hook_service.definitions_for(tour, "preQuery")
        assert [d.name for d in definitions] == ["excludeSecretTours", "startQueryTimer"]
        assert hook_service.definitions_for(tour, "postAggregate") == []

    def test_bare_on_key(self, tmp_path):
        entities = tmp_path / "entities"
        entities.mkdir()
        (entities / "thing.yaml").write_text(
            "entity: Thing\n"
            "fields:\n"
            "  - name: id\n"
            "    type: id\n"
            "    primaryKey: true\n"
            "hooks:\n"
            "  prePersist:\n"
            "    - name: stamp\n"
            "      on: [create]\n"
        )
        loader = MetadataLoader(tmp_path)
        loader.load_all()
        config = loader.get_entity("Thing").hooks["prePersist"][0]
        assert config.on == ["create"]

    def test_unknown_hook_point_rejected(self, tmp_path):
        entities = tmp_path / "entities"
        entities.mkdir()
        (entities / "thing.yaml").write_text(
            "entity: Thing\n"
            "fields:\n"
            "  - name: id\n"
            "    type: id\n"
            "hooks:\n"
            "  afterCommit:\n"
            "    - name: stamp\n"
        )
        with pytest.raises(ValueError, match="Unknown hook point"):
            MetadataLoader(tmp_path).load_all()

    def test_valid_hook_points(self):
        assert VALID_HOOK_POINTS == (
            "prePersist", "postPersist", "preQuery", "postQuery", "preAggregate",
        )
