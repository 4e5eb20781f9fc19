import pytest

from kubecharter.core.errors import InputRejectedError, RegistrySealedError
from kubecharter.core.models import GroupVersionKind
from kubecharter.core.processor import BaseProcessor
from kubecharter.core.registry import ProcessorRegistry
from kubecharter.processors.bundled import register_all

DEPLOYMENT = {
    "apiVersion": "apps/v1",
    "kind": "Deployment",
    "metadata": {"name": "web", "namespace": "default"},
}


class TaggingProcessor(BaseProcessor):
    """Returns a result stamped with its own name."""

    def __init__(self, name, priority, gvks=(("apps", "v1", "Deployment"),)):
        super().__init__(name, priority, gvks)
        self.calls = 0

    def process(self, ctx, obj):
        self.calls += 1
        return self.build_result(obj, {"enabled": True})


class NoneProcessor(TaggingProcessor):
    def process(self, ctx, obj):
        return None


def test_higher_priority_wins():
    registry = ProcessorRegistry()
    low = TaggingProcessor("low", 50)
    high = TaggingProcessor("high", 80)
    registry.register(low)
    registry.register(high)

    assert registry.resolve(DEPLOYMENT) is high


def test_equal_priority_resolves_to_first_registered(ctx):
    registry = ProcessorRegistry()
    first = TaggingProcessor("first", 100)
    registry.register(first)
    registry.register(TaggingProcessor("second", 100))

    result = registry.dispatch(DEPLOYMENT, ctx)
    assert result.processor == "first"
    assert first.calls == 1


def test_candidates_are_in_resolution_order():
    registry = ProcessorRegistry()
    a, b, c = TaggingProcessor("a", 10), TaggingProcessor("b", 90), TaggingProcessor("c", 10)
    for unit in (a, b, c):
        registry.register(unit)

    assert registry.candidates(GroupVersionKind("apps", "v1", "Deployment")) == [b, a, c]
    assert registry.units() == [a, b, c]


def test_unsupported_kind_is_not_processed_and_repeatable(ctx):
    registry = register_all(ProcessorRegistry())
    widget = {"apiVersion": "example.com/v1", "kind": "Widget", "metadata": {"name": "w"}}

    first = registry.dispatch(widget, ctx)
    second = registry.dispatch(widget, ctx)

    assert first.processed is False
    assert first.error is None
    assert first == second
    assert len(ctx.file_store) == 0


def test_version_is_part_of_the_match(ctx):
    registry = ProcessorRegistry()
    registry.register(TaggingProcessor("v1-only", 100))
    beta = dict(DEPLOYMENT, apiVersion="apps/v1beta1")

    assert registry.dispatch(beta, ctx).processed is False


@pytest.mark.parametrize("bad", [None, {}, "not-a-mapping"])
def test_empty_input_is_rejected(ctx, bad):
    registry = register_all(ProcessorRegistry())
    with pytest.raises(InputRejectedError):
        registry.dispatch(bad, ctx)


def test_registration_after_dispatch_is_refused(ctx):
    registry = ProcessorRegistry()
    registry.register(TaggingProcessor("a", 100))
    registry.dispatch(DEPLOYMENT, ctx)

    assert registry.sealed
    with pytest.raises(RegistrySealedError):
        registry.register(TaggingProcessor("late", 200))


def test_unit_returning_none_counts_as_unprocessed(ctx):
    registry = ProcessorRegistry()
    registry.register(NoneProcessor("none", 100))

    assert registry.dispatch(DEPLOYMENT, ctx).processed is False


def test_unit_without_kinds_is_refused():
    with pytest.raises(ValueError):
        ProcessorRegistry().register(TaggingProcessor("empty", 100, gvks=()))


def test_bundled_units_cover_core_kinds():
    registry = register_all(ProcessorRegistry())
    kinds = {gvk.kind for gvk in registry.supported_gvks()}

    assert {"ConfigMap", "Secret", "Deployment", "StatefulSet", "Service",
            "RoleBinding", "HorizontalPodAutoscaler", "ScaledObject"} <= kinds
    assert len(registry) == 10
