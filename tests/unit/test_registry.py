"""Unit tests for the action registry."""

import pytest

from metamorph.errors import UnresolvedActionError
from metamorph.registry import ActionRegistry


def double(args):
    return args[-1] * 2


def negate(args):
    return -args[-1]


@pytest.mark.unit
class TestActionRegistry:
    def test_register_and_resolve(self):
        registry = ActionRegistry()
        registry.register("double", double)

        assert registry.resolve("double") is double
        assert "double" in registry
        assert len(registry) == 1

    def test_register_overwrites(self):
        registry = ActionRegistry()
        registry.register("f", double)
        registry.register("f", negate)
        assert registry.resolve("f") is negate

    def test_resolve_unknown_is_none(self):
        assert ActionRegistry().resolve("nope") is None

    def test_remove(self):
        registry = ActionRegistry()
        registry.register("f", double)

        assert registry.remove("f") is True
        assert registry.resolve("f") is None
        assert registry.remove("f") is False

    def test_register_rejects_non_callables(self):
        with pytest.raises(TypeError):
            ActionRegistry().register("f", 42)

    def test_resolve_chain_in_order(self):
        registry = ActionRegistry()
        registry.register("double", double)
        registry.register("negate", negate)
        assert registry.resolve_chain(["negate", "double"]) == (negate, double)

    def test_resolve_chain_names_first_missing_action(self):
        registry = ActionRegistry()
        registry.register("double", double)

        with pytest.raises(UnresolvedActionError) as exc_info:
            registry.resolve_chain(["double", "missing", "other"])
        assert exc_info.value.name == "missing"

    def test_chain_cache_hits_and_invalidation(self):
        registry = ActionRegistry()
        registry.register("f", double)

        registry.resolve_chain(["f"])
        registry.resolve_chain(["f"])
        assert registry.get_stats()["cache_hits"] == 1

        # Replacing the action must not serve the stale resolution
        registry.register("f", negate)
        assert registry.resolve_chain(["f"]) == (negate,)

        registry.remove("f")
        with pytest.raises(UnresolvedActionError):
            registry.resolve_chain(["f"])

    def test_names_lists_registered_actions(self):
        registry = ActionRegistry()
        registry.register("a", double)
        registry.register("b", negate)
        assert registry.names() == ["a", "b"]
