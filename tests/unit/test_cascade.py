"""Unit tests for the cascade engine."""

import logging

import pytest

from metamorph import (
    ABSENT,
    SIDE_EFFECT,
    ActionError,
    ChangeType,
    Outcome,
    PathSet,
    Store,
    current_firing,
    is_noop,
)
from metamorph.cascade import eligible_keys, observe, observe_and_reset, observes


def inc(value):
    return value + 1


AB = ("a", "b")
CD = ("c", "d")
E = ("e",)


@pytest.mark.unit
@pytest.mark.cascade
class TestEntry:
    def test_success_writes_and_marks_observed(self, store):
        assert observe(store, AB, inc) is Outcome.SUCCESS
        assert store.read(AB) == 1
        assert store.is_observed(AB)

    def test_not_found_leaves_store_unchanged(self, store):
        before = store.snapshot()
        assert observe(store, ("missing", "path"), inc) is Outcome.NOT_FOUND
        assert store.snapshot() is before

    def test_second_observe_in_episode_is_noop(self, store):
        assert observe(store, AB, inc) is Outcome.SUCCESS
        assert observe(store, AB, inc) is Outcome.ALREADY_OBSERVED
        assert store.read(AB) == 1

    def test_reacted_single_path_key_blocks_entry(self, store):
        store.mark_reacted(PathSet.of(AB))
        assert observe(store, AB, inc) is Outcome.ALREADY_OBSERVED
        assert store.read(AB) == 0

    def test_outcome_helpers(self):
        assert Outcome.SUCCESS.applied
        assert not is_noop(Outcome.SUCCESS)
        assert is_noop(Outcome.NOT_FOUND)
        assert is_noop(Outcome.ALREADY_OBSERVED)

    def test_mutator_errors_propagate_without_changing_state(self, store):
        before = store.snapshot()
        with pytest.raises(ZeroDivisionError):
            observe(store, AB, lambda v: 1 / v)
        assert store.snapshot() is before

    def test_observe_and_reset_clears_episode(self, store):
        assert observe_and_reset(store, AB, inc) is Outcome.SUCCESS
        assert store.episode_state.is_clean
        assert observe_and_reset(store, AB, inc) is Outcome.SUCCESS
        assert store.read(AB) == 2

    def test_observes_runs_pairs_in_one_episode(self, store):
        outcomes = observes(store, [(AB, inc), (AB, inc), (("nope",), inc), (CD, inc)])
        assert outcomes == [
            Outcome.SUCCESS,
            Outcome.ALREADY_OBSERVED,
            Outcome.NOT_FOUND,
            Outcome.SUCCESS,
        ]
        assert store.observes({E: inc}) == [Outcome.SUCCESS]


@pytest.mark.unit
@pytest.mark.cascade
class TestFiring:
    def test_path_output_receives_inputs_then_current_value(self, store):
        seen = []
        store.register_action("spy", lambda args: seen.append(list(args)) or 42)
        store.write(CD, 7)
        store.add_rule([AB], CD, ["spy"])

        observe(store, AB, inc)
        assert seen == [[1, 7]]
        assert store.read(CD) == 42
        assert store.is_observed(CD)

    def test_chain_threads_intermediate_through_actions(self, store):
        store.register_action("add_input", lambda args: args[-1] + args[0])
        store.register_action("double", lambda args: args[-1] * 2)
        store.write(CD, 10)
        store.add_rule([AB], CD, ["add_input", "double"])

        observe(store, AB, lambda v: 5)
        assert store.read(CD) == (10 + 5) * 2

    def test_side_effect_chain_is_a_pipeline_and_writes_nothing(self, store):
        seen = []
        store.register_action("pair", lambda args: tuple(args))
        store.register_action("record", lambda value: seen.append(value) or value)
        store.add_rule([AB, CD], SIDE_EFFECT, ["pair", "record"])

        before_e = store.read(E)
        observes(store, [(AB, inc), (CD, lambda v: 9)])
        assert seen == [(1, 9)]
        assert store.read(E) == before_e

    def test_inputs_are_passed_in_canonical_order(self, store):
        seen = []
        store.register_action("spy", lambda args: seen.append(list(args)) or args[-1])
        store.add_rule([CD, AB], E, ["spy"])

        observes(store, [(CD, lambda v: "d"), (AB, lambda v: "b")])
        assert seen == [["b", "d", 0]]

    def test_unresolved_action_skips_only_that_output(self, store, caplog):
        store.register_action("add", lambda args: sum(args))
        store.add_rule([AB], CD, ["add", "missing"])
        store.add_rule([AB], E, ["add"])

        with caplog.at_level(logging.DEBUG):
            assert observe(store, AB, inc) is Outcome.SUCCESS

        assert store.read(CD) == 0
        assert not store.is_observed(CD)
        assert store.read(E) == 1
        assert store.is_reacted(AB)
        assert "missing" in caplog.text

    def test_missing_output_value_skips_rule(self, store):
        store.register_action("add", lambda args: sum(args))
        store.add_rule([AB], ("c", "zzz"), ["add"])

        assert observe(store, AB, inc) is Outcome.SUCCESS
        assert store.read(("c", "zzz")) is ABSENT
        assert store.is_reacted(AB)

    def test_missing_input_value_skips_rule(self, store):
        store.register_action("add", lambda args: sum(args))
        store.add_rule([AB, ("x", "y")], E, ["add"])
        store.mark_observed(("x", "y"))

        assert observe(store, AB, inc) is Outcome.SUCCESS
        assert store.read(E) == 0
        assert store.is_reacted([AB, ("x", "y")])

    def test_output_guard_keeps_observed_value(self, arithmetic):
        store = arithmetic
        store.add_rule([AB], CD, ["add"])

        observes(store, [(CD, lambda v: 100), (AB, inc)])
        assert store.read(CD) == 100

    def test_action_exception_is_wrapped(self, store):
        def explode(args):
            raise ValueError("bad")

        store.register_action("explode", explode)
        store.add_rule([AB], CD, ["explode"])

        with pytest.raises(ActionError) as exc_info:
            observe(store, AB, inc)
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert exc_info.value.name == "explode"
        # the triggering write and the reaction stay recorded
        assert store.read(AB) == 1
        assert store.is_reacted(AB)

    def test_current_firing_is_set_only_during_chain(self, store):
        seen = []
        store.register_action("capture", lambda args: seen.append(current_firing()) or args)
        store.add_rule([AB], SIDE_EFFECT, ["capture"])

        observe(store, AB, inc)
        (firing,) = seen
        assert firing.inputs == PathSet.of(AB)
        assert firing.output is SIDE_EFFECT
        assert firing.values == (1,)
        assert current_firing() is None

    def test_cascade_writes_are_recorded_with_cause(self, arithmetic):
        store = arithmetic
        store.add_rule([AB], CD, ["add"])
        observe(store, AB, inc)

        source, cascade = store.history()
        assert source.change_type == ChangeType.SOURCE_UPDATE
        assert cascade.change_type == ChangeType.CASCADE_UPDATE
        assert cascade.cause == PathSet.of(AB)
        assert (cascade.old_value, cascade.new_value) == (0, 1)


@pytest.mark.unit
@pytest.mark.cascade
class TestScanning:
    def test_eligible_keys_requires_every_input(self, arithmetic):
        store = arithmetic
        store.add_rule([AB, CD], E, ["sum"])
        store.mark_observed(AB)
        assert eligible_keys(store) == []

        store.mark_observed(CD)
        assert eligible_keys(store) == [PathSet.of(AB, CD)]

        store.mark_reacted([AB, CD])
        assert eligible_keys(store) == []

    def test_keys_eligible_at_scan_start_fire_before_newly_eligible_ones(self):
        store = Store({"a": 0, "b": 0, "d": 0, "e": 0, "y": 0})
        fired = []

        def spy(label):
            return lambda args: fired.append(label) or args[0]

        store.register_action("k1", spy("a->b"))
        store.register_action("k2", spy("b->d"))
        store.register_action("k3", spy("a,y->e"))
        store.add_rule(["a"], "b", ["k1"])
        store.add_rule(["b"], "d", ["k2"])
        store.add_rule([("a",), ("y",)], "e", ["k3"])
        store.mark_observed("y")

        observe(store, "a", lambda v: 1)
        # b->d only becomes eligible once a->b has written b
        assert fired == ["a->b", "a,y->e", "b->d"]
        assert (store.read("b"), store.read("d"), store.read("e")) == (1, 1, 1)

    def test_rule_removed_mid_episode_does_not_fire(self, arithmetic):
        store = arithmetic
        store.add_rule([AB], CD, ["add"])
        store.remove_rule([AB])
        observe(store, AB, inc)
        assert store.read(CD) == 0
