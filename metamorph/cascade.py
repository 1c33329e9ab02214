"""
Cascade Engine - Propagating One Observation to Fixpoint
========================================================

``observe(store, path, fn)`` is the only way rules fire:

1. Entry. In one atomic swap: if ``path`` does not resolve the outcome is
   NOT_FOUND; if it was already observed this episode (or its single-path key
   already reacted) the outcome is ALREADY_OBSERVED; otherwise ``fn`` is
   applied to the current value and ``path`` is marked observed.

2. Scan and fire. Every rule key whose inputs are all observed and which has
   not reacted yet is eligible. All keys eligible at the start of a scan fire
   once, in registration order, before the next scan begins. A key is marked
   reacted *before* its chains run, which is what guarantees termination for
   cyclic rule graphs.

3. Settle. A scan that finds nothing eligible ends the cascade. The reacted
   set only grows and the table is finite, so there are at most as many scans
   as there are rule keys.

Argument vectors
----------------
Input values are gathered in the PathSet's canonical order. For a rule that
writes a path, every action is called with ``[*input_values, intermediate]``,
where the intermediate starts as the output's current value and becomes each
action's result in turn; the last result is written. For a SIDE_EFFECT rule
the chain is a pipeline: the first action receives the input values, each
following action receives the previous result, and nothing is written.

A rule output whose chain names an unregistered action, or whose arguments
do not resolve, is skipped (logged at DEBUG); the rest of the cascade goes on.
"""

import logging
import threading
import time
from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable, List, NamedTuple, Optional, Sequence

from .errors import ActionError, CascadeSkip, MissingArgumentError
from .graph import Chain, Output
from .path import SIDE_EFFECT, PathSet, as_path, format_path
from .store import Change, ChangeType, Store, StoreState
from .tree import ABSENT, assoc_in, get_in


class Outcome(Enum):
    """Result of ``observe``."""

    SUCCESS = "success"
    NOT_FOUND = "not-found"
    ALREADY_OBSERVED = "already-observed"

    @property
    def applied(self) -> bool:
        """True if the mutation ran and a cascade took place."""
        return self is Outcome.SUCCESS


def is_noop(outcome: Outcome) -> bool:
    return not outcome.applied


class Firing(NamedTuple):
    """The rule currently executing its chain on this thread."""

    inputs: PathSet
    output: Output
    values: tuple


_ctx = threading.local()


def current_firing() -> Optional[Firing]:
    """The Firing being evaluated on this thread, or None outside a chain."""
    return getattr(_ctx, "firing", None)


# ============================================================================
# ENTRY
# ============================================================================


def observe(store: Store, path: Any, fn: Callable[[Any], Any]) -> Outcome:
    """
    Apply ``fn`` to the value at ``path`` and propagate through the rules.

    ``fn`` receives the current value and returns the new one. It may be
    called again if another thread swaps the store's state concurrently, so it
    must not have side effects.
    """
    path = as_path(path)

    def enter(state):
        current = get_in(state.tree, path)
        if current is ABSENT:
            return state, (Outcome.NOT_FOUND, ABSENT, ABSENT)
        episode = state.episode
        if episode.is_observed(path) or episode.is_reacted(PathSet.of(path)):
            return state, (Outcome.ALREADY_OBSERVED, current, ABSENT)
        new_value = fn(current)
        new_state = StoreState(
            assoc_in(state.tree, path, new_value), episode.mark_observed(path)
        )
        return new_state, (Outcome.SUCCESS, current, new_value)

    def source_change(result):
        _, old_value, new_value = result
        return Change(
            path, ChangeType.SOURCE_UPDATE, old_value, new_value, timestamp=time.time()
        )

    outcome, _, _ = store.swap(enter, source_change)
    if not outcome.applied:
        logging.debug(f"observe {format_path(path)}: {outcome.value}")
        return outcome

    fired = settle(store)
    logging.debug(f"observe {format_path(path)}: settled after {fired} reactions")
    return outcome


def observes(store: Store, pairs: Any) -> List[Outcome]:
    """Observe several ``(path, fn)`` pairs in order within the current episode."""
    if isinstance(pairs, Mapping):
        pairs = pairs.items()
    return [observe(store, path, fn) for path, fn in pairs]


def observe_and_reset(store: Store, path: Any, fn: Callable[[Any], Any]) -> Outcome:
    """``observe`` followed by ``reset_episode``, even if the cascade raised."""
    try:
        return observe(store, path, fn)
    finally:
        store.reset_episode()


# ============================================================================
# FIXPOINT
# ============================================================================


def eligible_keys(store: Store) -> List[PathSet]:
    """Rule keys that are fully observed and have not reacted, in registration order."""
    episode = store.episode_state
    return [
        key
        for key in store.rules.keys_touching(episode.observed)
        if not episode.is_reacted(key) and episode.is_observed(key)
    ]


def settle(store: Store) -> int:
    """Fire eligible rules until none is left. Returns the number of keys that reacted."""
    reacted = 0
    while True:
        eligible = eligible_keys(store)
        if not eligible:
            return reacted
        for key in eligible:
            if react(store, key):
                reacted += 1


def react(store: Store, key: PathSet) -> bool:
    """
    Mark ``key`` reacted and fire each of its outputs.

    Returns False if the key had already reacted.
    """

    def claim(state):
        if state.episode.is_reacted(key):
            return state, False
        return StoreState(state.tree, state.episode.mark_reacted(key)), True

    if not store.swap(claim):
        return False

    entries = store.rules.lookup(key) or {}
    for output, chain in entries.items():
        try:
            fire(store, key, output, chain)
        except CascadeSkip as e:
            logging.debug(f"Skipping rule {key!r} -> {output!r}: {e}")
    return True


def fire(store: Store, key: PathSet, output: Output, chain: Chain) -> None:
    """
    Evaluate one rule output and write its result.

    Raises:
        UnresolvedActionError: an action in ``chain`` is not registered
        MissingArgumentError: an input, or the output's current value, is absent
        ActionError: an action raised
    """
    actions = store.actions.resolve_chain(chain)
    tree = store.tree

    values = []
    for path in key:
        value = get_in(tree, path)
        if value is ABSENT:
            raise MissingArgumentError(path)
        values.append(value)

    if output is SIDE_EFFECT:
        _run_chain(chain, actions, Firing(key, output, tuple(values)), None)
        logging.debug(f"Rule {key!r} -> SIDE_EFFECT ran {list(chain)}")
        return

    current = get_in(tree, output)
    if current is ABSENT:
        raise MissingArgumentError(output)

    result = _run_chain(chain, actions, Firing(key, output, tuple(values)), current)

    def commit(state):
        if state.episode.is_observed(output):
            return state, (False, ABSENT)
        old = get_in(state.tree, output)
        new_state = StoreState(
            assoc_in(state.tree, output, result), state.episode.mark_observed(output)
        )
        return new_state, (True, old)

    def cascade_change(committed):
        _, old = committed
        return Change(
            output,
            ChangeType.CASCADE_UPDATE,
            old,
            result,
            cause=key,
            timestamp=time.time(),
        )

    written, old = store.swap(commit, cascade_change)
    if not written:
        logging.debug(f"Rule {key!r}: {format_path(output)} already observed, not written")
        return

    logging.debug(f"Rule {key!r} -> {format_path(output)}: {old!r} -> {result!r}")


def _run_chain(
    names: Sequence[Any], actions: Sequence[Callable], firing: Firing, seed: Any
) -> Any:
    prev = getattr(_ctx, "firing", None)
    _ctx.firing = firing
    try:
        inputs = list(firing.values)
        if firing.output is SIDE_EFFECT:
            result: Any = inputs
            for name, action in zip(names, actions):
                result = _call(action, result, name, firing)
        else:
            result = seed
            for name, action in zip(names, actions):
                result = _call(action, inputs + [result], name, firing)
        return result
    finally:
        if prev is not None:
            _ctx.firing = prev
        else:
            del _ctx.firing


def _call(action: Callable, args: Any, name: Any, firing: Firing) -> Any:
    try:
        return action(args)
    except Exception as e:
        raise ActionError(name, firing.inputs, firing.output) from e
