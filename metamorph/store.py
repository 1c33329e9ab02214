"""
Metamorph Store - The Reactive State Container
==============================================

A Store owns one nested value tree plus the side tables that drive
propagation: the action registry, the rule table and the per-episode
observed/reacted sets.

The tree and the episode bookkeeping live together in one immutable
``StoreState``. Every mutation builds a new state and installs it with a
compare-and-swap, so a thread reading the store sees either the state before a
mutation or the state after it, never something in between. Rules and actions
are kept beside the state in their own thread-safe tables because they change
rarely and are never part of an episode.

Basic Usage
-----------

```python
from metamorph import SIDE_EFFECT, Store, print_trace

store = Store({"a": {"b": 0}, "c": 0})
store.register_action("print_trace", print_trace)
store.add_rule([("a", "b")], SIDE_EFFECT, ["print_trace"])

store.observe(("a", "b"), lambda v: v + 1)   # Outcome.SUCCESS, trace logged
store.read(("a", "b"))                       # 1
store.observe(("a", "b"), lambda v: v + 1)   # Outcome.ALREADY_OBSERVED
store.reset_episode()
```

Writes through ``write``/``erase`` are not observed: they change the tree
without triggering rules. Only ``observe`` starts a cascade.
"""

import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, TypeVar

import numpy as np

from .episode import EMPTY_EPISODE, EpisodeState
from .errors import StructureError
from .graph import Chain, ObserverGraph, Rule, as_output
from .path import SIDE_EFFECT, Path, PathSet, as_path, as_path_set, format_path
from .registry import Action, ActionRegistry
from .tree import ABSENT, assoc_in, copy_tree, dissoc_in, get_in, is_container

T = TypeVar("T")


# ============================================================================
# STATE AND CHANGE RECORDS
# ============================================================================


@dataclass(frozen=True)
class StoreState:
    """Immutable value of a store: the tree plus the current episode."""

    tree: Any
    episode: EpisodeState = EMPTY_EPISODE


class ChangeType(Enum):
    """Where a write came from."""

    SOURCE_UPDATE = "source"
    CASCADE_UPDATE = "cascade"
    ERASED = "erased"


def values_equal(a: Any, b: Any) -> bool:
    try:
        if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
            if type(a) != type(b):
                return False
            return np.array_equal(a, b)
        return bool(a == b)
    except (ValueError, TypeError):
        return False


@dataclass(frozen=True)
class Change:
    """One write performed by the store, kept in its bounded history."""

    path: Path
    change_type: ChangeType
    old_value: Any
    new_value: Any
    cause: Optional[PathSet] = None
    timestamp: float = 0.0

    def is_identity(self) -> bool:
        if self.old_value is ABSENT or self.new_value is ABSENT:
            return self.old_value is self.new_value
        return values_equal(self.old_value, self.new_value)

    def __repr__(self) -> str:
        where = format_path(self.path)
        if self.change_type == ChangeType.ERASED:
            return f"Change({where}: erased)"
        if self.old_value is ABSENT:
            return f"Change({where}: created = {self.new_value!r})"
        return f"Change({where}: {self.old_value!r} → {self.new_value!r})"


# ============================================================================
# STORE
# ============================================================================


class Store:
    """
    Reactive state container with explicit dependency rules.

    Args:
        initial_tree: nested mapping (or list) copied into the store
        history_size: how many Change records to keep (0 disables history)
        chain_cache_size: LRU size for resolved action chains
    """

    def __init__(
        self,
        initial_tree: Any = None,
        *,
        history_size: int = 1000,
        chain_cache_size: int = 256,
    ):
        if initial_tree is None:
            initial_tree = {}
        if not is_container(initial_tree):
            raise StructureError(
                f"Store root must be a mapping or list, got {type(initial_tree).__name__}"
            )

        self._state = StoreState(copy_tree(initial_tree))
        self._lock = threading.RLock()
        self._episode_lock = threading.RLock()

        self.actions = ActionRegistry(cache_size=chain_cache_size)
        self.rules = ObserverGraph()

        self._history: Optional[deque] = (
            deque(maxlen=history_size) if history_size > 0 else None
        )
        self._stats = {"swaps": 0, "retries": 0, "episodes": 0}

    # ========================================================================
    # ATOMIC STATE
    # ========================================================================

    def swap(
        self,
        fn: Callable[[StoreState], Tuple[StoreState, T]],
        change: Optional[Callable[[T], Change]] = None,
    ) -> T:
        """
        Atomically replace the state with ``fn(state)[0]`` and return ``fn(state)[1]``.

        ``fn`` runs outside the lock and is retried when another thread
        installed a new state in the meantime, so it must not have side
        effects.

        If the state changed, ``change(result)`` builds the Change record for
        it. The record is appended under the same lock that installs the
        state, so history follows commit order.
        """
        while True:
            current = self._state
            new_state, result = fn(current)
            with self._lock:
                if self._state is current:
                    if new_state is not current:
                        self._state = new_state
                        self._stats["swaps"] += 1
                        if change is not None and self._history is not None:
                            self._history.append(change(result))
                    return result
                self._stats["retries"] += 1

    def snapshot(self) -> StoreState:
        """The current immutable state."""
        return self._state

    @property
    def tree(self) -> Any:
        return self._state.tree

    @property
    def episode_state(self) -> EpisodeState:
        return self._state.episode

    # ========================================================================
    # TREE ACCESS
    # ========================================================================

    def read(self, path: Any, default: Any = ABSENT) -> Any:
        """Value at ``path``, or ``default`` (ABSENT) if the path does not resolve."""
        value = get_in(self._state.tree, as_path(path))
        return default if value is ABSENT else value

    def write(self, path: Any, value: Any) -> None:
        """
        Replace the value at ``path``, creating intermediate dicts as needed.

        Raises:
            StructureError: if the path runs through a leaf
        """
        path = as_path(path)

        def apply(state: StoreState):
            old = get_in(state.tree, path)
            return StoreState(assoc_in(state.tree, path, value), state.episode), old

        self.swap(
            apply,
            lambda old: Change(
                path, ChangeType.SOURCE_UPDATE, old, value, timestamp=time.time()
            ),
        )

    def erase(self, path: Any) -> None:
        """Remove the final key of ``path`` from its parent. No-op if absent."""
        path = as_path(path)

        def apply(state: StoreState):
            old = get_in(state.tree, path)
            if old is ABSENT:
                return state, old
            return StoreState(dissoc_in(state.tree, path), state.episode), old

        self.swap(
            apply,
            lambda old: Change(path, ChangeType.ERASED, old, ABSENT, timestamp=time.time()),
        )

    # ========================================================================
    # ACTIONS
    # ========================================================================

    def register_action(self, name: Any, fn: Action) -> None:
        self.actions.register(name, fn)

    def remove_action(self, name: Any) -> bool:
        return self.actions.remove(name)

    def resolve_action(self, name: Any) -> Optional[Action]:
        return self.actions.resolve(name)

    # ========================================================================
    # RULES
    # ========================================================================

    def add_rule(self, inputs: Any, output: Any, chain: Any) -> Rule:
        """
        Register ``inputs -> output`` via ``chain``.

        Every path the rule touches must stay below containers; a prefix that
        already resolves to a leaf raises StructureError.
        """
        key = as_path_set(inputs)
        target = as_output(output)
        paths = list(key) if target is SIDE_EFFECT else list(key) + [target]
        tree = self._state.tree
        for path in paths:
            for depth in range(1, len(path)):
                node = get_in(tree, path[:depth])
                if node is not ABSENT and not is_container(node):
                    raise StructureError(
                        f"Cannot attach rule below leaf {format_path(path[:depth])}"
                    )
        rule = self.rules.add(key, target, chain)
        logging.debug(f"Rule added: {rule!r}")
        return rule

    def remove_rule(self, inputs: Any, *args: Any) -> bool:
        """``remove_rule(inputs)`` drops every rule on ``inputs``; ``remove_rule(inputs, output)`` one."""
        if len(args) > 1:
            raise TypeError("remove_rule() takes inputs and an optional output")
        return self.rules.remove(inputs, *args)

    def lookup_rule(self, inputs: Any) -> Optional[Dict[Any, Chain]]:
        return self.rules.lookup(inputs)

    # ========================================================================
    # EPISODE BOOKKEEPING
    # ========================================================================

    def mark_observed(self, path: Any) -> None:
        self.swap(
            lambda s: (StoreState(s.tree, s.episode.mark_observed(path)), None)
        )

    def is_observed(self, target: Any) -> bool:
        """True if ``target`` (a path, or every path of a PathSet or list of paths) is observed."""
        return self._state.episode.is_observed(as_path_set(target))

    def mark_reacted(self, inputs: Any) -> None:
        key = as_path_set(inputs)
        self.swap(lambda s: (StoreState(s.tree, s.episode.mark_reacted(key)), None))

    def is_reacted(self, inputs: Any) -> bool:
        return self._state.episode.is_reacted(as_path_set(inputs))

    def reset_episode(self) -> None:
        """Clear the observed and reacted sets, ending the current episode."""

        def apply(state: StoreState):
            if state.episode.is_clean:
                return state, False
            return StoreState(state.tree, EMPTY_EPISODE), True

        if self.swap(apply):
            with self._lock:
                self._stats["episodes"] += 1
            logging.debug("Episode reset")

    @contextmanager
    def episode(self) -> Iterator["Store"]:
        """
        Run one serialized episode.

        Holds the store's episode lock so that threads sharing the store do not
        interleave cascades, and resets the bookkeeping on exit.

        Usage:
            with store.episode():
                store.observe(("a", "b"), inc)
                store.observe(("c", "d"), inc)
        """
        with self._episode_lock:
            try:
                yield self
            finally:
                self.reset_episode()

    # ========================================================================
    # CASCADE
    # ========================================================================

    def observe(self, path: Any, fn: Callable[[Any], Any]):
        from .cascade import observe

        return observe(self, path, fn)

    def observes(self, pairs: Any):
        from .cascade import observes

        return observes(self, pairs)

    def observe_and_reset(self, path: Any, fn: Callable[[Any], Any]):
        from .cascade import observe_and_reset

        return observe_and_reset(self, path, fn)

    # ========================================================================
    # UTILITY METHODS
    # ========================================================================

    def history(self, limit: int = 100) -> List[Change]:
        if self._history is None:
            return []
        with self._lock:
            return list(self._history)[-limit:] if limit > 0 else []

    def stats(self) -> Dict[str, Any]:
        state = self._state
        with self._lock:
            stats = dict(self._stats)
        stats.update(
            {
                "actions": len(self.actions),
                "rule_keys": len(self.rules.keys()),
                "rules": len(self.rules),
                "observed": len(state.episode.observed),
                "reacted": len(state.episode.reacted),
                "history_size": len(self._history) if self._history is not None else 0,
            }
        )
        return stats

    def __contains__(self, path: Any) -> bool:
        return get_in(self._state.tree, as_path(path)) is not ABSENT

    def __getitem__(self, path: Any) -> Any:
        value = get_in(self._state.tree, as_path(path))
        if value is ABSENT:
            raise KeyError(path)
        return value

    def __repr__(self) -> str:
        return f"Store(rules={len(self.rules)}, actions={len(self.actions)})"
