"""
Functional facade over Store.

Each function takes the store as its first argument, so callers that prefer
passing the store explicitly (demo programs, test harnesses) need not use
methods:

    store = create_store({"a": {"b": 0}})
    register_action(store, "inc", lambda args: args[-1] + 1)
    observe(store, ("a", "b"), lambda v: v + 1)
    reset_episode(store)
"""

from typing import Any, Callable

from .registry import Action
from .store import Store
from .tree import ABSENT


def create_store(
    initial_tree: Any = None, *, history_size: int = 1000, chain_cache_size: int = 256
) -> Store:
    """
    Create a store wrapping a copy of ``initial_tree``.

    Args:
        initial_tree: nested mapping (or list); defaults to an empty dict
        history_size: number of Change records kept (0 disables history)
        chain_cache_size: LRU size for resolved action chains

    Returns:
        A Store with no actions, no rules and a clean episode
    """
    return Store(
        initial_tree, history_size=history_size, chain_cache_size=chain_cache_size
    )


def read(store: Store, path: Any, default: Any = ABSENT) -> Any:
    return store.read(path, default)


def write(store: Store, path: Any, value: Any) -> None:
    store.write(path, value)


def erase(store: Store, path: Any) -> None:
    store.erase(path)


def register_action(store: Store, name: Any, fn: Action) -> None:
    store.register_action(name, fn)


def remove_action(store: Store, name: Any) -> bool:
    return store.remove_action(name)


def add_rule(store: Store, inputs: Any, output: Any, chain: Any):
    return store.add_rule(inputs, output, chain)


def remove_rule(store: Store, inputs: Any, *output: Any) -> bool:
    return store.remove_rule(inputs, *output)


def observe(store: Store, path: Any, fn: Callable[[Any], Any]):
    return store.observe(path, fn)


def observes(store: Store, pairs: Any):
    return store.observes(pairs)


def observe_and_reset(store: Store, path: Any, fn: Callable[[Any], Any]):
    return store.observe_and_reset(path, fn)


def reset_episode(store: Store) -> None:
    store.reset_episode()
