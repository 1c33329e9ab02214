import logging

from metamorph import (
    SIDE_EFFECT,
    add_rule,
    create_store,
    observe,
    print_trace,
    register_action,
    reset_episode,
)
from metamorph.console import print_store

logging.basicConfig(level=logging.INFO, format="%(message)s")

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Defining the store")
print("-" * 100)
print()

# The store wraps a nested tree. Paths are tuples of keys into it.
store = create_store({"a": {"b": 0}, "c": {"d": 0}, "e": 0})

# Actions are named callables. Rules refer to them by name.
register_action(store, "add", lambda args: sum(args))
register_action(store, "sum", lambda args: sum(args[:-1]))
register_action(store, "print_trace", print_trace)

# a.b and c.d feed each other, e tracks their sum, and every change to e is traced.
add_rule(store, [("a", "b")], ("c", "d"), ["add"])
add_rule(store, [("c", "d")], ("a", "b"), ["add"])
add_rule(store, [("a", "b"), ("c", "d")], ("e",), ["sum"])
add_rule(store, [("e",)], SIDE_EFFECT, ["print_trace"])

print_store(store)

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Observing a change")
print("-" * 100)
print()

# Each path is written at most once per episode, so the cycle between a.b and c.d settles.
observe(store, ("a", "b"), lambda v: v + 1)
print_store(store)

# A second observation of a.b in the same episode does nothing.
print(observe(store, ("a", "b"), lambda v: v + 1))

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Starting a new episode")
print("-" * 100)
print()

reset_episode(store)
observe(store, ("c", "d"), lambda v: v + 1)
print_store(store)
