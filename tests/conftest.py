"""
Shared pytest fixtures and configuration for metamorph tests.
"""

import pytest

from metamorph import Store


@pytest.fixture
def store():
    """Provide a fresh Store with a small two-branch tree."""
    return Store({"a": {"b": 0}, "c": {"d": 0}, "e": 0})


@pytest.fixture
def arithmetic(store):
    """The store fixture with 'add' (inputs + current) and 'sum' (inputs only) actions."""
    store.register_action("add", lambda args: sum(args))
    store.register_action("sum", lambda args: sum(args[:-1]))
    return store
