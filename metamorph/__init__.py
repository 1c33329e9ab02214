"""
Metamorph - Reactive State Container with Explicit Dependency Rules

A single hierarchical store whose fields are wired together by named rules.
Observing one field runs every rule it satisfies, writes their outputs, and
continues until no rule can fire. Each rule fires at most once per episode,
so cyclic rule graphs always settle.
"""

__version__ = "0.1.0"

# Functional API
from .actions import print_trace
from .api import (
    add_rule,
    create_store,
    erase,
    observe,
    observe_and_reset,
    observes,
    read,
    register_action,
    remove_action,
    remove_rule,
    reset_episode,
    write,
)

# Cascade engine
from .cascade import Firing, Outcome, current_firing, is_noop

# Bookkeeping and rule table
from .episode import EpisodeState
from .errors import (
    ActionError,
    CascadeSkip,
    MetamorphError,
    MissingArgumentError,
    StructureError,
    UnresolvedActionError,
)
from .graph import ObserverGraph, Rule
from .path import SIDE_EFFECT, PathSet
from .registry import ActionRegistry

# Store container
from .store import Change, ChangeType, Store, StoreState
from .tree import ABSENT

__all__ = [
    # Store container
    "Store",
    "StoreState",
    "Change",
    "ChangeType",
    # Functional API
    "create_store",
    "read",
    "write",
    "erase",
    "register_action",
    "remove_action",
    "add_rule",
    "remove_rule",
    "observe",
    "observes",
    "observe_and_reset",
    "reset_episode",
    # Cascade engine
    "Outcome",
    "Firing",
    "current_firing",
    "is_noop",
    # Building blocks
    "ActionRegistry",
    "ObserverGraph",
    "Rule",
    "EpisodeState",
    "PathSet",
    # Sentinels
    "ABSENT",
    "SIDE_EFFECT",
    # Reference actions
    "print_trace",
    # Exceptions
    "MetamorphError",
    "StructureError",
    "ActionError",
    "CascadeSkip",
    "UnresolvedActionError",
    "MissingArgumentError",
]
