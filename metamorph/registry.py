"""
Action Registry
===============

Maps symbolic names to the functions that rule chains reference. A rule stores
only names; the registry resolves them at firing time, so an action can be
replaced (or removed) without touching the rules that use it.

Resolved chains are memoized in an LRU cache keyed by the chain's names. Every
register/remove clears the cache, so a cached resolution never outlives the
association it was built from.
"""

import threading
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Tuple

from cachetools import LRUCache

from .errors import UnresolvedActionError

Action = Callable[[List[Any]], Any]


class ActionRegistry:
    """
    Thread-safe name -> action mapping.

    Usage:
        registry = ActionRegistry()
        registry.register("inc", lambda args: args[-1] + 1)
        registry.resolve("inc")          # the function
        registry.resolve_chain(["inc"])  # (function,)
    """

    def __init__(self, cache_size: int = 256):
        self._actions: Dict[Hashable, Action] = {}
        self._chain_cache = LRUCache(maxsize=max(cache_size, 1))
        self._lock = threading.RLock()
        self._stats = {"resolves": 0, "cache_hits": 0}

    def register(self, name: Hashable, fn: Action) -> None:
        """Associate ``name`` with ``fn``, replacing any previous association."""
        if not callable(fn):
            raise TypeError(f"Action {name!r} must be callable, got {type(fn).__name__}")
        with self._lock:
            self._actions[name] = fn
            self._chain_cache.clear()

    def remove(self, name: Hashable) -> bool:
        """Remove ``name``. Returns False if it was not registered."""
        with self._lock:
            if name not in self._actions:
                return False
            del self._actions[name]
            self._chain_cache.clear()
            return True

    def resolve(self, name: Hashable) -> Optional[Action]:
        with self._lock:
            return self._actions.get(name)

    def resolve_chain(self, chain: Sequence[Hashable]) -> Tuple[Action, ...]:
        """
        Resolve every name in ``chain``.

        Raises:
            UnresolvedActionError: naming the first unregistered action
        """
        key = tuple(chain)
        with self._lock:
            self._stats["resolves"] += 1
            cached = self._chain_cache.get(key)
            if cached is not None:
                self._stats["cache_hits"] += 1
                return cached

            resolved = []
            for name in key:
                fn = self._actions.get(name)
                if fn is None:
                    raise UnresolvedActionError(name)
                resolved.append(fn)

            result = tuple(resolved)
            self._chain_cache[key] = result
            return result

    def names(self) -> List[Hashable]:
        with self._lock:
            return list(self._actions)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            stats = self._stats.copy()
            stats["actions"] = len(self._actions)
            stats["cached_chains"] = len(self._chain_cache)
            return stats

    def __contains__(self, name: Hashable) -> bool:
        with self._lock:
            return name in self._actions

    def __len__(self) -> int:
        with self._lock:
            return len(self._actions)

    def __repr__(self) -> str:
        return f"ActionRegistry(actions={len(self)})"
