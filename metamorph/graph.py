"""
Observer Graph - The Rule Table
===============================

Each rule maps a PathSet of inputs to one output through an ordered chain of
action names:

    inputs                      output          chain
    PathSet(('a', 'b'))    ->   ('c', 'd')      ('add',)
    PathSet(('a', 'b'),
            ('c', 'd'))    ->   ('e',)          ('sum',)
    PathSet(('a', 'b'))    ->   SIDE_EFFECT     ('print_trace',)

Rules are keyed by their inputs; several outputs may share one key and fire
together. A reverse index (path -> keys containing it) lets the cascade find
candidate rules from the observed paths without scanning the whole table.
"""

import threading
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterable, List, Optional, Set, Tuple

from .path import SIDE_EFFECT, Path, PathSet, as_path, as_path_set

_ALL = object()

Output = Any  # Path or SIDE_EFFECT
Chain = Tuple[Hashable, ...]


@dataclass(frozen=True)
class Rule:
    """One registered rule, as listed by ``ObserverGraph.rules()``."""

    inputs: PathSet
    output: Output
    chain: Chain

    @property
    def is_side_effect(self) -> bool:
        return self.output is SIDE_EFFECT

    def __repr__(self) -> str:
        return f"Rule({self.inputs!r} -> {self.output!r} via {list(self.chain)})"


def as_output(output: Any) -> Output:
    """Normalize a rule output: SIDE_EFFECT and None mean 'no write'."""
    if output is None or output is SIDE_EFFECT:
        return SIDE_EFFECT
    path = as_path(output)
    if not path:
        raise ValueError("Rule output path must not be empty")
    return path


def as_chain(chain: Any) -> Chain:
    if isinstance(chain, (list, tuple)):
        result = tuple(chain)
    else:
        result = (chain,)
    if not result:
        raise ValueError("Rule chain must name at least one action")
    return result


class ObserverGraph:
    """
    Thread-safe rule table with a path -> rule-key reverse index.

    Attributes:
        _rules: inputs -> {output: chain}, in registration order
        _index: path -> set of rule keys whose inputs contain that path
        _sequence: inputs -> registration number, used to order scans
    """

    def __init__(self):
        self._rules: Dict[PathSet, Dict[Output, Chain]] = {}
        self._index: Dict[Path, Set[PathSet]] = {}
        self._sequence: Dict[PathSet, int] = {}
        self._next_sequence = 0
        self._lock = threading.RLock()

    def add(self, inputs: Any, output: Any, chain: Any) -> Rule:
        """Insert or overwrite the rule ``inputs -> output`` with ``chain``."""
        key = as_path_set(inputs)
        if not key or any(not path for path in key):
            raise ValueError("Rule inputs must contain at least one non-empty path")
        target = as_output(output)
        names = as_chain(chain)

        with self._lock:
            if key not in self._rules:
                self._rules[key] = {}
                self._sequence[key] = self._next_sequence
                self._next_sequence += 1
                for path in key:
                    self._index.setdefault(path, set()).add(key)
            self._rules[key][target] = names
            return Rule(key, target, names)

    def remove(self, inputs: Any, output: Any = _ALL) -> bool:
        """
        Remove all rules keyed by ``inputs``, or only the one targeting ``output``.

        Returns:
            True if anything was removed
        """
        key = as_path_set(inputs)
        with self._lock:
            entries = self._rules.get(key)
            if entries is None:
                return False

            if output is not _ALL:
                target = as_output(output)
                if target not in entries:
                    return False
                del entries[target]
                if entries:
                    return True

            self._drop_key(key)
            return True

    def _drop_key(self, key: PathSet) -> None:
        del self._rules[key]
        del self._sequence[key]
        for path in key:
            keys = self._index.get(path)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._index[path]

    def lookup(self, inputs: Any) -> Optional[Dict[Output, Chain]]:
        """Return a copy of ``{output: chain}`` for ``inputs``, or None."""
        key = as_path_set(inputs)
        with self._lock:
            entries = self._rules.get(key)
            return dict(entries) if entries is not None else None

    def keys_touching(self, paths: Iterable[Path]) -> List[PathSet]:
        """Rule keys containing any of ``paths``, in registration order."""
        with self._lock:
            found = set()
            for path in paths:
                found.update(self._index.get(path, ()))
            return sorted(found, key=self._sequence.__getitem__)

    def rules(self) -> List[Rule]:
        with self._lock:
            return [
                Rule(key, output, chain)
                for key, entries in self._rules.items()
                for output, chain in entries.items()
            ]

    def keys(self) -> List[PathSet]:
        with self._lock:
            return list(self._rules)

    def clear(self) -> None:
        with self._lock:
            self._rules.clear()
            self._index.clear()
            self._sequence.clear()

    def __len__(self) -> int:
        """Number of rules (not keys)."""
        with self._lock:
            return sum(len(entries) for entries in self._rules.values())

    def __contains__(self, inputs: Any) -> bool:
        key = as_path_set(inputs)
        with self._lock:
            return key in self._rules

    def __repr__(self) -> str:
        return f"ObserverGraph(keys={len(self._rules)}, rules={len(self)})"
