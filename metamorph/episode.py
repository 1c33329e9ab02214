"""
Propagation bookkeeping for one episode.

``observed`` holds the paths that received a value this episode; ``reacted``
holds the rule keys that already fired. Both only grow until the episode is
reset, which is what stops a cycle A -> B -> A: each key fires at most once.
"""

from dataclasses import dataclass, field
from typing import Any, FrozenSet

from .path import Path, PathSet, as_path


@dataclass(frozen=True)
class EpisodeState:
    """Immutable observed/reacted sets. Every ``mark_*`` returns a new state."""

    observed: FrozenSet[Path] = field(default_factory=frozenset)
    reacted: FrozenSet[PathSet] = field(default_factory=frozenset)

    def mark_observed(self, path: Any) -> "EpisodeState":
        path = as_path(path)
        if path in self.observed:
            return self
        return EpisodeState(self.observed | {path}, self.reacted)

    def mark_reacted(self, inputs: PathSet) -> "EpisodeState":
        if inputs in self.reacted:
            return self
        return EpisodeState(self.observed, self.reacted | {inputs})

    def is_observed(self, target: Any) -> bool:
        """A path is observed if marked; a PathSet only if all its paths are."""
        if isinstance(target, PathSet):
            return all(path in self.observed for path in target)
        return as_path(target) in self.observed

    def is_reacted(self, inputs: PathSet) -> bool:
        return inputs in self.reacted

    @property
    def is_clean(self) -> bool:
        return not self.observed and not self.reacted


EMPTY_EPISODE = EpisodeState()
