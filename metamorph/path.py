"""
Metamorph Paths - Addressing Values Inside the Store
====================================================

A path is a tuple of keys locating a value in the store's nested structure:
``("player", "hp")`` addresses ``tree["player"]["hp"]``. Paths compare
structurally, so two paths built in different places address the same
location when their keys are equal.

A PathSet is the combined trigger of a rule. It is canonicalized (deduplicated
and sorted) so that registering a multi-input rule with its inputs in any order
produces the same key:

    PathSet.of(("a", "b"), ("c",)) == PathSet.of(("c",), ("a", "b"))  # True

Sorting has to be total over mixed key types (``"x"`` next to ``0``), so keys
are ordered by type name first and by value second. Values of types without a
natural order fall back to their ``repr``.
"""

from typing import Any, Hashable, Iterable, Tuple, Union

Path = Tuple[Hashable, ...]

_ORDERABLE = (bool, int, float, str, bytes)


class _SideEffect:
    """Sentinel output for rules that run only for their side effects."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "SIDE_EFFECT"

    def __reduce__(self):
        return (_SideEffect, ())


SIDE_EFFECT = _SideEffect()


def as_path(path: Any) -> Path:
    """
    Normalize a path argument to a tuple of keys.

    Lists and tuples become tuples; any other value (a string included) is a
    single key.
    """
    if isinstance(path, tuple):
        return path
    if isinstance(path, list):
        return tuple(path)
    return (path,)


def _key_order(key: Hashable):
    if isinstance(key, _ORDERABLE):
        return (type(key).__name__, key)
    return (type(key).__name__, repr(key))


def path_sort_key(path: Path):
    """Total ordering key for paths with heterogeneous key types."""
    return tuple(_key_order(key) for key in path)


class PathSet(tuple):
    """
    Canonical, hashable set of paths used as a rule key.

    Behaves like a tuple of paths in sorted order. Construct with
    ``PathSet(iterable_of_paths)`` or ``PathSet.of(*paths)``.
    """

    __slots__ = ()

    def __new__(cls, paths: Iterable[Any] = ()):
        unique = {as_path(p) for p in paths}
        return super().__new__(cls, sorted(unique, key=path_sort_key))

    @classmethod
    def of(cls, *paths: Any) -> "PathSet":
        return cls(paths)

    def __repr__(self):
        return f"PathSet({', '.join(repr(p) for p in self)})"


def _looks_like_single_path(value: Any) -> bool:
    if not isinstance(value, (list, tuple)):
        return True
    return not any(isinstance(key, (list, tuple)) for key in value)


def as_path_set(inputs: Union[PathSet, Iterable[Any], Any]) -> PathSet:
    """
    Coerce a rule's inputs to a PathSet.

    Accepts a PathSet, one path (``("a", "b")`` or ``"a"``), or an iterable of
    paths (``[("a", "b"), ("c",)]``). Paths whose keys are themselves tuples
    are ambiguous here; pass a PathSet for those.
    """
    if isinstance(inputs, PathSet):
        return inputs
    if _looks_like_single_path(inputs):
        return PathSet.of(inputs)
    return PathSet(inputs)


def format_path(path: Path) -> str:
    """Dotted rendering used in logs and the console: ``a.b.0``."""
    return ".".join(str(key) for key in path)
