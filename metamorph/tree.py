"""
Persistent operations on the store's value tree.

The tree is made of plain ``dict`` and ``list`` nodes. Updates never modify a
node in place: ``assoc_in`` and ``dissoc_in`` copy the nodes along the path and
share every untouched subtree with the previous tree. A state that a reader
already holds therefore never changes underneath it.
"""

from collections.abc import Mapping
from typing import Any

from .errors import StructureError
from .path import Path, format_path


class _Absent:
    """Sentinel for 'no value at this path'."""

    def __repr__(self):
        return "ABSENT"


ABSENT = _Absent()


def is_container(value: Any) -> bool:
    """Containers are mappings and lists; everything else is a leaf."""
    return isinstance(value, (Mapping, list))


def copy_tree(value: Any) -> Any:
    """
    Copy the container structure of ``value`` into plain dicts and lists.

    Leaves are shared, containers are not, so the store never aliases the
    caller's objects.
    """
    if isinstance(value, Mapping):
        return {key: copy_tree(child) for key, child in value.items()}
    if isinstance(value, list):
        return [copy_tree(child) for child in value]
    return value


def _child(node: Any, key: Any) -> Any:
    if isinstance(node, Mapping):
        return node.get(key, ABSENT)
    if isinstance(node, list):
        if isinstance(key, int) and not isinstance(key, bool) and 0 <= key < len(node):
            return node[key]
        return ABSENT
    return ABSENT


def get_in(tree: Any, path: Path) -> Any:
    """Return the value at ``path`` or ABSENT. The empty path never resolves."""
    if not path:
        return ABSENT
    node = tree
    for key in path:
        node = _child(node, key)
        if node is ABSENT:
            return ABSENT
    return node


def _assoc(node: Any, key: Any, value: Any, path: Path) -> Any:
    if isinstance(node, Mapping):
        updated = dict(node)
        updated[key] = value
        return updated
    if isinstance(node, list):
        if isinstance(key, bool) or not isinstance(key, int):
            raise StructureError(f"List index must be an int at {format_path(path)}")
        if 0 <= key < len(node):
            updated = list(node)
            updated[key] = value
            return updated
        if key == len(node):
            return node + [value]
        raise StructureError(f"List index {key} out of range at {format_path(path)}")
    raise StructureError(
        f"Cannot write {format_path(path)}: parent is a leaf ({type(node).__name__})"
    )


def assoc_in(tree: Any, path: Path, value: Any) -> Any:
    """
    Return a new tree with ``value`` at ``path``.

    Missing intermediate nodes are created as dicts. Raises StructureError if
    any segment on the way resolves to a leaf.
    """
    if not path:
        raise ValueError("Cannot write the empty path")
    head, rest = path[0], path[1:]
    if not rest:
        return _assoc(tree, head, value, path)
    child = _child(tree, head)
    if child is ABSENT:
        if not is_container(tree):
            raise StructureError(
                f"Cannot write {format_path(path)}: parent is a leaf ({type(tree).__name__})"
            )
        child = {}
    elif not is_container(child):
        raise StructureError(
            f"Cannot write {format_path(path)}: {head!r} is a leaf ({type(child).__name__})"
        )
    return _assoc(tree, head, assoc_in(child, rest, value), path)


def dissoc_in(tree: Any, path: Path) -> Any:
    """Return a new tree without the final key of ``path``; the same tree if absent."""
    if not path or get_in(tree, path) is ABSENT:
        return tree
    head, rest = path[0], path[1:]
    if rest:
        return _assoc(tree, head, dissoc_in(_child(tree, head), rest), path)
    if isinstance(tree, Mapping):
        updated = dict(tree)
        del updated[head]
        return updated
    updated = list(tree)
    del updated[head]
    return updated


def walk(tree: Any, prefix: Path = ()):
    """Yield ``(path, value)`` for every node below ``tree`` in depth-first order."""
    if isinstance(tree, Mapping):
        items = tree.items()
    elif isinstance(tree, list):
        items = enumerate(tree)
    else:
        return
    for key, child in items:
        path = prefix + (key,)
        yield path, child
        yield from walk(child, path)
