"""
Console rendering for stores.

Renders the value tree and the rule table with rich, highlighting what the
current episode has touched:

    from metamorph.console import print_store
    print_store(store)
"""

from typing import Any, Optional

from rich.console import Console, Group
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from .path import SIDE_EFFECT, format_path
from .store import Store
from .tree import is_container, walk


def _label(key: Any, value: Any, observed: bool) -> Text:
    text = Text(str(key), style="bold cyan" if observed else "cyan")
    if not is_container(value):
        text.append(" = ")
        text.append(repr(value), style="green" if observed else "default")
    if observed:
        text.append("  ●", style="yellow")
    return text


def render_tree(store: Store, title: str = "store") -> Tree:
    """A rich Tree of the store's values; observed paths are highlighted."""
    state = store.snapshot()
    observed = state.episode.observed
    root = Tree(Text(title, style="bold"))
    nodes = {(): root}
    for path, value in walk(state.tree):
        parent = nodes[path[:-1]]
        nodes[path] = parent.add(_label(path[-1], value, path in observed))
    return root


def render_rules(store: Store) -> Table:
    """A rich Table of every rule and whether it reacted this episode."""
    episode = store.episode_state
    table = Table(title="rules")
    table.add_column("inputs", style="cyan")
    table.add_column("output", style="magenta")
    table.add_column("chain")
    table.add_column("reacted", justify="center")

    for rule in store.rules.rules():
        output = repr(SIDE_EFFECT) if rule.is_side_effect else format_path(rule.output)
        table.add_row(
            ", ".join(format_path(path) for path in rule.inputs),
            output,
            " → ".join(str(name) for name in rule.chain),
            "✓" if episode.is_reacted(rule.inputs) else "",
        )
    return table


def print_store(store: Store, console: Optional[Console] = None) -> None:
    """Print the value tree and the rule table."""
    console = console or Console()
    console.print(Group(render_tree(store), render_rules(store)))
