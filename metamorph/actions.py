"""
Reference actions.

``print_trace`` is a debugging aid: put it in a chain to log which rule is
firing and with what values. It returns its argument unchanged, so it is
transparent in a SIDE_EFFECT pipeline.

    store.register_action("print_trace", print_trace)
    store.add_rule([("a", "b")], SIDE_EFFECT, ["print_trace"])
"""

import logging
from typing import Any

from .cascade import current_firing
from .path import SIDE_EFFECT, format_path


def print_trace(args: Any) -> Any:
    """Log ``output >> inputs : values`` for the firing rule and pass ``args`` through."""
    firing = current_firing()
    if firing is None:
        logging.info(f"trace (outside a cascade): {args!r}")
        return args

    if firing.output is SIDE_EFFECT:
        output = repr(SIDE_EFFECT)
    else:
        output = format_path(firing.output)
    inputs = ", ".join(format_path(path) for path in firing.inputs)
    logging.info(f"{output} >> [{inputs}] : {list(firing.values)!r}")
    return args
