"""
Metamorph error hierarchy.

All metamorph-specific errors inherit from MetamorphError for easy catching.
Cascade skip conditions are raised and caught inside the engine; they never
escape ``observe``.
"""


class MetamorphError(Exception):
    """Base error for all metamorph operations."""

    pass


class StructureError(MetamorphError, TypeError):
    """Raised when a write would pass through a leaf as if it were a container."""

    pass


class ActionError(MetamorphError):
    """Raised when an action in a rule's chain fails to evaluate."""

    def __init__(self, name, inputs, output):
        self.name = name
        self.inputs = inputs
        self.output = output
        super().__init__(f"Action {name!r} failed for rule {inputs} -> {output}")


class CascadeSkip(MetamorphError):
    """A rule output that cannot be produced this episode and is skipped."""

    pass


class UnresolvedActionError(CascadeSkip):
    """A rule's chain references an action that is not registered."""

    def __init__(self, name):
        self.name = name
        super().__init__(f"Action not registered: {name!r}")


class MissingArgumentError(CascadeSkip):
    """A value the chain needs does not resolve in the store."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"No value at {path}")
