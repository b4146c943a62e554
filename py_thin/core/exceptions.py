"""Errors raised by the thinning core."""

from typing import Any, Optional


class ThinningError(Exception):
    """Base class for all thinning failures."""


class ConfigurationError(ThinningError, ValueError):
    """Invalid options or a degenerate input population.

    Always raised before any point is removed.
    """


class CollaboratorError(ThinningError):
    """A point store call (proximity query or removal) failed.

    The run is aborted and no partial result is exposed.
    """

    def __init__(self, operation: str, point_id: Optional[int] = None, detail: Any = None):
        self.operation = operation
        self.point_id = point_id
        message = f"{operation} failed"
        if point_id is not None:
            message += f" for point {point_id}"
        if detail is not None:
            message += f": {detail}"
        super().__init__(message)


class UnknownPointError(ThinningError):
    """An id returned by a point store is not part of the input population."""

    def __init__(self, point_id: int, source: str):
        self.point_id = point_id
        self.source = source
        super().__init__(f"{source} returned id {point_id} which is not in the input population")


class PermutationError(ThinningError):
    """Random traversal could not be generated (internal invariant violated)."""
