"""
Protected point set.

Protected ids are never removed. In inverted mode the selected ids are the
only removable ones and everything else is protected.
"""

from typing import Callable, Iterable, Optional, Tuple

import structlog

from .exceptions import ConfigurationError, UnknownPointError
from .keyset import find_ascending
from .population import InputPopulation

logger = structlog.get_logger()

# Evaluates a selection predicate against point attributes, returning matching ids
PredicateEvaluator = Callable[[str], Iterable[int]]


class ProtectedSet:
    """Static, sorted set of selected ids plus the inversion flag."""

    def __init__(self, keys: Iterable[int] = (), invert: bool = False):
        self._keys: Tuple[int, ...] = tuple(sorted({int(k) for k in keys}))
        self.invert = invert

    @classmethod
    def empty(cls) -> "ProtectedSet":
        return cls()

    @classmethod
    def from_predicate(
        cls,
        population: InputPopulation,
        predicate: Optional[str],
        evaluate: Optional[PredicateEvaluator],
        invert: bool = False,
    ) -> "ProtectedSet":
        """
        Evaluate the selection predicate once and build the protected set.

        Args:
            population: Original input population
            predicate: Filter expression understood by the point store
            evaluate: Callable running the predicate, returning matching ids
            invert: Treat matches as the only removable ids

        Returns:
            ProtectedSet

        Raises:
            ConfigurationError: If invert is requested without a predicate
            UnknownPointError: If the predicate selects ids outside the population
        """
        if predicate is None or not predicate.strip():
            if invert:
                raise ConfigurationError("Inverted protection requires a selection predicate")
            return cls.empty()

        if evaluate is None:
            raise ConfigurationError("A selection predicate was given but the point store cannot evaluate it")

        selected = [int(k) for k in evaluate(predicate)]
        for key in selected:
            if key not in population:
                raise UnknownPointError(key, "selection predicate")

        if not selected:
            logger.warning(
                "Selection predicate matched no points",
                predicate=predicate,
                invert=invert,
            )
        else:
            logger.info(
                "Protected set built",
                predicate=predicate,
                selected=len(set(selected)),
                invert=invert,
            )

        return cls(selected, invert=invert)

    @property
    def keys(self) -> Tuple[int, ...]:
        """Selected ids, ascending."""
        return self._keys

    def is_selected(self, point_id: int) -> bool:
        return find_ascending(self._keys, point_id) is not None

    def is_protected(self, point_id: int) -> bool:
        """True if the id must never be removed."""
        selected = self.is_selected(point_id)
        return not selected if self.invert else selected

    def __contains__(self, point_id: int) -> bool:
        return self.is_protected(int(point_id))

    def __len__(self) -> int:
        return len(self._keys)

    def __repr__(self) -> str:
        return f"ProtectedSet(selected={len(self._keys)}, invert={self.invert})"
