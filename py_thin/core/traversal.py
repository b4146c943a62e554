"""
Anchor traversal order for thinning.

The sequence is computed once from the original population. Removals during
the run never reorder it; they only change which anchors are still live.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional, Tuple

import numpy as np
import structlog

from .exceptions import ConfigurationError
from .keyset import random_permutation

logger = structlog.get_logger()


class TraversalOrder(str, Enum):
    """Order in which anchors are visited."""

    ASCENDING = "ascending"
    DESCENDING = "descending"
    RANDOM = "random"


@dataclass(frozen=True)
class TraversalSequence:
    """Fixed permutation of the population ids."""

    order: TraversalOrder
    keys: Tuple[int, ...]

    def __iter__(self) -> Iterator[int]:
        return iter(self.keys)

    def __len__(self) -> int:
        return len(self.keys)

    def __getitem__(self, position: int) -> int:
        return self.keys[position]


def build_traversal_sequence(
    population: Iterable[int],
    order: TraversalOrder,
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None,
) -> TraversalSequence:
    """
    Produce the anchor visiting order.

    Args:
        population: Ids of the original population
        order: Traversal policy
        rng: Generator for random order (takes precedence over seed)
        seed: Seed for random order when no generator is given

    Returns:
        TraversalSequence holding every id exactly once

    Raises:
        ConfigurationError: If the population is empty
    """
    keys = [int(k) for k in population]
    if not keys:
        raise ConfigurationError("Cannot build a traversal order for an empty population")

    try:
        order = TraversalOrder(order)
    except ValueError:
        raise ConfigurationError(f"Unknown traversal order: {order}") from None

    if order is TraversalOrder.ASCENDING:
        ordered = sorted(keys)
    elif order is TraversalOrder.DESCENDING:
        ordered = sorted(keys, reverse=True)
    else:
        if rng is None:
            rng = np.random.default_rng(seed)
        ordered = random_permutation(keys, rng)

    logger.debug("Traversal order built", order=order.value, anchors=len(ordered))
    return TraversalSequence(order=order, keys=tuple(ordered))
