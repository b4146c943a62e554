"""
Lookup and permutation helpers over integer key collections.

Sorted collections get short-circuit searches: an ascending sequence is
bisected, a descending one is scanned until the scanned value crosses the
key being looked up. Unsorted collections fall back to a linear scan.
"""

from bisect import bisect_left
from typing import Iterable, List, Optional, Sequence

import numpy as np

from .exceptions import PermutationError


def find_ascending(keys: Sequence[int], key: int) -> Optional[int]:
    """
    Locate key in an ascending sequence.

    Args:
        keys: Keys sorted ascending
        key: Key to look up

    Returns:
        Index of key, or None if absent
    """
    index = bisect_left(keys, key)
    if index < len(keys) and keys[index] == key:
        return index
    return None


def find_descending(keys: Sequence[int], key: int) -> Optional[int]:
    """
    Locate key in a descending sequence, stopping once values drop below key.

    Args:
        keys: Keys sorted descending
        key: Key to look up

    Returns:
        Index of key, or None if absent
    """
    for index, value in enumerate(keys):
        if value == key:
            return index
        if value < key:
            break
    return None


def find_unsorted(keys: Sequence[int], key: int) -> Optional[int]:
    """Locate key by linear scan."""
    for index, value in enumerate(keys):
        if value == key:
            return index
    return None


def contains(keys: Sequence[int], key: int, order: Optional[str] = None) -> bool:
    """
    Membership test dispatching on how keys are sorted.

    Args:
        keys: Key collection
        key: Key to look up
        order: "ascending", "descending" or None for unsorted

    Returns:
        True if key is present
    """
    if order == "ascending":
        return find_ascending(keys, key) is not None
    if order == "descending":
        return find_descending(keys, key) is not None
    if order is None:
        return find_unsorted(keys, key) is not None
    raise ValueError(f"Unknown key order: {order}")


def random_permutation(keys: Iterable[int], rng: np.random.Generator) -> List[int]:
    """
    Draw every key once, uniformly at random, without replacement.

    Each step picks a uniform index into the remaining pool, moves that key to
    the output and shrinks the pool by swapping the last pooled key into the
    freed slot.

    Args:
        keys: Keys to permute
        rng: NumPy random generator

    Returns:
        Keys in random order

    Raises:
        PermutationError: If there is nothing to permute
    """
    pool = [int(k) for k in keys]
    if not pool:
        raise PermutationError("Cannot randomize an empty key collection")

    permutation = []
    remaining = len(pool)
    while remaining > 0:
        pick = int(rng.integers(0, remaining))
        permutation.append(pool[pick])
        remaining -= 1
        pool[pick] = pool[remaining]

    return permutation
