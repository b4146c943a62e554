#!/usr/bin/env python3
"""
Demonstration of point thinning.

This script shows:
1. Thinning with each traversal order
2. Protecting points with a selection predicate
3. Inverted protection
"""

import numpy as np
import pandas as pd

from py_thin.core import ArrayPointStore, ThinningOptions, thin_store


def build_store(seed=1):
    rng = np.random.default_rng(seed)
    n = 500
    ids = np.arange(1, n + 1)
    coords = rng.uniform(0, 50, size=(n, 2))
    attributes = pd.DataFrame(
        {"kind": rng.choice(["well", "spring", "bore"], size=n)},
        index=pd.Index(ids, name="id"),
    )
    return ArrayPointStore(ids, coords, attributes)


def main():
    print("=== Point Thinning Demo ===\n")

    print("1. Traversal orders (threshold=3.0)")
    for order in ("ascending", "descending", "random"):
        result = thin_store(build_store(), ThinningOptions(threshold=3.0, order=order, seed=7))
        print(f"   - {order:<10}: kept {len(result.retained)}, removed {result.removed_count}")

    print("\n2. Protecting wells")
    store = build_store()
    wells = set(store.select("kind == 'well'"))
    result = thin_store(store, ThinningOptions(threshold=3.0, protected_predicate="kind == 'well'"))
    print(f"   - Wells: {len(wells)}, all kept: {wells <= set(result.retained)}")
    print(f"   - Kept {len(result.retained)}, removed {result.removed_count}")

    print("\n3. Only bores may be removed")
    result = thin_store(
        build_store(),
        ThinningOptions(threshold=3.0, protected_predicate="kind == 'bore'", invert=True),
    )
    print(f"   - Kept {len(result.retained)}, removed {result.removed_count}")


if __name__ == "__main__":
    main()
