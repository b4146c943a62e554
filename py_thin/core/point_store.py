"""
In-memory point store backed by a KD-tree.

Coordinates are indexed once; removal only flips a live mask, so the tree
never has to be rebuilt during a run.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import structlog
from scipy.spatial import cKDTree

from .exceptions import ConfigurationError
from .population import InputPopulation

logger = structlog.get_logger()


class ArrayPointStore:
    """
    Point store over an id array and an (n, d) coordinate array.

    Attributes, when given, are a DataFrame indexed by point id and are what
    selection predicates (pandas query expressions) are evaluated against.
    """

    def __init__(
        self,
        ids: Sequence[int],
        coordinates: Sequence[Sequence[float]],
        attributes: Optional[pd.DataFrame] = None,
    ):
        self.ids = np.asarray(ids, dtype=np.int64)
        self.coordinates = np.asarray(coordinates, dtype=float)

        if self.coordinates.ndim != 2 or len(self.coordinates) != len(self.ids):
            raise ConfigurationError(
                f"Expected one coordinate row per id, got {len(self.ids)} ids "
                f"and coordinates of shape {self.coordinates.shape}"
            )
        if len(np.unique(self.ids)) != len(self.ids):
            raise ConfigurationError("Point ids must be unique")

        self._positions = {int(pid): i for i, pid in enumerate(self.ids)}
        self._alive = np.ones(len(self.ids), dtype=bool)
        self._tree = cKDTree(self.coordinates)

        if attributes is not None:
            missing = set(self._positions) - set(int(k) for k in attributes.index)
            if missing:
                raise ConfigurationError(f"Attributes missing for {len(missing)} point(s)")
        self.attributes = attributes

        logger.debug("Array point store built", points=len(self.ids), dims=self.coordinates.shape[1])

    @classmethod
    def from_records(cls, records: Iterable[dict], key: str = "id") -> "ArrayPointStore":
        """
        Build from dicts holding an id, x, y and optional attributes.

        Args:
            records: Dicts like {"id": 1, "x": 0.0, "y": 0.0, "attributes": {...}}
            key: Name of the id field

        Returns:
            ArrayPointStore
        """
        ids = []
        coords = []
        rows = []
        for record in records:
            ids.append(int(record[key]))
            coords.append((float(record["x"]), float(record["y"])))
            rows.append(dict(record.get("attributes") or {}))

        attributes = pd.DataFrame(rows, index=pd.Index(ids, name=key)) if ids else None
        return cls(ids, np.asarray(coords, dtype=float).reshape(-1, 2), attributes)

    def population(self) -> InputPopulation:
        return InputPopulation(
            (int(pid), tuple(self.coordinates[i])) for i, pid in enumerate(self.ids)
        )

    def query_within(self, anchor: Sequence[float], threshold: float) -> List[int]:
        """Ids of live points within threshold (inclusive) of anchor."""
        found = self._tree.query_ball_point(np.asarray(anchor, dtype=float), r=threshold)
        return [int(self.ids[i]) for i in found if self._alive[i]]

    def remove(self, point_id: int) -> None:
        position = self._positions.get(int(point_id))
        if position is None or not self._alive[position]:
            return
        self._alive[position] = False

    def select(self, predicate: str) -> List[int]:
        """Ids whose attributes satisfy a pandas query expression."""
        if self.attributes is None:
            raise ConfigurationError("Point store has no attributes to evaluate a predicate against")
        try:
            matched = self.attributes.query(predicate)
        except Exception as e:
            raise ConfigurationError(f"Invalid selection predicate {predicate!r}: {e}") from e
        return [int(k) for k in matched.index]

    def is_live(self, point_id: int) -> bool:
        position = self._positions.get(int(point_id))
        return position is not None and bool(self._alive[position])

    def live_ids(self) -> List[int]:
        return sorted(int(pid) for pid in self.ids[self._alive])

    def live_coordinates(self) -> Tuple[np.ndarray, np.ndarray]:
        """Ids and coordinates of the live points, in storage order."""
        return self.ids[self._alive], self.coordinates[self._alive]

    def to_frame(self) -> pd.DataFrame:
        """Live points as a DataFrame with one column per coordinate plus attributes."""
        ids, coords = self.live_coordinates()
        columns = ["x", "y", "z"][: coords.shape[1]] if coords.shape[1] <= 3 else [
            f"c{i}" for i in range(coords.shape[1])
        ]
        frame = pd.DataFrame(coords, columns=columns, index=pd.Index(ids, name="id"))
        if self.attributes is not None:
            frame = frame.join(self.attributes, how="left")
        return frame

    def __len__(self) -> int:
        return int(self._alive.sum())
