"""
GeoDataFrame-backed point store.

Reads and writes vector files through geopandas and answers proximity
queries with the frame's spatial index followed by an exact distance check.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional, Union

import geopandas as gpd
import numpy as np
import pandas as pd
import structlog
from shapely.geometry import Point

from .exceptions import ConfigurationError
from .population import InputPopulation

logger = structlog.get_logger()


def _integer_keys(column: pd.Series) -> np.ndarray:
    """Key column as int64, rejecting values that are not whole numbers."""
    if pd.api.types.is_integer_dtype(column):
        return column.to_numpy(dtype=np.int64)

    if pd.api.types.is_float_dtype(column):
        values = column.to_numpy(dtype=float)
        if np.isnan(values).any():
            raise ConfigurationError(f"Key column {column.name!r} contains missing values")
        if not all(float(v).is_integer() for v in values):
            raise ConfigurationError(f"Key column {column.name!r} contains non-integer values")
        return values.astype(np.int64)

    raise ConfigurationError(
        f"Key column {column.name!r} must hold integers, found dtype {column.dtype}"
    )


class GeoDataFramePointStore:
    """
    Point store over a GeoDataFrame of Point geometries.

    Every row carries a unique integer key in `key_column`. Removed rows are
    masked out rather than dropped so the spatial index stays valid; the
    reduced frame is produced by `to_geodataframe()`.
    """

    def __init__(self, frame: gpd.GeoDataFrame, key_column: str = "id"):
        if key_column not in frame.columns:
            raise ConfigurationError(f"Key column {key_column!r} not found")

        geom_types = set(frame.geometry.geom_type.dropna().unique())
        if frame.geometry.isna().any() or not geom_types <= {"Point"}:
            raise ConfigurationError(
                f"Only Point geometries can be thinned, found {sorted(geom_types)}"
            )

        keys = _integer_keys(frame[key_column])
        if len(np.unique(keys)) != len(keys):
            raise ConfigurationError(f"Values in {key_column!r} must be unique")

        self.key_column = key_column
        self._frame = frame.reset_index(drop=True)
        self._keys = keys
        self._positions = {int(k): i for i, k in enumerate(keys)}
        self._alive = np.ones(len(keys), dtype=bool)
        self._sindex = self._frame.sindex

        logger.debug("GeoDataFrame point store built", points=len(keys), crs=str(frame.crs))

    @classmethod
    def from_file(
        cls, path: Union[str, Path], key_column: str = "id", layer: Optional[str] = None
    ) -> GeoDataFramePointStore:
        """Load a point layer from any vector format geopandas can read."""
        frame = gpd.read_file(path, layer=layer) if layer else gpd.read_file(path)
        logger.info("Loaded point layer", path=str(path), layer=layer, points=len(frame))
        return cls(frame, key_column=key_column)

    @property
    def crs(self) -> Any:
        return self._frame.crs

    def population(self) -> InputPopulation:
        return InputPopulation(zip((int(k) for k in self._keys), self._frame.geometry))

    def query_within(self, anchor: Point, threshold: float) -> List[int]:
        """Ids of live points within threshold (inclusive) of anchor."""
        x, y = anchor.x, anchor.y
        box = (x - threshold, y - threshold, x + threshold, y + threshold)
        geometries = self._frame.geometry

        found = []
        for position in self._sindex.intersection(box):
            if not self._alive[position]:
                continue
            if geometries.iloc[position].distance(anchor) <= threshold:
                found.append(int(self._keys[position]))
        return found

    def remove(self, point_id: int) -> None:
        position = self._positions.get(int(point_id))
        if position is not None:
            self._alive[position] = False

    def select(self, predicate: str) -> List[int]:
        """Ids of rows matching a pandas query expression over the attribute columns."""
        try:
            matched = self._frame.query(predicate)
        except Exception as e:
            raise ConfigurationError(f"Invalid selection predicate {predicate!r}: {e}") from e
        return [int(k) for k in matched[self.key_column]]

    def to_geodataframe(self) -> gpd.GeoDataFrame:
        """Surviving rows, geometry and attributes together."""
        return self._frame[self._alive].copy()

    def write(self, path: Union[str, Path], **kwargs) -> None:
        """Write the surviving rows to a vector file."""
        reduced = self.to_geodataframe()
        reduced.to_file(path, **kwargs)
        logger.info("Wrote thinned layer", path=str(path), points=len(reduced))

    def __len__(self) -> int:
        return int(self._alive.sum())
