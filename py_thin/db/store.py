"""
PostGIS point store.

Points of one layer live in the `point_features` table. Proximity uses
ST_DWithin in the units of the layer SRID, removal deletes the row, and
selection predicates are SQL boolean expressions over the table columns.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

import structlog
from geoalchemy2 import WKTElement
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config.config import settings
from ..core.exceptions import ConfigurationError
from ..core.population import InputPopulation
from .models import PointFeature

logger = structlog.get_logger()


class PostGISPointStore:
    """
    Point store over one layer of the `point_features` table.

    Each removal is flushed before returning so that the next proximity
    query, issued in the same transaction, no longer sees the row.
    """

    def __init__(self, session: Session, layer: str, srid: Optional[int] = None):
        self.session = session
        self.layer = layer
        self.srid = srid if srid is not None else settings.srid

    def _layer_filter(self):
        return PointFeature.layer == self.layer

    def _anchor(self, anchor: Sequence[float]):
        x, y = anchor
        return func.ST_SetSRID(func.ST_MakePoint(x, y), self.srid)

    def count(self) -> int:
        return self.session.query(func.count(PointFeature.id)).filter(self._layer_filter()).scalar()

    def population(self) -> InputPopulation:
        rows = (
            self.session.query(
                PointFeature.point_id,
                func.ST_X(PointFeature.geometry),
                func.ST_Y(PointFeature.geometry),
            )
            .filter(self._layer_filter())
            .all()
        )
        logger.info("Loaded layer population", layer=self.layer, points=len(rows))
        return InputPopulation((point_id, (x, y)) for point_id, x, y in rows)

    def query_within(self, anchor: Sequence[float], threshold: float) -> List[int]:
        rows = (
            self.session.query(PointFeature.point_id)
            .filter(
                self._layer_filter(),
                func.ST_DWithin(PointFeature.geometry, self._anchor(anchor), threshold),
            )
            .all()
        )
        return [row[0] for row in rows]

    def remove(self, point_id: int) -> None:
        deleted = (
            self.session.query(PointFeature)
            .filter(self._layer_filter(), PointFeature.point_id == point_id)
            .delete(synchronize_session=False)
        )
        self.session.flush()
        if not deleted:
            logger.debug("Point already absent", layer=self.layer, point_id=point_id)

    def select(self, predicate: str) -> List[int]:
        try:
            rows = (
                self.session.query(PointFeature.point_id)
                .filter(self._layer_filter(), text(predicate))
                .all()
            )
        except SQLAlchemyError as e:
            raise ConfigurationError(f"Invalid selection predicate {predicate!r}: {e}") from e
        return [row[0] for row in rows]

    def add_points(self, points: Iterable[Tuple[int, float, float, dict]]) -> int:
        """
        Insert points into the layer.

        Args:
            points: (point_id, x, y, attributes) tuples

        Returns:
            Number of rows added
        """
        features = [
            PointFeature(
                layer=self.layer,
                point_id=int(point_id),
                geometry=WKTElement(f"POINT({x} {y})", srid=self.srid),
                attributes=attributes or {},
            )
            for point_id, x, y, attributes in points
        ]
        self.session.add_all(features)
        self.session.flush()
        logger.info("Added points to layer", layer=self.layer, points=len(features))
        return len(features)
