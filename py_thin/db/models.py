"""Database models for stored point layers and thinning runs."""

from sqlalchemy import Column, Integer, String, Float, Boolean, Text, DateTime, UniqueConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import UUID, JSONB
from geoalchemy2 import Geometry
import uuid
from datetime import datetime

from ..config.config import settings

Base = declarative_base()


class PointFeature(Base):
    """A keyed point belonging to a named layer."""

    __tablename__ = "point_features"
    __table_args__ = (UniqueConstraint("layer", "point_id", name="uq_point_features_layer_point"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    layer = Column(String(255), nullable=False, index=True)
    point_id = Column(Integer, nullable=False)  # Thinning key, unique within a layer

    geometry = Column(Geometry("POINT", srid=settings.srid, spatial_index=True))
    attributes = Column(JSONB, default=dict)


class ThinningRun(Base):
    """Track thinning runs over stored layers."""

    __tablename__ = "thinning_runs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    layer = Column(String(255), nullable=False)

    status = Column(String(20), default="pending")  # pending, running, completed, failed
    progress_percent = Column(Integer, default=0)
    error_message = Column(Text)

    # Request parameters
    threshold = Column(Float, nullable=False)
    traversal_order = Column(String(20), nullable=False)
    protected_predicate = Column(Text)
    invert = Column(Boolean, default=False)
    seed = Column(Integer)

    # Outcome
    points_before = Column(Integer)
    points_removed = Column(Integer)

    created_at = Column(DateTime, default=datetime.utcnow)
    started_at = Column(DateTime)
    completed_at = Column(DateTime)
