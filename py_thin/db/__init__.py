"""
Database utilities and models.

This package provides:
- SQLAlchemy models for stored point layers and thinning runs
- Database connection management
- A PostGIS-backed point store for the thinning engine
"""

from .connection import Database, db
from .models import Base, PointFeature, ThinningRun
from .store import PostGISPointStore

__all__ = [
    'Database', 'db',
    'Base', 'PointFeature', 'ThinningRun',
    'PostGISPointStore',
]
