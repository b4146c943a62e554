"""Database connection utilities."""

from contextlib import contextmanager
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
import structlog

from ..config.config import settings
from .models import Base

logger = structlog.get_logger()


class Database:
    """Owns the engine and session factory for the points database."""

    def __init__(self):
        self.engine = None
        self.SessionLocal = None

    @property
    def initialized(self) -> bool:
        return self.SessionLocal is not None

    def initialize(self, url: Optional[str] = None, create_tables: bool = True):
        """
        Connect to the database.

        Layer runs keep one session open for the whole thinning pass while
        progress updates commit through a second one, so the engine uses a
        regular connection pool rather than a single shared connection.
        """
        url = url or settings.database_url
        logger.info("Initializing database connection", host=settings.db_host, database=settings.db_name)

        self.engine = create_engine(url, pool_pre_ping=True, echo=settings.debug)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

        if create_tables:
            self.create_tables()

        logger.info("Database connection initialized")

    def create_tables(self):
        """Enable PostGIS and create the point and run tables."""
        try:
            with self.engine.begin() as conn:
                conn.execute(text("CREATE EXTENSION IF NOT EXISTS postgis"))

            Base.metadata.create_all(bind=self.engine)
            logger.info("Database tables created", tables=sorted(Base.metadata.tables))

        except Exception as e:
            logger.error("Failed to create tables", error=str(e))
            raise

    def ping(self) -> None:
        """Run a trivial query, raising if the database is unreachable."""
        with self.get_session() as session:
            session.execute(text("SELECT 1"))

    @contextmanager
    def get_session(self):
        """Session that commits on success and rolls back on any exception."""
        if not self.initialized:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


db = Database()
