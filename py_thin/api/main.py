"""FastAPI main application."""

from fastapi import FastAPI, BackgroundTasks, HTTPException
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
import structlog
import uuid
from datetime import datetime

from ..config import settings
from ..core.engine import ThinningOptions, check_options, thin_store
from ..core.exceptions import ConfigurationError, ThinningError
from ..core.point_store import ArrayPointStore
from ..core.traversal import TraversalOrder
from ..db.connection import db
from ..db.models import ThinningRun
from ..db.store import PostGISPointStore
from ..utils.logging import configure_logging

configure_logging(settings.log_level, settings.log_format)

logger = structlog.get_logger()

app = FastAPI(
    title="Point Thinning API",
    description="Greedy distance-based thinning of keyed point sets",
    version="0.1.0"
)


# Request/Response models
class PointIn(BaseModel):
    """A keyed point with optional attributes."""

    id: int = Field(..., description="Unique point id")
    x: float = Field(..., description="X coordinate")
    y: float = Field(..., description="Y coordinate")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Attributes used by selection predicates")


class ThinParameters(BaseModel):
    """Options shared by inline and layer thinning."""

    threshold: Optional[float] = Field(None, description="Minimum distance between retained points")
    order: Optional[TraversalOrder] = Field(None, description="Anchor traversal order")
    protected_predicate: Optional[str] = Field(None, description="Selection predicate for protected points")
    invert: bool = Field(False, description="Selected points are the only removable ones")
    seed: Optional[int] = Field(None, description="Seed for random traversal")

    def to_options(self) -> ThinningOptions:
        return ThinningOptions(
            threshold=self.threshold if self.threshold is not None else settings.default_threshold,
            order=self.order or TraversalOrder(settings.default_order),
            protected_predicate=self.protected_predicate,
            invert=self.invert,
            seed=self.seed if self.seed is not None else settings.random_seed,
            progress_step=settings.progress_step,
        )


class ThinRequest(ThinParameters):
    """Thin an inline point payload."""

    points: List[PointIn] = Field(..., description="Points to thin")


class ThinResponse(BaseModel):
    """Surviving points with their coordinates and attributes."""

    points: List[PointIn]
    retained: List[int]
    removed: List[int]
    removed_count: int
    traversal_order: str


class LayerPointsRequest(BaseModel):
    points: List[PointIn] = Field(..., description="Points to add to the layer")


class RunResponse(BaseModel):
    """Response with thinning run information."""

    run_id: str
    layer: str
    status: str
    progress_percent: int
    message: str
    points_before: Optional[int] = None
    points_removed: Optional[int] = None
    error_message: Optional[str] = None


def _run_response(run: ThinningRun, message: str) -> RunResponse:
    return RunResponse(
        run_id=str(run.id),
        layer=run.layer,
        status=run.status,
        progress_percent=run.progress_percent or 0,
        message=message,
        points_before=run.points_before,
        points_removed=run.points_removed,
        error_message=run.error_message,
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Point Thinning API",
        "version": "0.1.0",
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    try:
        db.ping()
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        raise HTTPException(status_code=503, detail="Service unhealthy")


@app.post("/thin", response_model=ThinResponse)
async def thin_points(request: ThinRequest):
    """Thin an inline point set and return the surviving points."""
    try:
        options = request.to_options()
        store = ArrayPointStore.from_records(p.model_dump() for p in request.points)
        result = thin_store(store, options)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ThinningError as e:
        logger.error("Thinning failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Thinning failed: {str(e)}")

    attributes = {p.id: p.attributes for p in request.points}
    points = [
        PointIn(id=pid, x=x, y=y, attributes=attributes[pid])
        for pid, (x, y) in result.retained_points.items()
    ]
    return ThinResponse(
        points=points,
        retained=list(result.retained),
        removed=list(result.removed),
        removed_count=result.removed_count,
        traversal_order=result.traversal.order.value,
    )


@app.post("/layers/{layer}/points")
async def add_layer_points(layer: str, request: LayerPointsRequest):
    """Store points in a PostGIS layer."""
    with db.get_session() as session:
        store = PostGISPointStore(session, layer)
        added = store.add_points((p.id, p.x, p.y, p.attributes) for p in request.points)
    return {"layer": layer, "added": added}


@app.post("/layers/{layer}/thin", response_model=RunResponse)
async def thin_layer(layer: str, request: ThinParameters, background_tasks: BackgroundTasks):
    """
    Start thinning a stored layer in place.

    Returns immediately with a run ID. Use /runs/{run_id} to check status.
    """
    options = request.to_options()
    try:
        check_options(options)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("Layer thinning requested", layer=layer, request=request.model_dump())
    run_id = uuid.uuid4()

    with db.get_session() as session:
        run = ThinningRun(
            id=run_id,
            layer=layer,
            status="pending",
            progress_percent=0,
            threshold=options.threshold,
            traversal_order=options.order.value,
            protected_predicate=options.protected_predicate,
            invert=options.invert,
            seed=options.seed,
        )
        session.add(run)
        session.commit()
        response = _run_response(run, "Thinning run started")

    background_tasks.add_task(run_layer_thinning, run_id, layer, options)
    return response


@app.get("/runs/{run_id}", response_model=RunResponse)
async def get_run_status(run_id: str):
    """Get status of a thinning run."""
    with db.get_session() as session:
        run = session.query(ThinningRun).filter(ThinningRun.id == run_id).first()

        if not run:
            raise HTTPException(status_code=404, detail="Run not found")

        return _run_response(run, f"Run {run.status}")


def _record_progress(run_id: uuid.UUID, percent: int) -> None:
    with db.get_session() as session:
        run = session.get(ThinningRun, run_id)
        run.progress_percent = percent
        session.commit()


def run_layer_thinning(run_id: uuid.UUID, layer: str, options: ThinningOptions):
    """Background task thinning a layer inside a single transaction."""
    with db.get_session() as session:
        run = session.get(ThinningRun, run_id)
        run.status = "running"
        run.started_at = datetime.utcnow()
        session.commit()

    try:
        with db.get_session() as session:
            store = PostGISPointStore(session, layer)
            points_before = store.count()
            result = thin_store(
                store, options, on_progress=lambda percent: _record_progress(run_id, percent)
            )

        logger.info("Layer thinning completed", run_id=str(run_id), removed=result.removed_count)
        with db.get_session() as session:
            run = session.get(ThinningRun, run_id)
            run.status = "completed"
            run.progress_percent = 100
            run.points_before = points_before
            run.points_removed = result.removed_count
            run.completed_at = datetime.utcnow()
            session.commit()

    except Exception as e:
        logger.error("Layer thinning failed", run_id=str(run_id), error=str(e))
        with db.get_session() as session:
            run = session.get(ThinningRun, run_id)
            run.status = "failed"
            run.error_message = str(e)
            run.completed_at = datetime.utcnow()
            session.commit()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
