"""
Greedy distance thinning engine.

For every anchor of a precomputed traversal sequence, the engine asks the
point store for live points within the threshold of the anchor and removes
each unprotected one. The anchor absorbs its neighborhood: it never removes
itself, though a later anchor may still remove it.

The loop is strictly sequential. Each proximity query must observe every
removal committed before it, so collaborator calls are blocking and a failure
aborts the whole run without exposing a result.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

import numpy as np
import structlog
from pydantic import BaseModel, Field

from .exceptions import CollaboratorError, ConfigurationError, ThinningError, UnknownPointError
from .population import MIN_POPULATION_SIZE, InputPopulation, WorkingSet
from .progress import ProgressReporter
from .protection import ProtectedSet
from .traversal import TraversalOrder, TraversalSequence, build_traversal_sequence

logger = structlog.get_logger()


class ProximityQuery(Protocol):
    """Return ids of live points within threshold of the anchor geometry."""

    def __call__(self, anchor: Any, threshold: float) -> Iterable[int]:
        ...


class RemovalOp(Protocol):
    """Permanently remove a point (geometry and record). Idempotent."""

    def __call__(self, point_id: int) -> None:
        ...


class PointStore(Protocol):
    """A collaborator providing every capability a thinning run needs."""

    def population(self) -> InputPopulation:
        ...

    def query_within(self, anchor: Any, threshold: float) -> Iterable[int]:
        ...

    def remove(self, point_id: int) -> None:
        ...

    def select(self, predicate: str) -> Iterable[int]:
        ...


class ThinningOptions(BaseModel):
    """Per-run thinning options."""

    threshold: float = Field(..., description="Minimum distance between retained points")
    order: TraversalOrder = Field(
        default=TraversalOrder.ASCENDING, description="Anchor traversal order"
    )
    protected_predicate: Optional[str] = Field(
        default=None, description="Selection predicate for protected points"
    )
    invert: bool = Field(
        default=False, description="Selected points are the only removable ones"
    )
    seed: Optional[int] = Field(default=None, description="Seed for random traversal")
    progress_step: int = Field(default=10, description="Percent step between progress events")


class EngineState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ThinningResult:
    """Outcome of a completed run."""

    retained: Tuple[int, ...]
    removed: Tuple[int, ...]
    traversal: TraversalSequence
    retained_points: Dict[int, Any] = field(default_factory=dict)  # id -> original geometry

    @property
    def removed_count(self) -> int:
        return len(self.removed)


def check_options(options: ThinningOptions) -> None:
    """Validate options that do not depend on the population."""
    if not math.isfinite(options.threshold) or options.threshold < 0:
        raise ConfigurationError(f"Threshold must be a finite value >= 0, got {options.threshold}")

    if options.invert and not (options.protected_predicate or "").strip():
        raise ConfigurationError("Inverted protection requires a selection predicate")


def check_preconditions(population_size: int, options: ThinningOptions) -> None:
    """
    Validate a run before anything is removed.

    Raises:
        ConfigurationError: On a negative or non-finite threshold, inversion
            without a predicate, or fewer than two points
    """
    check_options(options)
    if population_size < MIN_POPULATION_SIZE:
        raise ConfigurationError(
            f"At least {MIN_POPULATION_SIZE} points are required for thinning, got {population_size}"
        )


class ThinningEngine:
    """
    Runs one thinning pass over a population.

    An engine instance is single use; its working set is discarded on
    failure and only a completed run yields a ThinningResult.
    """

    def __init__(
        self,
        population: InputPopulation,
        proximity_query: ProximityQuery,
        remove_point: RemovalOp,
        options: ThinningOptions,
        protected: Optional[ProtectedSet] = None,
        rng: Optional[np.random.Generator] = None,
        on_progress: Optional[Callable[[int], None]] = None,
    ):
        check_preconditions(len(population), options)
        if protected is not None and protected.invert != options.invert:
            raise ConfigurationError("Protected set inversion does not match the run options")

        self.population = population
        self.options = options
        self.protected = protected if protected is not None else ProtectedSet.empty()
        self._proximity_query = proximity_query
        self._remove_point = remove_point
        self._rng = rng
        self._on_progress = on_progress
        self.state = EngineState.PENDING

    def run(self) -> ThinningResult:
        """
        Visit every anchor once and return the surviving population.

        Raises:
            CollaboratorError: If a proximity query or removal fails
            UnknownPointError: If the store reports an id outside the population
        """
        if self.state is not EngineState.PENDING:
            raise ThinningError(f"Engine already used (state={self.state.value})")

        sequence = build_traversal_sequence(
            self.population.keys_sorted,
            self.options.order,
            rng=self._rng,
            seed=self.options.seed,
        )
        working = WorkingSet(self.population)
        progress = ProgressReporter(
            len(sequence), step=self.options.progress_step, callback=self._on_progress
        )

        logger.info(
            "Starting thinning",
            points=len(self.population),
            threshold=self.options.threshold,
            order=sequence.order.value,
            selected=len(self.protected),
            invert=self.protected.invert,
        )

        self.state = EngineState.RUNNING
        try:
            for position, anchor in enumerate(sequence):
                self._step(anchor, working)
                progress.update(position + 1, len(working.removed))
        except Exception:
            self.state = EngineState.FAILED
            raise

        self.state = EngineState.DONE
        retained = working.live_sorted()
        result = ThinningResult(
            retained=retained,
            removed=working.removed,
            traversal=sequence,
            retained_points={k: self.population.geometry(k) for k in retained},
        )
        logger.info(
            "Thinning complete",
            retained=len(result.retained),
            removed=result.removed_count,
        )
        return result

    def _step(self, anchor: int, working: WorkingSet) -> None:
        # A removed anchor keeps its geometry but no longer absorbs neighbors
        if anchor not in working:
            return

        for candidate in self._query(anchor):
            if candidate == anchor:
                continue
            if self.protected.is_protected(candidate):
                continue
            if candidate not in working:
                continue
            self._remove(candidate)
            working.discard(candidate)

    def _query(self, anchor: int) -> List[int]:
        geometry = self.population.geometry(anchor)
        try:
            found = self._proximity_query(geometry, self.options.threshold)
            candidates = sorted({int(c) for c in found})
        except ThinningError:
            raise
        except Exception as e:
            logger.error("Proximity query failed", anchor=anchor, error=str(e))
            raise CollaboratorError("proximity query", anchor, e) from e

        for candidate in candidates:
            if candidate not in self.population:
                raise UnknownPointError(candidate, "proximity query")
        return candidates

    def _remove(self, point_id: int) -> None:
        try:
            self._remove_point(point_id)
        except ThinningError:
            raise
        except Exception as e:
            logger.error("Point removal failed", point_id=point_id, error=str(e))
            raise CollaboratorError("removal", point_id, e) from e


def thin_store(
    store: PointStore,
    options: ThinningOptions,
    rng: Optional[np.random.Generator] = None,
    on_progress: Optional[Callable[[int], None]] = None,
) -> ThinningResult:
    """
    Thin every point held by a store.

    The protection predicate is evaluated once through the store before the
    first anchor is visited.

    Args:
        store: Point store providing population, proximity, removal and selection
        options: Run options
        rng: Optional generator for random traversal
        on_progress: Called with the percent each time a progress step is crossed

    Returns:
        ThinningResult
    """
    population = store.population()
    check_preconditions(len(population), options)

    protected = ProtectedSet.from_predicate(
        population,
        options.protected_predicate,
        store.select,
        invert=options.invert,
    )
    engine = ThinningEngine(
        population,
        store.query_within,
        store.remove,
        options,
        protected=protected,
        rng=rng,
        on_progress=on_progress,
    )
    return engine.run()
