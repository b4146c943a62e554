"""Input population and the live working set of a thinning run."""

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Tuple

from .exceptions import ConfigurationError

MIN_POPULATION_SIZE = 2


class InputPopulation(Mapping):
    """
    Immutable id -> geometry mapping of every point present at run start.

    Geometry is opaque here; it is only handed back to the point store as
    the anchor of a proximity query. Keys are kept sorted ascending.
    """

    def __init__(self, points: Iterable[Tuple[int, Any]]):
        geometries: Dict[int, Any] = {}
        for point_id, geometry in points:
            key = int(point_id)
            if key in geometries:
                raise ConfigurationError(f"Duplicate point id {key}")
            geometries[key] = geometry

        if len(geometries) < MIN_POPULATION_SIZE:
            raise ConfigurationError(
                f"At least {MIN_POPULATION_SIZE} points are required for thinning, "
                f"got {len(geometries)}"
            )

        self._geometries = geometries
        self._keys = tuple(sorted(geometries))

    @classmethod
    def from_mapping(cls, geometries: Mapping[int, Any]) -> "InputPopulation":
        """Build from an id -> geometry mapping."""
        return cls(geometries.items())

    @property
    def keys_sorted(self) -> Tuple[int, ...]:
        """All ids, ascending."""
        return self._keys

    @property
    def min_key(self) -> int:
        return self._keys[0]

    @property
    def max_key(self) -> int:
        return self._keys[-1]

    def geometry(self, point_id: int) -> Any:
        """Original geometry of a point, whether or not it is still live."""
        return self._geometries[point_id]

    def __getitem__(self, point_id: int) -> Any:
        return self._geometries[point_id]

    def __iter__(self) -> Iterator[int]:
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, point_id: object) -> bool:
        return point_id in self._geometries

    def __repr__(self) -> str:
        return f"InputPopulation(size={len(self)}, min={self.min_key}, max={self.max_key})"


class WorkingSet:
    """
    Ids still live during a run.

    Starts as the full population and only ever shrinks. Removal order is
    recorded so the run can report it.
    """

    def __init__(self, population: InputPopulation):
        self._live = set(population.keys_sorted)
        self._removed: List[int] = []

    def discard(self, point_id: int) -> bool:
        """Drop an id. Returns False if it was already gone."""
        if point_id not in self._live:
            return False
        self._live.remove(point_id)
        self._removed.append(point_id)
        return True

    @property
    def removed(self) -> Tuple[int, ...]:
        """Removed ids in removal order."""
        return tuple(self._removed)

    def live_sorted(self) -> Tuple[int, ...]:
        return tuple(sorted(self._live))

    def __contains__(self, point_id: object) -> bool:
        return point_id in self._live

    def __len__(self) -> int:
        return len(self._live)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._live))
