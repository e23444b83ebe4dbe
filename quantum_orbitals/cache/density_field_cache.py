from collections.abc import Callable
import logging
import time

from quantum_orbitals.cache.base import CacheEntry, LRUCache
from quantum_orbitals.models import DensityFieldData, QuantumState
from quantum_orbitals.tasks.pre_processing.settings import Settings

logger = logging.getLogger(__name__)

extent_tolerance = 1e-3
max_probability_tolerance = 0.02  # relative
min_probability_tolerance = 1e-10


def _group_key(atomic_number: int, state: QuantumState) -> str:
    return f"{atomic_number}:{state.n}:{state.l}:{state.m}:{state.s:+.1f}"


def within_tolerance(field: DensityFieldData, extent: float, max_probability: float) -> bool:
    """Whether a field computed for (field.extent, field.max_probability) can stand in for the request."""
    allowed = max(min_probability_tolerance, max_probability_tolerance * abs(max_probability))
    return (abs(field.extent - extent) < extent_tolerance
            and abs(field.max_probability - max_probability) <= allowed)


class DensityFieldCache:
    """
    Density grids per (Z, state), one per resolution, reused within tolerance.

    A lookup takes the lowest cached resolution at or above the target whose
    extent and max probability are within tolerance, and otherwise the highest
    resolution within tolerance.
    """

    def __init__(self, settings: Settings | None = None, clock: Callable[[], float] = time.monotonic):
        self.settings = settings or Settings()
        self._index: dict[str, dict[int, str]] = {}
        self._cache: LRUCache[DensityFieldData] = LRUCache(
            capacity=self.settings.density_cache_capacity,
            copy_payload=DensityFieldData.copy,
            frequency_weight=self.settings.frequency_weight,
            eviction_fraction=self.settings.eviction_fraction,
            clock=clock,
            on_evict=self._forget,
            name="density field cache",
        )

    def __len__(self) -> int:
        return len(self._cache)

    def _forget(self, entry: CacheEntry[DensityFieldData]) -> None:
        group, _, resolution = entry.key.rpartition("@")
        resolutions = self._index.get(group)
        if resolutions is None:
            return
        resolutions.pop(int(resolution), None)
        if not resolutions:
            del self._index[group]

    def _find(self, atomic_number: int, state: QuantumState, resolution: int,
              extent: float, max_probability: float) -> str | None:
        resolutions = self._index.get(_group_key(atomic_number, state), {})
        matching = sorted(
            res for res, key in resolutions.items()
            if within_tolerance(self._cache.peek(key).payload, extent, max_probability)
        )
        if not matching:
            return None
        for res in matching:
            if res >= resolution:
                return resolutions[res]
        return resolutions[matching[-1]]

    def get(self, atomic_number: int, state: QuantumState, resolution: int,
            extent: float, max_probability: float) -> DensityFieldData | None:
        key = self._find(atomic_number, state, resolution, extent, max_probability)
        if key is None:
            self._cache.misses += 1
            return None
        logger.debug(f"Density field cache hit: {key} for target resolution {resolution}")
        return self._cache.get(key)

    def set(self, atomic_number: int, state: QuantumState, field: DensityFieldData) -> None:
        group = _group_key(atomic_number, state)
        key = f"{group}@{field.resolution}"
        self._index.setdefault(group, {})[field.resolution] = key
        self._cache.set(key, field)

    def ensure(self, atomic_number: int, state: QuantumState, resolution: int, extent: float,
               max_probability: float, compute: Callable[[], DensityFieldData]) -> DensityFieldData:
        """Cached field within tolerance, or compute(), store and return it."""
        cached = self.get(atomic_number, state, resolution, extent, max_probability)
        if cached is not None:
            return cached
        field = compute()
        self.set(atomic_number, state, field)
        return field

    def clear(self) -> None:
        self._cache.clear()
        self._index.clear()

    def stats(self) -> dict:
        stats = self._cache.stats()
        stats["states"] = len(self._index)
        return stats
