from collections.abc import Callable
import logging
import time

import numpy as np

from quantum_orbitals.cache.density_field_cache import DensityFieldCache
from quantum_orbitals.cache.molecular_cache import MolecularOrbitalCache, MolecularRequest
from quantum_orbitals.cache.orbital_cache import OrbitalRequest, OrbitalSampleCache
from quantum_orbitals.cache.prefetch import PrefetchQueue
from quantum_orbitals.models import (
    DensityFieldData,
    MolecularOrbitalSample,
    QuantumState,
    SampleSet,
    validate_atomic_number,
    validate_quantum_state,
)
from quantum_orbitals.tasks.data_processing.density_field import (
    evaluate_density_field,
    evaluate_molecular_density_field,
    resolve_density_resolution,
)
from quantum_orbitals.tasks.data_processing.metropolis_sampler import (
    generate_configuration_particles,
    generate_orbital_particles,
)
from quantum_orbitals.tasks.data_processing.molecular_sampler import generate_molecular_orbital_sample
from quantum_orbitals.tasks.pre_processing.settings import Settings
from quantum_orbitals.utils import ErrorHandler

logger = logging.getLogger(__name__)


class CacheSession:
    """
    Owner of the three caches and their shared prefetch queue.

    Every getter checks its cache first and on a miss computes, stores and
    returns the result. Foreground requests never wait for the prefetch queue:
    if a background job for the same key is pending, both compute, which is
    wasteful but yields the same cached value.
    """

    def __init__(self, settings: Settings | None = None, rng: np.random.Generator | None = None,
                 clock: Callable[[], float] = time.monotonic):
        self.settings = settings or Settings()
        self.rng = rng if rng is not None else np.random.default_rng(self.settings.seed)
        self.error_handler = ErrorHandler()
        self.queue = PrefetchQueue(self.error_handler)
        self.orbital_cache = OrbitalSampleCache(self.settings, self.queue, clock)
        self.density_cache = DensityFieldCache(self.settings, clock)
        self.molecular_cache = MolecularOrbitalCache(self.settings, self.queue, clock)

    def _compute_orbital(self, request: OrbitalRequest) -> SampleSet:
        return generate_orbital_particles(
            request.atomic_number, request.state, request.particle_count,
            request.theme_mode, request.distribution_mode, self.settings, self.rng,
        )

    def _compute_molecular(self, request: MolecularRequest) -> MolecularOrbitalSample:
        return generate_molecular_orbital_sample(
            request.atomic_number_a, request.atomic_number_b, request.state, request.bond_length,
            request.orbital_type, request.particle_count, request.theme_mode, self.settings, self.rng,
        )

    def get_orbital_particles(self, atomic_number: int, state: QuantumState, particle_count: int,
                              theme_mode: str = "dark", distribution_mode: str = "accurate",
                              prefetch: bool = True) -> SampleSet:
        """
        Particles for one orbital, from cache when possible.

        Args:
            prefetch: queue the neighboring states for background sampling
        """
        validate_atomic_number(atomic_number)
        validate_quantum_state(state)
        request = OrbitalRequest(atomic_number, state, particle_count, theme_mode, distribution_mode)
        sample = self.orbital_cache.get(request)
        if sample is None:
            sample = self._compute_orbital(request)
            self.orbital_cache.set(request, sample)
        if prefetch:
            self.orbital_cache.preload_neighbors(request, self._compute_orbital)
        return sample

    def get_configuration_particles(self, atomic_number: int, particle_count: int, theme_mode: str = "dark",
                                    distribution_mode: str = "accurate") -> SampleSet:
        return generate_configuration_particles(atomic_number, particle_count, theme_mode, distribution_mode,
                                                self.settings, self.rng)

    def get_density_field(self, atomic_number: int, state: QuantumState, extent: float, max_probability: float,
                          grid_resolution: int, distribution_mode: str = "accurate") -> DensityFieldData:
        """Density grid at the adaptive resolution for grid_resolution, reused within tolerance."""
        validate_atomic_number(atomic_number)
        validate_quantum_state(state)
        resolution = resolve_density_resolution(grid_resolution, distribution_mode, self.settings)
        return self.density_cache.ensure(
            atomic_number, state, resolution, extent, max_probability,
            lambda: evaluate_density_field(atomic_number, state, extent, max_probability, resolution),
        )

    def get_molecular_sample(self, request: MolecularRequest, prefetch: bool = True) -> MolecularOrbitalSample:
        validate_atomic_number(request.atomic_number_a)
        validate_atomic_number(request.atomic_number_b)
        validate_quantum_state(request.state)
        sample = self.molecular_cache.get(request)
        if sample is None:
            sample = self._compute_molecular(request)
            self.molecular_cache.set(request, sample)
        if prefetch:
            self.molecular_cache.schedule_neighbors(request, self._compute_molecular)
        return sample

    def get_molecular_density_field(self, request: MolecularRequest, extent: float, max_probability: float,
                                    grid_resolution: int, distribution_mode: str = "accurate") -> DensityFieldData:
        resolution = resolve_density_resolution(grid_resolution, distribution_mode, self.settings)
        return evaluate_molecular_density_field(
            request.atomic_number_a, request.atomic_number_b, request.state, request.bond_length,
            request.orbital_type, extent, max_probability, resolution,
        )

    def drain_one(self) -> bool:
        return self.queue.drain_one()

    def drain_prefetch(self, max_items: int | None = None, delay: float | None = None) -> int:
        return self.queue.drain(self.settings.prefetch_delay if delay is None else delay, max_items)

    async def drain_prefetch_async(self, max_items: int | None = None, delay: float | None = None) -> int:
        return await self.queue.drain_async(self.settings.prefetch_delay if delay is None else delay, max_items)

    def cancel_prefetch(self) -> int:
        return self.queue.clear()

    def clear(self) -> None:
        self.orbital_cache.clear()
        self.density_cache.clear()
        self.molecular_cache.clear()

    def stats(self) -> dict:
        return {
            "orbital": self.orbital_cache.stats(),
            "density": self.density_cache.stats(),
            "molecular": self.molecular_cache.stats(),
            "queue_length": len(self.queue),
            "prefetch_completed": self.queue.completed,
            "prefetch_failed": self.queue.failed,
        }
