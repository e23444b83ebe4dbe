from collections.abc import Callable
from dataclasses import dataclass, replace
import logging
import time

from quantum_orbitals.cache.base import LRUCache
from quantum_orbitals.cache.prefetch import PrefetchJob, PrefetchQueue, Priority
from quantum_orbitals.models import MolecularOrbitalSample, QuantumState
from quantum_orbitals.tasks.pre_processing.settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MolecularRequest:
    atomic_number_a: int
    atomic_number_b: int
    state: QuantumState
    bond_length: float
    orbital_type: str = "sigma"
    particle_count: int = 2000
    theme_mode: str = "dark"

    @property
    def key(self) -> str:
        s = self.state
        return (f"{self.atomic_number_a}-{self.atomic_number_b}|{s.n}:{s.l}:{s.m}:{s.s:+.1f}|"
                f"{self.orbital_type}|{self.theme_mode}|{self.particle_count}|{self.bond_length:.3f}")


class MolecularOrbitalCache:
    """Small LRU cache of LCAO samples; bond lengths are keyed to 3 decimals."""

    def __init__(self, settings: Settings | None = None, queue: PrefetchQueue | None = None,
                 clock: Callable[[], float] = time.monotonic):
        self.settings = settings or Settings()
        self.queue = queue if queue is not None else PrefetchQueue()
        self._cache: LRUCache[MolecularOrbitalSample] = LRUCache(
            capacity=self.settings.molecular_cache_capacity,
            copy_payload=MolecularOrbitalSample.copy,
            frequency_weight=self.settings.frequency_weight,
            eviction_fraction=self.settings.eviction_fraction,
            clock=clock,
            name="molecular orbital cache",
        )

    def __len__(self) -> int:
        return len(self._cache)

    def get(self, request: MolecularRequest) -> MolecularOrbitalSample | None:
        return self._cache.get(request.key)

    def set(self, request: MolecularRequest, sample: MolecularOrbitalSample) -> None:
        self._cache.set(request.key, sample)

    def has(self, request: MolecularRequest) -> bool:
        return self._cache.has(request.key)

    def schedule_neighbors(self, request: MolecularRequest,
                           calculator: Callable[[MolecularRequest], MolecularOrbitalSample | None]) -> list[MolecularRequest]:
        """Queue the bond lengths one step shorter and longer than request."""
        step = self.settings.bond_length_step
        queued = []
        for bond_length in (request.bond_length - step, request.bond_length + step):
            if bond_length <= step:
                continue
            neighbor = replace(request, bond_length=round(bond_length, 3))
            job = PrefetchJob(
                key=neighbor.key,
                priority=Priority.MEDIUM,
                is_cached=lambda neighbor=neighbor: self.has(neighbor),
                compute=lambda neighbor=neighbor: self._fill(neighbor, calculator),
                description=f"{neighbor.orbital_type} R={neighbor.bond_length:.3f}",
            )
            if self.queue.push(job):
                queued.append(neighbor)
        return queued

    def _fill(self, request: MolecularRequest,
              calculator: Callable[[MolecularRequest], MolecularOrbitalSample | None]) -> None:
        sample = calculator(request)
        if sample is not None:
            self.set(request, sample)

    def cancel_preloads(self) -> int:
        return self.queue.clear()

    def clear(self) -> None:
        self.queue.clear()
        self._cache.clear()

    def stats(self) -> dict:
        stats = self._cache.stats()
        stats["queue_length"] = len(self.queue)
        return stats
