from collections.abc import Callable
from dataclasses import dataclass
import logging
import time

from quantum_orbitals.cache.base import LRUCache
from quantum_orbitals.cache.prefetch import PrefetchJob, PrefetchQueue, Priority
from quantum_orbitals.models import QuantumState, SampleSet
from quantum_orbitals.tasks.pre_processing.settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrbitalRequest:
    atomic_number: int
    state: QuantumState
    particle_count: int
    theme_mode: str = "dark"
    distribution_mode: str = "accurate"

    @property
    def key(self) -> str:
        return orbital_cache_key(self.atomic_number, self.state, self.particle_count,
                                 self.theme_mode, self.distribution_mode)


def orbital_cache_key(atomic_number: int, state: QuantumState, particle_count: int,
                      theme_mode: str, distribution_mode: str) -> str:
    return (f"{atomic_number}:{state.n}:{state.l}:{state.m}:{state.s:+.1f}:"
            f"{particle_count}:{theme_mode}:{distribution_mode}")


def neighbor_states(state: QuantumState, max_n: int = 5) -> list[tuple[QuantumState, Priority]]:
    """
    States a user is likely to pick next, most likely first.

    Other m of the same subshell are high priority; n - 1 (with l and m
    clamped) and n + 1 up to max_n are medium; l - 1 (m clamped) and l + 1
    with m = 0 are low.
    """
    n, l, m = state.n, state.l, state.m
    neighbors = []
    for other_m in range(-l, l + 1):
        if other_m != m:
            neighbors.append((state.replace(m=other_m), Priority.HIGH))

    if n > 1:
        lower_l = min(l, n - 2)
        neighbors.append((state.replace(n=n - 1, l=lower_l, m=max(-lower_l, min(lower_l, m))), Priority.MEDIUM))
    if n < max_n:
        neighbors.append((state.replace(n=n + 1), Priority.MEDIUM))

    if l > 0:
        neighbors.append((state.replace(l=l - 1, m=max(-(l - 1), min(l - 1, m))), Priority.LOW))
    if l < n - 1:
        neighbors.append((state.replace(l=l + 1, m=0), Priority.LOW))

    neighbors.sort(key=lambda item: item[1])
    return neighbors


class OrbitalSampleCache:
    """
    Particle samples by (Z, state, count, theme, distribution), with neighbor prefetch.
    """

    def __init__(self, settings: Settings | None = None, queue: PrefetchQueue | None = None,
                 clock: Callable[[], float] = time.monotonic):
        self.settings = settings or Settings()
        self.queue = queue if queue is not None else PrefetchQueue()
        self._cache: LRUCache[SampleSet] = LRUCache(
            capacity=self.settings.orbital_cache_capacity,
            copy_payload=SampleSet.copy,
            frequency_weight=self.settings.frequency_weight,
            eviction_fraction=self.settings.eviction_fraction,
            clock=clock,
            name="orbital cache",
        )

    def __len__(self) -> int:
        return len(self._cache)

    def get(self, request: OrbitalRequest) -> SampleSet | None:
        return self._cache.get(request.key)

    def set(self, request: OrbitalRequest, sample: SampleSet) -> None:
        self._cache.set(request.key, sample)

    def has(self, request: OrbitalRequest) -> bool:
        return self._cache.has(request.key)

    def preload_neighbors(self, request: OrbitalRequest,
                          calculator: Callable[[OrbitalRequest], SampleSet | None]) -> list[OrbitalRequest]:
        """
        Queue neighbor states of request that are not cached yet.

        Args:
            request: the state the user is looking at
            calculator: computes the sample for a queued request; a None result is not cached

        Returns:
            the requests that were queued, in priority order
        """
        queued = []
        for state, priority in neighbor_states(request.state, self.settings.max_prefetch_n):
            neighbor = OrbitalRequest(request.atomic_number, state, request.particle_count,
                                      request.theme_mode, request.distribution_mode)
            job = PrefetchJob(
                key=neighbor.key,
                priority=priority,
                is_cached=lambda neighbor=neighbor: self.has(neighbor),
                compute=lambda neighbor=neighbor: self._fill(neighbor, calculator),
                description=f"Z={neighbor.atomic_number} {state.orbital_label} m={state.m}",
            )
            if self.queue.push(job):
                queued.append(neighbor)
        if queued:
            logger.debug(f"Queued {len(queued)} orbital prefetch jobs around {request.key}")
        return queued

    def _fill(self, request: OrbitalRequest, calculator: Callable[[OrbitalRequest], SampleSet | None]) -> None:
        sample = calculator(request)
        if sample is not None:
            self.set(request, sample)

    def drain_one(self) -> bool:
        return self.queue.drain_one()

    def drain(self, delay: float | None = None, max_items: int | None = None) -> int:
        return self.queue.drain(self.settings.prefetch_delay if delay is None else delay, max_items)

    async def drain_async(self, delay: float | None = None, max_items: int | None = None) -> int:
        return await self.queue.drain_async(self.settings.prefetch_delay if delay is None else delay, max_items)

    def cancel_preloads(self) -> int:
        return self.queue.clear()

    def clear(self) -> None:
        self.queue.clear()
        self._cache.clear()

    def stats(self) -> dict:
        stats = self._cache.stats()
        stats["queue_length"] = len(self.queue)
        return stats
