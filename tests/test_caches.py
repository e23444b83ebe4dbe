import asyncio

import numpy as np
import pytest

from quantum_orbitals.cache import (
    DensityFieldCache,
    LRUCache,
    MolecularOrbitalCache,
    MolecularRequest,
    OrbitalRequest,
    OrbitalSampleCache,
    PrefetchJob,
    PrefetchQueue,
    Priority,
    neighbor_states,
    within_tolerance,
)
from quantum_orbitals.models import DensityFieldData, MolecularOrbitalSample, QuantumState, SampleSet
from quantum_orbitals.tasks.pre_processing.settings import Settings


def sample_cache(clock, capacity=5, frequency_weight=10.0):
    return LRUCache(capacity, SampleSet.copy, frequency_weight=frequency_weight, clock=clock, name="test")


def make_field(resolution: int, extent: float = 10.0, max_probability: float = 0.1) -> DensityFieldData:
    return DensityFieldData(
        resolution=resolution,
        field=np.zeros(resolution ** 3, dtype=np.float32),
        extent=extent,
        max_sample=0.0,
        max_probability=max_probability,
    )


class TestLRUCache:
    def test_frequency_weighted_eviction(self, clock, make_sample):
        cache = sample_cache(clock)
        for key in "abcde":
            cache.set(key, make_sample())
            clock.tick()
        assert clock.now == 5
        cache.get("a")
        clock.tick()
        cache.set("f", make_sample())

        assert sorted(cache.keys()) == ["a", "d", "e", "f"]
        assert "b" not in cache
        assert "c" not in cache

    def test_most_recently_accessed_entry_survives(self, clock, make_sample):
        cache = sample_cache(clock, capacity=10, frequency_weight=100.0)
        cache.set("a", make_sample())
        clock.tick()
        cache.get("a")
        clock.tick()
        cache.get("a")
        clock.tick()
        cache.set("b", make_sample())
        clock.tick()
        cache.get("b")
        clock.tick()
        cache.set("c", make_sample())

        # c has the lowest score but was touched last
        assert cache.evict() == ["b"]
        assert "c" in cache

    def test_get_returns_independent_copies(self, clock, make_sample):
        cache = sample_cache(clock)
        original = make_sample(value=2.0)
        cache.set("k", original)
        original.positions[:] = -1.0
        original.metadata["nested"]["values"].append(4)

        first = cache.get("k")
        assert np.all(first.positions == 2.0)
        assert first.metadata["nested"]["values"] == [1, 2, 3]

        first.positions[:] = 9.0
        first.metadata["tag"] = "changed"
        second = cache.get("k")
        assert np.all(second.positions == 2.0)
        assert second.metadata["tag"] == 2.0

    def test_statistics(self, clock, make_sample):
        cache = sample_cache(clock)
        cache.set("k", make_sample())
        assert cache.get("k") is not None
        assert cache.get("missing") is None
        assert cache.peek("k").access_count == 2
        assert cache.stats() == {"size": 1, "capacity": 5, "hits": 1, "misses": 1, "hit_rate": 0.5}

    def test_overwrite_keeps_access_count(self, clock, make_sample):
        cache = sample_cache(clock)
        cache.set("k", make_sample())
        cache.set("k", make_sample(value=3.0))
        assert len(cache) == 1
        assert cache.peek("k").access_count == 2
        assert np.all(cache.get("k").positions == 3.0)

    def test_delete_and_clear(self, clock, make_sample):
        cache = sample_cache(clock)
        cache.set("k", make_sample())
        assert cache.delete("k")
        assert not cache.delete("k")
        cache.set("j", make_sample())
        cache.clear()
        assert len(cache) == 0
        assert cache.hit_rate == 0.0


def test_neighbor_states_order():
    neighbors = neighbor_states(QuantumState(3, 1, 0))
    assert [(s.n, s.l, s.m) for s, _ in neighbors] == [
        (3, 1, -1), (3, 1, 1), (2, 0, 0), (4, 1, 0), (3, 0, 0), (3, 2, 0),
    ]
    assert [p for _, p in neighbors] == [
        Priority.HIGH, Priority.HIGH, Priority.MEDIUM, Priority.MEDIUM, Priority.LOW, Priority.LOW,
    ]


def test_neighbor_states_respect_max_n():
    neighbors = neighbor_states(QuantumState(5, 0, 0), max_n=5)
    assert [(s.n, s.l, s.m) for s, _ in neighbors] == [(4, 0, 0), (5, 1, 0)]


def test_neighbor_states_are_valid():
    from quantum_orbitals.models import is_valid_quantum_state
    for n in range(1, 6):
        for l in range(n):
            for m in range(-l, l + 1):
                assert all(is_valid_quantum_state(s) for s, _ in neighbor_states(QuantumState(n, l, m)))


class TestPrefetchQueue:
    def job(self, key, priority=Priority.MEDIUM, cached=None, log=None, fail=False):
        cached = cached if cached is not None else set()
        log = log if log is not None else []

        def compute():
            if fail:
                raise RuntimeError("boom")
            log.append(key)
            cached.add(key)

        return PrefetchJob(key, priority, lambda: key in cached, compute, key)

    def test_priority_then_fifo(self):
        queue = PrefetchQueue()
        log = []
        queue.push(self.job("low", Priority.LOW, log=log))
        queue.push(self.job("m1", Priority.MEDIUM, log=log))
        queue.push(self.job("high", Priority.HIGH, log=log))
        queue.push(self.job("m2", Priority.MEDIUM, log=log))
        assert queue.pending_keys() == ["high", "m1", "m2", "low"]
        assert queue.drain() == 4
        assert log == ["high", "m1", "m2", "low"]
        assert queue.completed == 4

    def test_push_skips_cached_and_duplicate_keys(self):
        queue = PrefetchQueue()
        assert not queue.push(self.job("x", cached={"x"}))
        assert queue.push(self.job("y"))
        assert not queue.push(self.job("y"))
        assert len(queue) == 1

    def test_drain_one_rechecks_cache(self):
        queue = PrefetchQueue()
        cached, log = set(), []
        queue.push(self.job("x", cached=cached, log=log))
        cached.add("x")
        assert queue.drain_one()
        assert log == []
        assert queue.skipped == 1
        assert not queue.drain_one()

    def test_failures_are_logged_and_dropped(self):
        queue = PrefetchQueue()
        queue.push(self.job("bad", fail=True))
        queue.push(self.job("good", Priority.LOW))
        assert queue.drain() == 2
        assert queue.failed == 1
        assert queue.completed == 1
        assert queue.error_handler.has_errors()

    def test_clear_cancels_pending(self):
        queue = PrefetchQueue()
        log = []
        for key in ("a", "b", "c"):
            queue.push(self.job(key, log=log))
        assert queue.drain(max_items=1) == 1
        assert queue.clear() == 2
        assert len(queue) == 0
        assert log == ["a"]
        # cleared keys can be queued again
        assert queue.push(self.job("b", log=log))

    def test_drain_async(self):
        queue = PrefetchQueue()
        log = []
        for key in ("a", "b"):
            queue.push(self.job(key, log=log))
        assert asyncio.run(queue.drain_async(delay=0.0)) == 2
        assert log == ["a", "b"]

    def test_drain_async_sleeps_only_between_items(self, monkeypatch):
        delays = []

        async def fake_sleep(delay):
            delays.append(delay)

        monkeypatch.setattr(asyncio, "sleep", fake_sleep)
        queue = PrefetchQueue()
        for key in ("a", "b", "c"):
            queue.push(self.job(key))
        assert asyncio.run(queue.drain_async(delay=0.5, max_items=2)) == 2
        assert delays == [0.5]
        assert asyncio.run(queue.drain_async(delay=0.5)) == 1
        assert delays == [0.5]


class TestOrbitalSampleCache:
    def test_preload_and_drain(self, clock, make_sample):
        cache = OrbitalSampleCache(Settings(), clock=clock)
        request = OrbitalRequest(1, QuantumState(2, 1, 0), 100)
        cache.set(request, make_sample())
        calls = []

        def calculator(neighbor):
            calls.append(neighbor.state)
            return make_sample()

        queued = cache.preload_neighbors(request, calculator)
        assert [r.state for r in queued][:2] == [QuantumState(2, 1, -1), QuantumState(2, 1, 1)]
        assert cache.stats()["queue_length"] == len(queued)

        assert cache.drain(delay=0.0) == len(queued)
        assert calls == [r.state for r in queued]
        assert all(cache.has(r) for r in queued)
        assert cache.preload_neighbors(request, calculator) == []

    def test_none_result_is_not_cached(self, clock):
        cache = OrbitalSampleCache(Settings(), clock=clock)
        request = OrbitalRequest(1, QuantumState(1, 0, 0), 100)
        queued = cache.preload_neighbors(request, lambda r: None)
        cache.drain(delay=0.0)
        assert not any(cache.has(r) for r in queued)

    def test_keys_distinguish_every_field(self):
        base = OrbitalRequest(6, QuantumState(2, 1, 0), 2000)
        variants = [
            OrbitalRequest(7, QuantumState(2, 1, 0), 2000),
            OrbitalRequest(6, QuantumState(2, 1, 1), 2000),
            OrbitalRequest(6, QuantumState(2, 1, 0, -0.5), 2000),
            OrbitalRequest(6, QuantumState(2, 1, 0), 3000),
            OrbitalRequest(6, QuantumState(2, 1, 0), 2000, "light"),
            OrbitalRequest(6, QuantumState(2, 1, 0), 2000, "dark", "aesthetic"),
        ]
        assert len({base.key, *(v.key for v in variants)}) == 7

    def test_cancel_preloads(self, clock, make_sample):
        cache = OrbitalSampleCache(Settings(), clock=clock)
        queued = cache.preload_neighbors(OrbitalRequest(1, QuantumState(3, 1, 0), 10), lambda r: make_sample())
        assert cache.cancel_preloads() == len(queued)
        assert cache.drain(delay=0.0) == 0


class TestDensityFieldCache:
    state = QuantumState(2, 1, 0)

    def test_prefers_lowest_resolution_above_target(self, clock):
        cache = DensityFieldCache(Settings(), clock=clock)
        for resolution in (40, 60, 90):
            cache.set(1, self.state, make_field(resolution))
        assert cache.get(1, self.state, 50, 10.0, 0.1).resolution == 60
        assert cache.get(1, self.state, 60, 10.0, 0.1).resolution == 60

    def test_falls_back_to_highest_below_target(self, clock):
        cache = DensityFieldCache(Settings(), clock=clock)
        for resolution in (40, 60):
            cache.set(1, self.state, make_field(resolution))
        assert cache.get(1, self.state, 120, 10.0, 0.1).resolution == 60

    def test_tolerance(self):
        field = make_field(10, extent=10.0, max_probability=0.1)
        assert within_tolerance(field, 10.0005, 0.1)
        assert not within_tolerance(field, 10.002, 0.1)
        assert within_tolerance(field, 10.0, 0.1019)
        assert not within_tolerance(field, 10.0, 0.105)
        assert within_tolerance(make_field(10, max_probability=0.0), 10.0, 5e-11)

    def test_miss_outside_tolerance(self, clock):
        cache = DensityFieldCache(Settings(), clock=clock)
        cache.set(1, self.state, make_field(60))
        assert cache.get(1, self.state, 60, 12.0, 0.1) is None
        assert cache.get(1, self.state, 60, 10.0, 0.2) is None
        assert cache.get(1, QuantumState(2, 1, 1), 60, 10.0, 0.1) is None
        assert cache.get(2, self.state, 60, 10.0, 0.1) is None

    def test_ensure_computes_once(self, clock):
        cache = DensityFieldCache(Settings(), clock=clock)
        calls = []

        def compute():
            calls.append(1)
            return make_field(36)

        cache.ensure(1, self.state, 36, 10.0, 0.1, compute)
        cache.ensure(1, self.state, 36, 10.0, 0.1005, compute)
        assert len(calls) == 1

    def test_ensure_reuses_field_within_both_tolerances(self, clock):
        cache = DensityFieldCache(Settings(), clock=clock)
        cache.set(1, self.state, make_field(60, extent=5.0, max_probability=0.02))

        def compute():
            raise AssertionError("cached field should have been reused")

        field = cache.ensure(1, self.state, 50, 5.0005, 0.0203, compute)
        assert field.resolution == 60
        assert field.extent == 5.0

    def test_eviction_updates_index(self, clock):
        settings = Settings()
        settings.density_cache_capacity = 2
        cache = DensityFieldCache(settings, clock=clock)
        for resolution in (10, 20, 30):
            cache.set(1, self.state, make_field(resolution))
            clock.tick()
        assert len(cache) == 2
        assert cache.get(1, self.state, 5, 10.0, 0.1).resolution == 20
        assert cache.stats()["states"] == 1

    def test_returned_field_is_a_copy(self, clock):
        cache = DensityFieldCache(Settings(), clock=clock)
        cache.set(1, self.state, make_field(8))
        cache.get(1, self.state, 8, 10.0, 0.1).field[:] = 1.0
        assert cache.get(1, self.state, 8, 10.0, 0.1).field.max() == 0.0


class TestMolecularOrbitalCache:
    def molecular_sample(self):
        positions = np.zeros(6, dtype=np.float32)
        return MolecularOrbitalSample(positions, positions.copy(), np.zeros(2, dtype=np.float32),
                                      np.ones(6, dtype=np.float32), 0.1, 3.0, {"orbital_type": "sigma"})

    def test_key_format(self):
        request = MolecularRequest(1, 1, QuantumState(1, 0, 0), 1.4, "sigma", 2000, "dark")
        assert request.key == "1-1|1:0:0:+0.5|sigma|dark|2000|1.400"
        assert MolecularRequest(1, 1, QuantumState(1, 0, 0), 1.40004).key == request.key

    def test_schedule_neighbors(self, clock):
        cache = MolecularOrbitalCache(Settings(), clock=clock)
        request = MolecularRequest(1, 1, QuantumState(1, 0, 0), 1.4)
        queued = cache.schedule_neighbors(request, lambda r: self.molecular_sample())
        assert [r.bond_length for r in queued] == pytest.approx([1.2, 1.6])
        assert cache.queue.drain(delay=0.0) == 2
        assert all(cache.has(r) for r in queued)

    def test_short_bonds_skip_lower_neighbor(self, clock):
        cache = MolecularOrbitalCache(Settings(), clock=clock)
        queued = cache.schedule_neighbors(MolecularRequest(1, 1, QuantumState(1, 0, 0), 0.35), lambda r: None)
        assert [r.bond_length for r in queued] == pytest.approx([0.55])

    def test_capacity(self, clock):
        cache = MolecularOrbitalCache(Settings(), clock=clock)
        for i in range(8):
            cache.set(MolecularRequest(1, 1, QuantumState(1, 0, 0), 1.0 + 0.1 * i), self.molecular_sample())
            clock.tick()
        assert len(cache) <= Settings().molecular_cache_capacity
