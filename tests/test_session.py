import asyncio

import numpy as np
import pytest

from quantum_orbitals.cache import CacheSession, MolecularRequest
from quantum_orbitals.models import QuantumState
from quantum_orbitals.utils import ValidationError


@pytest.fixture
def session(fast_settings, rng, clock):
    return CacheSession(fast_settings, rng, clock)


def test_orbital_particles_are_cached(session):
    state = QuantumState(2, 1, 0)
    first = session.get_orbital_particles(1, state, 300, prefetch=False)
    second = session.get_orbital_particles(1, state, 300, prefetch=False)
    np.testing.assert_array_equal(first.positions, second.positions)
    stats = session.stats()["orbital"]
    assert stats["hits"] == 1
    assert stats["misses"] == 1


def test_callers_cannot_corrupt_cached_samples(session):
    state = QuantumState(1, 0, 0)
    first = session.get_orbital_particles(1, state, 200, prefetch=False)
    expected = first.positions.copy()
    first.positions[:] = 0.0
    np.testing.assert_array_equal(session.get_orbital_particles(1, state, 200, prefetch=False).positions, expected)


def test_prefetch_fills_neighbors(session):
    session.get_orbital_particles(1, QuantumState(2, 1, 0), 150)
    assert session.stats()["queue_length"] == 5
    assert session.drain_prefetch(max_items=2, delay=0.0) == 2
    assert session.orbital_cache.stats()["size"] == 3

    hits = session.orbital_cache.stats()["hits"]
    session.get_orbital_particles(1, QuantumState(2, 1, -1), 150, prefetch=False)
    assert session.orbital_cache.stats()["hits"] == hits + 1


def test_foreground_request_skips_pending_prefetch(session):
    session.get_orbital_particles(1, QuantumState(2, 1, 0), 150)
    session.get_orbital_particles(1, QuantumState(2, 1, -1), 150, prefetch=False)
    assert session.drain_one()
    assert session.queue.skipped == 1


def test_cancel_prefetch(session):
    session.get_orbital_particles(1, QuantumState(3, 1, 0), 100)
    assert session.cancel_prefetch() == 6
    assert session.drain_prefetch(delay=0.0) == 0


def test_async_drain(session):
    session.get_orbital_particles(1, QuantumState(1, 0, 0), 100)
    assert asyncio.run(session.drain_prefetch_async(delay=0.0)) == 1
    assert session.stats()["prefetch_completed"] == 1


def test_density_field_reuse(session):
    state = QuantumState(2, 1, 0)
    first = session.get_density_field(1, state, 10.0, 0.01, 10)
    assert first.resolution == 36
    again = session.get_density_field(1, state, 10.0, 0.0101, 10)
    np.testing.assert_array_equal(first.field, again.field)
    assert session.stats()["density"]["hits"] == 1


def test_molecular_sample_and_neighbors(session):
    request = MolecularRequest(1, 1, QuantumState(1, 0, 0), 1.4, "sigma", 200)
    sample = session.get_molecular_sample(request)
    assert sample.count == 200
    assert session.molecular_cache.has(request)
    assert session.drain_prefetch(delay=0.0) == 2
    assert session.stats()["molecular"]["size"] == 3


def test_molecular_density_field(session):
    request = MolecularRequest(1, 1, QuantumState(1, 0, 0), 1.4, "sigma*")
    field = session.get_molecular_density_field(request, 5.0, 0.2, 10)
    assert field.resolution == 36


def test_configuration_particles(session):
    sample = session.get_configuration_particles(3, 300)
    assert sample.count == 300
    assert [s["label"] for s in sample.metadata["segments"]] == ["1s", "2s"]


def test_validation_happens_before_lookup(session):
    with pytest.raises(ValidationError):
        session.get_orbital_particles(1, QuantumState(1, 1, 0), 100)
    with pytest.raises(ValidationError):
        session.get_density_field(0, QuantumState(1, 0, 0), 5.0, 0.1, 10)


def test_clear(session):
    session.get_orbital_particles(1, QuantumState(2, 0, 0), 100)
    session.get_density_field(1, QuantumState(2, 0, 0), 5.0, 0.1, 10)
    session.clear()
    stats = session.stats()
    assert stats["orbital"]["size"] == 0
    assert stats["density"]["size"] == 0
    assert stats["queue_length"] == 0
