import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
import pytest

from quantum_orbitals.models import SampleSet
from quantum_orbitals.tasks.pre_processing.settings import Settings


class FakeClock:
    """Manually advanced time source for cache tests."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def tick(self, seconds: float = 1.0) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fast_settings():
    settings = Settings()
    settings.burn_in = 100
    settings.thinning = 2
    settings.chunk_size = 1024
    return settings


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def make_sample():
    def factory(count: int = 4, value: float = 1.0) -> SampleSet:
        positions = np.full(count * 3, value, dtype=np.float32)
        return SampleSet(
            positions=positions,
            base_positions=positions.copy(),
            colors=np.ones(count * 3, dtype=np.float32),
            max_probability=0.5,
            extent=3.0,
            metadata={"tag": value, "nested": {"values": [1, 2, 3]}},
        )
    return factory
