import numpy as np
import pytest

from quantum_orbitals.helpers.molecular_orbitals import (
    build_combination,
    calc_molecular_amplitude,
    calc_molecular_density,
    correlation_enhancement,
    normalization_factor,
    overlap_integral,
)
from quantum_orbitals.models import QuantumState
from quantum_orbitals.tasks.data_processing.molecular_sampler import generate_molecular_orbital_sample
from quantum_orbitals.utils import ValidationError


def test_overlap_integral():
    assert overlap_integral(0.0) == pytest.approx(1.0)
    assert overlap_integral(2.0) == pytest.approx(np.exp(-2.0) * (1.0 + 2.0 + 4.0 / 3.0))
    assert overlap_integral(-1.0) == pytest.approx(1.0)


def test_normalization_factor():
    s = overlap_integral(1.4)
    assert normalization_factor(s, "sigma") == pytest.approx(1.0 / np.sqrt(2.0 * (1.0 + s)))
    assert normalization_factor(s, "sigma*") == pytest.approx(1.0 / np.sqrt(2.0 * (1.0 - s)))
    # S = 1 would divide by zero for the antibonding combination
    assert np.isfinite(normalization_factor(1.0, "sigma*"))


def test_correlation_enhancement():
    r = 1.4
    correlation = 0.35 * np.exp(-r) * (1.0 + r) + 0.25 * overlap_integral(r) ** 2
    assert correlation_enhancement(r, "sigma") == pytest.approx(1.0 + correlation)
    assert correlation_enhancement(r, "sigma*") == pytest.approx(1.0 - correlation)
    assert correlation_enhancement(0.0, "sigma*") >= 0.1


def test_unknown_orbital_type():
    with pytest.raises(ValidationError):
        normalization_factor(0.5, "pi")
    with pytest.raises(ValidationError):
        build_combination(1.0, 1.0, QuantumState(1, 0, 0), 1.4, "pi")


def test_bonding_density_peaks_between_nuclei():
    bonding = build_combination(1.0, 1.0, QuantumState(1, 0, 0), 1.4, "sigma")
    antibonding = build_combination(1.0, 1.0, QuantumState(1, 0, 0), 1.4, "sigma*")
    assert calc_molecular_density(bonding, 0.0, 0.0, 0.0) > calc_molecular_density(antibonding, 0.0, 0.0, 0.0)
    assert calc_molecular_amplitude(antibonding, 0.0, 0.3, -0.2) == pytest.approx(0.0, abs=1e-12)


def test_antibonding_amplitude_is_odd():
    combination = build_combination(1.0, 1.0, QuantumState(1, 0, 0), 2.0, "sigma*")
    assert calc_molecular_amplitude(combination, 0.7, 0.1, 0.0) == pytest.approx(
        -calc_molecular_amplitude(combination, -0.7, 0.1, 0.0))


def test_molecular_sample(fast_settings, rng):
    sample = generate_molecular_orbital_sample(1, 1, QuantumState(1, 0, 0), 1.4, "sigma", 800,
                                               settings=fast_settings, rng=rng)
    assert sample.count == 800
    assert sample.amplitudes.shape == (800,)
    assert np.abs(sample.amplitudes).max() == pytest.approx(1.0)
    assert sample.colors.shape == (2400,)
    assert sample.metadata["orbital_type"] == "sigma"
    assert sample.metadata["bond_length"] == pytest.approx(1.4)
    assert sample.metadata["quantum_key"] == "1:0:0"
    assert sample.extent >= 2.0


def test_antibonding_sample_amplitudes_change_sign(fast_settings, rng):
    sample = generate_molecular_orbital_sample(1, 1, QuantumState(1, 0, 0), 2.0, "sigma*", 800,
                                               settings=fast_settings, rng=rng)
    assert sample.amplitudes.min() < 0 < sample.amplitudes.max()


def test_molecular_sample_validation(fast_settings):
    with pytest.raises(ValidationError):
        generate_molecular_orbital_sample(1, 1, QuantumState(1, 0, 0), 1.4, "delta", 10, settings=fast_settings)
    with pytest.raises(ValidationError):
        generate_molecular_orbital_sample(1, 0, QuantumState(1, 0, 0), 1.4, "sigma", 10, settings=fast_settings)
