import logging
import time

import numpy as np
from numba import jit
from prefect import task

from quantum_orbitals.helpers.molecular_orbitals import (
    build_combination,
    calc_molecular_amplitude_fast,
    orbital_types,
)
from quantum_orbitals.models import (
    MolecularOrbitalSample,
    QuantumState,
    theme_modes,
    validate_atomic_number,
    validate_choice,
    validate_positive_count,
    validate_quantum_state,
)
from quantum_orbitals.tasks.data_processing.metropolis_sampler import DensityTarget, MetropolisChain
from quantum_orbitals.tasks.pre_processing.settings import Settings
from quantum_orbitals.utils import ErrorHandler

logger = logging.getLogger(__name__)


def molecular_palette(theme_mode: str, orbital_type: str) -> tuple[float, float, float]:
    if theme_mode == "dark":
        return (0.4, 0.9, 0.7 if orbital_type == "sigma" else 0.3)
    return (0.2, 0.7, 0.5 if orbital_type == "sigma" else 0.25)


@jit(nopython=True, cache=True)
def calc_molecular_amplitudes_fast(points: np.ndarray, n: int, l: int, m: int, charge_a: float, charge_b: float,
                                   half_bond: float, sign: float, normalization: float) -> np.ndarray:
    amplitudes = np.empty(points.shape[0], dtype=np.float64)
    for i in range(points.shape[0]):
        amplitudes[i] = calc_molecular_amplitude_fast(n, l, m, charge_a, charge_b, half_bond, sign,
                                                      normalization, points[i, 0], points[i, 1], points[i, 2])
    return amplitudes


def generate_molecular_orbital_sample(
    atomic_number_a: int,
    atomic_number_b: int,
    state: QuantumState,
    bond_length: float,
    orbital_type: str = "sigma",
    count: int = 2000,
    theme_mode: str = "dark",
    settings: Settings | None = None,
    rng: np.random.Generator | None = None,
) -> MolecularOrbitalSample:
    """
    Sample a bonding (sigma) or antibonding (sigma*) LCAO orbital.

    Both nuclei use their atomic number as charge. Amplitudes are the signed
    LCAO values at each particle divided by the largest magnitude, which is
    kept in metadata["amplitude_scale"].
    """
    error_handler = ErrorHandler()
    atomic_number_a = validate_atomic_number(atomic_number_a, error_handler)
    atomic_number_b = validate_atomic_number(atomic_number_b, error_handler)
    validate_quantum_state(state, error_handler)
    count = validate_positive_count(count, "particle_count", error_handler)
    validate_choice(orbital_type, orbital_types, "orbital_type", error_handler)
    validate_choice(theme_mode, theme_modes, "theme_mode", error_handler)
    settings = settings or Settings()
    rng = rng if rng is not None else np.random.default_rng(settings.seed)

    combination = build_combination(float(atomic_number_a), float(atomic_number_b), state, bond_length, orbital_type)
    target = DensityTarget.molecular(combination, max(atomic_number_a, atomic_number_b))
    result = MetropolisChain(target, count, settings, rng, error_handler).run()

    amplitudes = calc_molecular_amplitudes_fast(
        result.positions, state.n, state.l, state.m, combination.charge_a, combination.charge_b,
        combination.half_bond, combination.sign, combination.normalization,
    )
    amplitude_scale = float(np.abs(amplitudes).max()) if amplitudes.size else 0.0
    if amplitude_scale > 0:
        amplitudes = amplitudes / amplitude_scale
    else:
        amplitude_scale = 1.0

    base = np.asarray(molecular_palette(theme_mode, orbital_type), dtype=np.float32)
    variation = (0.7 + 0.3 * rng.random(result.collected)).astype(np.float32)
    colors = (variation[:, None] * base[None, :]).reshape(-1)

    positions = result.positions.astype(np.float32).reshape(-1)
    radius = float(np.abs(result.positions).max()) if result.collected else 0.0
    logger.info(f"Sampled {result.collected} particles for {orbital_type} {state.orbital_label} "
                f"at R={combination.bond_length:.3f}")
    return MolecularOrbitalSample(
        positions=positions,
        base_positions=positions.copy(),
        amplitudes=amplitudes.astype(np.float32),
        colors=colors,
        max_probability=result.max_probability,
        extent=max(radius * 1.08, combination.half_bond + target.expected_radius * 1.2, 2.0),
        metadata={
            "atomic_numbers": (atomic_number_a, atomic_number_b),
            "bond_length": combination.bond_length,
            "orbital_type": orbital_type,
            "particle_count": count,
            "collected": result.collected,
            "shortfall": result.shortfall,
            "theme_mode": theme_mode,
            "quantum_key": state.key,
            "created_at": time.time(),
            "amplitude_scale": amplitude_scale,
            "overlap": combination.overlap,
            "normalization": combination.normalization,
            "enhancement": combination.enhancement,
        },
    )


@task(name="sample molecular orbital")
def sample_molecular_orbital(atomic_number_a: int, atomic_number_b: int, state: QuantumState, bond_length: float,
                             orbital_type: str = "sigma", count: int = 2000, theme_mode: str = "dark",
                             settings: Settings | None = None) -> MolecularOrbitalSample:
    return generate_molecular_orbital_sample(atomic_number_a, atomic_number_b, state, bond_length,
                                             orbital_type, count, theme_mode, settings)
