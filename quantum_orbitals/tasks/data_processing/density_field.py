import logging
import math

import numpy as np
from numba import jit
from prefect import task

from quantum_orbitals.helpers.constant import Constants
from quantum_orbitals.helpers.hydrogen_like import calc_wave_function_fast
from quantum_orbitals.helpers.molecular_orbitals import build_combination, calc_molecular_amplitude_fast
from quantum_orbitals.models import (
    DensityFieldData,
    QuantumState,
    distribution_modes,
    validate_atomic_number,
    validate_choice,
    validate_quantum_state,
)
from quantum_orbitals.tasks.pre_processing.settings import Settings
from quantum_orbitals.utils import ErrorHandler, raise_validation_error

logger = logging.getLogger(__name__)

iso_weight_stops = {
    "aesthetic": (0.0, 0.25, 0.45, 0.62, 0.78, 0.9, 1.0),
    "accurate": (0.0, 0.35, 0.6, 0.82, 1.0),
}


@jit(nopython=True, cache=True)
def density_field_fast(size: int, extent: float, inv_max: float, n: int, l: int, m: int,
                       charge_a: float, charge_b: float, half_bond: float, sign: float,
                       normalization: float, enhancement: float, two_center: bool) -> tuple:
    """
    Normalized density on a size^3 grid, flat in z, y, x order.

    Returns:
        (field, max_sample)
    """
    field = np.empty(size * size * size, dtype=np.float32)
    axis = np.empty(size, dtype=np.float64)
    for i in range(size):
        axis[i] = (i / (size - 1) - 0.5) * 2.0 * extent

    max_sample = 0.0
    index = 0
    for zi in range(size):
        z = axis[zi]
        for yi in range(size):
            y = axis[yi]
            for xi in range(size):
                x = axis[xi]
                if two_center:
                    amplitude = calc_molecular_amplitude_fast(n, l, m, charge_a, charge_b, half_bond, sign,
                                                              normalization, x, y, z)
                    density = amplitude * amplitude * enhancement
                else:
                    psi = calc_wave_function_fast(n, l, m, charge_a, x, y, z)
                    density = psi * psi
                value = density * inv_max
                if value > 1.0:
                    value = 1.0
                elif value < 0.0:
                    value = 0.0
                field[index] = value
                if value > max_sample:
                    max_sample = value
                index += 1
    return field, max_sample


def grid_size(resolution: float) -> int:
    return max(4, int(math.floor(resolution)))


def _inverse_max(max_probability: float) -> float:
    return 1.0 / max(abs(float(max_probability)), Constants.density_epsilon)


def _validate_extent(extent: float) -> float:
    if not extent > 0:
        raise_validation_error(ErrorHandler(), f"Extent must be positive, got {extent!r}", {"extent": extent})
    return float(extent)


def evaluate_density_field(
    atomic_number: int,
    state: QuantumState,
    extent: float,
    max_probability: float,
    resolution: int,
) -> DensityFieldData:
    """
    Sample |psi|^2 on a regular grid over [-extent, extent]^3.

    Args:
        atomic_number: nuclear charge Z
        state: orbital
        extent: half width of the cube in Bohr radii
        max_probability: density that maps to 1.0; clamped away from zero
        resolution: grid edge length, at least 4 after flooring

    Returns:
        DensityFieldData with values clamped to [0, 1]
    """
    atomic_number = validate_atomic_number(atomic_number)
    validate_quantum_state(state)
    extent = _validate_extent(extent)
    size = grid_size(resolution)
    field, max_sample = density_field_fast(
        size, extent, _inverse_max(max_probability), state.n, state.l, state.m,
        float(atomic_number), 0.0, 0.0, 1.0, 1.0, 1.0, False,
    )
    logger.debug(f"Evaluated {size}^3 density grid for Z={atomic_number} {state.orbital_label} m={state.m}")
    return DensityFieldData(
        resolution=size,
        field=field,
        extent=extent,
        max_sample=float(max_sample),
        max_probability=float(max_probability),
    )


def evaluate_molecular_density_field(
    atomic_number_a: int,
    atomic_number_b: int,
    state: QuantumState,
    bond_length: float,
    orbital_type: str,
    extent: float,
    max_probability: float,
    resolution: int,
) -> DensityFieldData:
    """Grid of |N (psi_A ± psi_B)|^2 times the correlation enhancement."""
    atomic_number_a = validate_atomic_number(atomic_number_a)
    atomic_number_b = validate_atomic_number(atomic_number_b)
    extent = _validate_extent(extent)
    combination = build_combination(float(atomic_number_a), float(atomic_number_b), state, bond_length, orbital_type)
    size = grid_size(resolution)
    field, max_sample = density_field_fast(
        size, extent, _inverse_max(max_probability), state.n, state.l, state.m,
        combination.charge_a, combination.charge_b, combination.half_bond, combination.sign,
        combination.normalization, combination.enhancement, True,
    )
    return DensityFieldData(
        resolution=size,
        field=field,
        extent=extent,
        max_sample=float(max_sample),
        max_probability=float(max_probability),
    )


def resolve_density_resolution(requested: float, distribution_mode: str, settings: Settings | None = None) -> int:
    """
    Grid resolution actually used for a requested one.

    Scaled by the mode multiplier (higher for aesthetic), rounded and clamped to
    [min_resolution, max_resolution(mode)].
    """
    validate_choice(distribution_mode, distribution_modes, "distribution_mode")
    settings = settings or Settings()
    scaled = math.floor(requested * settings.resolution_multiplier(distribution_mode) + 0.5)
    return max(settings.min_resolution, min(settings.max_resolution(distribution_mode), scaled))


def compute_iso_levels(min_density: float, max_density: float, distribution_mode: str,
                       max_sample: float) -> list[float]:
    """
    Density thresholds for isosurface consumers, in the field's normalized units.

    min_density and max_density are fractions of max_sample. Levels closer than
    0.5% of max_sample to the previous stop are dropped.
    """
    validate_choice(distribution_mode, distribution_modes, "distribution_mode")
    lower = min(0.95, max(0.01, float(min_density)))
    upper = min(0.995, max(lower + 0.03, float(max_density)))
    span = upper - lower
    min_gap = 0.005 * max_sample

    candidates = [(lower + span * weight) * max_sample for weight in iso_weight_stops[distribution_mode]]
    return [level for i, level in enumerate(candidates) if i == 0 or level - candidates[i - 1] > min_gap]


@task(name="evaluate density field")
def density_field(atomic_number: int, state: QuantumState, extent: float, max_probability: float,
                  resolution: int) -> DensityFieldData:
    return evaluate_density_field(atomic_number, state, extent, max_probability, resolution)
