"""
Two-center LCAO combinations of hydrogen-like orbitals.

Atom A sits at (-R/2, 0, 0) and atom B at (+R/2, 0, 0). The overlap is the
closed-form 1s-1s integral and is used for every orbital pair.
"""
from dataclasses import dataclass
from functools import lru_cache

import numpy as np
from numba import jit

from quantum_orbitals.helpers.hydrogen_like import calc_wave_function_fast
from quantum_orbitals.models import QuantumState, validate_quantum_state, validate_effective_charge
from quantum_orbitals.utils import ErrorHandler, raise_validation_error

orbital_types = ("sigma", "sigma*")

overlap_limit = 0.99999


@lru_cache(maxsize=256)
def overlap_integral(bond_length: float) -> float:
    """S(R) = e^-R (1 + R + R^2/3), R clamped at 0."""
    r = max(0.0, float(bond_length))
    return float(np.exp(-r) * (1.0 + r + r * r / 3.0))


def _clamp(value: float, lower: float, upper: float) -> float:
    return min(upper, max(lower, value))


def combination_sign(orbital_type: str) -> float:
    if orbital_type not in orbital_types:
        raise_validation_error(
            ErrorHandler(),
            f"Unknown molecular orbital type {orbital_type!r}",
            {"orbital_type": orbital_type, "allowed": list(orbital_types)},
        )
    return 1.0 if orbital_type == "sigma" else -1.0


def normalization_factor(overlap: float, orbital_type: str) -> float:
    """1 / sqrt(2 (1 ± S)); S is kept strictly inside (-1, 1)."""
    sign = combination_sign(orbital_type)
    s = _clamp(overlap, -overlap_limit, overlap_limit)
    return float(1.0 / np.sqrt(2.0 * (1.0 + sign * s)))


def correlation_enhancement(bond_length: float, orbital_type: str) -> float:
    """
    Density boost for the bonding region.

    corr = 0.35 e^-R (1 + R) + 0.25 S^2; sigma scales by 1 + corr and sigma*
    by 1 - corr clamped to [0.1, 1].
    """
    r = max(0.0, float(bond_length))
    coulomb = np.exp(-r) * (1.0 + r)
    exchange = overlap_integral(r) ** 2
    correlation = 0.35 * coulomb + 0.25 * exchange
    if combination_sign(orbital_type) > 0:
        return float(1.0 + correlation)
    return float(_clamp(1.0 - correlation, 0.1, 1.0))


@dataclass(frozen=True)
class MolecularCombination:
    """Everything the compiled kernels need for one LCAO orbital."""
    charge_a: float
    charge_b: float
    state: QuantumState
    bond_length: float
    orbital_type: str
    overlap: float
    normalization: float
    sign: float
    enhancement: float

    @property
    def half_bond(self) -> float:
        return 0.5 * self.bond_length


def build_combination(charge_a: float, charge_b: float, state: QuantumState,
                      bond_length: float, orbital_type: str = "sigma") -> MolecularCombination:
    charge_a = validate_effective_charge(charge_a)
    charge_b = validate_effective_charge(charge_b)
    validate_quantum_state(state)
    bond_length = max(0.0, float(bond_length))
    overlap = overlap_integral(bond_length)
    return MolecularCombination(
        charge_a=charge_a,
        charge_b=charge_b,
        state=state,
        bond_length=bond_length,
        orbital_type=orbital_type,
        overlap=overlap,
        normalization=normalization_factor(overlap, orbital_type),
        sign=combination_sign(orbital_type),
        enhancement=correlation_enhancement(bond_length, orbital_type),
    )


@jit(nopython=True, cache=True)
def calc_molecular_amplitude_fast(n: int, l: int, m: int, charge_a: float, charge_b: float,
                                  half_bond: float, sign: float, normalization: float,
                                  x: float, y: float, z: float) -> float:
    psi_a = calc_wave_function_fast(n, l, m, charge_a, x + half_bond, y, z)
    psi_b = calc_wave_function_fast(n, l, m, charge_b, x - half_bond, y, z)
    return normalization * (psi_a + sign * psi_b)


def calc_molecular_amplitude(combination: MolecularCombination, x: float, y: float, z: float) -> float:
    state = combination.state
    return float(calc_molecular_amplitude_fast(
        state.n, state.l, state.m, combination.charge_a, combination.charge_b,
        combination.half_bond, combination.sign, combination.normalization,
        float(x), float(y), float(z),
    ))


def calc_molecular_density(combination: MolecularCombination, x: float, y: float, z: float) -> float:
    """|N (psi_A ± psi_B)|^2 times the correlation enhancement."""
    amplitude = calc_molecular_amplitude(combination, x, y, z)
    return amplitude * amplitude * combination.enhancement
