"""
Exact one-electron (hydrogen-like) orbitals in atomic units.

Multi-electron atoms are approximated by passing a Slater-screened effective
charge instead of the bare nuclear charge.
"""
import numpy as np
from numba import jit

from quantum_orbitals.helpers.constant import Constants
from quantum_orbitals.helpers.special_functions import factorial_fast, generalized_laguerre_fast
from quantum_orbitals.helpers.spherical_harmonics import cartesian_to_spherical_fast, real_spherical_harmonic_fast
from quantum_orbitals.models import QuantumState, validate_quantum_state, validate_effective_charge
from quantum_orbitals.utils import ErrorHandler, raise_validation_error


@jit(nopython=True, cache=True)
def calc_radial_fast(n: int, l: int, charge: float, r: float) -> float:
    """
    R_nl(r) = N exp(-ρ/2) ρ^l L_{n-l-1}^{2l+1}(ρ),  ρ = 2Zr/n
    N = sqrt((2Z/n)^3 (n-l-1)! / (2n (n+l)!))
    """
    rho = 2.0 * charge * r / n
    exponent = -rho / 2.0
    if exponent < -700.0:
        return 0.0
    normalization = np.sqrt(
        (2.0 * charge / n) ** 3 * factorial_fast(n - l - 1) / (2.0 * n * factorial_fast(n + l))
    )
    laguerre = generalized_laguerre_fast(n - l - 1, 2.0 * l + 1.0, rho)
    return normalization * np.exp(exponent) * rho ** l * laguerre


@jit(nopython=True, cache=True)
def calc_wave_function_fast(n: int, l: int, m: int, charge: float, x: float, y: float, z: float) -> float:
    r, theta, phi = cartesian_to_spherical_fast(x, y, z)
    return calc_radial_fast(n, l, charge, r) * real_spherical_harmonic_fast(l, m, theta, phi)


@jit(nopython=True, cache=True)
def calc_wave_function_points_fast(n: int, l: int, m: int, charge: float, points: np.ndarray) -> np.ndarray:
    psi = np.empty(points.shape[0], dtype=np.float64)
    for i in range(points.shape[0]):
        psi[i] = calc_wave_function_fast(n, l, m, charge, points[i, 0], points[i, 1], points[i, 2])
    return psi


def calc_energy(charge: float, n: int) -> float:
    """
    Energy of level n in Hartree: -Z^2 / (2 n^2).
    """
    charge = validate_effective_charge(charge)
    if isinstance(n, bool) or not isinstance(n, (int, np.integer)) or n < 1:
        raise_validation_error(ErrorHandler(), f"Principal quantum number must be >= 1, got {n!r}", {"n": n})
    return -(charge * charge) / (2.0 * n * n)


def orbital_energy_ev(charge: float, n: int) -> float:
    return calc_energy(charge, n) * Constants.hartree_ev


def calc_radial(charge: float, state: QuantumState, r: float) -> float:
    charge = validate_effective_charge(charge)
    validate_quantum_state(state)
    return float(calc_radial_fast(state.n, state.l, charge, float(r)))


def calc_wave_function(charge: float, state: QuantumState, x: float, y: float, z: float) -> float:
    """
    Real wavefunction psi_nlm at a Cartesian point (Bohr radii).

    Args:
        charge: nuclear (or effective) charge
        state: validated quantum state; the spin does not enter psi
        x, y, z: position relative to the nucleus

    Returns:
        psi at (x, y, z)
    """
    charge = validate_effective_charge(charge)
    validate_quantum_state(state)
    return float(calc_wave_function_fast(state.n, state.l, state.m, charge, float(x), float(y), float(z)))


def calc_probability_density(charge: float, state: QuantumState, x: float, y: float, z: float) -> float:
    """|psi|^2 at a Cartesian point."""
    psi = calc_wave_function(charge, state, x, y, z)
    return psi * psi


def calc_wave_function_grid(charge: float, state: QuantumState, points: np.ndarray) -> np.ndarray:
    """psi for an (N, 3) array of points."""
    charge = validate_effective_charge(charge)
    validate_quantum_state(state)
    points = np.ascontiguousarray(points, dtype=np.float64).reshape(-1, 3)
    return calc_wave_function_points_fast(state.n, state.l, state.m, charge, points)
