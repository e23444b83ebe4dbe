import numpy as np
from numba import jit

from quantum_orbitals.helpers.special_functions import associated_legendre_fast, factorial_fast
from quantum_orbitals.utils import ErrorHandler, raise_validation_error


@jit(nopython=True, cache=True)
def clamped_arccos(c: float) -> float:
    """arccos with c pinned to [-1, 1] against rounding."""
    if c >= 1.0:
        return 0.0
    if c <= -1.0:
        return np.pi
    return np.arccos(c)


@jit(nopython=True, cache=True)
def cartesian_to_spherical_fast(x: float, y: float, z: float) -> tuple:
    """(r, theta, phi); theta is 0 at the origin."""
    r = np.sqrt(x * x + y * y + z * z)
    if r > 0.0:
        theta = clamped_arccos(z / r)
    else:
        theta = 0.0
    phi = np.arctan2(y, x)
    return r, theta, phi


@jit(nopython=True, cache=True)
def real_spherical_harmonic_fast(l: int, m: int, theta: float, phi: float) -> float:
    """
    Real spherical harmonic.

    Y_lm = sqrt(2) N P_l^|m|(cos θ) cos(mφ)    for m > 0
         = sqrt(2) N P_l^|m|(cos θ) sin(|m|φ)  for m < 0
         = N P_l^0(cos θ)                       for m = 0
    with N = sqrt((2l+1)/(4π) (l-|m|)!/(l+|m|)!).
    """
    abs_m = abs(m)
    normalization = np.sqrt(
        (2.0 * l + 1.0) / (4.0 * np.pi) * factorial_fast(l - abs_m) / factorial_fast(l + abs_m)
    )
    legendre = associated_legendre_fast(l, abs_m, np.cos(theta))
    if m > 0:
        return np.sqrt(2.0) * normalization * legendre * np.cos(m * phi)
    elif m < 0:
        return np.sqrt(2.0) * normalization * legendre * np.sin(abs_m * phi)
    return normalization * legendre


def spherical_harmonics(l: int, m: int, theta: float, phi: float) -> float:
    """
    Real Y_lm at polar angle theta and azimuth phi.

    Raises:
        ValidationError: unless -l <= m <= l with l >= 0
    """
    if l < 0 or m < -l or m > l:
        raise_validation_error(
            ErrorHandler(),
            f"Spherical harmonic needs -l <= m <= l, got l={l}, m={m}",
            {"l": l, "m": m},
        )
    return float(real_spherical_harmonic_fast(int(l), int(m), float(theta), float(phi)))
