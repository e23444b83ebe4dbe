from dataclasses import dataclass, field

import numpy as np
from scipy.optimize import brentq

from quantum_orbitals.helpers.hydrogen_like import calc_radial_fast
from quantum_orbitals.helpers.special_functions import associated_legendre_fast
from quantum_orbitals.models import QuantumState, validate_quantum_state, validate_effective_charge

angle_epsilon = 1e-3


@dataclass
class NodalSurfaces:
    radial_nodes: list[float] = field(default_factory=list)   # sphere radii
    cone_angles: list[float] = field(default_factory=list)    # polar angles in (0, π/2)
    phi_angles: list[float] = field(default_factory=list)     # vertical planes
    include_horizontal_plane: bool = False


def _sign_change_roots(fn, grid: np.ndarray) -> list[float]:
    roots = []
    values = [fn(x) for x in grid]
    for a, b, fa, fb in zip(grid[:-1], grid[1:], values[:-1], values[1:]):
        if fa == 0.0:
            roots.append(float(a))
        elif fa * fb < 0.0:
            roots.append(float(brentq(fn, a, b, xtol=1e-10)))
    return roots


def find_radial_nodes(charge: float, state: QuantumState, max_radius: float, samples: int = 2048) -> list[float]:
    grid = np.linspace(1e-4, max_radius, samples + 1)
    return _sign_change_roots(lambda r: calc_radial_fast(state.n, state.l, charge, r), grid)


def find_legendre_roots(l: int, m: int, samples: int = 4096) -> list[float]:
    """Interior roots of P_l^|m|(x) on (-1, 1)."""
    if l == 0:
        return []
    grid = np.linspace(-1.0 + 1e-5, 1.0 - 1e-5, samples + 1)
    roots = []
    for root in sorted(_sign_change_roots(lambda x: associated_legendre_fast(l, abs(m), x), grid)):
        if abs(root + 1.0) < angle_epsilon or abs(root - 1.0) < angle_epsilon:
            continue
        if all(abs(root - existing) > angle_epsilon for existing in roots):
            roots.append(root)
    return roots


def compute_nodal_surfaces(charge: float, state: QuantumState, extent: float) -> NodalSurfaces:
    """
    Nodal spheres, cones and planes of psi_nlm.

    Radial nodes are located along the radial function up to 1.25 * extent.
    Cones are folded into the upper half space; a cone at π/2 is reported as
    the horizontal plane.
    """
    charge = validate_effective_charge(charge)
    validate_quantum_state(state)
    surfaces = NodalSurfaces(radial_nodes=find_radial_nodes(charge, state, 1.25 * extent))
    if state.l == 0:
        return surfaces

    for root in find_legendre_roots(state.l, state.m):
        theta = float(np.arccos(min(1.0, max(-1.0, root))))
        folded = np.pi - theta if theta > np.pi / 2 else theta
        if folded < angle_epsilon:
            continue
        if abs(folded - np.pi / 2) < angle_epsilon:
            surfaces.include_horizontal_plane = True
        elif all(abs(folded - existing) > angle_epsilon for existing in surfaces.cone_angles):
            surfaces.cone_angles.append(folded)

    abs_m = abs(state.m)
    if state.m > 0:
        surfaces.phi_angles = [(k + 0.5) * np.pi / abs_m for k in range(abs_m)]
    elif state.m < 0:
        surfaces.phi_angles = [k * np.pi / abs_m for k in range(abs_m)]
    return surfaces
