"""
Metropolis-Hastings sampling of |psi|^2.

The chain runs in numba-compiled chunks that consume pre-drawn uniforms, so a
step allocates nothing and the acceptance test is O(1). Between chunks control
returns to Python, which is where callers can stop a long run.
"""
from dataclasses import dataclass
from collections.abc import Iterator
import logging
import math
import time

import numpy as np
from numba import jit
from prefect import task
from tqdm import tqdm

from quantum_orbitals.helpers.hydrogen_like import calc_energy, calc_wave_function_fast
from quantum_orbitals.helpers.molecular_orbitals import MolecularCombination, calc_molecular_amplitude_fast
from quantum_orbitals.models import (
    QuantumState,
    SampleSet,
    distribution_modes,
    theme_modes,
    validate_atomic_number,
    validate_choice,
    validate_positive_count,
    validate_quantum_state,
)
from quantum_orbitals.tasks.pre_processing.electron_configuration import build_occupancy
from quantum_orbitals.tasks.pre_processing.settings import Settings
from quantum_orbitals.utils import ErrorHandler, ErrorCode, ErrorLevel

logger = logging.getLogger(__name__)

min_max_probability = 1e-10

# rgb per l
palette_dark = [
    (0.35, 1.0, 0.55),
    (0.3, 0.7, 1.0),
    (1.0, 1.0, 1.0),
    (1.0, 0.35, 1.0),
    (1.0, 0.95, 0.3),
]
palette_light = [
    (0.05, 0.45, 0.18),
    (0.1, 0.35, 0.7),
    (0.1, 0.1, 0.1),
    (0.55, 0.1, 0.55),
    (0.55, 0.38, 0.05),
]


@jit(nopython=True, cache=True)
def target_density_fast(n: int, l: int, m: int, charge_a: float, charge_b: float, half_bond: float,
                        sign: float, normalization: float, enhancement: float, two_center: bool,
                        x: float, y: float, z: float) -> float:
    if two_center:
        amplitude = calc_molecular_amplitude_fast(n, l, m, charge_a, charge_b, half_bond, sign, normalization, x, y, z)
        return amplitude * amplitude * enhancement
    psi = calc_wave_function_fast(n, l, m, charge_a, x, y, z)
    return psi * psi


@jit(nopython=True, cache=True)
def inside_exclusion_fast(x: float, y: float, z: float, half_bond: float, two_center: bool,
                          exclusion_radius: float) -> bool:
    r2 = exclusion_radius * exclusion_radius
    if two_center:
        ra2 = (x + half_bond) ** 2 + y * y + z * z
        rb2 = (x - half_bond) ** 2 + y * y + z * z
        return ra2 < r2 or rb2 < r2
    return x * x + y * y + z * z < r2


@jit(nopython=True, cache=True)
def metropolis_chunk_fast(
    position: np.ndarray,
    current_density: float,
    uniforms: np.ndarray,
    step_size: float,
    exclusion_radius: float,
    n: int,
    l: int,
    m: int,
    charge_a: float,
    charge_b: float,
    half_bond: float,
    sign: float,
    normalization: float,
    enhancement: float,
    two_center: bool,
    thinning: int,
    since_kept: int,
    out: np.ndarray,
    out_count: int,
    max_density: float,
) -> tuple:
    """
    Advance the chain by at most uniforms.shape[0] proposals.

    uniforms[i, 0:3] perturb the position, uniforms[i, 3] decides acceptance.
    With thinning > 0 every thinning-th chain state is written to out; the
    chunk stops early once out is full. position is updated in place.

    Returns:
        (current_density, accepted, steps, since_kept, out_count, max_density)
    """
    accepted = 0
    steps = 0
    for i in range(uniforms.shape[0]):
        steps += 1
        px = position[0] + (uniforms[i, 0] - 0.5) * step_size
        py = position[1] + (uniforms[i, 1] - 0.5) * step_size
        pz = position[2] + (uniforms[i, 2] - 0.5) * step_size

        accept = False
        candidate = 0.0
        if not inside_exclusion_fast(px, py, pz, half_bond, two_center, exclusion_radius):
            candidate = target_density_fast(n, l, m, charge_a, charge_b, half_bond, sign,
                                            normalization, enhancement, two_center, px, py, pz)
            if candidate > 0.0:
                # min(1, P_new / P_old); any positive proposal leaves a zero-density state
                accept = (current_density <= 0.0 or candidate >= current_density
                          or uniforms[i, 3] * current_density < candidate)

        if accept:
            position[0] = px
            position[1] = py
            position[2] = pz
            current_density = candidate
            accepted += 1
            if candidate > max_density:
                max_density = candidate

        # a rejected proposal repeats the current state in the chain
        if thinning > 0:
            since_kept += 1
            if since_kept >= thinning:
                since_kept = 0
                out[out_count, 0] = position[0]
                out[out_count, 1] = position[1]
                out[out_count, 2] = position[2]
                out_count += 1
                if out_count >= out.shape[0]:
                    break

    return current_density, accepted, steps, since_kept, out_count, max_density


@dataclass(frozen=True)
class DensityTarget:
    """The distribution a chain samples: one nucleus, or an LCAO pair."""
    state: QuantumState
    charge_a: float
    atomic_number: int
    charge_b: float = 0.0
    half_bond: float = 0.0
    sign: float = 1.0
    normalization: float = 1.0
    enhancement: float = 1.0
    two_center: bool = False

    @classmethod
    def atomic(cls, charge: float, state: QuantumState, atomic_number: int) -> "DensityTarget":
        return cls(state=state, charge_a=float(charge), atomic_number=int(atomic_number))

    @classmethod
    def molecular(cls, combination: MolecularCombination, atomic_number: int) -> "DensityTarget":
        return cls(
            state=combination.state,
            charge_a=combination.charge_a,
            atomic_number=int(atomic_number),
            charge_b=combination.charge_b,
            half_bond=combination.half_bond,
            sign=combination.sign,
            normalization=combination.normalization,
            enhancement=combination.enhancement,
            two_center=True,
        )

    @property
    def expected_radius(self) -> float:
        """n^2 / Z of the more diffuse center."""
        charge = min(self.charge_a, self.charge_b) if self.two_center else self.charge_a
        return self.state.n ** 2 / charge

    def density(self, x: float, y: float, z: float) -> float:
        s = self.state
        return float(target_density_fast(s.n, s.l, s.m, self.charge_a, self.charge_b, self.half_bond,
                                         self.sign, self.normalization, self.enhancement, self.two_center,
                                         float(x), float(y), float(z)))


def nuclear_radius(atomic_number: int, settings: Settings) -> float:
    return max(settings.nuclear_radius_floor, settings.nuclear_radius_scale * atomic_number ** (1.0 / 3.0))


def exclusion_radius(atomic_number: int, n: int, expected_radius: float, settings: Settings) -> float:
    """
    Radius around each nucleus where proposals are rejected.

    A multiple of the nuclear size or of n, capped at a fraction of the
    orbital radius so compact orbitals keep their core.
    """
    radius = max(settings.nuclear_exclusion_factor * nuclear_radius(atomic_number, settings),
                 settings.node_exclusion_factor * n)
    return min(radius, settings.exclusion_cap_fraction * expected_radius)


@dataclass
class SamplingProgress:
    stage: str  # "burn-in" or "thinning"
    collected: int
    requested: int
    iterations: int
    accepted: int


@dataclass
class ChainResult:
    positions: np.ndarray  # (collected, 3)
    requested: int
    iterations: int
    accepted: int
    max_density: float
    step_size: float
    exclusion_radius: float
    burn_in: int
    thinning: int

    @property
    def collected(self) -> int:
        return self.positions.shape[0]

    @property
    def shortfall(self) -> bool:
        return self.collected < self.requested

    @property
    def acceptance_rate(self) -> float:
        return self.accepted / self.iterations if self.iterations else 0.0

    @property
    def max_probability(self) -> float:
        return max(self.max_density, min_max_probability)


class MetropolisChain:
    """
    One Metropolis-Hastings chain over a DensityTarget.

    Iterating the chain advances it and yields a SamplingProgress after the
    burn-in and after every thinning cycle; stop iterating to cancel and call
    result() for whatever has been collected. run() drives it to completion.
    """

    def __init__(self, target: DensityTarget, count: int, settings: Settings | None = None,
                 rng: np.random.Generator | None = None, error_handler: ErrorHandler | None = None):
        self.target = target
        self.count = count
        self.settings = settings or Settings()
        self.rng = rng if rng is not None else np.random.default_rng(self.settings.seed)
        self.error_handler = error_handler or ErrorHandler()

        self.expected_radius = target.expected_radius
        self.step_size = self.settings.step_scale * self.expected_radius
        self.exclusion_radius = exclusion_radius(target.atomic_number, target.state.n,
                                                 self.expected_radius, self.settings)
        self.max_iterations = self.settings.burn_in + int(math.ceil(
            count * self.settings.thinning * self.settings.max_iteration_factor))

        self.samples = np.zeros((count, 3), dtype=np.float64)
        self.collected = 0
        self.iterations = 0
        self.accepted = 0
        self.since_kept = 0
        self.position = self._initial_position()
        self.current_density = target.density(*self.position)
        self.max_density = self.current_density
        self._burned_in = False

    def _initial_position(self) -> np.ndarray:
        """Uniform point in the expected orbital volume, pushed out of the exclusion sphere."""
        position = (self.rng.random(3) - 0.5) * 2.0 * self.expected_radius
        nucleus = np.zeros(3)
        if self.target.two_center:
            nucleus[0] = -self.target.half_bond if position[0] < 0 else self.target.half_bond
        offset = position - nucleus
        r = np.linalg.norm(offset)
        if r < self.exclusion_radius:
            direction = offset / r if r > 0 else np.array([0.0, 0.0, 1.0])
            position = nucleus + direction * self.exclusion_radius
        return position

    def _advance(self, steps: int, thinning: int) -> None:
        t = self.target
        s = t.state
        remaining = steps
        while remaining > 0 and self.collected < self.count:
            size = min(remaining, self.settings.chunk_size)
            uniforms = self.rng.random((size, 4))
            (self.current_density, accepted, used, self.since_kept,
             self.collected, self.max_density) = metropolis_chunk_fast(
                self.position, self.current_density, uniforms, self.step_size, self.exclusion_radius,
                s.n, s.l, s.m, t.charge_a, t.charge_b, t.half_bond, t.sign, t.normalization,
                t.enhancement, t.two_center, thinning, self.since_kept, self.samples,
                self.collected, self.max_density,
            )
            self.accepted += accepted
            self.iterations += used
            remaining -= used

    def _progress(self, stage: str) -> SamplingProgress:
        return SamplingProgress(stage, self.collected, self.count, self.iterations, self.accepted)

    def __iter__(self) -> Iterator[SamplingProgress]:
        if not self._burned_in:
            self._advance(self.settings.burn_in, 0)
            self._burned_in = True
            yield self._progress("burn-in")
        while self.collected < self.count and self.iterations < self.max_iterations:
            self._advance(min(self.settings.chunk_size, self.max_iterations - self.iterations),
                          self.settings.thinning)
            yield self._progress("thinning")

    def result(self) -> ChainResult:
        return ChainResult(
            positions=self.samples[:self.collected].copy(),
            requested=self.count,
            iterations=self.iterations,
            accepted=self.accepted,
            max_density=self.max_density,
            step_size=self.step_size,
            exclusion_radius=self.exclusion_radius,
            burn_in=self.settings.burn_in,
            thinning=self.settings.thinning,
        )

    def run(self) -> ChainResult:
        for _ in self:
            pass
        result = self.result()
        if result.shortfall:
            s = self.target.state
            self.error_handler.handle(
                f"Sampling stopped at the iteration cap with {result.collected}/{result.requested} "
                f"samples for (n={s.n}, l={s.l}, m={s.m})",
                ErrorCode.SAMPLING_SHORTFALL,
                ErrorLevel.WARNING,
                {"collected": result.collected, "requested": result.requested, "iterations": result.iterations},
            )
        return result


def orbital_colors(l: int, count: int, theme_mode: str, rng: np.random.Generator) -> np.ndarray:
    """Flat rgb per particle: the subshell colour dimmed by a random 0.85-1.0 factor."""
    palette = palette_dark if theme_mode == "dark" else palette_light
    base = np.asarray(palette[l] if l < len(palette) else palette[0], dtype=np.float32)
    variation = (0.85 + 0.15 * rng.random(count)).astype(np.float32)
    return (variation[:, None] * base[None, :]).reshape(-1)


def sample_extent(positions: np.ndarray, n: int, charge: float) -> float:
    max_radius = float(np.sqrt((positions ** 2).sum(axis=1)).max()) if positions.shape[0] else 0.0
    return max(max_radius * 1.08, n * n / charge * 1.2 + 0.5 * n, 2.0)


def _chain_metadata(result: ChainResult, state: QuantumState, charge: float) -> dict:
    return {
        "n": state.n,
        "l": state.l,
        "m": state.m,
        "s": state.s,
        "effective_charge": charge,
        "energy": calc_energy(charge, state.n),
        "radial_nodes": state.n - state.l - 1,
        "angular_nodes": state.l,
        "requested": result.requested,
        "collected": result.collected,
        "shortfall": result.shortfall,
        "iterations": result.iterations,
        "acceptance_rate": result.acceptance_rate,
        "burn_in": result.burn_in,
        "thinning": result.thinning,
        "step_size": result.step_size,
        "exclusion_radius": result.exclusion_radius,
    }


def _validate_request(atomic_number: int, count: int, theme_mode: str, distribution_mode: str,
                      error_handler: ErrorHandler) -> tuple[int, int]:
    atomic_number = validate_atomic_number(atomic_number, error_handler)
    count = validate_positive_count(count, "particle_count", error_handler)
    validate_choice(theme_mode, theme_modes, "theme_mode", error_handler)
    validate_choice(distribution_mode, distribution_modes, "distribution_mode", error_handler)
    return atomic_number, count


def generate_orbital_particles(
    atomic_number: int,
    state: QuantumState,
    count: int,
    theme_mode: str = "dark",
    distribution_mode: str = "accurate",
    settings: Settings | None = None,
    rng: np.random.Generator | None = None,
) -> SampleSet:
    """
    Sample one orbital of a hydrogen-like ion with nuclear charge Z.

    Args:
        atomic_number: nuclear charge Z
        state: orbital to sample
        count: number of particles
        theme_mode: "dark" or "light"; only the colours depend on it
        distribution_mode: "accurate" or "aesthetic"; recorded in the metadata
        settings: sampler parameters
        rng: random source; seeded from settings.seed when omitted

    Returns:
        SampleSet with count particles, fewer if the iteration cap was hit
    """
    error_handler = ErrorHandler()
    atomic_number, count = _validate_request(atomic_number, count, theme_mode, distribution_mode, error_handler)
    validate_quantum_state(state, error_handler)
    settings = settings or Settings()
    rng = rng if rng is not None else np.random.default_rng(settings.seed)

    charge = float(atomic_number)
    started = time.perf_counter()
    result = MetropolisChain(DensityTarget.atomic(charge, state, atomic_number), count,
                             settings, rng, error_handler).run()
    elapsed = time.perf_counter() - started
    logger.info(f"Sampled {result.collected} particles for Z={atomic_number} {state.orbital_label} "
                f"m={state.m} in {elapsed * 1000:.0f} ms (acceptance {result.acceptance_rate:.2f})")

    positions = result.positions.astype(np.float32).reshape(-1)
    metadata = _chain_metadata(result, state, charge)
    metadata.update({
        "atomic_number": atomic_number,
        "theme_mode": theme_mode,
        "distribution_mode": distribution_mode,
        "elapsed_ms": elapsed * 1000.0,
        "created_at": time.time(),
    })
    return SampleSet(
        positions=positions,
        base_positions=positions.copy(),
        colors=orbital_colors(state.l, result.collected, theme_mode, rng),
        max_probability=result.max_probability,
        extent=sample_extent(result.positions, state.n, charge),
        metadata=metadata,
    )


def split_particle_budget(count: int, weights: list[int]) -> list[int]:
    """Largest-remainder split of count in proportion to weights."""
    total = sum(weights)
    quotas = [count * w / total for w in weights]
    shares = [int(q) for q in quotas]
    order = sorted(range(len(weights)), key=lambda i: quotas[i] - shares[i], reverse=True)
    for i in order[:count - sum(shares)]:
        shares[i] += 1
    return shares


def generate_configuration_particles(
    atomic_number: int,
    count: int,
    theme_mode: str = "dark",
    distribution_mode: str = "accurate",
    settings: Settings | None = None,
    rng: np.random.Generator | None = None,
) -> SampleSet:
    """
    Sample every occupied orbital of a neutral atom with its screened charge.

    Particles are split between spatial orbitals (n, l, m) in proportion to
    their electron count. metadata["segments"] records which slice of the
    positions belongs to which orbital.
    """
    error_handler = ErrorHandler()
    atomic_number, count = _validate_request(atomic_number, count, theme_mode, distribution_mode, error_handler)
    settings = settings or Settings()
    rng = rng if rng is not None else np.random.default_rng(settings.seed)

    orbitals: dict[tuple[int, int, int], list] = {}
    for occupied in build_occupancy(atomic_number):
        s = occupied.state
        key = (s.n, s.l, s.m)
        if key not in orbitals:
            orbitals[key] = [QuantumState(s.n, s.l, s.m, 0.5), occupied.effective_charge, 0]
        orbitals[key][2] += 1

    entries = list(orbitals.values())
    shares = split_particle_budget(count, [electrons for _, _, electrons in entries])

    positions, colors, segments = [], [], []
    max_probability = min_max_probability
    extent = 2.0
    shortfall = False
    start = 0
    for (state, charge, electrons), share in tqdm(list(zip(entries, shares)), desc="orbitals",
                                                  disable=not settings.show_progress):
        if share == 0:
            continue
        result = MetropolisChain(DensityTarget.atomic(charge, state, atomic_number), share,
                                 settings, rng, error_handler).run()
        positions.append(result.positions)
        colors.append(orbital_colors(state.l, result.collected, theme_mode, rng))
        max_probability = max(max_probability, result.max_probability)
        extent = max(extent, sample_extent(result.positions, state.n, charge))
        shortfall = shortfall or result.shortfall
        segments.append({
            "label": state.orbital_label,
            "n": state.n,
            "l": state.l,
            "m": state.m,
            "electrons": electrons,
            "effective_charge": charge,
            "start": start,
            "count": result.collected,
        })
        start += result.collected

    flat = np.concatenate(positions).astype(np.float32).reshape(-1)
    logger.info(f"Sampled configuration of Z={atomic_number}: {start} particles over {len(segments)} orbitals")
    return SampleSet(
        positions=flat,
        base_positions=flat.copy(),
        colors=np.concatenate(colors),
        max_probability=max_probability,
        extent=extent,
        metadata={
            "atomic_number": atomic_number,
            "theme_mode": theme_mode,
            "distribution_mode": distribution_mode,
            "requested": count,
            "collected": start,
            "shortfall": shortfall,
            "segments": segments,
            "created_at": time.time(),
        },
    )


@task(name="sample orbital")
def sample_orbital(atomic_number: int, state: QuantumState, count: int, theme_mode: str = "dark",
                   distribution_mode: str = "accurate", settings: Settings | None = None) -> SampleSet:
    """
    prefect entry point for generate_orbital_particles
    """
    return generate_orbital_particles(atomic_number, state, count, theme_mode, distribution_mode, settings)
