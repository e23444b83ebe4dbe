from dataclasses import dataclass
from functools import lru_cache
import logging

from prefect import task

from quantum_orbitals.helpers.calc_Zeff import calc_Zeff
from quantum_orbitals.helpers.constant import Constants
from quantum_orbitals.helpers.hydrogen_like import calc_energy
from quantum_orbitals.models import (
    QuantumState,
    OccupiedOrbital,
    OrbitalOccupancy,
    orbital_name,
    validate_atomic_number,
)
from quantum_orbitals.utils import ErrorHandler, raise_validation_error

logger = logging.getLogger(__name__)

# fixed aufbau order; known exceptions such as Cr and Cu are not reproduced
aufbau_order = [
    (1, 0), (2, 0), (2, 1), (3, 0), (3, 1), (4, 0), (3, 2), (4, 1), (5, 0), (4, 2),
    (5, 1), (6, 0), (4, 3), (5, 2), (6, 1), (7, 0), (5, 3), (6, 2), (7, 1),
]

noble_gases = {2: "He", 10: "Ne", 18: "Ar", 36: "Kr", 54: "Xe", 86: "Rn", 118: "Og"}

superscripts = str.maketrans("0123456789", "⁰¹²³⁴⁵⁶⁷⁸⁹")

max_electrons = sum(2 * (2 * l + 1) for _, l in aufbau_order)


@dataclass(frozen=True)
class SubshellOccupancy:
    n: int
    l: int
    electrons: int
    effective_charge: float

    @property
    def label(self) -> str:
        return f"{self.n}{orbital_name[self.l]}"

    @property
    def capacity(self) -> int:
        return 2 * (2 * self.l + 1)

    @property
    def energy(self) -> float:
        """Hydrogen-like energy with the screened charge, in Hartree."""
        return calc_energy(self.effective_charge, self.n)


def _fill(electron_count: int) -> dict[tuple[int, int], int]:
    counts: dict[tuple[int, int], int] = {}
    remaining = electron_count
    for n, l in aufbau_order:
        if remaining <= 0:
            break
        placed = min(remaining, 2 * (2 * l + 1))
        counts[(n, l)] = placed
        remaining -= placed
    return counts


def _subshells(atomic_number: int, electron_count: int) -> tuple[SubshellOccupancy, ...]:
    return _screen(atomic_number, _fill(electron_count))


def _screen(atomic_number: int, counts: dict[tuple[int, int], int]) -> tuple[SubshellOccupancy, ...]:
    subshells = [
        SubshellOccupancy(n, l, electrons, calc_Zeff(atomic_number, n, l, counts))
        for (n, l), electrons in counts.items()
    ]
    subshells.sort(key=lambda s: (s.n + s.l, s.n))
    return tuple(subshells)


def _validate_electron_count(atomic_number: int, electron_count: int) -> None:
    if electron_count < 0 or electron_count > max_electrons:
        raise_validation_error(
            ErrorHandler(),
            f"Cannot place {electron_count} electrons for Z={atomic_number}",
            {"atomic_number": atomic_number, "electron_count": electron_count, "max_electrons": max_electrons},
        )


@lru_cache(maxsize=128)
def build_subshells(atomic_number: int) -> tuple[SubshellOccupancy, ...]:
    """
    Ground-state subshell filling of a neutral atom.

    Args:
        atomic_number: nuclear charge Z

    Returns:
        subshells ordered by increasing (n + l), n breaking ties, each with its
        Slater effective charge
    """
    atomic_number = validate_atomic_number(atomic_number)
    _validate_electron_count(atomic_number, atomic_number)
    return _subshells(atomic_number, atomic_number)


def build_ion_subshells(atomic_number: int, charge: int) -> tuple[SubshellOccupancy, ...]:
    """Subshells for Z - charge electrons around a nucleus of charge Z."""
    atomic_number = validate_atomic_number(atomic_number)
    if isinstance(charge, bool) or not isinstance(charge, int):
        raise_validation_error(ErrorHandler(), f"Ion charge must be an integer, got {charge!r}", {"charge": charge})
    electron_count = atomic_number - charge
    _validate_electron_count(atomic_number, electron_count)
    return _subshells(atomic_number, electron_count)


def expand_subshells(subshells: tuple[SubshellOccupancy, ...]) -> OrbitalOccupancy:
    """
    One entry per electron.

    Within a subshell spin-up electrons fill m = -l..l first, then spin-down.
    """
    occupancy = []
    for subshell in subshells:
        for i in range(subshell.electrons):
            orbitals = 2 * subshell.l + 1
            m = (i % orbitals) - subshell.l
            s = 0.5 if i < orbitals else -0.5
            occupancy.append(OccupiedOrbital(QuantumState(subshell.n, subshell.l, m, s), subshell.effective_charge))
    return tuple(occupancy)


@lru_cache(maxsize=128)
def build_occupancy(atomic_number: int) -> OrbitalOccupancy:
    return expand_subshells(build_subshells(atomic_number))


def build_ion_configuration(atomic_number: int, charge: int) -> OrbitalOccupancy:
    return expand_subshells(build_ion_subshells(atomic_number, charge))


def configuration_string(subshells: tuple[SubshellOccupancy, ...]) -> str:
    """e.g. '1s² 2s² 2p²'"""
    return " ".join(f"{s.label}{str(s.electrons).translate(superscripts)}" for s in subshells)


def noble_gas_notation(atomic_number: int) -> str:
    """Configuration with the largest noble-gas core below Z, e.g. '[He] 2s² 2p²'."""
    subshells = build_subshells(atomic_number)
    core = 0
    for gas in noble_gases:
        if gas < atomic_number:
            core = gas
    if core == 0:
        return configuration_string(subshells)
    core_labels = {s.label for s in build_subshells(core)}
    valence = tuple(s for s in subshells if s.label not in core_labels)
    if not valence:
        return f"[{noble_gases[core]}]"
    return f"[{noble_gases[core]}] {configuration_string(valence)}"


def valence_subshell(atomic_number: int) -> SubshellOccupancy:
    """Last subshell filled in aufbau order."""
    return build_subshells(atomic_number)[-1]


def block(atomic_number: int) -> str:
    return orbital_name[valence_subshell(atomic_number).l]


def period(atomic_number: int) -> int:
    return max(s.n for s in build_subshells(atomic_number))


def orbital_energy_levels(atomic_number: int) -> list[dict]:
    """Label, effective charge and hydrogen-like energy of every filled subshell."""
    return [
        {
            "label": s.label,
            "electrons": s.electrons,
            "effective_charge": s.effective_charge,
            "energy_hartree": s.energy,
            "energy_ev": s.energy * Constants.hartree_ev,
        }
        for s in build_subshells(atomic_number)
    ]


def total_energy(subshells: tuple[SubshellOccupancy, ...]) -> float:
    """Sum of screened hydrogen-like one-electron energies, in Hartree."""
    return sum(s.electrons * s.energy for s in subshells)


def ionization_energies(atomic_number: int, max_ionizations: int = 5) -> list[float]:
    """
    Successive ionization energies in eV.

    The k-th value is E(Z, charge k) - E(Z, charge k - 1), each configuration
    screened for its own electron count. Stops once the bare nucleus is reached.
    """
    atomic_number = validate_atomic_number(atomic_number)
    energies = []
    previous = total_energy(build_subshells(atomic_number))
    for charge in range(1, min(max_ionizations, atomic_number) + 1):
        current = total_energy(build_ion_subshells(atomic_number, charge))
        energies.append((current - previous) * Constants.hartree_ev)
        previous = current
    return energies


def excited_configuration(atomic_number: int, level: int = 1) -> tuple[SubshellOccupancy, ...] | None:
    """
    Promote one electron from the last filled subshell.

    level 1 moves it into the next subshell in aufbau order, level 2 into the
    one after, and so on. None when the table has no subshell that far up.
    """
    atomic_number = validate_atomic_number(atomic_number)
    _validate_electron_count(atomic_number, atomic_number)
    counts = _fill(atomic_number)
    source = list(counts)[-1]
    target_index = aufbau_order.index(source) + level
    if level < 1 or target_index >= len(aufbau_order):
        return None
    target = aufbau_order[target_index]
    counts[source] -= 1
    if counts[source] == 0:
        del counts[source]
    counts[target] = counts.get(target, 0) + 1
    return _screen(atomic_number, counts)


@dataclass(frozen=True)
class ExcitedStates:
    ground: tuple[SubshellOccupancy, ...]
    excited: tuple[tuple[SubshellOccupancy, ...], ...]
    transition_energies: tuple[float, ...]  # Hartree, relative to the ground state


def excited_states(atomic_number: int, max_level: int = 3) -> ExcitedStates:
    """Single-electron promotions up to max_level with their excitation energies."""
    ground = build_subshells(atomic_number)
    ground_energy = total_energy(ground)
    excited = []
    for level in range(1, max_level + 1):
        configuration = excited_configuration(atomic_number, level)
        if configuration is not None:
            excited.append(configuration)
    return ExcitedStates(
        ground=ground,
        excited=tuple(excited),
        transition_energies=tuple(total_energy(c) - ground_energy for c in excited),
    )


@task(name="build electron configuration")
def build_electron_configuration(atomic_number: int) -> dict:
    """
    Occupancy and summary strings for one element.
    """
    subshells = build_subshells(atomic_number)
    logger.info(f"Electron configuration of Z={atomic_number}: {configuration_string(subshells)}")
    return {
        "atomic_number": atomic_number,
        "subshells": subshells,
        "occupancy": build_occupancy(atomic_number),
        "configuration": configuration_string(subshells),
        "noble_gas_notation": noble_gas_notation(atomic_number),
        "energy_levels": orbital_energy_levels(atomic_number),
        "ionization_energies": ionization_energies(atomic_number),
    }
