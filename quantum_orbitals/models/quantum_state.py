from dataclasses import dataclass
import numbers

from quantum_orbitals.utils import ErrorHandler, raise_validation_error

orbital_name = ["s", "p", "d", "f", "g", "h", "i"]
distribution_modes = ("accurate", "aesthetic")
theme_modes = ("dark", "light")


@dataclass(frozen=True)
class QuantumState:
    """Quantum numbers (n, l, m, s) of one hydrogen-like orbital."""
    n: int
    l: int
    m: int
    s: float = 0.5

    @property
    def orbital_label(self) -> str:
        """Subshell label such as '2p'."""
        return f"{self.n}{orbital_name[self.l]}"

    @property
    def key(self) -> str:
        return f"{self.n}:{self.l}:{self.m}"

    def replace(self, **changes) -> "QuantumState":
        values = {"n": self.n, "l": self.l, "m": self.m, "s": self.s}
        values.update(changes)
        return QuantumState(**values)


@dataclass(frozen=True)
class OccupiedOrbital:
    """One filled spin-orbital with the effective charge its electron sees."""
    state: QuantumState
    effective_charge: float


OrbitalOccupancy = tuple[OccupiedOrbital, ...]


def _is_integer(value) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def quantum_state_problem(state: QuantumState) -> str | None:
    """Return a description of what is wrong with the state, or None."""
    n, l, m, s = state.n, state.l, state.m, state.s
    if not (_is_integer(n) and _is_integer(l) and _is_integer(m)):
        return f"quantum numbers must be integers (n={n!r}, l={l!r}, m={m!r})"
    if n < 1:
        return f"principal quantum number must be >= 1 (n={n})"
    if l < 0 or l >= n:
        return f"angular quantum number must satisfy 0 <= l < n (n={n}, l={l})"
    if abs(m) > l:
        return f"magnetic quantum number must satisfy -l <= m <= l (l={l}, m={m})"
    if s not in (0.5, -0.5):
        return f"spin must be +0.5 or -0.5 (s={s!r})"
    return None


def is_valid_quantum_state(state: QuantumState) -> bool:
    return quantum_state_problem(state) is None


def validate_quantum_state(state: QuantumState, error_handler: ErrorHandler | None = None) -> QuantumState:
    """
    Validate a quantum state before any computation uses it.

    Raises:
        ValidationError: if n, l, m or s are out of range
    """
    if not isinstance(state, QuantumState):
        raise_validation_error(error_handler or ErrorHandler(), f"Expected a QuantumState, got {type(state).__name__}")
    problem = quantum_state_problem(state)
    if problem is not None:
        raise_validation_error(
            error_handler or ErrorHandler(),
            f"Invalid quantum state: {problem}",
            {"n": state.n, "l": state.l, "m": state.m, "s": state.s},
        )
    return state


def validate_atomic_number(atomic_number: int, error_handler: ErrorHandler | None = None) -> int:
    if not _is_integer(atomic_number) or atomic_number < 1:
        raise_validation_error(
            error_handler or ErrorHandler(),
            f"Atomic number must be a positive integer, got {atomic_number!r}",
            {"atomic_number": atomic_number},
        )
    return int(atomic_number)


def validate_effective_charge(z: float, error_handler: ErrorHandler | None = None) -> float:
    if isinstance(z, bool) or not isinstance(z, numbers.Real) or not z > 0:
        raise_validation_error(
            error_handler or ErrorHandler(),
            f"Nuclear charge must be a positive number, got {z!r}",
            {"z": z},
        )
    return float(z)


def validate_positive_count(count: int, name: str, error_handler: ErrorHandler | None = None) -> int:
    if not _is_integer(count) or count < 1:
        raise_validation_error(
            error_handler or ErrorHandler(),
            f"{name} must be a positive integer, got {count!r}",
            {name: count},
        )
    return int(count)


@dataclass(frozen=True)
class AtomDescriptor:
    """Atomic number plus access to per-orbital screened charge."""
    atomic_number: int

    def __post_init__(self):
        validate_atomic_number(self.atomic_number)

    def effective_charge(self, state: QuantumState, occupancy: OrbitalOccupancy | None = None) -> float:
        from quantum_orbitals.helpers.calc_Zeff import calc_Zeff, subshell_counts

        validate_quantum_state(state)
        if occupancy is None:
            from quantum_orbitals.tasks.pre_processing.electron_configuration import build_occupancy
            occupancy = build_occupancy(self.atomic_number)
        return calc_Zeff(self.atomic_number, state.n, state.l, subshell_counts(occupancy))


def validate_choice(value: str, allowed: tuple[str, ...], name: str, error_handler: ErrorHandler | None = None) -> str:
    if value not in allowed:
        raise_validation_error(
            error_handler or ErrorHandler(),
            f"{name} must be one of {', '.join(allowed)}, got {value!r}",
            {name: value},
        )
    return value
