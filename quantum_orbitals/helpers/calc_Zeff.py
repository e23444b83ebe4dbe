from collections.abc import Iterable, Mapping

# Slater screening constants
weights = {
    0: 0.35,          # same group, other electrons
    "1s": 0.30,       # the other 1s electron
    1: 0.85,          # n-1 shell, s/p targets only
    2: 1.00           # n-2 and below, or any inner group for d/f targets
}


def slater_group(n: int, l: int) -> tuple[int, int]:
    """
    Slater grouping key: (1s)(2s,2p)(3s,3p)(3d)(4s,4p)(4d)(4f)...

    s and p of the same shell share a group; every d, f, g subshell is its own.
    """
    return (n, 0) if l <= 1 else (n, l)


def subshell_counts(occupancy: Iterable) -> dict[tuple[int, int], int]:
    """Electrons per (n, l) from an iterable of OccupiedOrbital or QuantumState."""
    counts: dict[tuple[int, int], int] = {}
    for item in occupancy:
        state = getattr(item, "state", item)
        key = (state.n, state.l)
        counts[key] = counts.get(key, 0) + 1
    return counts


def calc_shielding(n: int, l: int, counts: Mapping[tuple[int, int], int]) -> float:
    """
    Slater shielding constant for one electron in (n, l).

    The electron itself is excluded from its own group. Groups lying above the
    target (outer groups) do not shield.
    """
    target = slater_group(n, l)
    s = 0.0
    for (n_o, l_o), n_e in counts.items():
        if n_e <= 0:
            continue
        group = slater_group(n_o, l_o)
        if group == target:
            others = n_e - 1 if (n_o, l_o) == (n, l) else n_e
            s += (weights["1s"] if n == 1 else weights[0]) * max(others, 0)
        elif group > target:
            continue
        elif l >= 2:
            s += weights[2] * n_e
        elif n - n_o == 1:
            s += weights[1] * n_e
        elif n - n_o >= 2:
            s += weights[2] * n_e
    return s


def calc_Zeff(atomic_number: int, n: int, l: int, counts: Mapping[tuple[int, int], int]) -> float:
    """
    Effective nuclear charge Z - S for an electron in (n, l), floored at 1.

    Args:
        atomic_number: nuclear charge Z
        n, l: subshell of the target electron
        counts: electrons per (n, l) subshell of the whole configuration
    """
    z_eff = atomic_number - calc_shielding(n, l, counts)
    return max(1.0, z_eff)
