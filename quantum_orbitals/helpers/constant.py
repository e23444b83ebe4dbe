class Constants:
    """Physical constants. The solver works in atomic units (a0 = 1, Hartree)."""
    a0: float = 1.0
    a0_angstrom: float = 0.529177210903
    hartree_ev: float = 27.211386245988
    density_epsilon: float = 1e-10
