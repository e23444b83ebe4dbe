from quantum_orbitals.models.quantum_state import (
    QuantumState,
    OccupiedOrbital,
    OrbitalOccupancy,
    AtomDescriptor,
    orbital_name,
    distribution_modes,
    theme_modes,
    is_valid_quantum_state,
    quantum_state_problem,
    validate_quantum_state,
    validate_atomic_number,
    validate_effective_charge,
    validate_positive_count,
    validate_choice,
)
from quantum_orbitals.models.sample_set import SampleSet, DensityFieldData, MolecularOrbitalSample
