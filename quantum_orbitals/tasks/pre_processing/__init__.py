from quantum_orbitals.tasks.pre_processing.settings import Settings, import_settings
from quantum_orbitals.tasks.pre_processing.electron_configuration import (
    build_electron_configuration,
    build_occupancy,
    build_subshells,
    build_ion_configuration,
    configuration_string,
    noble_gas_notation,
    orbital_energy_levels,
    ionization_energies,
    excited_states,
)
