from quantum_orbitals.tasks.data_processing.metropolis_sampler import (
    MetropolisChain,
    DensityTarget,
    generate_orbital_particles,
    generate_configuration_particles,
    sample_orbital,
)
from quantum_orbitals.tasks.data_processing.density_field import (
    evaluate_density_field,
    evaluate_molecular_density_field,
    resolve_density_resolution,
    compute_iso_levels,
    density_field,
)
from quantum_orbitals.tasks.data_processing.molecular_sampler import (
    generate_molecular_orbital_sample,
    sample_molecular_orbital,
)
