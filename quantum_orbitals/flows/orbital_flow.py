from prefect import flow

from quantum_orbitals.helpers.nodal_surfaces import compute_nodal_surfaces
from quantum_orbitals.models import QuantumState
from quantum_orbitals.tasks.data_processing import compute_iso_levels, density_field, resolve_density_resolution, sample_orbital
from quantum_orbitals.tasks.pre_processing import build_electron_configuration, import_settings


@flow(name="orbital sampling pipeline")
def orbital_sampling_pipeline(
    atomic_number: int,
    n: int,
    l: int,
    m: int,
    particle_count: int = 2000,
    grid_resolution: int = 32,
    distribution_mode: str = "accurate",
    theme_mode: str = "dark",
    config_path: str | None = None,
    min_density: float = 0.05,
    max_density: float = 0.9,
) -> dict:
    # load settings
    settings = import_settings(config_path)

    configuration = build_electron_configuration(atomic_number)

    state = QuantumState(n, l, m)
    sample = sample_orbital(atomic_number, state, particle_count, theme_mode, distribution_mode, settings)

    resolution = resolve_density_resolution(grid_resolution, distribution_mode, settings)
    field = density_field(atomic_number, state, sample.extent, sample.max_probability, resolution)

    return {
        "configuration": configuration["configuration"],
        "noble_gas_notation": configuration["noble_gas_notation"],
        "sample": sample,
        "density_field": field,
        "iso_levels": compute_iso_levels(min_density, max_density, distribution_mode, field.max_sample),
        "nodal_surfaces": compute_nodal_surfaces(float(atomic_number), state, sample.extent),
    }
