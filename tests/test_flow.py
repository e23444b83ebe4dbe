import pytest
from prefect.testing.utilities import prefect_test_harness

from quantum_orbitals.flows import orbital_sampling_pipeline


@pytest.fixture(scope="module", autouse=True)
def prefect_backend():
    with prefect_test_harness():
        yield


def test_pipeline(tmp_path):
    config = tmp_path / "settings.yaml"
    config.write_text("seed: 3\nburn_in: 100\nthinning: 2\n")
    result = orbital_sampling_pipeline(6, 2, 1, 0, particle_count=500, grid_resolution=10,
                                       config_path=str(config))

    assert result["configuration"] == "1s² 2s² 2p²"
    assert result["noble_gas_notation"] == "[He] 2s² 2p²"
    assert result["sample"].count == 500
    assert result["density_field"].resolution == 36
    assert result["iso_levels"][0] == pytest.approx(0.05 * result["density_field"].max_sample)
    assert result["nodal_surfaces"].include_horizontal_plane
