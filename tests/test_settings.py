import pytest

from quantum_orbitals.tasks.pre_processing.settings import Settings
from quantum_orbitals.utils import ErrorCode


def write(tmp_path, text):
    path = tmp_path / "settings.yaml"
    path.write_text(text)
    return str(path)


def test_defaults_without_file():
    settings = Settings()
    assert settings.burn_in == 500
    assert settings.thinning == 4
    assert settings.orbital_cache_capacity == 30
    assert settings.density_cache_capacity == 24
    assert settings.molecular_cache_capacity == 6
    assert settings.max_resolution("aesthetic") == 150
    assert settings.resolution_multiplier("accurate") == 1.9


def test_values_are_loaded(tmp_path):
    settings = Settings(write(tmp_path, "seed: 7\nburn_in: 50\nstep_scale: 0.5\nshow_progress: true\n"))
    assert settings.seed == 7
    assert settings.burn_in == 50
    assert settings.step_scale == 0.5
    assert settings.show_progress is True
    assert not settings.error_handler.has_warnings()


def test_invalid_values_keep_defaults(tmp_path):
    with pytest.warns(UserWarning):
        settings = Settings(write(tmp_path, "burn_in: -5\neviction_fraction: 1.5\nseed: abc\n"))
    assert settings.burn_in == 500
    assert settings.eviction_fraction == 0.2
    assert settings.seed is None
    assert len(settings.error_handler.warnings) == 3


def test_unknown_keys_warn(tmp_path):
    with pytest.warns(UserWarning, match="colour"):
        Settings(write(tmp_path, "colour: red\n"))


def test_missing_file_is_an_error():
    settings = Settings("does/not/exist.yaml")
    assert settings.error_handler.codes() == [ErrorCode.NOT_FOUND]
    assert settings.burn_in == 500


def test_invalid_yaml_is_an_error(tmp_path):
    settings = Settings(write(tmp_path, "burn_in: [1, 2\n"))
    assert settings.error_handler.has_errors()


def test_resolution_bounds(tmp_path):
    with pytest.warns(UserWarning):
        settings = Settings(write(tmp_path, "min_resolution: 2\n"))
    assert settings.min_resolution == 36

    with pytest.warns(UserWarning):
        settings = Settings(write(tmp_path, "min_resolution: 64\nmax_resolution_aesthetic: 50\n"))
    assert settings.max_resolution_aesthetic == 64


def test_sample_config_loads_cleanly():
    import os
    path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "config", "settings.yaml")
    settings = Settings(path)
    assert not settings.error_handler.has_errors()
    assert not settings.error_handler.has_warnings()
