from prefect import task
import yaml
from quantum_orbitals.utils import CustomError, ErrorHandler, ErrorLevel, ErrorCode


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_positive_float(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _is_fraction(value) -> bool:
    return _is_positive_float(value) and value <= 1


def _is_non_negative_float(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


class Settings:
    def __init__(self, setting_path: str | None = None):
        self.setting_path = setting_path
        self.error_handler = ErrorHandler()
        if setting_path is not None:
            self.import_settings()

    seed: int | None = None
    show_progress: bool = False

    # sampler
    burn_in: int = 500
    thinning: int = 4  # keep every k-th chain state
    chunk_size: int = 2048
    step_scale: float = 1.8  # proposal width relative to n^2/Z, about 55% acceptance
    max_iteration_factor: float = 2.0  # iteration cap as a multiple of count * thinning
    nuclear_radius_floor: float = 0.1  # Bohr
    nuclear_radius_scale: float = 0.02
    nuclear_exclusion_factor: float = 3.0
    node_exclusion_factor: float = 0.2
    exclusion_cap_fraction: float = 0.1

    # density field
    min_resolution: int = 36
    max_resolution_accurate: int = 180
    max_resolution_aesthetic: int = 150
    resolution_multiplier_accurate: float = 1.9
    resolution_multiplier_aesthetic: float = 2.4

    # caches
    orbital_cache_capacity: int = 30
    density_cache_capacity: int = 24
    molecular_cache_capacity: int = 6
    frequency_weight: float = 10.0  # seconds of recency one access is worth
    eviction_fraction: float = 0.2
    prefetch_delay: float = 0.05
    max_prefetch_n: int = 5
    bond_length_step: float = 0.2

    # key -> validator
    schema = {
        "burn_in": _is_positive_int,
        "thinning": _is_positive_int,
        "chunk_size": _is_positive_int,
        "step_scale": _is_positive_float,
        "max_iteration_factor": _is_positive_float,
        "nuclear_radius_floor": _is_positive_float,
        "nuclear_radius_scale": _is_positive_float,
        "nuclear_exclusion_factor": _is_positive_float,
        "node_exclusion_factor": _is_positive_float,
        "exclusion_cap_fraction": _is_fraction,
        "min_resolution": _is_positive_int,
        "max_resolution_accurate": _is_positive_int,
        "max_resolution_aesthetic": _is_positive_int,
        "resolution_multiplier_accurate": _is_positive_float,
        "resolution_multiplier_aesthetic": _is_positive_float,
        "orbital_cache_capacity": _is_positive_int,
        "density_cache_capacity": _is_positive_int,
        "molecular_cache_capacity": _is_positive_int,
        "frequency_weight": _is_non_negative_float,
        "eviction_fraction": _is_fraction,
        "prefetch_delay": _is_non_negative_float,
        "max_prefetch_n": _is_positive_int,
        "bond_length_step": _is_positive_float,
    }

    def max_resolution(self, distribution_mode: str) -> int:
        if distribution_mode == "aesthetic":
            return self.max_resolution_aesthetic
        return self.max_resolution_accurate

    def resolution_multiplier(self, distribution_mode: str) -> float:
        if distribution_mode == "aesthetic":
            return self.resolution_multiplier_aesthetic
        return self.resolution_multiplier_accurate

    def import_settings(self) -> CustomError | None:
        try:
            with open(self.setting_path, 'r') as f:
                settings = yaml.safe_load(f)

            if settings is None:
                settings = {}

        except FileNotFoundError:
            self.error_handler.handle(
                f"Settings file '{self.setting_path}' not found. Using default values.",
                ErrorCode.NOT_FOUND,
                ErrorLevel.ERROR,
                {"file_path": self.setting_path}
            )
            settings = {}
        except yaml.YAMLError:
            self.error_handler.handle(
                f"Invalid YAML format in settings file '{self.setting_path}'. Using default values.",
                ErrorCode.VALIDATION,
                ErrorLevel.ERROR,
                {"file_path": self.setting_path}
            )
            settings = {}

        if not isinstance(settings, dict):
            self.error_handler.handle(
                f"Settings file '{self.setting_path}' must contain a mapping. Using default values.",
                ErrorCode.VALIDATION,
                ErrorLevel.ERROR,
                {"file_path": self.setting_path}
            )
            settings = {}

        if "seed" in settings:
            if settings["seed"] is None or isinstance(settings["seed"], int):
                self.seed = settings["seed"]
            else:
                self.error_handler.handle(
                    "The seed must be an integer or null. The default value (None) is used.",
                    ErrorCode.VALIDATION,
                    ErrorLevel.WARNING,
                    {"seed": settings["seed"]}
                )

        if "show_progress" in settings:
            self.show_progress = bool(settings["show_progress"])

        for key, is_valid in self.schema.items():
            if key not in settings:
                continue
            if is_valid(settings[key]):
                setattr(self, key, settings[key])
            else:
                self.error_handler.handle(
                    f"Invalid value for {key}. Therefore, the default value ({getattr(self, key)}) is used.",
                    ErrorCode.VALIDATION,
                    ErrorLevel.WARNING,
                    {key: settings[key]}
                )

        unknown = sorted(set(settings) - set(self.schema) - {"seed", "show_progress"})
        if unknown:
            self.error_handler.handle(
                f"Unknown settings are ignored: {', '.join(map(str, unknown))}",
                ErrorCode.NOT_FOUND,
                ErrorLevel.WARNING,
                {"available_fields": list(self.schema.keys())}
            )

        if self.min_resolution < 4:
            self.error_handler.handle(
                "The min_resolution must be at least 4. The default value (36) is used.",
                ErrorCode.VALIDATION,
                ErrorLevel.WARNING,
                {"min_resolution": self.min_resolution}
            )
            self.min_resolution = 36

        for key in ("max_resolution_accurate", "max_resolution_aesthetic"):
            if getattr(self, key) < self.min_resolution:
                self.error_handler.handle(
                    f"The {key} is smaller than min_resolution. It is raised to {self.min_resolution}.",
                    ErrorCode.VALIDATION,
                    ErrorLevel.WARNING,
                    {key: getattr(self, key)}
                )
                setattr(self, key, self.min_resolution)

        if max(self.max_resolution_accurate, self.max_resolution_aesthetic) > 256:
            self.error_handler.handle(
                "The grid resolution is too large. The large resolution can cause memory overflow.",
                ErrorCode.VALIDATION,
                ErrorLevel.WARNING,
                {"available_fields": list(settings.keys())}
            )

        return None

@task(name="import settings")
def import_settings(setting_path: str | None = None) -> Settings:
    """
    load settings from yaml file
    """
    return Settings(setting_path)
