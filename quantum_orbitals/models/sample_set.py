from dataclasses import dataclass, field
import copy

import numpy as np


def _copy_metadata(metadata: dict) -> dict:
    return copy.deepcopy(metadata)


@dataclass
class SampleSet:
    """
    Particle positions drawn from |psi|^2.

    positions and base_positions are flat float32 arrays of 3N values in Bohr
    radii; base_positions is a snapshot the renderer can animate against.
    colors is a flat float32 array of 3N rgb values.
    """
    positions: np.ndarray
    base_positions: np.ndarray
    colors: np.ndarray
    max_probability: float
    extent: float
    metadata: dict = field(default_factory=dict)

    @property
    def count(self) -> int:
        return self.positions.shape[0] // 3

    def copy(self) -> "SampleSet":
        """Deep copy whose arrays and metadata share no memory with this one."""
        return SampleSet(
            positions=self.positions.copy(),
            base_positions=self.base_positions.copy(),
            colors=self.colors.copy(),
            max_probability=self.max_probability,
            extent=self.extent,
            metadata=_copy_metadata(self.metadata),
        )


@dataclass
class DensityFieldData:
    """
    Normalized density on a resolution^3 grid over [-extent, extent]^3.

    field is flat in z, y, x order: index = (z * resolution + y) * resolution + x.
    """
    resolution: int
    field: np.ndarray
    extent: float
    max_sample: float
    max_probability: float

    def grid(self) -> np.ndarray:
        """View of the field as a (z, y, x) cube."""
        r = self.resolution
        return self.field.reshape(r, r, r)

    def coordinates(self) -> np.ndarray:
        """World coordinate of each grid index along one axis."""
        r = self.resolution
        return (np.arange(r) / (r - 1) - 0.5) * 2.0 * self.extent

    def copy(self) -> "DensityFieldData":
        return DensityFieldData(
            resolution=self.resolution,
            field=self.field.copy(),
            extent=self.extent,
            max_sample=self.max_sample,
            max_probability=self.max_probability,
        )


@dataclass
class MolecularOrbitalSample:
    """Particles of a two-center LCAO orbital with their signed amplitudes."""
    positions: np.ndarray
    base_positions: np.ndarray
    amplitudes: np.ndarray
    colors: np.ndarray
    max_probability: float
    extent: float
    metadata: dict = field(default_factory=dict)

    @property
    def count(self) -> int:
        return self.positions.shape[0] // 3

    def copy(self) -> "MolecularOrbitalSample":
        return MolecularOrbitalSample(
            positions=self.positions.copy(),
            base_positions=self.base_positions.copy(),
            amplitudes=self.amplitudes.copy(),
            colors=self.colors.copy(),
            max_probability=self.max_probability,
            extent=self.extent,
            metadata=_copy_metadata(self.metadata),
        )
