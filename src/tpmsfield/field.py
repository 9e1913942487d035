"""
Volumetric field container.

A VolumeField owns one grid, the scalar field U and its solid mask, the
derived properties, the per-slice metrics and the homogenised stiffness.
"""

import numpy as np
from typing import Optional
import warnings

from .config import PropertyConfig, SolverConfig
from .curvature import ImplicitFunction, implicit_curvature
from .export_geometry import voxel_hex_mesh, write_inp
from .generators import FieldSource, Region, empty_field, generate_field
from .grid import Grid, Pose
from .homogenize import homogenize
from .materials import MaterialPair
from .properties import (
    BUILD_RISK, FieldProperties, SliceMetrics, build_risk, slice_metrics,
    surface_orientation,
)
from .voxelize import InvalidSourceError


class VolumeField:
    """
    Scalar field on a regular grid, with ``solid == (U <= 0)``.

    Parameters
    ----------
    source : FieldSource, optional
        Generator input; without one the field starts empty
    voxel_size : float
        Grid spacing
    region : Region, optional
        Bounding region (default box [-10, 10]^3)
    pose : Pose, optional
        Placement of the unit cell for implicit, lattice and image sources
    """

    def __init__(
        self,
        source: Optional[FieldSource] = None,
        voxel_size: float = 1.0,
        region: Optional[Region] = None,
        pose: Optional[Pose] = None,
    ):
        self.region = region
        self.pose = pose
        self.grid = Grid.from_region(region, voxel_size)
        self.source = source

        self.properties = FieldProperties(self.grid.shape)
        self.z_slices: Optional[SliceMetrics] = None
        self.CH: Optional[np.ndarray] = None
        self.U = empty_field(self.grid)

        if source is not None:
            self.generate(source)

    @property
    def U(self) -> np.ndarray:
        return self._U

    @U.setter
    def U(self, values):
        values = np.asarray(values, dtype=float)
        if values.shape != self.grid.shape:
            raise ValueError(f"Field has shape {values.shape}, grid is {self.grid.shape}")
        self._U = values
        with np.errstate(invalid='ignore'):
            self._solid = values <= 0
        # Derived data no longer matches the field
        self.properties.clear()
        self.z_slices = None
        self.CH = None

    @property
    def solid(self) -> np.ndarray:
        return self._solid

    @property
    def voxel_size(self) -> float:
        return self.grid.voxel_size

    @property
    def is_empty(self) -> bool:
        return not self._solid.any()

    @property
    def relative_density(self) -> float:
        """Solid volume fraction."""
        return float(self._solid.mean())

    def generate(self, source: FieldSource) -> "VolumeField":
        """
        (Re)build U from a generator source.

        Malformed inputs leave the field empty with a warning.
        """
        self.source = source
        try:
            self.U = generate_field(source, self.grid, pose=self.pose, region=self.region)
        except (InvalidSourceError, FileNotFoundError) as exc:
            warnings.warn(f"Could not generate field from {type(source).__name__}: {exc}")
            self.U = empty_field(self.grid)
        return self

    def calculate_properties(
        self,
        implicit: Optional[ImplicitFunction] = None,
        config: Optional[PropertyConfig] = None,
    ) -> FieldProperties:
        """
        Evaluate orientation, curvature (with an implicit function), build
        risk and per-slice thickness / area.
        """
        config = config or PropertyConfig()
        self.properties.update(surface_orientation(self.U, config.smoothing_sigma))
        if implicit is not None:
            self.properties.update(implicit_curvature(implicit, self.grid, config.curvature))
        self.properties[BUILD_RISK] = build_risk(self.solid, self.voxel_size, config.build_risk)
        self.z_slices = slice_metrics(self.solid, self.voxel_size, z=self.grid.zq)
        return self.properties

    def homogenise(
        self,
        E1: float = 1.0,
        v1: float = 0.33,
        E2: float = 0.0,
        v2: float = 0.0,
        method: str = "pcg",
        config: Optional[SolverConfig] = None,
    ) -> np.ndarray:
        """
        Effective stiffness of the field as a periodic unit cell.

        Every grid sample is one voxel of edge ``voxel_size``. Failures give
        a 6x6 NaN matrix and a warning instead of raising.

        ``method`` only builds the default solver settings; when ``config``
        is given its ``method`` is used and ``method`` is ignored.

        Returns
        -------
        np.ndarray : 6x6 stiffness in Voigt order [xx, yy, zz, yz, xz, xy]
        """
        cell_lengths = np.array(self.grid.shape) * self.voxel_size
        try:
            config = config or SolverConfig(method=method)
            result = homogenize(self.solid, cell_lengths,
                                MaterialPair.from_constants(E1, v1, E2, v2), config)
        except (np.linalg.LinAlgError, RuntimeError, ValueError) as exc:
            warnings.warn(f"Homogenisation failed: {exc}")
            self.CH = np.full((6, 6), np.nan)
            return self.CH

        if not result.ok:
            warnings.warn(f"Homogenisation failed: {result.error}")
        self.CH = result.to_array()
        return self.CH

    def export_inp(self, path: str, **kwargs) -> str:
        """Write the solid voxels as a C3D8 hexahedral mesh (.inp)."""
        return write_inp(path, voxel_hex_mesh(self.solid, self.grid), **kwargs)

    def __repr__(self):
        return (f"VolumeField(grid={self.grid!r}, source={type(self.source).__name__}, "
                f"relative_density={self.relative_density:.3f})")
