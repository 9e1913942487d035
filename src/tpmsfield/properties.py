"""
Derived volumetric properties of a field.

- orientation: azimuth / inclination of the surface normal
- build risk: fraction of locally unsupported material in layer-wise builds
- slice metrics: per z-layer maximum wall thickness and cross-section area
"""

import numpy as np
import pandas as pd
from scipy import ndimage
from scipy.signal import fftconvolve
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

from .config import BuildRiskConfig


# Keys of the well-known properties
AZIMUTH = "azimuth"
INCLINATION = "inclination"
K1 = "k1"
K2 = "k2"
GAUSSIAN_CURVATURE = "GC"
MEAN_CURVATURE = "MC"
BUILD_RISK = "buildRisk"


class FieldProperties:
    """
    Named per-voxel property arrays of a field.

    Properties are added by the evaluation step that computes them. Missing
    entries mean "not computed"; the typed accessors return None for them.
    """

    def __init__(self, shape: Tuple[int, int, int]):
        self.shape = tuple(shape)
        self._data: Dict[str, np.ndarray] = {}

    def __setitem__(self, name: str, values: np.ndarray):
        values = np.asarray(values)
        if values.shape != self.shape:
            raise ValueError(
                f"Property '{name}' has shape {values.shape}, expected {self.shape}"
            )
        self._data[name] = values

    def __getitem__(self, name: str) -> np.ndarray:
        return self._data[name]

    def __contains__(self, name: str) -> bool:
        return name in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def get(self, name: str, default=None):
        return self._data.get(name, default)

    def update(self, values: Dict[str, np.ndarray]):
        for name, array in values.items():
            self[name] = array

    def clear(self):
        self._data.clear()

    def as_dict(self) -> Dict[str, np.ndarray]:
        return dict(self._data)

    @property
    def azimuth(self) -> Optional[np.ndarray]:
        return self._data.get(AZIMUTH)

    @property
    def inclination(self) -> Optional[np.ndarray]:
        return self._data.get(INCLINATION)

    @property
    def k1(self) -> Optional[np.ndarray]:
        return self._data.get(K1)

    @property
    def k2(self) -> Optional[np.ndarray]:
        return self._data.get(K2)

    @property
    def gaussian_curvature(self) -> Optional[np.ndarray]:
        return self._data.get(GAUSSIAN_CURVATURE)

    @property
    def mean_curvature(self) -> Optional[np.ndarray]:
        return self._data.get(MEAN_CURVATURE)

    @property
    def build_risk(self) -> Optional[np.ndarray]:
        return self._data.get(BUILD_RISK)

    def __repr__(self):
        return f"FieldProperties(shape={self.shape}, keys={sorted(self._data)})"


@dataclass
class SliceMetrics:
    """Per z-layer cross-section metrics."""
    z: np.ndarray  # Slice heights
    max_thickness: np.ndarray  # Largest local wall thickness in the slice
    area: np.ndarray  # Solid cross-section area

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to pandas DataFrame."""
        return pd.DataFrame({
            'z': self.z,
            'max_thickness': self.max_thickness,
            'area': self.area,
        })


def surface_orientation(U: np.ndarray, sigma: float = 0.5) -> Dict[str, np.ndarray]:
    """
    Orientation of the field gradient (surface normal) in degrees.

    Parameters
    ----------
    U : np.ndarray
        Field on an 'ij' grid (axis 0 = x, axis 2 = z)
    sigma : float
        Gaussian smoothing radius in voxels applied before differentiation

    Returns
    -------
    dict : 'azimuth' in (-180, 180], 'inclination' = 90 + elevation in [0, 180]
    """
    smooth = ndimage.gaussian_filter(np.asarray(U, dtype=float), sigma, mode='nearest')
    gx = ndimage.sobel(smooth, axis=0, mode='nearest')
    gy = ndimage.sobel(smooth, axis=1, mode='nearest')
    gz = ndimage.sobel(smooth, axis=2, mode='nearest')

    azimuth = np.degrees(np.arctan2(gy, gx))
    elevation = np.degrees(np.arctan2(gz, np.hypot(gx, gy)))
    return {AZIMUTH: azimuth, INCLINATION: 90.0 + elevation}


def build_risk_kernel(voxel_size: float, config: Optional[BuildRiskConfig] = None) -> np.ndarray:
    """
    Support kernel for layer-wise fabrication.

    In-plane Gaussian footprint plus a linear vertical bias (weaker support
    further below). Layers above the current one carry no weight and the
    current layer is down-weighted. Axis 2 is the build direction.

    Returns
    -------
    np.ndarray : (n, n, n) kernel normalised to unit sum
    """
    config = config or BuildRiskConfig()
    n = config.kernel_size(voxel_size)
    q = np.linspace(-1.0, 1.0, n)
    q1, q2, q3 = np.meshgrid(q, q, q, indexing='ij')

    H = config.heat_scale / np.sqrt(2 * np.pi) * np.exp(-(q1**2) / 2 - (q2**2) / 2) + q3
    layer = config.layer_index(n)
    H[:, :, layer] *= config.current_layer_weight
    H[:, :, layer + 1:] = 0.0

    total = H.sum()
    if total <= 0:
        raise ValueError("Build risk kernel has no positive weight")
    return H / total


def build_risk(
    solid: np.ndarray,
    voxel_size: float,
    config: Optional[BuildRiskConfig] = None,
) -> np.ndarray:
    """
    Fraction of locally unsupported material at each solid voxel.

    The part is padded with air around its sides and placed on a solid
    build plate, then correlated with the support kernel.

    Parameters
    ----------
    solid : np.ndarray
        Binary solid mask (axis 2 = build direction)
    voxel_size : float
        Voxel edge length, sets the kernel size in voxels
    config : BuildRiskConfig, optional
        Kernel parameters

    Returns
    -------
    np.ndarray : Risk in [0, 1] for solid voxels, NaN for void voxels
    """
    solid = np.asarray(solid, dtype=float)
    H = build_risk_kernel(voxel_size, config)
    n = H.shape[0]
    nx, ny, nz = solid.shape

    padded = np.zeros((nx + 2 * n, ny + 2 * n, nz + n))
    padded[:, :, :n] = 1.0  # build plate
    padded[n:n + nx, n:n + ny, n:n + nz] = solid

    # Correlation == convolution with the flipped kernel
    support = fftconvolve(padded, H[::-1, ::-1, ::-1], mode='same')
    support = np.minimum(1.0, support[n:n + nx, n:n + ny, n:n + nz])

    risk = solid - support * solid
    risk[solid == 0] = np.nan
    return risk


def slice_thickness(slice_solid: np.ndarray, voxel_size: float) -> float:
    """
    Maximum local wall thickness of a periodic 2D section.

    The slice is tiled once on every side before the distance transform so
    walls touching the border see their neighbours in the next cell.
    """
    slice_solid = np.asarray(slice_solid, dtype=bool)
    if not slice_solid.any():
        return 0.0
    if slice_solid.all():
        return np.inf

    nx, ny = slice_solid.shape
    padded = np.pad(slice_solid, ((nx, nx), (ny, ny)), mode='wrap')
    dist = ndimage.distance_transform_edt(padded)[nx:2 * nx, ny:2 * ny]
    return 2.0 * float(dist.max()) * voxel_size


def slice_metrics(solid: np.ndarray, voxel_size: float, z: Optional[np.ndarray] = None) -> SliceMetrics:
    """
    Per z-slice maximum thickness and solid area.

    Parameters
    ----------
    solid : np.ndarray
        Binary solid mask (axis 2 = z)
    voxel_size : float
        Voxel edge length
    z : np.ndarray, optional
        Slice heights (defaults to slice indices times voxel_size)

    Returns
    -------
    SliceMetrics
    """
    solid = np.asarray(solid, dtype=bool)
    nz = solid.shape[2]
    if z is None:
        z = np.arange(nz) * voxel_size

    thickness = np.array([slice_thickness(solid[:, :, k], voxel_size) for k in range(nz)])
    area = solid.sum(axis=(0, 1)) * voxel_size**2
    return SliceMetrics(z=np.asarray(z, dtype=float), max_thickness=thickness, area=area.astype(float))
