"""
Field generators.

Each generator kind is a small dataclass describing its inputs;
``generate_field`` dispatches on the kind and returns the field ``U`` on a
grid (``U <= 0`` is solid).
"""

import numpy as np
from skimage.transform import resize
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union
import warnings

from .grid import Grid, Pose
from .image_stack import image_stack_field
from .lattice import lattice_field
from .tpms_library import TPMSType, VariantMode, get_tpms_function
from .voxelize import InvalidSourceError, SurfaceMesh, load_surface_mesh, mesh_to_field


REGION_METHODS = ("box", "cylinder", "mesh")


@dataclass(frozen=True, eq=False)
class Region:
    """
    Bounding region of a field.

    Attributes:
        lower, upper: corners of the bounding box
        method: 'box', 'cylinder' (axis along z, semi-axes upper_x, upper_y)
            or 'mesh' (clip against a closed boundary mesh)
        mesh: boundary surface for method='mesh'
    """
    lower: Sequence[float] = (-10.0, -10.0, -10.0)
    upper: Sequence[float] = (10.0, 10.0, 10.0)
    method: str = "box"
    mesh: Optional[SurfaceMesh] = None

    def __post_init__(self):
        if self.method not in REGION_METHODS:
            raise ValueError(f"region method must be one of {REGION_METHODS}, got '{self.method}'")
        if self.method == "mesh" and self.mesh is None:
            raise ValueError("region method 'mesh' needs a boundary mesh")


@dataclass(frozen=True, eq=False)
class MeshSource:
    """Closed triangulated surface (or STL path), voxelised into a signed-distance field."""
    mesh: Union[SurfaceMesh, str]
    wrap: bool = True

    def load(self) -> SurfaceMesh:
        if isinstance(self.mesh, SurfaceMesh):
            return self.mesh
        return load_surface_mesh(self.mesh)


@dataclass(frozen=True, eq=False)
class DataSource:
    """Field values supplied directly on the grid."""
    U: np.ndarray


@dataclass(frozen=True, eq=False)
class LatticeSource:
    """Strut lattice: capsule struts between nodes plus node spheres."""
    nodes: np.ndarray
    struts: np.ndarray
    rstrut: float = 0.1
    rnode: float = 0.1


@dataclass(frozen=True, eq=False)
class ImageStackSource:
    """Image stack (folder, glob pattern or 3D array); bright voxels are solid."""
    images: Union[str, np.ndarray]
    threshold: float = 0.5
    spacing: Union[float, Sequence[float]] = 1.0
    origin: Sequence[float] = (0.0, 0.0, 0.0)


@dataclass(frozen=True, eq=False)
class TPMSSource:
    """
    Implicit equation with optional level offsets.

    Attributes:
        equation: vectorised callable (X, Y, Z) -> values, or a TPMSType name
        variant: 'single', 'double' or 'surface'
        v1, v2: scalar or array level offsets (graded cells)
    """
    equation: Union[Callable, TPMSType, str]
    variant: Union[VariantMode, str] = VariantMode.SINGLE
    v1: Union[float, np.ndarray] = 0.0
    v2: Union[float, np.ndarray] = 0.0

    @property
    def function(self) -> Callable:
        if callable(self.equation):
            return self.equation
        try:
            return get_tpms_function(TPMSType(self.equation))
        except ValueError as exc:
            raise InvalidSourceError(f"Unknown TPMS equation '{self.equation}'") from exc


FieldSource = Union[MeshSource, DataSource, LatticeSource, ImageStackSource, TPMSSource]


def empty_field(grid: Grid) -> np.ndarray:
    """Field with no solid anywhere (all NaN)."""
    return np.full(grid.shape, np.nan)


def resize_offset(v, shape) -> Union[float, np.ndarray]:
    """
    Bring a level offset to the grid shape.

    Scalars pass through. Arrays are padded to 3D, length-1 axes are
    broadcast, and the result is resampled to ``shape`` with linear
    interpolation.
    """
    v = np.asarray(v, dtype=float)
    if v.ndim == 0:
        return float(v)
    if v.size == 0:
        raise ValueError("level offset array is empty")
    if v.ndim > 3:
        raise ValueError(f"level offset must have at most 3 dimensions, got {v.ndim}")

    v = v.reshape(v.shape + (1,) * (3 - v.ndim))
    target = tuple(shape[i] if v.shape[i] == 1 else v.shape[i] for i in range(3))
    v = np.broadcast_to(v, target)
    if v.shape == tuple(shape):
        return np.array(v)
    return resize(v, shape, order=1, mode='edge', anti_aliasing=False, preserve_range=True)


def tpms_field(source: TPMSSource, grid: Grid, pose: Optional[Pose] = None) -> np.ndarray:
    """
    Evaluate an implicit equation on the grid.

    ``single``: U = u + V1. ``double``: U = (u + V1)(u + V2), a double wall.
    ``surface``: same product, collapsing to u + V1 when the offsets agree
    (a zero-thickness sheet is its own level set).
    """
    try:
        variant = VariantMode(source.variant)
    except ValueError as exc:
        raise InvalidSourceError(f"Unknown TPMS variant '{source.variant}'") from exc

    u = source.function(*grid.sampling_coordinates(pose))
    V1 = resize_offset(source.v1, grid.shape)
    V2 = resize_offset(source.v2, grid.shape)

    if variant is VariantMode.SINGLE:
        return u + V1
    if variant is VariantMode.SURFACE and np.array_equal(V1, V2):
        return u + V1
    return (u + V1) * (u + V2)


def clip_to_region(U: np.ndarray, grid: Grid, region: Optional[Region]) -> np.ndarray:
    """Remove material outside a non-box region (pointwise maximum)."""
    if region is None or region.method == "box":
        return U
    if region.method == "cylinder":
        upper = np.asarray(region.upper, dtype=float)
        outside = (grid.X / upper[0])**2 + (grid.Y / upper[1])**2 - 1.0
        return np.maximum(U, outside)
    return np.maximum(U, mesh_to_field(region.mesh, grid))


def generate_field(
    source: FieldSource,
    grid: Grid,
    pose: Optional[Pose] = None,
    region: Optional[Region] = None,
) -> np.ndarray:
    """
    Build the field U for a generator source.

    Parameters
    ----------
    source : FieldSource
        One of MeshSource, DataSource, LatticeSource, ImageStackSource,
        TPMSSource
    grid : Grid
        Sampling grid
    pose : Pose, optional
        Placement of the unit cell (implicit, lattice and image sources)
    region : Region, optional
        Non-box regions clip the field

    Returns
    -------
    np.ndarray : U of shape grid.shape. Unknown source kinds give an all-NaN
        field with a warning.

    Raises
    ------
    InvalidSourceError
        Malformed generator input
    FileNotFoundError
        STL path of a MeshSource that does not exist
    ValueError
        Inputs whose shape does not fit the grid
    """
    if isinstance(source, TPMSSource):
        U = tpms_field(source, grid, pose)
    elif isinstance(source, MeshSource):
        U = mesh_to_field(source.load(), grid, wrap=source.wrap)
    elif isinstance(source, LatticeSource):
        U = lattice_field(grid, source.nodes, source.struts,
                          rstrut=source.rstrut, rnode=source.rnode, pose=pose)
    elif isinstance(source, ImageStackSource):
        U = image_stack_field(grid, source.images, threshold=source.threshold,
                              spacing=source.spacing, origin=source.origin, pose=pose)
    elif isinstance(source, DataSource):
        U = np.asarray(source.U, dtype=float)
        if U.shape != grid.shape:
            raise ValueError(f"Data field has shape {U.shape}, grid is {grid.shape}")
    else:
        warnings.warn(f"Unknown field source {type(source).__name__}; field left empty")
        return empty_field(grid)

    return clip_to_region(U, grid, region)
