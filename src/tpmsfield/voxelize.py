"""
Mesh-to-voxel conversion.

A triangulated surface is rasterised onto the grid (indices wrap at the
domain boundary so periodic cells tile), its interior is flood filled, and
the binary solid is turned into a signed-distance field:

    U = voxel_size * (edt(void) - edt(solid))

which is negative inside the solid and positive in the void.
"""

import numpy as np
from scipy import ndimage
from stl import mesh as stl_mesh
from dataclasses import dataclass
import os

from .grid import Grid


class InvalidSourceError(Exception):
    """Generator input that cannot produce a field (malformed mesh, lattice, images)."""


# Barycentric samples per voxel edge when rasterising triangles
_SAMPLES_PER_VOXEL = 2


@dataclass(eq=False)
class SurfaceMesh:
    """
    Triangulated surface (mesh collaborator).

    Attributes:
        vertices: (N, 3) world coordinates
        faces: (M, 3) zero-based vertex indices
    """
    vertices: np.ndarray
    faces: np.ndarray

    def __post_init__(self):
        self.vertices = np.asarray(self.vertices, dtype=float)
        self.faces = np.asarray(self.faces)
        if self.vertices.ndim != 2 or self.vertices.shape[1] != 3:
            raise InvalidSourceError(
                f"vertices must be an (N, 3) array, got shape {self.vertices.shape}"
            )
        if self.faces.ndim != 2 or self.faces.shape[1] != 3:
            raise InvalidSourceError(
                f"faces must be an (M, 3) array, got shape {self.faces.shape}"
            )
        if not np.issubdtype(self.faces.dtype, np.integer):
            if not np.all(np.mod(self.faces, 1) == 0):
                raise InvalidSourceError("faces must hold integer vertex indices")
        self.faces = self.faces.astype(np.int64)
        if self.faces.size and (self.faces.min() < 0 or self.faces.max() >= len(self.vertices)):
            raise InvalidSourceError("face indices out of range for the vertex list")

    @classmethod
    def from_one_based(cls, vertices, faces) -> "SurfaceMesh":
        """Build from 1-based face indices (as written by most mesh tools)."""
        return cls(vertices, np.asarray(faces) - 1)

    @property
    def n_faces(self) -> int:
        return len(self.faces)

    @property
    def triangles(self) -> np.ndarray:
        """(M, 3, 3) array of triangle corner coordinates."""
        return self.vertices[self.faces]


def load_surface_mesh(path: str) -> SurfaceMesh:
    """
    Read an STL file into a SurfaceMesh with shared vertices.

    Parameters
    ----------
    path : str
        STL file (ASCII or binary)

    Returns
    -------
    SurfaceMesh
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Mesh file not found: {path}")

    data = stl_mesh.Mesh.from_file(path)
    corners = data.vectors.reshape(-1, 3).astype(float)
    vertices, inverse = np.unique(corners, axis=0, return_inverse=True)
    faces = np.asarray(inverse).reshape(-1, 3)
    return SurfaceMesh(vertices=vertices, faces=faces)


def rasterize_surface(surface: SurfaceMesh, grid: Grid, wrap: bool = True) -> np.ndarray:
    """
    Mark every voxel touched by the surface.

    Each triangle is sampled on a barycentric lattice fine enough to hit
    every voxel it crosses; samples are rounded to the nearest grid point.

    Parameters
    ----------
    surface : SurfaceMesh
        Triangulated surface in world coordinates
    grid : Grid
        Target grid
    wrap : bool
        Wrap indices with the cell period (periodic tiling). The last grid
        plane on each axis duplicates the first. If False, samples outside
        the grid are discarded.

    Returns
    -------
    np.ndarray : Boolean surface mask of shape grid.shape
    """
    shape = np.array(grid.shape)
    period = np.maximum(shape - 1, 1)
    mask = np.zeros(grid.shape, dtype=bool)
    if surface.n_faces == 0:
        return mask

    # Triangle corners in voxel index space
    tri = grid.world_index(surface.triangles.reshape(-1, 3)).reshape(-1, 3, 3)

    edges = np.stack([
        np.linalg.norm(tri[:, 1] - tri[:, 0], axis=1),
        np.linalg.norm(tri[:, 2] - tri[:, 1], axis=1),
        np.linalg.norm(tri[:, 0] - tri[:, 2], axis=1),
    ], axis=1)
    n_sub = np.ceil(edges.max(axis=1) * _SAMPLES_PER_VOXEL).astype(int) + 1

    # Group triangles sharing a subdivision level so each group is vectorised
    for n in np.unique(n_sub):
        group = tri[n_sub == n]
        i, j = np.meshgrid(np.arange(n + 1), np.arange(n + 1), indexing='ij')
        keep = (i + j) <= n
        a = i[keep] / n
        b = j[keep] / n
        c = 1.0 - a - b
        # (T, S, 3): S barycentric samples on each of T triangles
        pts = (c[None, :, None] * group[:, None, 0, :] +
               a[None, :, None] * group[:, None, 1, :] +
               b[None, :, None] * group[:, None, 2, :])
        idx = np.rint(pts.reshape(-1, 3)).astype(np.int64)
        if wrap:
            idx = np.mod(idx, period)
        else:
            inside = np.all((idx >= 0) & (idx < shape), axis=1)
            idx = idx[inside]
        mask[idx[:, 0], idx[:, 1], idx[:, 2]] = True

    if wrap:
        # Mirror the first plane onto its periodic copy on each axis
        mask[-1, :, :] = mask[0, :, :]
        mask[:, -1, :] = mask[:, 0, :]
        mask[:, :, -1] = mask[:, :, 0]

    return mask


def fill_solid(surface_mask: np.ndarray) -> np.ndarray:
    """Flood fill the interior enclosed by a rasterised surface."""
    return ndimage.binary_fill_holes(surface_mask)


def signed_distance(solid: np.ndarray, voxel_size: float = 1.0) -> np.ndarray:
    """
    Signed Euclidean distance field of a binary solid.

    Negative inside the solid, positive in the void, scaled by voxel_size.
    """
    solid = np.asarray(solid, dtype=bool)
    if not solid.any():
        return np.full(solid.shape, np.inf)
    if solid.all():
        return np.full(solid.shape, -np.inf)
    dist_to_solid = ndimage.distance_transform_edt(~solid)
    dist_to_void = ndimage.distance_transform_edt(solid)
    return voxel_size * (dist_to_solid - dist_to_void)


def mesh_to_field(surface: SurfaceMesh, grid: Grid, wrap: bool = True) -> np.ndarray:
    """
    Signed-distance field of a closed triangulated surface.

    Parameters
    ----------
    surface : SurfaceMesh
        Closed surface in world coordinates
    grid : Grid
        Target grid
    wrap : bool
        Periodic rasterisation

    Returns
    -------
    np.ndarray : Field U on the grid (U <= 0 inside the surface)
    """
    shell = rasterize_surface(surface, grid, wrap=wrap)
    solid = fill_solid(shell)
    return signed_distance(solid, grid.voxel_size)
