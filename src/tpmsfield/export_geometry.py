"""Export the solid mask as a hexahedral finite-element mesh."""

import numpy as np
import os
from dataclasses import dataclass

from .grid import Grid


# Corner offsets of a voxel: bottom face counter-clockwise, then top face
HEX_CORNERS = np.array([
    [0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],
    [0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1],
])


@dataclass
class HexMesh:
    """
    Voxel hexahedral mesh.

    Attributes:
        node_ids: (N,) 1-based node labels
        nodes: (N, 3) node coordinates
        element_ids: (M,) 1-based element labels
        elements: (M, 8) node labels per element
    """
    node_ids: np.ndarray
    nodes: np.ndarray
    element_ids: np.ndarray
    elements: np.ndarray

    @property
    def n_nodes(self) -> int:
        return len(self.node_ids)

    @property
    def n_elements(self) -> int:
        return len(self.element_ids)


def voxel_hex_mesh(solid: np.ndarray, grid: Grid) -> HexMesh:
    """
    Convert a solid mask into 8-node hexahedra.

    The last grid plane along each axis repeats the first (periodic cell),
    so only ``solid[:-1, :-1, :-1]`` are meshed. Corners of voxel (i, j, k)
    are the grid points i..i+1, j..j+1, k..k+1. Node labels are 1-based
    Fortran-order indices into the grid of points; element labels are
    1-based Fortran-order indices into the voxel array.

    Parameters
    ----------
    solid : np.ndarray
        Binary mask of grid.shape
    grid : Grid
        Grid the mask lives on (supplies node coordinates)

    Returns
    -------
    HexMesh
    """
    solid = np.asarray(solid, dtype=bool)
    if solid.shape != grid.shape:
        raise ValueError(f"Solid mask has shape {solid.shape}, grid is {grid.shape}")
    if min(grid.shape) < 2:
        raise ValueError(f"Need at least 2 grid points per axis to mesh voxels, got {grid.shape}")

    shape = grid.shape
    voxels = solid[:-1, :-1, :-1]
    vi, vj, vk = np.nonzero(voxels)
    order = np.ravel_multi_index((vi, vj, vk), voxels.shape, order='F')
    sort = np.argsort(order)
    vi, vj, vk, order = vi[sort], vj[sort], vk[sort], order[sort]

    corners = np.column_stack([
        np.ravel_multi_index((vi + di, vj + dj, vk + dk), shape, order='F')
        for di, dj, dk in HEX_CORNERS
    ])

    used = np.unique(corners)
    pi, pj, pk = np.unravel_index(used, shape, order='F')
    nodes = np.column_stack([grid.xq[pi], grid.yq[pj], grid.zq[pk]])

    return HexMesh(
        node_ids=used + 1,
        nodes=nodes,
        element_ids=order + 1,
        elements=corners + 1,
    )


def write_inp(
    path: str,
    hex_mesh: HexMesh,
    element_type: str = "C3D8R",
    elset: str = "TPMS-Elements",
    heading: str = "TPMS voxel mesh",
) -> str:
    """
    Write a hexahedral mesh as an Abaqus / CalculiX input deck.

    Parameters
    ----------
    path : str
        Output .inp file
    hex_mesh : HexMesh
        Mesh from voxel_hex_mesh
    element_type : str
        Element type keyword
    elset : str
        Name of the element set

    Returns
    -------
    str : path written
    """
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(path, 'w') as f:
        f.write("*HEADING\n")
        f.write(f"{heading}\n")

        f.write("*NODE\n")
        for nid, (x, y, z) in zip(hex_mesh.node_ids, hex_mesh.nodes):
            f.write(f"{nid}, {x:.6e}, {y:.6e}, {z:.6e}\n")

        f.write(f"*ELEMENT, TYPE={element_type}, ELSET={elset}\n")
        for eid, conn in zip(hex_mesh.element_ids, hex_mesh.elements):
            f.write(f"{eid}, " + ", ".join(str(n) for n in conn) + "\n")

    print(f"Exported INP to {path}")
    return path
