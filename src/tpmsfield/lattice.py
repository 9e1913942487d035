"""Signed distance of strut lattices (capsule struts joined at spherical nodes)."""

import numpy as np
from typing import Optional, Tuple

from .grid import Grid, Pose
from .voxelize import InvalidSourceError


def _segment_distance(P: np.ndarray, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Distance from points P (N, 3) to the segment a-b."""
    ab = b - a
    denom = float(ab @ ab)
    if denom == 0.0:
        return np.linalg.norm(P - a, axis=1)
    t = np.clip((P - a) @ ab / denom, 0.0, 1.0)
    closest = a + t[:, None] * ab
    return np.linalg.norm(P - closest, axis=1)


def check_lattice(nodes, struts) -> Tuple[np.ndarray, np.ndarray]:
    """Validate and normalise node/strut arrays."""
    nodes = np.asarray(nodes, dtype=float)
    struts = np.asarray(struts)
    if nodes.ndim != 2 or nodes.shape[1] != 3 or len(nodes) == 0:
        raise InvalidSourceError(f"nodes must be a non-empty (N, 3) array, got {nodes.shape}")
    if struts.size == 0:
        struts = np.zeros((0, 2), dtype=np.int64)
    if struts.ndim != 2 or struts.shape[1] != 2:
        raise InvalidSourceError(f"struts must be an (M, 2) array, got {struts.shape}")
    struts = struts.astype(np.int64)
    if struts.size and (struts.min() < 0 or struts.max() >= len(nodes)):
        raise InvalidSourceError("strut node indices out of range")
    return nodes, struts


def lattice_field(
    grid: Grid,
    nodes: np.ndarray,
    struts: np.ndarray,
    rstrut: float = 0.1,
    rnode: float = 0.1,
    pose: Optional[Pose] = None,
) -> np.ndarray:
    """
    Signed distance to the union of lattice struts and nodes.

    Parameters
    ----------
    grid : Grid
        Sampling grid
    nodes : np.ndarray
        Node centres (N, 3) in unit-cell coordinates
    struts : np.ndarray
        Node index pairs (M, 2), zero-based
    rstrut : float
        Strut radius in unit-cell coordinates
    rnode : float
        Node sphere radius in unit-cell coordinates
    pose : Pose, optional
        Placement of the unit cell; nodes are mapped with it and radii are
        scaled by its mean axis scale

    Returns
    -------
    np.ndarray : Field U on the grid (U <= 0 inside the lattice)
    """
    nodes, struts = check_lattice(nodes, struts)
    if rstrut < 0 or rnode < 0:
        raise InvalidSourceError("lattice radii must be non-negative")

    if pose is None:
        pose = Pose.identity()
    centres = pose.apply(nodes)
    scale = float(np.mean(pose.scale))
    r_s = rstrut * scale
    r_n = rnode * scale

    P = np.column_stack([grid.X.ravel(), grid.Y.ravel(), grid.Z.ravel()])
    U = np.full(len(P), np.inf)

    for i, j in struts:
        U = np.minimum(U, _segment_distance(P, centres[i], centres[j]) - r_s)

    if r_n > 0:
        for c in centres:
            U = np.minimum(U, np.linalg.norm(P - c, axis=1) - r_n)

    return U.reshape(grid.shape)
