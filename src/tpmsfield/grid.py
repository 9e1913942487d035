"""
Regular 3D sampling grid shared by every field component.

Arrays are laid out with ``indexing='ij'``: axis 0 is x (rows), axis 1 is y
(columns) and axis 2 is z (pages). A z-slice of any field is therefore
``U[:, :, k]``.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Optional, Tuple


# Relative slack when counting grid points, so that bounds which are an exact
# multiple of the voxel size are not lost to floating point round-off.
_COUNT_EPS = 1e-9


@dataclass(frozen=True, eq=False)
class Pose:
    """
    Affine placement of a unit cell in world space.

    A sampling-space point ``s`` maps to the world point ``A @ s + t``.
    Implicit generators are evaluated in sampling space, so the same
    defining equation can be instantiated at any scale, rotation and offset.
    """
    A: np.ndarray = field(default_factory=lambda: np.eye(3))
    t: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        A = np.asarray(self.A, dtype=float)
        t = np.asarray(self.t, dtype=float).reshape(-1)
        if A.shape != (3, 3):
            raise ValueError(f"Pose linear part must be 3x3, got {A.shape}")
        if t.shape != (3,):
            raise ValueError(f"Pose translation must have 3 components, got {t.shape}")
        if abs(np.linalg.det(A)) < 1e-14:
            raise ValueError("Pose linear part is singular")
        object.__setattr__(self, "A", A)
        object.__setattr__(self, "t", t)

    @classmethod
    def identity(cls) -> "Pose":
        return cls()

    @classmethod
    def scaling(cls, cell_size, translation=(0.0, 0.0, 0.0)) -> "Pose":
        """Pose that stretches a unit-period cell to ``cell_size`` per axis."""
        scale = np.broadcast_to(np.asarray(cell_size, dtype=float), (3,))
        return cls(A=np.diag(scale), t=np.asarray(translation, dtype=float))

    @property
    def A_inv(self) -> np.ndarray:
        return np.linalg.inv(self.A)

    @property
    def scale(self) -> np.ndarray:
        """Absolute per-axis scale (diagonal of the linear part)."""
        return np.abs(np.diag(self.A))

    def apply(self, points: np.ndarray) -> np.ndarray:
        """Map sampling-space points (N, 3) to world space."""
        points = np.asarray(points, dtype=float)
        return points @ self.A.T + self.t

    def inverse_apply(
        self, X: np.ndarray, Y: np.ndarray, Z: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Map world coordinate arrays of any (shared) shape to sampling space."""
        A_inv = self.A_inv
        dx = X - self.t[0]
        dy = Y - self.t[1]
        dz = Z - self.t[2]
        Xt = A_inv[0, 0] * dx + A_inv[0, 1] * dy + A_inv[0, 2] * dz
        Yt = A_inv[1, 0] * dx + A_inv[1, 1] * dy + A_inv[1, 2] * dz
        Zt = A_inv[2, 0] * dx + A_inv[2, 1] * dy + A_inv[2, 2] * dz
        return Xt, Yt, Zt


class Grid:
    """
    Regular voxel grid over the box [lower, upper].

    Parameters
    ----------
    lower, upper : array-like
        World-space corners of the bounding box (3 components each)
    voxel_size : float
        Edge length of a voxel (grid spacing)
    """

    def __init__(self, lower=(-10.0, -10.0, -10.0), upper=(10.0, 10.0, 10.0),
                 voxel_size: float = 1.0):
        self.lower = np.asarray(lower, dtype=float).reshape(-1)
        self.upper = np.asarray(upper, dtype=float).reshape(-1)
        self.voxel_size = float(voxel_size)

        if self.lower.shape != (3,) or self.upper.shape != (3,):
            raise ValueError("lower and upper must have exactly 3 components")
        if self.voxel_size <= 0:
            raise ValueError("voxel_size must be positive")
        if np.any(self.upper < self.lower):
            raise ValueError(f"upper {self.upper} must not be below lower {self.lower}")

        self.xq, self.yq, self.zq = (
            self._axis(self.lower[i], self.upper[i]) for i in range(3)
        )
        self.X, self.Y, self.Z = np.meshgrid(self.xq, self.yq, self.zq, indexing='ij')

    @classmethod
    def from_region(cls, region=None, voxel_size: float = 1.0) -> "Grid":
        """Grid spanning a region's bounding box (default box when None)."""
        if region is None:
            return cls(voxel_size=voxel_size)
        return cls(region.lower, region.upper, voxel_size)

    def _axis(self, lo: float, hi: float) -> np.ndarray:
        count = int(np.floor((hi - lo) / self.voxel_size + _COUNT_EPS)) + 1
        return lo + self.voxel_size * np.arange(count)

    @property
    def shape(self) -> Tuple[int, int, int]:
        return (len(self.xq), len(self.yq), len(self.zq))

    @property
    def size(self) -> int:
        return int(np.prod(self.shape))

    @property
    def extent(self) -> np.ndarray:
        """Edge lengths of the box covered by grid points."""
        return np.array([self.xq[-1] - self.xq[0],
                         self.yq[-1] - self.yq[0],
                         self.zq[-1] - self.zq[0]])

    def sampling_coordinates(
        self, pose: Optional[Pose] = None
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Grid coordinates expressed in the sampling space of ``pose``."""
        if pose is None:
            return self.X, self.Y, self.Z
        return pose.inverse_apply(self.X, self.Y, self.Z)

    def world_index(self, points: np.ndarray) -> np.ndarray:
        """Fractional voxel indices of world points (N, 3)."""
        return (np.asarray(points, dtype=float) - self.lower) / self.voxel_size

    def __repr__(self):
        return (f"Grid(lower={self.lower.tolist()}, upper={self.upper.tolist()}, "
                f"voxel_size={self.voxel_size}, shape={self.shape})")
