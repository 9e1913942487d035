"""Configuration dataclasses for property evaluation and homogenization."""

import math
from dataclasses import dataclass, field
from typing import Optional


SOLVER_METHODS = ("pcg", "direct")


@dataclass
class SolverConfig:
    """Homogenization solver parameters."""
    method: str = "pcg"  # 'pcg' (Jacobi-preconditioned CG) or 'direct'
    tol: float = 1e-10  # Relative residual tolerance for CG
    max_iter: int = 5000  # CG iteration cap per load case

    def __post_init__(self):
        """Validate solver parameters."""
        if self.method not in SOLVER_METHODS:
            raise ValueError(
                f"Unknown solver method '{self.method}', expected one of {SOLVER_METHODS}"
            )
        assert self.tol > 0, "tol must be positive"
        assert self.max_iter > 0, "max_iter must be positive"


@dataclass
class BuildRiskConfig:
    """
    Manufacturability kernel parameters.

    The current-layer index and its weight are empirical constants of the
    layer-wise support heuristic. They are exposed here so they can be
    reviewed and tuned without touching the filter code.
    """
    reach: float = 4.0  # Physical half-extent of the kernel (same units as voxel size)
    heat_scale: float = 10.0  # Amplitude of the in-plane Gaussian footprint
    current_layer_weight: float = 0.2  # Down-weighting of the layer being built
    current_layer_index: Optional[int] = None  # None -> centre layer (n // 2)

    def __post_init__(self):
        """Validate kernel parameters."""
        assert self.reach > 0, "reach must be positive"
        assert self.heat_scale > 0, "heat_scale must be positive"
        if not 0.0 <= self.current_layer_weight <= 1.0:
            raise ValueError("current_layer_weight must lie in [0, 1]")
        if self.current_layer_index is not None and self.current_layer_index < 0:
            raise ValueError("current_layer_index must be non-negative")

    def kernel_size(self, voxel_size: float) -> int:
        """Odd kernel edge length in voxels."""
        return math.floor(self.reach / voxel_size) * 2 + 1

    def layer_index(self, n: int) -> int:
        """Index of the current build layer inside a kernel of edge n."""
        if self.current_layer_index is None:
            return n // 2
        if self.current_layer_index >= n:
            raise ValueError(
                f"current_layer_index {self.current_layer_index} outside kernel of size {n}"
            )
        return self.current_layer_index


@dataclass
class CurvatureConfig:
    """Implicit curvature evaluation parameters."""
    clamp: float = 10.0  # Curvatures are clamped to [-clamp, clamp]
    step: float = 1e-3  # Finite-difference step in sampling space

    def __post_init__(self):
        assert self.clamp > 0, "clamp must be positive"
        assert self.step > 0, "step must be positive"


@dataclass
class PropertyConfig:
    """Derived property evaluation parameters."""
    smoothing_sigma: float = 0.5  # Gaussian smoothing before the Sobel gradient (voxels)
    build_risk: BuildRiskConfig = field(default_factory=BuildRiskConfig)
    curvature: CurvatureConfig = field(default_factory=CurvatureConfig)

    def __post_init__(self):
        assert self.smoothing_sigma >= 0, "smoothing_sigma must be non-negative"
