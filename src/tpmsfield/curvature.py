"""
Curvature of implicit surfaces.

For a level set f(x) = 0 with gradient g and Hessian H (Goldman 2005):

    K = g^T adj(H) g / |g|^4
    M = (|g|^2 tr(H) - g^T H g) / (2 |g|^3)
    k1, k2 = M +/- sqrt(M^2 - K)

With this sign choice a solid sphere (f < 0 inside) has positive mean and
Gaussian curvature. Derivatives are taken by central differences in the
sampling space of the equation and mapped to world space through the linear
part of the pose.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from .config import CurvatureConfig
from .grid import Grid, Pose
from .properties import GAUSSIAN_CURVATURE, K1, K2, MEAN_CURVATURE


@dataclass(eq=False)
class ImplicitFunction:
    """
    Implicit-function collaborator.

    Attributes:
        u: vectorised callable (X, Y, Z) -> values, in sampling space
        pose: placement of the sampling space in world space
    """
    u: Callable
    pose: Pose = field(default_factory=Pose.identity)

    def __call__(self, X, Y, Z):
        """Evaluate at world coordinates."""
        return self.u(*self.pose.inverse_apply(X, Y, Z))


def implicit_derivatives(u: Callable, X, Y, Z, h: float):
    """
    Gradient (3, ...) and Hessian (3, 3, ...) of u by central differences.
    """
    P = (X, Y, Z)

    def shifted(offsets):
        return u(*(P[k] + offsets[k] * h for k in range(3)))

    f0 = u(X, Y, Z)
    shape = np.shape(f0)
    grad = np.empty((3,) + shape)
    hess = np.empty((3, 3) + shape)

    for i in range(3):
        e = [0, 0, 0]
        e[i] = 1
        f_plus = shifted(e)
        f_minus = shifted([-c for c in e])
        grad[i] = (f_plus - f_minus) / (2 * h)
        hess[i, i] = (f_plus - 2 * f0 + f_minus) / h**2

    for i in range(3):
        for j in range(i + 1, 3):
            pp = [0, 0, 0]
            pp[i], pp[j] = 1, 1
            pm = [0, 0, 0]
            pm[i], pm[j] = 1, -1
            mp = [0, 0, 0]
            mp[i], mp[j] = -1, 1
            mm = [0, 0, 0]
            mm[i], mm[j] = -1, -1
            hess[i, j] = (shifted(pp) - shifted(pm) - shifted(mp) + shifted(mm)) / (4 * h**2)
            hess[j, i] = hess[i, j]

    return grad, hess


def curvature_from_derivatives(grad: np.ndarray, hess: np.ndarray) -> Dict[str, np.ndarray]:
    """Gaussian, mean and principal curvatures from world-space derivatives."""
    gx, gy, gz = grad
    Hxx, Hyy, Hzz = hess[0, 0], hess[1, 1], hess[2, 2]
    Hxy, Hxz, Hyz = hess[0, 1], hess[0, 2], hess[1, 2]

    # Adjugate of the symmetric Hessian
    a11 = Hyy * Hzz - Hyz**2
    a22 = Hxx * Hzz - Hxz**2
    a33 = Hxx * Hyy - Hxy**2
    a12 = Hxz * Hyz - Hxy * Hzz
    a13 = Hxy * Hyz - Hxz * Hyy
    a23 = Hxy * Hxz - Hxx * Hyz

    g2 = gx**2 + gy**2 + gz**2
    gHg = (gx**2 * Hxx + gy**2 * Hyy + gz**2 * Hzz +
           2 * (gx * gy * Hxy + gx * gz * Hxz + gy * gz * Hyz))
    gAg = (gx**2 * a11 + gy**2 * a22 + gz**2 * a33 +
           2 * (gx * gy * a12 + gx * gz * a13 + gy * gz * a23))

    with np.errstate(divide='ignore', invalid='ignore'):
        K = gAg / g2**2
        M = (g2 * (Hxx + Hyy + Hzz) - gHg) / (2 * g2**1.5)
        disc = np.sqrt(np.maximum(M**2 - K, 0.0))
        k1 = M + disc
        k2 = M - disc

    return {GAUSSIAN_CURVATURE: K, MEAN_CURVATURE: M, K1: k1, K2: k2}


def clamp_curvature(values: np.ndarray, limit: float) -> np.ndarray:
    """
    Clamp to [-limit, limit].

    fmin/fmax ignore NaN, so undefined values (zero gradient) land on +limit.
    """
    return np.fmax(np.fmin(values, limit), -limit)


def implicit_curvature(
    implicit: ImplicitFunction,
    grid: Grid,
    config: Optional[CurvatureConfig] = None,
) -> Dict[str, np.ndarray]:
    """
    Evaluate curvature of an implicit surface at every grid point.

    Parameters
    ----------
    implicit : ImplicitFunction
        Defining equation and pose
    grid : Grid
        Evaluation grid
    config : CurvatureConfig, optional
        Finite-difference step and clamp limit

    Returns
    -------
    dict : 'k1', 'k2', 'GC' (Gaussian), 'MC' (mean), each of grid.shape,
        clamped to [-clamp, clamp]
    """
    config = config or CurvatureConfig()
    Xt, Yt, Zt = grid.sampling_coordinates(implicit.pose)
    grad_s, hess_s = implicit_derivatives(implicit.u, Xt, Yt, Zt, config.step)

    # d/dx_world = A^-T d/ds
    A_inv = implicit.pose.A_inv
    grad_w = np.einsum('ji,j...->i...', A_inv, grad_s)
    hess_w = np.einsum('ki,kl...,lj->ij...', A_inv, hess_s, A_inv)

    raw = curvature_from_derivatives(grad_w, hess_w)
    return {name: clamp_curvature(values, config.clamp) for name, values in raw.items()}
