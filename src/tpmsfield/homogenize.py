"""
Periodic homogenization of voxel unit cells.

Every voxel is one trilinear hexahedral element whose material is picked
from the binary mask. The displacement is split into the macroscopic strain
term and a periodic fluctuation; solving the six unit-strain load cases gives
the effective stiffness

    CH_ij = 1/|Y| sum_e (chi0_i - chi_i)^T k_e (chi0_j - chi_j)

in Voigt order [xx, yy, zz, yz, xz, xy] with engineering shear strains.
"""

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import cg, splu
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
import warnings

from .config import SolverConfig
from .materials import MaterialPair


VOIGT_LABELS = ("xx", "yy", "zz", "yz", "xz", "xy")

# Local node offsets of the hexahedron: bottom face counter-clockwise, then top
NODE_OFFSETS = np.array([
    [0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],
    [0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1],
])

# Isotropic constitutive split C = lambda * C_LAMBDA + mu * C_MU
C_LAMBDA = np.zeros((6, 6))
C_LAMBDA[:3, :3] = 1.0
C_MU = np.diag([2.0, 2.0, 2.0, 1.0, 1.0, 1.0])


@dataclass
class HomogenizationResult:
    """
    Outcome of a homogenization run.

    Exactly one of ``stiffness`` (6x6) and ``error`` is set.
    """
    stiffness: Optional[np.ndarray] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_array(self) -> np.ndarray:
        """Stiffness tensor, or a 6x6 NaN matrix when the run failed."""
        if self.ok:
            return self.stiffness
        return np.full((6, 6), np.nan)


def strain_displacement(dN_dx: np.ndarray) -> np.ndarray:
    """6x24 strain-displacement matrix from shape-function gradients (8, 3)."""
    B = np.zeros((6, 24))
    for i in range(8):
        dx, dy, dz = dN_dx[i]
        B[0, 3*i] = dx       # epsilon_xx
        B[1, 3*i+1] = dy     # epsilon_yy
        B[2, 3*i+2] = dz     # epsilon_zz
        B[3, 3*i+1] = dz     # gamma_yz
        B[3, 3*i+2] = dy
        B[4, 3*i] = dz       # gamma_xz
        B[4, 3*i+2] = dx
        B[5, 3*i] = dy       # gamma_xy
        B[5, 3*i+1] = dx
    return B


def element_matrices(dx: float, dy: float, dz: float):
    """
    Element stiffness and load matrices of a dx * dy * dz hexahedron.

    Integrated with 2x2x2 Gauss quadrature.

    Returns
    -------
    ke_lambda, ke_mu : np.ndarray
        24x24 stiffness parts multiplying lambda and mu
    fe_lambda, fe_mu : np.ndarray
        24x6 load parts (one column per unit strain)
    """
    a, b, c = dx / 2, dy / 2, dz / 2
    xi_nodes = 2 * NODE_OFFSETS - 1
    gp = 1.0 / np.sqrt(3)
    detJ = a * b * c

    ke_lambda = np.zeros((24, 24))
    ke_mu = np.zeros((24, 24))
    fe_lambda = np.zeros((24, 6))
    fe_mu = np.zeros((24, 6))

    for xi in (-gp, gp):
        for eta in (-gp, gp):
            for zeta in (-gp, gp):
                xn, en, zn = xi_nodes[:, 0], xi_nodes[:, 1], xi_nodes[:, 2]
                dN = np.column_stack([
                    0.125 * xn * (1 + en * eta) * (1 + zn * zeta) / a,
                    0.125 * en * (1 + xn * xi) * (1 + zn * zeta) / b,
                    0.125 * zn * (1 + xn * xi) * (1 + en * eta) / c,
                ])
                B = strain_displacement(dN)
                ke_lambda += B.T @ C_LAMBDA @ B * detJ
                ke_mu += B.T @ C_MU @ B * detJ
                fe_lambda += B.T @ C_LAMBDA * detJ
                fe_mu += B.T @ C_MU * detJ

    return ke_lambda, ke_mu, fe_lambda, fe_mu


def unit_strain_displacements(dx: float, dy: float, dz: float) -> np.ndarray:
    """
    Nodal displacements (24, 6) of the six unit macroscopic strains.
    """
    x = NODE_OFFSETS[:, 0] * dx
    y = NODE_OFFSETS[:, 1] * dy
    z = NODE_OFFSETS[:, 2] * dz
    zero = np.zeros(8)
    fields = [
        (x, zero, zero),            # xx
        (zero, y, zero),            # yy
        (zero, zero, z),            # zz
        (zero, z / 2, y / 2),       # yz
        (z / 2, zero, x / 2),       # xz
        (y / 2, x / 2, zero),       # xy
    ]
    chi0 = np.zeros((24, 6))
    for k, (ux, uy, uz) in enumerate(fields):
        chi0[0::3, k] = ux
        chi0[1::3, k] = uy
        chi0[2::3, k] = uz
    return chi0


def periodic_edof(shape: Tuple[int, int, int]) -> np.ndarray:
    """
    Element DOF table (nel, 24) on a periodic voxel mesh.

    Nodes on opposite faces of the cell are the same node, so the mesh has
    exactly one node per voxel. Elements follow C order of the mask.
    """
    nx, ny, nz = shape
    ex, ey, ez = np.indices(shape).reshape(3, -1)
    edof = np.empty((ex.size, 24), dtype=np.int64)
    for m, (di, dj, dk) in enumerate(NODE_OFFSETS):
        node = ((ex + di) % nx) * ny * nz + ((ey + dj) % ny) * nz + (ez + dk) % nz
        edof[:, 3*m] = 3 * node
        edof[:, 3*m+1] = 3 * node + 1
        edof[:, 3*m+2] = 3 * node + 2
    return edof


def check_inputs(solid: np.ndarray, cell_lengths, materials: MaterialPair) -> Optional[str]:
    """Reason the problem cannot be solved, or None."""
    if solid.ndim != 3:
        return f"solid mask must be 3D, got {solid.ndim}D"
    if not solid.any():
        return "solid mask is empty"
    if np.any(np.asarray(cell_lengths, dtype=float) <= 0):
        return "cell lengths must be positive"
    if materials.solid.E <= 0:
        return "solid Young's modulus must be positive"
    if materials.secondary.E < 0:
        return "secondary Young's modulus must be non-negative"
    for label, mat in (("solid", materials.solid), ("secondary", materials.secondary)):
        if not -1.0 < mat.nu < 0.5:
            return f"{label} Poisson's ratio {mat.nu} outside (-1, 0.5)"
    return None


def assemble(edof, lam, mu, ke_lambda, ke_mu, fe_lambda, fe_mu, ndof):
    """
    Global stiffness (CSR) and the six load vectors.

    Only the upper triangle of each element matrix is scattered; the full
    matrix is restored by symmetry.
    """
    iu, ju = np.triu_indices(24)
    rows = edof[:, iu].ravel()
    cols = edof[:, ju].ravel()
    vals = (lam[:, None] * ke_lambda[iu, ju] + mu[:, None] * ke_mu[iu, ju]).ravel()
    K = sparse.coo_matrix((vals, (rows, cols)), shape=(ndof, ndof)).tocsr()
    K = (K + K.T - sparse.diags(K.diagonal())).tocsr()

    fe = lam[:, None, None] * fe_lambda + mu[:, None, None] * fe_mu  # (nel, 24, 6)
    f_rows = np.repeat(edof[:, :, None], 6, axis=2).ravel()
    f_cols = np.broadcast_to(np.arange(6), fe.shape).ravel()
    F = sparse.coo_matrix((fe.ravel(), (f_rows, f_cols)), shape=(ndof, 6)).toarray()
    return K, F


def solve_load_cases(K, F: np.ndarray, config: SolverConfig) -> np.ndarray:
    """
    Solve K X = F for all six columns.

    Raises RuntimeError when the factorisation fails (singular system).
    """
    X = np.zeros_like(F)
    if config.method == "direct":
        lu = splu(K.tocsc())
        for i in range(F.shape[1]):
            X[:, i] = lu.solve(F[:, i])
        return X

    # Jacobi preconditioner; CG needs a symmetric positive definite M
    diag = K.diagonal()
    if np.any(diag <= 0):
        raise RuntimeError("Stiffness matrix has a non-positive diagonal")
    M = sparse.diags(1.0 / diag)
    for i in range(F.shape[1]):
        x, info = cg(K, F[:, i], rtol=config.tol, maxiter=config.max_iter, M=M)
        if info < 0:
            raise RuntimeError(f"CG breakdown in load case {VOIGT_LABELS[i]}")
        if info > 0:
            warnings.warn(
                f"CG did not converge for load case {VOIGT_LABELS[i]} "
                f"within {config.max_iter} iterations"
            )
        X[:, i] = x
    return X


def compute_stiffness(
    solid: np.ndarray,
    cell_lengths: Sequence[float],
    materials: MaterialPair,
    config: Optional[SolverConfig] = None,
) -> np.ndarray:
    """
    Effective 6x6 stiffness of a periodic voxel cell.

    Parameters
    ----------
    solid : np.ndarray
        Binary mask (nx, ny, nz); True voxels take material 1
    cell_lengths : sequence of float
        Cell edge lengths (lx, ly, lz)
    materials : MaterialPair
        Solid and secondary phase
    config : SolverConfig, optional
        Linear solver settings

    Returns
    -------
    np.ndarray : Symmetric 6x6 stiffness in Voigt order [xx, yy, zz, yz, xz, xy]
    """
    config = config or SolverConfig()
    solid = np.asarray(solid, dtype=bool)
    nx, ny, nz = solid.shape
    lx, ly, lz = (float(v) for v in cell_lengths)
    dx, dy, dz = lx / nx, ly / ny, lz / nz

    ke_lambda, ke_mu, fe_lambda, fe_mu = element_matrices(dx, dy, dz)
    edof = periodic_edof(solid.shape)
    ndof = 3 * solid.size

    lam, mu = materials.lame_fields(solid.ravel())
    loaded = (lam != 0) | (mu != 0)
    edof_l, lam_l, mu_l = edof[loaded], lam[loaded], mu[loaded]

    K, F = assemble(edof_l, lam_l, mu_l, ke_lambda, ke_mu, fe_lambda, fe_mu, ndof)

    # Fix the three DOFs of the first active node (rigid translation)
    active = np.unique(edof_l)
    free = active[3:]
    X = np.zeros((ndof, 6))
    X[free] = solve_load_cases(K[free][:, free], F[free], config)

    chi0 = unit_strain_displacements(dx, dy, dz)
    D = [chi0[None, :, i] - X[edof_l, i] for i in range(6)]
    DL = [d @ ke_lambda for d in D]
    DM = [d @ ke_mu for d in D]

    volume = lx * ly * lz
    CH = np.zeros((6, 6))
    for i in range(6):
        for j in range(i, 6):
            energy = lam_l * np.sum(DL[i] * D[j], axis=1) + mu_l * np.sum(DM[i] * D[j], axis=1)
            CH[i, j] = CH[j, i] = energy.sum() / volume
    return CH


def homogenize(
    solid: np.ndarray,
    cell_lengths: Sequence[float],
    materials: MaterialPair,
    config: Optional[SolverConfig] = None,
) -> HomogenizationResult:
    """
    Validate inputs, then compute the effective stiffness.

    Invalid inputs give a result carrying the reason instead of a tensor.
    Numerical failures of the linear solver propagate to the caller.
    """
    solid = np.asarray(solid, dtype=bool)
    reason = check_inputs(solid, cell_lengths, materials)
    if reason is not None:
        return HomogenizationResult(error=reason)
    return HomogenizationResult(stiffness=compute_stiffness(solid, cell_lengths, materials, config))
