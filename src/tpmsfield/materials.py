"""Isotropic linear-elastic materials for homogenization."""

import numpy as np
from dataclasses import dataclass, field


@dataclass
class IsotropicMaterial:
    """
    Isotropic linear-elastic material.

    Attributes:
        E: Young's modulus
        nu: Poisson's ratio
    """
    E: float = 1.0
    nu: float = 0.33

    @property
    def lame_lambda(self) -> float:
        """First Lamé parameter."""
        return self.E * self.nu / ((1 + self.nu) * (1 - 2 * self.nu))

    @property
    def lame_mu(self) -> float:
        """Second Lamé parameter (shear modulus)."""
        return self.E / (2 + 2 * self.nu)

    @property
    def is_void(self) -> bool:
        """True when the material carries no stiffness."""
        return self.E == 0

    def stiffness_matrix(self) -> np.ndarray:
        """6x6 Voigt stiffness [xx, yy, zz, yz, xz, xy] (engineering shear)."""
        lam, mu = self.lame_lambda, self.lame_mu
        C = np.zeros((6, 6))
        C[:3, :3] = lam
        C[np.arange(3), np.arange(3)] = lam + 2 * mu
        C[np.arange(3, 6), np.arange(3, 6)] = mu
        return C


@dataclass
class MaterialPair:
    """Solid (material 1) and secondary / void phase (material 2)."""
    solid: IsotropicMaterial = field(default_factory=IsotropicMaterial)
    secondary: IsotropicMaterial = field(
        default_factory=lambda: IsotropicMaterial(E=0.0, nu=0.0)
    )

    @classmethod
    def from_constants(cls, E1: float = 1.0, v1: float = 0.33,
                       E2: float = 0.0, v2: float = 0.0) -> "MaterialPair":
        return cls(IsotropicMaterial(E1, v1), IsotropicMaterial(E2, v2))

    def lame_fields(self, solid: np.ndarray):
        """Per-element Lamé parameters selected by the binary mask."""
        solid = np.asarray(solid, dtype=bool)
        lam = np.where(solid, self.solid.lame_lambda, self.secondary.lame_lambda)
        mu = np.where(solid, self.solid.lame_mu, self.secondary.lame_mu)
        return lam, mu
