"""
TPMS (Triply Periodic Minimal Surfaces) Library

Implicit function definitions for periodic cellular structures.
All equations are unit-period: one unit cell spans [0, 1] in sampling space,
and a ``Pose`` stretches it to the physical cell size.

Sign convention follows the field engine: the generated field is solid where
it is <= 0, so for a network cell ``U = u(x, y, z) + v1`` the level offset
``v1`` moves the solid/void boundary.

Variants:
- single: U = u + v1 (network, single wall)
- double: U = (u + v1) * (u + v2) (double-walled)
- surface: U = (u + v1) * (u + v2) (sheet between the two level sets),
  reducing to u + v1 when the two offsets coincide
"""

import numpy as np
from enum import Enum
from typing import Callable, Dict, Optional

from .grid import Pose
from .curvature import ImplicitFunction


TWO_PI = 2 * np.pi


class TPMSType(str, Enum):
    """Supported implicit cell types"""
    GYROID = "Gyroid"
    PRIMITIVE = "Primitive"  # Schwarz Primitive
    DIAMOND = "Diamond"  # Schwarz Diamond
    IWP = "IWP"  # Schoen I-WP
    NEOVIUS = "Neovius"
    FRD = "FRD"  # Schoen F-RD
    LIDINOID = "Lidinoid"
    SPLIT_P = "Split-P"
    OCTO = "Octo"
    # Non-periodic reference shapes, centred in the cell
    SPHERE = "Sphere"
    PNORM_CUBE = "P-normCube"
    TORUS = "Torus"
    SINUSOIDAL = "Sinusoidal"


class VariantMode(str, Enum):
    """TPMS variant modes"""
    SINGLE = "single"
    DOUBLE = "double"
    SURFACE = "surface"


def gyroid(x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    """
    Gyroid (G) implicit function.

    Parameters:
    -----------
    x, y, z : np.ndarray
        Sampling-space coordinates (unit period)

    Returns:
    --------
    np.ndarray : Implicit function values
    """
    return (np.cos(TWO_PI*x) * np.sin(TWO_PI*y) +
            np.cos(TWO_PI*y) * np.sin(TWO_PI*z) +
            np.cos(TWO_PI*z) * np.sin(TWO_PI*x))


def primitive(x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    """Schwarz Primitive (P) implicit function."""
    return np.cos(TWO_PI*x) + np.cos(TWO_PI*y) + np.cos(TWO_PI*z)


def diamond(x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    """Schwarz Diamond (D) implicit function."""
    sx, sy, sz = np.sin(TWO_PI*x), np.sin(TWO_PI*y), np.sin(TWO_PI*z)
    cx, cy, cz = np.cos(TWO_PI*x), np.cos(TWO_PI*y), np.cos(TWO_PI*z)
    return sx*sy*sz + sx*cy*cz + cx*sy*cz + cx*cy*sz


def iwp(x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    """Schoen I-WP (W) implicit function."""
    return (2 * (np.cos(TWO_PI*x) * np.cos(TWO_PI*y) +
                 np.cos(TWO_PI*y) * np.cos(TWO_PI*z) +
                 np.cos(TWO_PI*z) * np.cos(TWO_PI*x)) -
            np.cos(2*TWO_PI*x) - np.cos(2*TWO_PI*y) - np.cos(2*TWO_PI*z))


def neovius(x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    """Neovius implicit function."""
    return (3 * (np.cos(TWO_PI*x) + np.cos(TWO_PI*y) + np.cos(TWO_PI*z)) +
            4 * np.cos(TWO_PI*x) * np.cos(TWO_PI*y) * np.cos(TWO_PI*z))


def frd(x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    """Schoen F-RD implicit function."""
    return (4 * np.cos(TWO_PI*x) * np.cos(TWO_PI*y) * np.cos(TWO_PI*z) -
            (np.cos(2*TWO_PI*x) * np.cos(2*TWO_PI*y) +
             np.cos(2*TWO_PI*y) * np.cos(2*TWO_PI*z) +
             np.cos(2*TWO_PI*z) * np.cos(2*TWO_PI*x)))


def lidinoid(x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    """Lidinoid implicit function."""
    return (np.sin(TWO_PI*x) * np.cos(TWO_PI*y) +
            np.sin(TWO_PI*y) * np.cos(TWO_PI*z) +
            np.sin(TWO_PI*z) * np.cos(TWO_PI*x) +
            0.5 * (np.cos(2*TWO_PI*x) * np.cos(2*TWO_PI*y) +
                   np.cos(2*TWO_PI*y) * np.cos(2*TWO_PI*z) +
                   np.cos(2*TWO_PI*z) * np.cos(2*TWO_PI*x)))


def split_p(x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    """Split-P implicit function."""
    return (np.cos(TWO_PI*x) + np.cos(TWO_PI*y) + np.cos(TWO_PI*z) +
            0.5 * (np.cos(TWO_PI*x) * np.cos(TWO_PI*y) +
                   np.cos(TWO_PI*y) * np.cos(TWO_PI*z) +
                   np.cos(TWO_PI*z) * np.cos(TWO_PI*x)))


def octo(x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    """Octo implicit function."""
    return (np.cos(TWO_PI*x) * np.cos(TWO_PI*y) * np.cos(TWO_PI*z) +
            np.sin(TWO_PI*x) * np.sin(TWO_PI*y) * np.sin(TWO_PI*z))


def sphere(x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    """Sphere of radius sqrt(2) (in cell radians) centred in the cell."""
    return (TWO_PI**2 * ((x - 0.5)**2 + (y - 0.5)**2 + (z - 0.5)**2)) - 2.0


def pnorm_cube(x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    """Rounded cube (p = 10 norm) centred in the cell."""
    return (TWO_PI*(x - 0.5))**10 + (TWO_PI*(y - 0.5))**10 + (TWO_PI*(z - 0.5))**10


def torus(x: np.ndarray, y: np.ndarray, z: np.ndarray,
          R: float = 1.0, r: float = 0.1) -> np.ndarray:
    """Torus about the cell's z axis, radii in cell radians."""
    px, py, pz = TWO_PI*(x - 0.5), TWO_PI*(y - 0.5), TWO_PI*(z - 0.5)
    return (np.sqrt(px**2 + py**2) - R)**2 + pz**2 - r**2


def sinusoidal(x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    """Sinusoidal height surface, solid below."""
    return np.sin(TWO_PI*x) + np.sin(TWO_PI*y) - TWO_PI*(z - 0.5)


# Mapping from TPMS type to function
TPMS_FUNCTIONS: Dict[TPMSType, Callable] = {
    TPMSType.GYROID: gyroid,
    TPMSType.PRIMITIVE: primitive,
    TPMSType.DIAMOND: diamond,
    TPMSType.IWP: iwp,
    TPMSType.NEOVIUS: neovius,
    TPMSType.FRD: frd,
    TPMSType.LIDINOID: lidinoid,
    TPMSType.SPLIT_P: split_p,
    TPMSType.OCTO: octo,
    TPMSType.SPHERE: sphere,
    TPMSType.PNORM_CUBE: pnorm_cube,
    TPMSType.TORUS: torus,
    TPMSType.SINUSOIDAL: sinusoidal,
}


# Calibration coefficient A per cell type, mapping the normalised geometry
# parameter p in [0, 1] onto the level offset v1:
#   network: v1 = -(p - 0.5) / A
#   surface: v1 = p / (2 A)
# These are curve-fit constants supplied with each equation.
ISO_CALIBRATION: Dict[TPMSType, float] = {
    TPMSType.DIAMOND: 1 / np.sqrt(2) * 0.5844,
    TPMSType.GYROID: 2 / 3 * 0.4964,
    TPMSType.PRIMITIVE: 1 / 3 * 0.8491,
    TPMSType.IWP: 40.82,
    TPMSType.NEOVIUS: 1 / 13,
    TPMSType.FRD: 40.82,
}


def get_tpms_function(tpms_type: TPMSType) -> Callable:
    """Get the implicit function for a TPMS type."""
    return TPMS_FUNCTIONS[TPMSType(tpms_type)]


def level_from_parameter(
    tpms_type: TPMSType,
    p,
    cell_kind: str = "network",
    calibration: Optional[Dict[TPMSType, float]] = None,
):
    """
    Convert a normalised geometry parameter into a level offset.

    Parameters
    ----------
    tpms_type : TPMSType
        Cell type (looked up in the calibration table)
    p : float or np.ndarray
        Normalised geometry parameter
    cell_kind : str
        'network' or 'surface'
    calibration : dict, optional
        Replacement calibration table

    Returns
    -------
    v1 : float or np.ndarray
        Level offset for ``TPMSSource.v1``. If the type has no calibration
        entry, ``p`` is returned unchanged.
    """
    table = ISO_CALIBRATION if calibration is None else calibration
    A = table.get(TPMSType(tpms_type))
    if A is None:
        return p
    p = np.asarray(p, dtype=float) if np.ndim(p) else float(p)
    if cell_kind == "network":
        return -(p - 0.5) / A
    if cell_kind == "surface":
        return p / (2 * A)
    raise ValueError(f"cell_kind must be 'network' or 'surface', got '{cell_kind}'")


def make_implicit(tpms_type: TPMSType, cell_size=1.0, translation=(0.0, 0.0, 0.0)):
    """
    Build an implicit-function collaborator for a cell type.

    Returns
    -------
    ImplicitFunction
        Equation plus the pose that scales it to ``cell_size``
    """
    return ImplicitFunction(
        u=get_tpms_function(tpms_type),
        pose=Pose.scaling(cell_size, translation),
    )
