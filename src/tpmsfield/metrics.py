"""Engineering constants derived from a homogenised stiffness tensor."""

import numpy as np
import pandas as pd

from .field import VolumeField


def compliance(CH: np.ndarray) -> np.ndarray:
    """Compliance S = inv(CH); all NaN when CH is non-finite or singular."""
    CH = np.asarray(CH, dtype=float)
    if CH.shape != (6, 6):
        raise ValueError(f"stiffness must be 6x6, got {CH.shape}")
    if not np.all(np.isfinite(CH)):
        return np.full((6, 6), np.nan)
    try:
        return np.linalg.inv(CH)
    except np.linalg.LinAlgError:
        return np.full((6, 6), np.nan)


def mechanical_metrics(CH: np.ndarray, relative_density: float = np.nan) -> pd.Series:
    """
    Directional moduli and anisotropy of a unit cell.

    Parameters
    ----------
    CH : np.ndarray
        6x6 stiffness in Voigt order [xx, yy, zz, yz, xz, xy]
    relative_density : float
        Solid volume fraction, passed through

    Returns
    -------
    pd.Series
        relative_density, Ex, Ey, Ez, Gyz, Gxz, Gxy, nu_xy, nu_xz, nu_yz
        and the Zener ratio 2 C44 / (C11 - C12). NaN where undefined.
    """
    CH = np.asarray(CH, dtype=float)
    S = compliance(CH)

    with np.errstate(divide='ignore', invalid='ignore'):
        moduli = 1.0 / np.diag(S)
        zener = 2 * CH[3, 3] / (CH[0, 0] - CH[0, 1])
        nu_xy = -S[0, 1] / S[0, 0]
        nu_xz = -S[0, 2] / S[0, 0]
        nu_yz = -S[1, 2] / S[1, 1]

    return pd.Series({
        'relative_density': float(relative_density),
        'Ex': moduli[0],
        'Ey': moduli[1],
        'Ez': moduli[2],
        'Gyz': moduli[3],
        'Gxz': moduli[4],
        'Gxy': moduli[5],
        'nu_xy': nu_xy,
        'nu_xz': nu_xz,
        'nu_yz': nu_yz,
        'zener': zener,
    })


def field_metrics(field: VolumeField) -> pd.Series:
    """Mechanical metrics of a homogenised field (NaN before homogenisation)."""
    CH = field.CH if field.CH is not None else np.full((6, 6), np.nan)
    return mechanical_metrics(CH, field.relative_density)
