"""Validation functions for field consistency and stiffness tensors."""

import numpy as np

from .field import VolumeField


def validate_solid_consistency(field: VolumeField) -> tuple[bool, list[str]]:
    """
    Check that the solid mask and properties agree with the field.

    Parameters
    ----------
    field : VolumeField
        Field to check

    Returns
    -------
    valid : bool
        True if all checks pass
    errors : list[str]
        List of error messages
    """
    errors = []

    if field.U.shape != field.grid.shape:
        errors.append(f"U shape {field.U.shape} differs from grid shape {field.grid.shape}")
    if field.solid.dtype != bool:
        errors.append("solid mask is not boolean")
    with np.errstate(invalid='ignore'):
        if not np.array_equal(field.solid, field.U <= 0):
            errors.append("solid mask differs from U <= 0")

    for name in field.properties:
        if field.properties[name].shape != field.grid.shape:
            errors.append(f"property '{name}' has the wrong shape")

    risk = field.properties.build_risk
    if risk is not None:
        if not np.all(np.isnan(risk[~field.solid])):
            errors.append("build risk defined on void voxels")
        solid_risk = risk[field.solid]
        if np.any(np.isnan(solid_risk)) or np.any((solid_risk < 0) | (solid_risk > 1)):
            errors.append("build risk outside [0, 1] on solid voxels")

    return len(errors) == 0, errors


def validate_stiffness(CH: np.ndarray, tol: float = 1e-6) -> tuple[bool, list[str]]:
    """
    Check a homogenised stiffness tensor.

    Parameters
    ----------
    CH : np.ndarray
        6x6 stiffness
    tol : float
        Relative tolerance for symmetry and positive definiteness

    Returns
    -------
    valid : bool
        True if all checks pass
    errors : list[str]
        List of error messages
    """
    errors = []
    CH = np.asarray(CH, dtype=float)

    if CH.shape != (6, 6):
        return False, [f"stiffness must be 6x6, got {CH.shape}"]
    if not np.all(np.isfinite(CH)):
        return False, ["stiffness has non-finite entries"]

    scale = np.max(np.abs(CH))
    if scale == 0:
        return False, ["stiffness is identically zero"]

    if np.max(np.abs(CH - CH.T)) > tol * scale:
        errors.append("stiffness is not symmetric")

    eigenvalues = np.linalg.eigvalsh(0.5 * (CH + CH.T))
    if eigenvalues.min() <= tol * scale:
        errors.append(f"stiffness is not positive definite (min eigenvalue {eigenvalues.min():.3e})")

    return len(errors) == 0, errors


def validate_all(field: VolumeField, tol: float = 1e-6) -> bool:
    """
    Run all validation checks and fail fast if any fail.

    Raises
    ------
    ValueError
        If validation fails
    """
    valid, errors = validate_solid_consistency(field)
    if not valid:
        raise ValueError(f"Field inconsistent: {', '.join(errors)}")

    if field.CH is not None:
        valid, errors = validate_stiffness(field.CH, tol)
        if not valid:
            raise ValueError(f"Stiffness invalid: {', '.join(errors)}")

    return True
