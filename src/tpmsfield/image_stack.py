"""Image-stack volumes resampled onto the field grid."""

import numpy as np
from scipy import ndimage
from skimage import io
from skimage.color import rgb2gray
from skimage.util import img_as_float
from typing import Optional, Sequence, Union
import glob
import os

from .grid import Grid, Pose
from .voxelize import InvalidSourceError


IMAGE_EXTENSIONS = (".png", ".tif", ".tiff", ".bmp", ".jpg", ".jpeg")


def _list_images(pattern: str):
    if os.path.isdir(pattern):
        files = [os.path.join(pattern, f) for f in os.listdir(pattern)
                 if f.lower().endswith(IMAGE_EXTENSIONS)]
    else:
        files = glob.glob(pattern)
    return sorted(files)


def read_image_stack(source: str) -> np.ndarray:
    """
    Read a folder (or glob pattern) of slice images into a volume.

    Slices are stacked along the last axis in file-name order and intensities
    are normalised to [0, 1].

    Parameters
    ----------
    source : str
        Directory of images or glob pattern

    Returns
    -------
    np.ndarray : Volume of shape (rows, cols, n_slices)
    """
    files = _list_images(source)
    if not files:
        raise InvalidSourceError(f"No images found for '{source}'")

    collection = io.ImageCollection(files)
    slices = []
    for image in collection:
        image = np.asarray(image)
        if image.ndim == 3:
            if image.shape[-1] == 4:
                image = image[..., :3]
            image = rgb2gray(image)
        slices.append(img_as_float(image))

    shapes = {s.shape for s in slices}
    if len(shapes) != 1:
        raise InvalidSourceError(f"Image slices have inconsistent shapes: {sorted(shapes)}")
    return np.stack(slices, axis=-1)


def normalise_volume(volume: np.ndarray) -> np.ndarray:
    """Scale an intensity volume to [0, 1]."""
    volume = np.asarray(volume)
    if volume.ndim != 3:
        raise InvalidSourceError(f"Image volume must be 3D, got {volume.ndim}D")
    if np.issubdtype(volume.dtype, np.integer) or volume.dtype == bool:
        return img_as_float(volume)
    volume = volume.astype(float)
    lo, hi = np.nanmin(volume), np.nanmax(volume)
    if lo >= 0.0 and hi <= 1.0:
        return volume
    if hi == lo:
        return np.zeros_like(volume)
    return (volume - lo) / (hi - lo)


def image_stack_field(
    grid: Grid,
    images: Union[str, np.ndarray],
    threshold: float = 0.5,
    spacing: Union[float, Sequence[float]] = 1.0,
    origin: Sequence[float] = (0.0, 0.0, 0.0),
    pose: Optional[Pose] = None,
) -> np.ndarray:
    """
    Resample an image stack onto the grid as a field.

    Every grid point is mapped into sampling space with the inverse pose,
    converted to fractional stack indices and trilinearly interpolated.
    Points outside the stack read as 0 (void).

    Parameters
    ----------
    grid : Grid
        Target grid
    images : str or np.ndarray
        Folder / glob of slice images, or a volume already in memory
    threshold : float
        Intensity (in [0, 1]) above which material is solid
    spacing : float or sequence
        Physical size of a stack voxel along each axis
    origin : sequence
        Sampling-space position of stack voxel (0, 0, 0)
    pose : Pose, optional
        Placement of the stack

    Returns
    -------
    np.ndarray : Field U = threshold - intensity
    """
    if isinstance(images, str):
        volume = read_image_stack(images)
    else:
        volume = normalise_volume(images)

    spacing = np.broadcast_to(np.asarray(spacing, dtype=float), (3,))
    if np.any(spacing <= 0):
        raise ValueError("spacing must be positive")
    origin = np.asarray(origin, dtype=float)

    Xt, Yt, Zt = grid.sampling_coordinates(pose)
    coords = np.stack([
        (Xt - origin[0]) / spacing[0],
        (Yt - origin[1]) / spacing[1],
        (Zt - origin[2]) / spacing[2],
    ])
    intensity = ndimage.map_coordinates(volume, coords, order=1, mode='constant', cval=0.0)
    return threshold - intensity
