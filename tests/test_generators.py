"""Tests for field generators."""

import sys
import os
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tpmsfield.grid import Grid, Pose
from tpmsfield.generators import (
    DataSource, Region, TPMSSource, generate_field, resize_offset,
)
from tpmsfield.tpms_library import TPMSType, VariantMode, gyroid
from tpmsfield.voxelize import InvalidSourceError, SurfaceMesh


def cube_mesh(lo=2.0, hi=6.0):
    """Closed cube surface, 12 triangles."""
    vertices = np.array([[x, y, z] for z in (lo, hi) for y in (lo, hi) for x in (lo, hi)])
    faces = np.array([
        [0, 1, 3], [0, 3, 2],  # z = lo
        [4, 5, 7], [4, 7, 6],  # z = hi
        [0, 1, 5], [0, 5, 4],  # y = lo
        [2, 3, 7], [2, 7, 6],  # y = hi
        [0, 2, 6], [0, 6, 4],  # x = lo
        [1, 3, 7], [1, 7, 5],  # x = hi
    ])
    return SurfaceMesh(vertices, faces)


@pytest.fixture
def unit_grid():
    return Grid((0.0, 0.0, 0.0), (1.0, 1.0, 1.0), 0.1)


def test_single_variant(unit_grid):
    """Single wall: U = u + v1."""
    U = generate_field(TPMSSource(TPMSType.GYROID, VariantMode.SINGLE, v1=0.2), unit_grid)
    expected = gyroid(unit_grid.X, unit_grid.Y, unit_grid.Z) + 0.2
    assert np.allclose(U, expected)


def test_surface_variant_collapses_to_level_set(unit_grid):
    """Surface variant with equal offsets equals the plain equation."""
    surface = generate_field(TPMSSource(gyroid, "surface", v1=0.0, v2=0.0), unit_grid)
    u = gyroid(unit_grid.X, unit_grid.Y, unit_grid.Z)
    assert np.array_equal(surface, u)


def test_double_variant(unit_grid):
    """Double wall: solid between the two offset level sets."""
    U = generate_field(TPMSSource(gyroid, "double", v1=-0.3, v2=0.3), unit_grid)
    u = gyroid(unit_grid.X, unit_grid.Y, unit_grid.Z)

    assert np.allclose(U, (u - 0.3) * (u + 0.3))
    assert np.array_equal(U <= 0, np.abs(u) <= 0.3)


def test_surface_variant_with_distinct_offsets(unit_grid):
    """Distinct offsets keep the product form."""
    U = generate_field(TPMSSource(gyroid, "surface", v1=-0.1, v2=0.2), unit_grid)
    u = gyroid(unit_grid.X, unit_grid.Y, unit_grid.Z)
    assert np.allclose(U, (u - 0.1) * (u + 0.2))


def test_equation_by_name(unit_grid):
    """A TPMS name resolves to the library equation."""
    by_name = generate_field(TPMSSource("Gyroid"), unit_grid)
    by_function = generate_field(TPMSSource(gyroid), unit_grid)
    assert np.array_equal(by_name, by_function)


def test_unknown_equation_name(unit_grid):
    """Unknown equation names are malformed input."""
    with pytest.raises(InvalidSourceError):
        generate_field(TPMSSource("NotASurface"), unit_grid)


def test_unknown_variant(unit_grid):
    """Unknown variants are malformed input."""
    with pytest.raises(InvalidSourceError):
        generate_field(TPMSSource(gyroid, "triple"), unit_grid)


def test_pose_scales_equation():
    """The equation is evaluated in sampling space."""
    grid = Grid((0.0, 0.0, 0.0), (2.0, 2.0, 2.0), 0.25)
    U = generate_field(TPMSSource(gyroid), grid, pose=Pose.scaling(2.0))
    assert np.allclose(U, gyroid(grid.X / 2, grid.Y / 2, grid.Z / 2))


def test_offset_broadcast_along_unit_axes():
    """Length-1 axes are broadcast without resampling."""
    shape = (4, 5, 6)
    v = np.linspace(-0.5, 0.5, 6).reshape(1, 1, 6)
    V = resize_offset(v, shape)

    assert V.shape == shape
    for i in range(4):
        for j in range(5):
            assert np.allclose(V[i, j, :], v[0, 0, :])


def test_offset_resampled_to_grid():
    """Coarse offset arrays are interpolated onto the grid."""
    v = np.array([[[0.0, 1.0], [0.0, 1.0]], [[0.0, 1.0], [0.0, 1.0]]])
    V = resize_offset(v, (5, 5, 9))

    assert V.shape == (5, 5, 9)
    assert V.min() >= 0.0
    assert V.max() <= 1.0
    assert np.all(np.diff(V[2, 2, :]) >= 0)


def test_offset_scalar_passthrough():
    assert resize_offset(0.25, (3, 3, 3)) == 0.25


def test_offset_shape_errors():
    """Offsets with too many dimensions or no values fail fast."""
    with pytest.raises(ValueError):
        resize_offset(np.zeros((2, 2, 2, 2)), (3, 3, 3))
    with pytest.raises(ValueError):
        resize_offset(np.zeros((0, 3)), (3, 3, 3))


def test_graded_offset_field(unit_grid):
    """A z-graded offset changes U slice by slice."""
    v1 = np.linspace(0.0, 1.0, unit_grid.shape[2]).reshape(1, 1, -1)
    U = generate_field(TPMSSource(gyroid, v1=v1), unit_grid)
    u = gyroid(unit_grid.X, unit_grid.Y, unit_grid.Z)
    assert np.allclose(U - u, np.broadcast_to(v1, unit_grid.shape))


def test_data_source():
    """Data is used as-is."""
    grid = Grid((0.0, 0.0, 0.0), (2.0, 2.0, 2.0), 1.0)
    data = np.random.default_rng(0).normal(size=grid.shape)
    assert np.array_equal(generate_field(DataSource(data), grid), data)


def test_data_source_shape_mismatch():
    """Shape errors are raised, not swallowed."""
    grid = Grid((0.0, 0.0, 0.0), (2.0, 2.0, 2.0), 1.0)
    with pytest.raises(ValueError):
        generate_field(DataSource(np.zeros((2, 2, 2))), grid)


def test_unknown_source_kind():
    """Unknown kinds give an empty field with a warning."""
    grid = Grid((0.0, 0.0, 0.0), (2.0, 2.0, 2.0), 1.0)
    with pytest.warns(UserWarning):
        U = generate_field(object(), grid)
    assert U.shape == grid.shape
    assert np.all(np.isnan(U))


def test_cylinder_region_clip():
    """Material outside the inscribed cylinder is removed."""
    region = Region((-5.0, -5.0, -5.0), (5.0, 5.0, 5.0), method="cylinder")
    grid = Grid.from_region(region, 1.0)
    U = generate_field(DataSource(-np.ones(grid.shape)), grid, region=region)
    solid = U <= 0

    assert solid[5, 5, 5]  # axis
    assert solid[10, 5, 0]  # on the cylinder wall
    assert not solid[10, 10, 5]  # corner
    inside = (grid.X / 5.0)**2 + (grid.Y / 5.0)**2 <= 1.0
    assert np.array_equal(solid, inside)


def test_mesh_region_clip():
    """Material outside a boundary mesh is removed."""
    region = Region((0.0, 0.0, 0.0), (10.0, 10.0, 10.0), method="mesh", mesh=cube_mesh())
    grid = Grid.from_region(region, 1.0)
    U = generate_field(DataSource(-np.ones(grid.shape)), grid, region=region)
    assert np.sum(U <= 0) == 125


def test_region_validation():
    with pytest.raises(ValueError):
        Region(method="sphere")
    with pytest.raises(ValueError):
        Region(method="mesh")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
