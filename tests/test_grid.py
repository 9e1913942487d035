"""Tests for the sampling grid and poses."""

import sys
import os
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tpmsfield.grid import Grid, Pose
from tpmsfield.generators import Region


def test_grid_counts_and_spacing():
    """Point count is floor(extent / voxel_size) + 1 per axis."""
    grid = Grid((0.0, 0.0, 0.0), (1.0, 2.0, 0.5), 0.25)

    assert grid.shape == (5, 9, 3)
    assert grid.X.shape == grid.shape
    assert grid.xq[0] == 0.0
    assert np.allclose(np.diff(grid.xq), 0.25)
    assert np.allclose(np.diff(grid.zq), 0.25)


def test_grid_exact_multiple_not_lost():
    """Bounds that are an exact multiple of a non-representable spacing."""
    grid = Grid((0.0, 0.0, 0.0), (1.0, 1.0, 1.0), 0.1)
    assert grid.shape == (11, 11, 11)
    assert np.isclose(grid.xq[-1], 1.0)


def test_grid_ij_layout():
    """Axis 0 is x, axis 2 is z."""
    grid = Grid((0.0, 10.0, 20.0), (2.0, 12.0, 22.0), 1.0)
    assert np.all(grid.X[1, :, :] == 1.0)
    assert np.all(grid.Y[:, 2, :] == 12.0)
    assert np.all(grid.Z[:, :, 0] == 20.0)


def test_default_grid():
    """No region gives the [-10, 10] box."""
    grid = Grid.from_region(None, voxel_size=2.0)
    assert grid.shape == (11, 11, 11)
    assert grid.xq[0] == -10.0
    assert grid.xq[-1] == 10.0


def test_grid_from_region():
    """Region corners define the grid box."""
    region = Region(lower=(0.0, 0.0, 0.0), upper=(1.0, 1.0, 2.0))
    grid = Grid.from_region(region, voxel_size=0.5)
    assert grid.shape == (3, 3, 5)
    assert np.allclose(grid.extent, [1.0, 1.0, 2.0])


def test_grid_rejects_bad_input():
    """Invalid voxel size or inverted box."""
    with pytest.raises(ValueError):
        Grid(voxel_size=0.0)
    with pytest.raises(ValueError):
        Grid((1.0, 0.0, 0.0), (0.0, 1.0, 1.0), 0.5)


def test_pose_round_trip():
    """inverse_apply undoes apply."""
    A = np.array([[2.0, 0.5, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 3.0]])
    pose = Pose(A=A, t=np.array([1.0, -2.0, 0.5]))
    s = np.array([[0.1, 0.2, 0.3], [1.0, -1.0, 2.0]])
    p = pose.apply(s)

    Xt, Yt, Zt = pose.inverse_apply(p[:, 0], p[:, 1], p[:, 2])
    assert np.allclose(np.column_stack([Xt, Yt, Zt]), s)


def test_pose_scaling():
    """Scaling pose maps a unit cell to cell_size."""
    pose = Pose.scaling(2.0, translation=(1.0, 0.0, 0.0))
    Xt, Yt, Zt = pose.inverse_apply(np.array(3.0), np.array(4.0), np.array(6.0))

    assert np.isclose(Xt, 1.0)
    assert np.isclose(Yt, 2.0)
    assert np.isclose(Zt, 3.0)
    assert np.allclose(pose.scale, 2.0)


def test_pose_rejects_singular():
    """A singular linear part cannot be inverted."""
    with pytest.raises(ValueError):
        Pose(A=np.zeros((3, 3)))


def test_sampling_coordinates_identity():
    """No pose returns the world coordinates."""
    grid = Grid((0.0, 0.0, 0.0), (1.0, 1.0, 1.0), 0.5)
    Xt, Yt, Zt = grid.sampling_coordinates(None)
    assert Xt is grid.X


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
