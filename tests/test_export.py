"""Tests for hexahedral mesh export."""

import sys
import os
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tpmsfield.export_geometry import voxel_hex_mesh, write_inp
from tpmsfield.grid import Grid


def hex_volume_sign(corners):
    """Sign of the volume spanned at the first corner."""
    p0, p1, p3, p4 = corners[0], corners[1], corners[3], corners[4]
    return np.sign(np.dot(np.cross(p1 - p0, p3 - p0), p4 - p0))


def test_single_voxel():
    """One voxel gives 8 distinct nodes on the voxel corners."""
    grid = Grid((0.0, 0.0, 0.0), (1.0, 1.0, 1.0), 1.0)
    mesh = voxel_hex_mesh(np.ones(grid.shape, dtype=bool), grid)

    assert mesh.n_elements == 1
    assert mesh.n_nodes == 8
    assert np.array_equal(mesh.element_ids, [1])
    assert np.array_equal(mesh.elements[0], [1, 2, 4, 3, 5, 6, 8, 7])
    assert np.array_equal(mesh.node_ids, np.arange(1, 9))

    expected = np.array([[x, y, z] for z in (0, 1) for y in (0, 1) for x in (0, 1)], dtype=float)
    assert np.allclose(mesh.nodes, expected)


def test_element_orientation_positive():
    """Corner order gives a positive element volume."""
    grid = Grid((0.0, 0.0, 0.0), (2.0, 2.0, 2.0), 0.5)
    mesh = voxel_hex_mesh(np.ones(grid.shape, dtype=bool), grid)
    lookup = dict(zip(mesh.node_ids, mesh.nodes))

    for conn in mesh.elements:
        corners = np.array([lookup[n] for n in conn])
        assert hex_volume_sign(corners) > 0


def test_last_planes_not_meshed():
    """The duplicated periodic planes carry no voxels."""
    grid = Grid((0.0, 0.0, 0.0), (2.0, 2.0, 2.0), 1.0)
    solid = np.zeros(grid.shape, dtype=bool)
    solid[-1, :, :] = True
    solid[:, -1, :] = True
    solid[:, :, -1] = True

    mesh = voxel_hex_mesh(solid, grid)
    assert mesh.n_elements == 0
    assert mesh.n_nodes == 0


def test_shared_nodes_and_ids():
    """Adjacent voxels share a face; ids are 1-based Fortran-order indices."""
    grid = Grid((0.0, 0.0, 0.0), (2.0, 2.0, 2.0), 1.0)
    solid = np.zeros(grid.shape, dtype=bool)
    solid[0, 0, 0] = True
    solid[1, 0, 0] = True

    mesh = voxel_hex_mesh(solid, grid)
    assert mesh.n_elements == 2
    assert mesh.n_nodes == 12
    assert np.array_equal(mesh.element_ids, [1, 2])

    # node (i, j, k) of a 3x3x3 grid has id i + 3 j + 9 k + 1
    assert mesh.elements[1][0] == 2
    assert mesh.elements[1][2] == 2 + 3 * 1 + 1


def test_shape_mismatch():
    grid = Grid((0.0, 0.0, 0.0), (2.0, 2.0, 2.0), 1.0)
    with pytest.raises(ValueError):
        voxel_hex_mesh(np.ones((2, 2, 2), dtype=bool), grid)


def test_write_inp(tmp_path, capsys):
    """INP deck has node and element blocks."""
    grid = Grid((0.0, 0.0, 0.0), (1.0, 1.0, 1.0), 1.0)
    mesh = voxel_hex_mesh(np.ones(grid.shape, dtype=bool), grid)
    path = str(tmp_path / "out" / "cell.inp")

    write_inp(path, mesh)
    assert "Exported INP" in capsys.readouterr().out

    with open(path) as f:
        lines = f.read().splitlines()

    assert lines[0] == "*HEADING"
    node_start = lines.index("*NODE")
    elem_start = [i for i, line in enumerate(lines) if line.startswith("*ELEMENT")][0]
    assert "TYPE=C3D8R" in lines[elem_start]
    assert elem_start - node_start - 1 == 8
    assert lines[elem_start + 1] == "1, 1, 2, 4, 3, 5, 6, 8, 7"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
