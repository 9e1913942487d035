"""Tests for mesh, lattice and image-stack voxelisation."""

import sys
import os
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from stl import mesh as stl_mesh
from skimage import io

from tpmsfield.grid import Grid, Pose
from tpmsfield.generators import ImageStackSource, LatticeSource, MeshSource, generate_field
from tpmsfield.image_stack import read_image_stack
from tpmsfield.lattice import lattice_field
from tpmsfield.voxelize import (
    InvalidSourceError, SurfaceMesh, load_surface_mesh, mesh_to_field,
    rasterize_surface, signed_distance,
)


CUBE_FACES = np.array([
    [0, 1, 3], [0, 3, 2], [4, 5, 7], [4, 7, 6],
    [0, 1, 5], [0, 5, 4], [2, 3, 7], [2, 7, 6],
    [0, 2, 6], [0, 6, 4], [1, 3, 7], [1, 7, 5],
])


def cube_vertices(lo=2.0, hi=6.0):
    return np.array([[x, y, z] for z in (lo, hi) for y in (lo, hi) for x in (lo, hi)])


@pytest.fixture
def grid10():
    return Grid((0.0, 0.0, 0.0), (10.0, 10.0, 10.0), 1.0)


def test_cube_mesh_field(grid10):
    """A 4x4x4 cube on grid points 2..6 fills 5^3 grid points."""
    surface = SurfaceMesh(cube_vertices(), CUBE_FACES)
    U = generate_field(MeshSource(surface), grid10)

    solid = U <= 0
    assert solid.sum() == 125
    assert solid[2:7, 2:7, 2:7].all()
    assert U[4, 4, 4] < 0
    assert U[0, 0, 0] > 0


def test_rasterized_shell_is_hollow(grid10):
    """Rasterisation marks the surface only."""
    shell = rasterize_surface(SurfaceMesh(cube_vertices(), CUBE_FACES), grid10)
    assert shell[2, 4, 4]
    assert not shell[4, 4, 4]
    assert shell.sum() == 125 - 27


def test_rasterize_wraps_indices():
    """Surfaces crossing the boundary wrap to the opposite side."""
    grid = Grid((0.0, 0.0, 0.0), (4.0, 4.0, 4.0), 1.0)
    vertices = np.array([[5.0, 1.0, 1.0], [5.0, 1.0, 1.0], [5.0, 1.0, 1.0]])
    surface = SurfaceMesh(vertices, np.array([[0, 1, 2]]))

    wrapped = rasterize_surface(surface, grid, wrap=True)
    clipped = rasterize_surface(surface, grid, wrap=False)
    # The cell period is 4 voxels, so x = 5 lands on index 1
    assert wrapped[1, 1, 1]
    assert wrapped.sum() == 1
    assert not clipped.any()


def test_boundary_sheet_marks_both_faces():
    """A sheet on the lower face also marks its periodic copy on the upper face."""
    grid = Grid((0.0, 0.0, 0.0), (4.0, 4.0, 4.0), 1.0)
    vertices = np.array([[0.0, 0.0, 0.0], [0.0, 4.0, 0.0], [0.0, 0.0, 4.0], [0.0, 4.0, 4.0]])
    surface = SurfaceMesh(vertices, np.array([[0, 1, 2], [1, 3, 2]]))

    wrapped = rasterize_surface(surface, grid, wrap=True)
    assert wrapped[0].all()
    assert np.array_equal(wrapped[-1], wrapped[0])
    assert not wrapped[1:-1].any()


def test_one_based_faces():
    """1-based face indices are converted."""
    surface = SurfaceMesh.from_one_based(cube_vertices(), CUBE_FACES + 1)
    assert np.array_equal(surface.faces, CUBE_FACES)


def test_malformed_mesh():
    """Out-of-range faces and bad shapes are rejected."""
    with pytest.raises(InvalidSourceError):
        SurfaceMesh(cube_vertices(), CUBE_FACES + 1)
    with pytest.raises(InvalidSourceError):
        SurfaceMesh(np.zeros((4, 2)), CUBE_FACES)
    with pytest.raises(InvalidSourceError):
        SurfaceMesh(cube_vertices(), CUBE_FACES + 0.5)


def test_signed_distance_limits():
    """All-void and all-solid masks give infinite distances."""
    assert np.all(signed_distance(np.zeros((3, 3, 3), dtype=bool)) == np.inf)
    assert np.all(signed_distance(np.ones((3, 3, 3), dtype=bool)) == -np.inf)


def test_signed_distance_scaled():
    """Distances are in world units."""
    solid = np.zeros((9, 9, 9), dtype=bool)
    solid[4, 4, 4] = True
    U = signed_distance(solid, voxel_size=0.5)
    assert U[4, 4, 4] == -0.5
    assert U[6, 4, 4] == 1.0


def test_load_stl(tmp_path, grid10):
    """STL files are read with shared vertices."""
    vertices = cube_vertices()
    data = stl_mesh.Mesh(np.zeros(len(CUBE_FACES), dtype=stl_mesh.Mesh.dtype))
    for i, face in enumerate(CUBE_FACES):
        data.vectors[i] = vertices[face]
    path = str(tmp_path / "cube.stl")
    data.save(path)

    surface = load_surface_mesh(path)
    assert len(surface.vertices) == 8
    assert surface.n_faces == 12

    U = generate_field(MeshSource(path), grid10)
    assert np.sum(U <= 0) == 125
    assert np.array_equal(U, mesh_to_field(surface, grid10))


def test_load_stl_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_surface_mesh(str(tmp_path / "missing.stl"))


def test_lattice_node_sphere():
    """A lone node is a sphere of radius rnode."""
    grid = Grid((-1.0, -1.0, -1.0), (1.0, 1.0, 1.0), 0.25)
    U = lattice_field(grid, np.array([[0.0, 0.0, 0.0]]), np.zeros((0, 2)), rnode=0.5)

    assert np.isclose(U[4, 4, 4], -0.5)
    assert np.isclose(U[8, 4, 4], 0.5)


def test_lattice_strut_capsule():
    """A strut is a capsule of radius rstrut."""
    grid = Grid((-1.0, -1.0, -1.0), (1.0, 1.0, 1.0), 0.25)
    nodes = np.array([[-1.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
    U = lattice_field(grid, nodes, np.array([[0, 1]]), rstrut=0.2, rnode=0.0)

    assert np.isclose(U[4, 4, 4], -0.2)
    assert np.isclose(U[4, 6, 4], 0.3)
    assert np.isclose(U[0, 4, 4], -0.2)


def test_lattice_pose_scales_radii():
    """Radii follow the mean pose scale."""
    grid = Grid((-1.0, -1.0, -1.0), (1.0, 1.0, 1.0), 0.25)
    source = LatticeSource(np.array([[0.0, 0.0, 0.0]]), np.zeros((0, 2)), rstrut=0.0, rnode=0.25)
    U = generate_field(source, grid, pose=Pose.scaling(2.0))
    assert np.isclose(U[4, 4, 4], -0.5)


def test_lattice_malformed():
    """Bad strut indices are rejected."""
    grid = Grid((-1.0, -1.0, -1.0), (1.0, 1.0, 1.0), 0.5)
    with pytest.raises(InvalidSourceError):
        lattice_field(grid, np.zeros((2, 3)), np.array([[0, 5]]))
    with pytest.raises(InvalidSourceError):
        lattice_field(grid, np.zeros((0, 3)), np.zeros((0, 2)))


def test_image_stack_from_array():
    """Bright voxels are solid; the stack is sampled at voxel positions."""
    volume = np.zeros((4, 4, 4))
    volume[:2] = 1.0
    grid = Grid((0.0, 0.0, 0.0), (3.0, 3.0, 3.0), 1.0)
    U = generate_field(ImageStackSource(volume, threshold=0.5), grid)

    assert np.allclose(U[:2], -0.5)
    assert np.allclose(U[2:], 0.5)


def test_image_stack_outside_is_void():
    """Points beyond the stack read as void."""
    volume = np.ones((3, 3, 3))
    grid = Grid((0.0, 0.0, 0.0), (5.0, 2.0, 2.0), 1.0)
    U = generate_field(ImageStackSource(volume), grid)
    assert np.all(U[:3] <= 0)
    assert np.all(U[4:] > 0)


def test_image_stack_from_files(tmp_path):
    """A folder of slices is stacked along z."""
    for k in range(3):
        image = np.zeros((8, 8), dtype=np.uint8)
        image[:4] = 255
        io.imsave(str(tmp_path / f"slice_{k:03d}.png"), image, check_contrast=False)

    volume = read_image_stack(str(tmp_path))
    assert volume.shape == (8, 8, 3)
    assert np.allclose(volume[:4], 1.0)
    assert np.allclose(volume[4:], 0.0)


def test_image_stack_empty_folder(tmp_path):
    with pytest.raises(InvalidSourceError):
        read_image_stack(str(tmp_path))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
