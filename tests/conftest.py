"""Shared mesh fixtures for the normals tests."""

import numpy as np
import pytest
import trimesh


@pytest.fixture
def single_triangle():
    """One triangle in the z=0 plane, counter-clockwise seen from +z."""
    positions = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
    ])
    triangles = [0, 1, 2]
    return positions, triangles


@pytest.fixture
def flat_quad():
    """Two coplanar triangles sharing the 0-2 diagonal."""
    positions = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [1.0, 1.0, 0.0],
        [0.0, 1.0, 0.0],
    ])
    triangles = [0, 1, 2, 0, 2, 3]
    return positions, triangles


@pytest.fixture
def split_hinge():
    """
    Two triangles meeting at 90 degrees along the x axis, with the hinge
    positions stored twice (entries 0/3 and 1/4).

    Triangle 0 faces +z, triangle 1 faces +y.
    """
    positions = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 0.0, -1.0],
    ])
    triangles = [0, 1, 2, 3, 4, 5]
    return positions, triangles


@pytest.fixture
def shared_hinge():
    """Same hinge as split_hinge, but the hinge entries are shared."""
    positions = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [0.0, 0.0, -1.0],
    ])
    triangles = [0, 1, 2, 0, 1, 3]
    return positions, triangles


@pytest.fixture
def degenerate_mesh():
    """
    A valid triangle plus a collapsed one whose corners 1 and 2 sit at the
    same position (entries 1 and 3).
    """
    positions = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [1.0, 0.0, 0.0],
    ])
    triangles = [0, 1, 2, 0, 1, 3]
    return positions, triangles


@pytest.fixture
def split_cube():
    """Unit cube centered at the origin, every triangle with its own three entries."""
    mesh = trimesh.creation.box(extents=(1.0, 1.0, 1.0))
    mesh.unmerge_vertices()
    return mesh


@pytest.fixture
def random_mesh():
    """Random soup with shared and duplicated positions."""
    rng = np.random.default_rng(42)
    base = rng.normal(size=(30, 3))
    # Duplicate a third of the positions as seam entries
    positions = np.vstack([base, base[:10]])
    triangles = rng.integers(0, len(positions), size=(60, 3))
    return positions, triangles
