"""
Shared test fixtures for toolpath generation tests.
"""
import numpy as np
import pytest

from reliefcam.mesh import TriangleMesh
from reliefcam.tools import BallNose, EndMill, VBit


def _oriented(tri, outward):
    """Order a triangle's vertices so its right-hand normal points along outward."""
    tri = np.array(tri, dtype=float)
    normal = np.cross(tri[1] - tri[0], tri[2] - tri[0])
    if np.dot(normal, outward) < 0:
        tri = tri[[0, 2, 1]]
    return tri


def _quad(a, b, c, d, outward):
    return [_oriented([a, b, c], outward), _oriented([a, c, d], outward)]


def build_mesh(triangles) -> TriangleMesh:
    vertices = np.array(triangles, dtype=float)
    normals = np.cross(vertices[:, 1] - vertices[:, 0], vertices[:, 2] - vertices[:, 0])
    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    return TriangleMesh(vertices=vertices, normals=normals / np.where(lengths == 0, 1, lengths))


def plate_triangles(x1, y1, z=0.0, x0=0.0, y0=0.0):
    return _quad((x0, y0, z), (x1, y0, z), (x1, y1, z), (x0, y1, z), (0, 0, 1))


def box_triangles(x0, y0, x1, y1, z0, z1):
    """Closed axis-aligned box with outward facing triangles."""
    return (
        _quad((x0, y0, z1), (x1, y0, z1), (x1, y1, z1), (x0, y1, z1), (0, 0, 1))
        + _quad((x0, y0, z0), (x1, y0, z0), (x1, y1, z0), (x0, y1, z0), (0, 0, -1))
        + _quad((x0, y0, z0), (x1, y0, z0), (x1, y0, z1), (x0, y0, z1), (0, -1, 0))
        + _quad((x0, y1, z0), (x1, y1, z0), (x1, y1, z1), (x0, y1, z1), (0, 1, 0))
        + _quad((x0, y0, z0), (x0, y1, z0), (x0, y1, z1), (x0, y0, z1), (-1, 0, 0))
        + _quad((x1, y0, z0), (x1, y1, z0), (x1, y1, z1), (x1, y0, z1), (1, 0, 0))
    )


class FunctionOracle:
    """Height oracle backed by a plain function, for planner tests."""

    def __init__(self, func, size_x=20.0, size_y=10.0):
        self.func = func
        self.size_x = size_x
        self.size_y = size_y
        self.queries = 0

    def height(self, x, y):
        self.queries += 1
        return float(self.func(x, y))

    def footprint_x(self):
        return self.size_x

    def footprint_y(self):
        return self.size_y


@pytest.fixture
def flat_mesh():
    """A flat 100x60mm plate at height 0."""
    return build_mesh(plate_triangles(100.0, 60.0))


@pytest.fixture
def box_mesh():
    """A 20x20mm plate with a 10x10x4mm block standing in its middle."""
    return build_mesh(plate_triangles(20.0, 20.0) + box_triangles(5.0, 5.0, 15.0, 15.0, 0.0, 4.0))


@pytest.fixture
def make_oracle():
    def factory(func, size_x=20.0, size_y=10.0):
        return FunctionOracle(func, size_x, size_y)
    return factory


@pytest.fixture
def endmill():
    return EndMill(
        id="em-4", name="4mm End Mill", diameter=4.0, feed_rate=1000.0,
        plunge_rate=300.0, spindle_rpm=12000, stepover_percent=50.0, max_depth_per_pass=2.0,
    )


@pytest.fixture
def small_endmill():
    return EndMill(
        id="em-2", name="2mm End Mill", diameter=2.0, feed_rate=800.0,
        plunge_rate=200.0, spindle_rpm=15000, stepover_percent=50.0, max_depth_per_pass=1.0,
    )


@pytest.fixture
def ballnose():
    return BallNose(
        id="bn-2", name="2mm Ball-Nose", diameter=2.0, feed_rate=800.0,
        plunge_rate=200.0, spindle_rpm=15000, stepover_percent=25.0, max_depth_per_pass=1.0,
    )


@pytest.fixture
def vbit():
    return VBit(
        id="vb-90", name="90° V-Bit", diameter=2.0, feed_rate=600.0,
        plunge_rate=150.0, spindle_rpm=12000, angle=90.0, tip_diameter=0.0,
    )


@pytest.fixture
def make_mesh():
    """Factory turning triangle vertex lists into a TriangleMesh."""
    return build_mesh


@pytest.fixture
def box_faces():
    """Factory for the 12 outward facing triangles of an axis-aligned box."""
    return box_triangles
