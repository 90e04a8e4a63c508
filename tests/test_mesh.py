"""Tests for STL loading."""
import logging

import numpy as np
import pytest

from reliefcam.mesh import (
    STL_HEADER_SIZE,
    STL_RECORD,
    AxisTransform,
    TriangleMesh,
    load_stl,
    write_stl_ascii,
    write_stl_binary,
)


@pytest.fixture
def ramp_mesh(make_mesh):
    """Two triangles with coordinates that are not exact in float32."""
    return make_mesh([
        [(0.0, 0.0, 0.0), (10.1, 0.0, 0.3), (10.1, 5.7, 1.25)],
        [(0.0, 0.0, 0.0), (10.1, 5.7, 1.25), (0.0, 5.7, 0.1)],
    ])


class TestBinary:

    def test_load_matches_written_mesh(self, tmp_path, ramp_mesh):
        path = tmp_path / "ramp.stl"
        write_stl_binary(ramp_mesh, path)

        mesh = load_stl(path)
        assert len(mesh) == 2
        np.testing.assert_allclose(mesh.vertices, ramp_mesh.vertices, atol=1e-5)

    def test_header_starting_with_solid_is_still_binary(self, tmp_path, ramp_mesh):
        path = tmp_path / "solid.stl"
        write_stl_binary(ramp_mesh, path, header="solid exported by some cad")

        mesh = load_stl(path)
        assert len(mesh) == 2

    def test_truncated_file_keeps_complete_records(self, tmp_path, ramp_mesh, caplog):
        path = tmp_path / "cut.stl"
        write_stl_binary(ramp_mesh, path)
        data = path.read_bytes()
        path.write_bytes(data[:-10])

        with caplog.at_level(logging.WARNING):
            mesh = load_stl(path)
        assert len(mesh) == 1
        assert "truncated" in caplog.text

    def test_too_short_file_is_empty(self, tmp_path):
        path = tmp_path / "short.stl"
        path.write_bytes(b"\0" * (STL_HEADER_SIZE - 1))
        assert load_stl(path).is_empty

    def test_record_size(self):
        assert STL_RECORD.itemsize == 50


class TestAscii:

    def test_swapped_ascii_equals_binary(self, tmp_path, make_mesh, box_faces):
        mesh = make_mesh(box_faces(0.0, 0.0, 10.1, 20.3, 0.0, 3.7))
        binary = tmp_path / "box.stl"
        ascii_ = tmp_path / "box_ascii.stl"
        write_stl_binary(mesh, binary)
        write_stl_ascii(mesh.transformed(AxisTransform.SWAP_YZ), ascii_)

        from_binary = load_stl(binary)
        from_ascii = load_stl(ascii_, AxisTransform.SWAP_YZ)
        assert len(from_ascii) == len(from_binary) == 12
        np.testing.assert_array_equal(from_ascii.vertices, from_binary.vertices)
        np.testing.assert_array_equal(from_ascii.normals, from_binary.normals)

    def test_malformed_facet_keeps_earlier_triangles(self, tmp_path, caplog):
        path = tmp_path / "bad.stl"
        path.write_text(
            "solid bad\n"
            "facet normal 0 0 1\n"
            " outer loop\n"
            "  vertex 0 0 0\n"
            "  vertex 1 0 0\n"
            "  vertex 1 1 0\n"
            " endloop\n"
            "endfacet\n"
            "facet normal 0 0 1\n"
            " outer loop\n"
            "  vertex 0 0 0\n"
            "  vertex 1 1\n"
            "  vertex 0 1 0\n"
            " endloop\n"
            "endfacet\n"
            "endsolid bad\n"
        )
        with caplog.at_level(logging.WARNING):
            mesh = load_stl(path)
        assert len(mesh) == 1
        assert "Malformed" in caplog.text

    def test_scientific_notation(self, tmp_path):
        path = tmp_path / "sci.stl"
        path.write_text(
            "solid sci\n"
            "  facet normal 0.0e+00 0.0e+00 1.0e+00\n"
            "    outer loop\n"
            "      vertex 0.0e+00 0.0e+00 0.0e+00\n"
            "      vertex 1.5e+01 0.0e+00 0.0e+00\n"
            "      vertex 1.5e+01 2.5E-01 -1e-3\n"
            "    endloop\n"
            "  endfacet\n"
            "endsolid sci\n"
        )
        mesh = load_stl(path)
        assert len(mesh) == 1
        assert mesh.vertices[0, 2, 0] == pytest.approx(15.0)
        assert mesh.vertices[0, 2, 1] == pytest.approx(0.25)
        assert mesh.vertices[0, 2, 2] == pytest.approx(-0.001)


class TestLoadFailures:

    def test_missing_file_is_empty(self, tmp_path, caplog):
        with caplog.at_level(logging.ERROR):
            mesh = load_stl(tmp_path / "nope.stl")
        assert mesh.is_empty
        assert "Failed to open" in caplog.text


class TestTransforms:

    def test_swap_xz(self):
        mesh = TriangleMesh(
            vertices=np.array([[[1.0, 2.0, 3.0], [4.0, 5.0, 6.0], [7.0, 8.0, 9.0]]]),
            normals=np.array([[0.0, 0.0, 1.0]]),
        )
        swapped = mesh.transformed(AxisTransform.SWAP_XZ)
        np.testing.assert_array_equal(swapped.vertices[0, 0], [3.0, 2.0, 1.0])
        np.testing.assert_array_equal(swapped.normals[0], [1.0, 0.0, 0.0])

    def test_bounds(self, ramp_mesh):
        lo, hi = ramp_mesh.bounds()
        np.testing.assert_allclose(lo, [0.0, 0.0, 0.0])
        np.testing.assert_allclose(hi, [10.1, 5.7, 1.25])

    def test_empty_bounds(self):
        assert TriangleMesh.empty().bounds().shape == (2, 3)
