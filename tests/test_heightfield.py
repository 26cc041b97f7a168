"""
Tests for heightfield mesh construction.

Tests cover:
- Grid size and topology counts
- World-space mapping (X/Y extents, aspect ratio, Z scale)
- Alpha gating of heights
- Normals (unit length, +Z winding, degenerate fallback)
- Vertex colors
- Validation and determinism
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from relief.errors import InvalidDimensionsError, InvalidParameterError
from relief.heightfield import Mesh, build, grid_faces, grid_size
from relief.raster import DepthRaster


def make_depth(depth, alpha=None, width_mm=10.0, height_mm=10.0):
    depth = np.asarray(depth, dtype=np.uint8)
    if alpha is None:
        alpha = np.full(depth.shape, 255, dtype=np.uint8)
    return DepthRaster(depth, alpha, width_mm, height_mm)


# ============== Fixtures ==============

@pytest.fixture
def flat_raster():
    return make_depth(np.zeros((6, 8)))


@pytest.fixture
def bumpy_raster():
    rng = np.random.default_rng(7)
    return make_depth(rng.integers(0, 256, size=(17, 13)))


# ============== Grid Tests ==============

class TestGrid:
    """Test grid sizing and face topology."""

    @pytest.mark.parametrize("width,height,step,expected", [
        (10, 10, 1, (10, 10)),
        (10, 10, 2, (5, 5)),
        (9, 9, 2, (5, 5)),
        (17, 5, 8, (3, 1)),
        (1, 1, 8, (1, 1)),
    ])
    def test_grid_size(self, width, height, step, expected):
        assert grid_size(width, height, step) == expected

    def test_face_count(self):
        faces = grid_faces(4, 3)
        assert faces.shape == (2 * 3 * 2, 3)
        assert faces.dtype == np.uint32

    def test_first_quad(self):
        """Quad 0 splits as (tl, bl, tr), (tr, bl, br)."""
        faces = grid_faces(4, 3)
        np.testing.assert_array_equal(faces[0], [0, 4, 1])
        np.testing.assert_array_equal(faces[1], [1, 4, 5])

    def test_degenerate_grid_has_no_faces(self):
        assert len(grid_faces(1, 5)) == 0
        assert len(grid_faces(5, 1)) == 0


# ============== Build Tests ==============

class TestBuild:
    """Test heightfield triangulation."""

    def test_topology_counts(self, flat_raster):
        mesh = build(flat_raster, 10.0, 10.0, model_height=1.5)
        assert mesh.n_vertices == 8 * 6
        assert mesh.n_faces == 2 * 7 * 5

    @pytest.mark.parametrize("step", [1, 2, 4, 8])
    def test_topology_per_step(self, bumpy_raster, step):
        mesh = build(bumpy_raster, 10.0, 10.0, model_height=1.5, sampling_step=step)
        gw, gh = grid_size(13, 17, step)
        assert mesh.n_vertices == gw * gh
        assert mesh.n_faces == 2 * max(gw - 1, 0) * max(gh - 1, 0)

    def test_xy_extents_square(self, flat_raster):
        mesh = build(flat_raster, 10.0, 10.0, model_height=1.5)
        xs, ys = mesh.vertices[:, 0], mesh.vertices[:, 1]
        assert xs.min() == pytest.approx(-5.0)
        assert xs.max() == pytest.approx(5.0)
        assert ys.min() == pytest.approx(-5.0)
        assert ys.max() == pytest.approx(5.0)

    def test_aspect_ratio(self, flat_raster):
        """Y follows the physical aspect ratio."""
        mesh = build(flat_raster, 40.0, 20.0, model_height=1.5)
        assert mesh.vertices[:, 1].max() == pytest.approx(2.5)
        assert mesh.vertices[:, 0].max() == pytest.approx(5.0)

    def test_top_row_is_positive_y(self):
        depth = np.zeros((4, 4), dtype=np.uint8)
        depth[0, 0] = 255
        mesh = build(make_depth(depth), 10.0, 10.0, model_height=2.0)

        first = mesh.vertices[0]
        assert first[0] == pytest.approx(-5.0)
        assert first[1] == pytest.approx(5.0)
        assert first[2] == pytest.approx(255 / 255 * 2.0 * 0.05)

    def test_z_scale(self):
        mesh = build(make_depth(np.full((3, 3), 255)), 10.0, 10.0, model_height=1.5)
        np.testing.assert_allclose(mesh.vertices[:, 2], 0.075, rtol=1e-6)

    def test_transparent_pixels_are_flat(self):
        """Depth behind alpha <= 32 does not lift the surface."""
        depth = np.full((3, 3), 255, dtype=np.uint8)
        alpha = np.full((3, 3), 32, dtype=np.uint8)
        alpha[1, 1] = 33
        mesh = build(make_depth(depth, alpha), 10.0, 10.0, model_height=1.0)

        z = mesh.vertices[:, 2].reshape(3, 3)
        assert z[1, 1] > 0
        assert np.count_nonzero(z) == 1

    def test_negative_model_height_clamped(self, bumpy_raster):
        mesh = build(bumpy_raster, 10.0, 10.0, model_height=-3.0)
        assert np.all(mesh.vertices[:, 2] == 0)

    def test_vertex_colors(self):
        depth = np.array([[0, 255], [0, 255]], dtype=np.uint8)
        mesh = build(make_depth(depth), 10.0, 10.0, model_height=1.0)

        np.testing.assert_allclose(mesh.vertex_colors[0], [0.7, 0.665, 0.63], rtol=1e-6)
        np.testing.assert_allclose(mesh.vertex_colors[1], [1.0, 0.95, 0.9], rtol=1e-6)

    def test_single_row(self):
        mesh = build(make_depth(np.full((1, 5), 200)), 10.0, 10.0, model_height=1.0)

        assert mesh.n_vertices == 5
        assert mesh.n_faces == 0
        assert np.all(mesh.vertices[:, 1] == 0)
        np.testing.assert_allclose(mesh.normals, np.tile([0, 0, 1], (5, 1)))

    def test_deterministic(self, bumpy_raster):
        first = build(bumpy_raster, 10.0, 10.0, model_height=1.5, sampling_step=2)
        second = build(bumpy_raster, 10.0, 10.0, model_height=1.5, sampling_step=2)

        assert first.vertices.tobytes() == second.vertices.tobytes()
        assert first.faces.tobytes() == second.faces.tobytes()
        assert first.normals.tobytes() == second.normals.tobytes()


# ============== Normal Tests ==============

class TestNormals:
    """Test face and vertex normals."""

    def test_flat_normals_point_up(self, flat_raster):
        mesh = build(flat_raster, 10.0, 10.0, model_height=1.5)
        np.testing.assert_allclose(mesh.normals, np.tile([0, 0, 1], (mesh.n_vertices, 1)), atol=1e-6)

    def test_unit_length(self, bumpy_raster):
        mesh = build(bumpy_raster, 10.0, 10.0, model_height=40.0)
        lengths = np.linalg.norm(mesh.normals, axis=1)
        np.testing.assert_allclose(lengths, 1.0, atol=1e-5)

    def test_winding_faces_up(self, bumpy_raster):
        """Every face winds counter-clockwise seen from +Z."""
        mesh = build(bumpy_raster, 10.0, 10.0, model_height=40.0)
        assert np.all(mesh.face_normals()[:, 2] > 0)

    def test_degenerate_face_normal_is_zero(self):
        mesh = Mesh(
            vertices=np.array([[0, 0, 0], [1, 1, 1], [2, 2, 2]], dtype=np.float32),
            faces=np.array([[0, 1, 2]], dtype=np.uint32),
        )
        np.testing.assert_array_equal(mesh.face_normals(), [[0, 0, 0]])

        mesh.compute_normals()
        np.testing.assert_array_equal(mesh.normals, np.tile([0, 0, 1], (3, 1)))


# ============== Validation Tests ==============

class TestValidation:
    @pytest.mark.parametrize("step", [0, 3, 16, 2.5, True])
    def test_bad_sampling_step(self, flat_raster, step):
        with pytest.raises(InvalidParameterError):
            build(flat_raster, 10.0, 10.0, model_height=1.0, sampling_step=step)

    def test_integral_float_step(self, bumpy_raster):
        """A float tier such as 2.0 meshes exactly like the int tier."""
        as_float = build(bumpy_raster, 10.0, 10.0, model_height=1.0, sampling_step=2.0)
        as_int = build(bumpy_raster, 10.0, 10.0, model_height=1.0, sampling_step=2)

        assert as_float.n_vertices == as_int.n_vertices
        np.testing.assert_array_equal(as_float.vertices, as_int.vertices)
        np.testing.assert_array_equal(as_float.faces, as_int.faces)

    def test_bad_physical_size(self, flat_raster):
        with pytest.raises(InvalidDimensionsError):
            build(flat_raster, 0.0, 10.0, model_height=1.0)
