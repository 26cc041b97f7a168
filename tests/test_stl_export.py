"""
Tests for the ASCII STL writer.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from relief.heightfield import Mesh, build
from relief.raster import DepthRaster
from relief.stl_export import mesh_to_ascii_stl, write_ascii_stl


GOLDEN_TRIANGLE = (
    "solid tri\n"
    "  facet normal 0.000000 0.000000 1.000000\n"
    "    outer loop\n"
    "      vertex 0.000000 0.000000 0.000000\n"
    "      vertex 1.000000 0.000000 0.000000\n"
    "      vertex 0.000000 1.000000 0.000000\n"
    "    endloop\n"
    "  endfacet\n"
    "endsolid tri\n"
)


# ============== Fixtures ==============

@pytest.fixture
def triangle():
    return Mesh(
        vertices=np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype=np.float32),
        faces=np.array([[0, 1, 2]], dtype=np.uint32),
    )


@pytest.fixture
def relief_mesh():
    depth = np.zeros((5, 5), dtype=np.uint8)
    depth[1:4, 1:4] = 180
    depth[2, 2] = 255
    raster = DepthRaster(depth, np.full((5, 5), 255, np.uint8), 10.0, 10.0)
    return build(raster, 10.0, 10.0, model_height=1.5)


# ============== Format Tests ==============

class TestAsciiStl:
    """Test the text layout."""

    def test_golden_triangle(self, triangle):
        assert mesh_to_ascii_stl(triangle, "tri") == GOLDEN_TRIANGLE

    def test_negative_zero_written_as_zero(self):
        mesh = Mesh(
            vertices=np.array([[-0.0, 0, 0], [1, 0, 0], [0, 1, -0.0]], dtype=np.float32),
            faces=np.array([[0, 1, 2]], dtype=np.uint32),
        )
        assert "-0.000000" not in mesh_to_ascii_stl(mesh)

    def test_six_decimals(self):
        mesh = Mesh(
            vertices=np.array([[0.1234567, 0, 0], [1, 0, 0], [0, 1, 0]], dtype=np.float64),
            faces=np.array([[0, 1, 2]], dtype=np.uint32),
        )
        assert "vertex 0.123457 0.000000 0.000000" in mesh_to_ascii_stl(mesh)

    def test_default_name(self, triangle):
        text = mesh_to_ascii_stl(triangle)
        assert text.startswith("solid generated_model\n")
        assert text.endswith("endsolid generated_model\n")

    def test_facet_structure(self, relief_mesh):
        lines = mesh_to_ascii_stl(relief_mesh, "relief").split("\n")

        assert lines.count("    outer loop") == relief_mesh.n_faces
        assert lines.count("  endfacet") == relief_mesh.n_faces
        assert sum(line.startswith("      vertex ") for line in lines) == 3 * relief_mesh.n_faces

    def test_facet_normals_point_up(self, relief_mesh):
        for line in mesh_to_ascii_stl(relief_mesh).split("\n"):
            if line.startswith("  facet normal"):
                assert float(line.split()[-1]) > 0


# ============== Reproducibility Tests ==============

class TestReproducibility:
    def test_identical_text(self, relief_mesh):
        assert mesh_to_ascii_stl(relief_mesh) == mesh_to_ascii_stl(relief_mesh)

    def test_file_matches_text(self, relief_mesh, tmp_path):
        path = write_ascii_stl(relief_mesh, tmp_path / "out" / "relief.stl", name="relief")

        assert path.read_bytes() == mesh_to_ascii_stl(relief_mesh, "relief").encode()
        assert b"\r\n" not in path.read_bytes()
