"""
ASCII STL (triangle soup) writer.

Output is byte-reproducible for a given mesh: fixed 6-decimal fields,
'\\n' line endings, negative zero written as 0.000000.

    solid <name>
      facet normal nx ny nz
        outer loop
          vertex x y z
          vertex x y z
          vertex x y z
        endloop
      endfacet
    endsolid <name>
"""

import logging
from pathlib import Path

import numpy as np

from .heightfield import Mesh

logger = logging.getLogger(__name__)

DEFAULT_SOLID_NAME = "generated_model"


def _fmt(values) -> str:
    # Adding 0.0 turns -0.0 into 0.0
    return " ".join(f"{float(v) + 0.0:.6f}" for v in values)


def mesh_to_ascii_stl(mesh: Mesh, name: str = DEFAULT_SOLID_NAME) -> str:
    """Render a mesh as ASCII STL text."""
    vertices = mesh.vertices.astype(np.float64)
    normals = mesh.face_normals()

    facets = []
    for face, normal in zip(mesh.faces, normals):
        v1, v2, v3 = vertices[face]
        facets.append(
            f"  facet normal {_fmt(normal)}\n"
            f"    outer loop\n"
            f"      vertex {_fmt(v1)}\n"
            f"      vertex {_fmt(v2)}\n"
            f"      vertex {_fmt(v3)}\n"
            f"    endloop\n"
            f"  endfacet"
        )

    body = "\n".join(facets)
    return f"solid {name}\n{body}\nendsolid {name}\n"


def write_ascii_stl(mesh: Mesh, path: Path, name: str = DEFAULT_SOLID_NAME) -> Path:
    """Write a mesh to an ASCII STL file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', newline='\n') as f:
        f.write(mesh_to_ascii_stl(mesh, name))
    logger.info(f"Saved ASCII STL: {path} ({mesh.n_faces} facets)")
    return path
