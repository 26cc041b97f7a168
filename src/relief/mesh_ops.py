"""
Mesh operation utilities.

Conversion to trimesh and mesh statistics.
"""

import logging
from typing import Any, Dict

import numpy as np
import trimesh

from .heightfield import Mesh

logger = logging.getLogger(__name__)


def to_trimesh(mesh: Mesh) -> trimesh.Trimesh:
    """
    Convert a relief Mesh to a trimesh.Trimesh.

    Vertex order, faces and normals are kept exactly (process=False), so
    grid indices stay valid.
    """
    kwargs = {}
    if mesh.vertex_colors is not None:
        colors = np.clip(np.rint(mesh.vertex_colors * 255), 0, 255).astype(np.uint8)
        kwargs["vertex_colors"] = colors
    return trimesh.Trimesh(
        vertices=mesh.vertices,
        faces=mesh.faces,
        vertex_normals=mesh.normals,
        process=False,
        **kwargs
    )


def from_trimesh(tm: trimesh.Trimesh) -> Mesh:
    """Convert a trimesh.Trimesh back into a relief Mesh."""
    return Mesh(
        vertices=np.asarray(tm.vertices, dtype=np.float32),
        faces=np.asarray(tm.faces, dtype=np.uint32),
        normals=np.asarray(tm.vertex_normals, dtype=np.float32),
    )


def compute_mesh_stats(mesh: Mesh) -> Dict[str, Any]:
    """
    Compute mesh statistics.

    Args:
        mesh: Relief mesh

    Returns:
        Dictionary of mesh statistics
    """
    if mesh.n_faces == 0:
        return {
            "n_vertices": mesh.n_vertices,
            "n_faces": 0,
            "bounds": None,
            "extents": None,
            "max_extent": 0.0,
            "surface_area": 0.0,
            "is_winding_consistent": True,
        }

    tm = to_trimesh(mesh)
    bounds = tm.bounds
    extents = tm.extents

    return {
        "n_vertices": len(tm.vertices),
        "n_faces": len(tm.faces),
        "bounds": {
            "min": bounds[0].tolist(),
            "max": bounds[1].tolist()
        },
        "extents": extents.tolist(),
        "max_extent": float(max(extents)),
        "surface_area": float(tm.area),
        "is_winding_consistent": bool(tm.is_winding_consistent),
    }
