"""
Heightfield -> triangle mesh.

The depth raster is decimated by the sampling step into a regular grid
of vertices. X/Y span PHYSICAL_SCALE world units across the model width
(the height follows the physical aspect ratio), centred at the origin,
with image row 0 at the top (+Y). Z is depth/255 * model_height *
HEIGHT_SCALE.

Every grid quad becomes two triangles with the same diagonal split:
    (top_left, bottom_left, top_right), (top_right, bottom_left, bottom_right)
which winds counter-clockwise seen from +Z, so a flat relief has
normals (0, 0, 1).
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .config import (
    ALPHA_INSIDE_THRESHOLD,
    HEIGHT_SCALE,
    PHYSICAL_SCALE,
    VALID_SAMPLING_STEPS,
    clamp,
)
from .errors import InvalidDimensionsError, InvalidParameterError
from .raster import DepthRaster

logger = logging.getLogger(__name__)

UP = np.array([0.0, 0.0, 1.0])


@dataclass
class Mesh:
    """A 3D triangular mesh."""
    vertices: np.ndarray  # (N, 3) array of vertex positions
    faces: np.ndarray     # (M, 3) array of triangle indices
    normals: Optional[np.ndarray] = None  # (N, 3) vertex normals
    vertex_colors: Optional[np.ndarray] = None  # (N, 3) vertex colors, 0-1

    @property
    def n_vertices(self) -> int:
        return len(self.vertices)

    @property
    def n_faces(self) -> int:
        return len(self.faces)

    def face_normals(self) -> np.ndarray:
        """
        Unit normal of each face (cross product of its two edges).

        Degenerate faces get a zero vector.
        """
        vertices = self.vertices.astype(np.float64)
        v0 = vertices[self.faces[:, 0]]
        v1 = vertices[self.faces[:, 1]]
        v2 = vertices[self.faces[:, 2]]
        cross = np.cross(v1 - v0, v2 - v0)
        lengths = np.linalg.norm(cross, axis=1, keepdims=True)
        return np.divide(cross, lengths, out=np.zeros_like(cross), where=lengths > 0)

    def compute_normals(self) -> None:
        """
        Compute vertex normals from face normals.

        Unit face normals are summed into their three vertices and the
        sums normalised. A vertex whose sum vanishes gets (0, 0, 1).
        """
        normals = np.zeros((self.n_vertices, 3), dtype=np.float64)
        if self.n_faces:
            face_normals = self.face_normals()
            for corner in range(3):
                np.add.at(normals, self.faces[:, corner], face_normals)

        norms = np.linalg.norm(normals, axis=1, keepdims=True)
        normals = np.where(norms > 0, normals / np.where(norms > 0, norms, 1.0), UP)
        self.normals = normals.astype(np.float32)


def grid_size(width: int, height: int, sampling_step: int) -> Tuple[int, int]:
    """(grid_width, grid_height) for a raster decimated by sampling_step."""
    return math.ceil(width / sampling_step), math.ceil(height / sampling_step)


def grid_faces(grid_width: int, grid_height: int) -> np.ndarray:
    """Two triangles per grid quad, fixed diagonal, consistent winding."""
    if grid_width < 2 or grid_height < 2:
        return np.empty((0, 3), dtype=np.uint32)

    rows, cols = np.meshgrid(
        np.arange(grid_height - 1), np.arange(grid_width - 1), indexing="ij"
    )
    top_left = (rows * grid_width + cols).ravel()
    top_right = top_left + 1
    bottom_left = top_left + grid_width
    bottom_right = bottom_left + 1

    first = np.column_stack([top_left, bottom_left, top_right])
    second = np.column_stack([top_right, bottom_left, bottom_right])
    # Interleave so each quad's pair stays adjacent
    faces = np.empty((2 * len(top_left), 3), dtype=np.uint32)
    faces[0::2] = first
    faces[1::2] = second
    return faces


def build(
    depth: DepthRaster,
    physical_width: float,
    physical_height: float,
    model_height: float,
    sampling_step: int = 1
) -> Mesh:
    """
    Triangulate a depth raster.

    Args:
        depth: Final depth raster
        physical_width: Physical width of the model (only the ratio to
            physical_height matters for X/Y)
        physical_height: Physical height of the model
        model_height: Relief height in physical units (e.g. mm)
        sampling_step: Pixel step between grid vertices (1, 2, 4 or 8)

    Returns:
        Mesh with grid_width * grid_height vertices,
        2 * (grid_width - 1) * (grid_height - 1) faces, unit vertex
        normals and vertex colors
    """
    if isinstance(sampling_step, bool) or sampling_step not in VALID_SAMPLING_STEPS:
        raise InvalidParameterError(
            f"sampling_step must be one of {VALID_SAMPLING_STEPS}, got {sampling_step!r}"
        )
    # 2.0 is accepted; index arithmetic below needs a real int
    sampling_step = int(sampling_step)
    if not (physical_width > 0 and physical_height > 0):
        raise InvalidDimensionsError(
            f"Physical size must be positive, got {physical_width}x{physical_height}"
        )
    model_height = clamp(model_height, 0.0, math.inf, name="model_height")

    gw, gh = grid_size(depth.width, depth.height, sampling_step)
    logger.info(
        f"Building heightfield: raster {depth.width}x{depth.height}, "
        f"grid {gw}x{gh}, step {sampling_step}"
    )

    img_x = np.minimum(np.arange(gw) * sampling_step, depth.width - 1)
    img_y = np.minimum(np.arange(gh) * sampling_step, depth.height - 1)
    sampled_depth = depth.depth[np.ix_(img_y, img_x)].astype(np.float64)
    sampled_alpha = depth.alpha[np.ix_(img_y, img_x)]
    heights = np.where(sampled_alpha > ALPHA_INSIDE_THRESHOLD, sampled_depth / 255.0, 0.0)

    aspect = physical_height / physical_width
    xs = (np.arange(gw) / (gw - 1) - 0.5) * PHYSICAL_SCALE if gw > 1 else np.zeros(1)
    ys = (
        ((gh - 1 - np.arange(gh)) / (gh - 1) - 0.5) * PHYSICAL_SCALE * aspect
        if gh > 1 else np.zeros(1)
    )
    world_x, world_y = np.meshgrid(xs, ys)
    world_z = heights * model_height * HEIGHT_SCALE

    vertices = np.column_stack([
        world_x.ravel(), world_y.ravel(), world_z.ravel()
    ]).astype(np.float32)

    intensity = 0.7 + heights.ravel() * 0.3
    colors = np.column_stack([intensity, intensity * 0.95, intensity * 0.9]).astype(np.float32)

    mesh = Mesh(vertices=vertices, faces=grid_faces(gw, gh), vertex_colors=colors)
    mesh.compute_normals()

    logger.info(f"Created {mesh.n_vertices} vertices, {mesh.n_faces} triangles")
    return mesh
