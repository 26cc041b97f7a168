"""
Edge profile evaluation: distance to the silhouette edge -> relief depth.

Profiles (W = edge_width, d = distance, t = d / W):
- vertical:  255 inside, 0 outside, distance ignored
- rounded:   floor(255 * sqrt(1 - (1 - t)^2)) for d < W, else 255
- chamfered: floor(255 * clip(d tan(a) / max(W tan(a), W), 0, 1)) for d < W, else 255

Outside pixels always get depth 0 and alpha 0.
"""

import logging
import math
from typing import Optional, Tuple, Union

import numpy as np

from .config import EdgeParameters, EdgeType

logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray]

FULL_DEPTH = 255


def rounded_depth(distance: ArrayLike, edge_width: float) -> np.ndarray:
    """Concave quarter-circle fillet across the edge band."""
    distance = np.asarray(distance, dtype=np.float64)
    t = np.clip(distance / edge_width, 0.0, 1.0)
    profile = np.floor(FULL_DEPTH * np.sqrt(1.0 - (1.0 - t) ** 2))
    return np.where(distance >= edge_width, FULL_DEPTH, profile).astype(np.int32)


def chamfered_depth(distance: ArrayLike, edge_width: float, chamfer_angle: float) -> np.ndarray:
    """
    Linear bevel across exactly edge_width pixels.

    Steep angles (tan > 1) span the full 0-255 range; shallow angles
    top out at 255 * tan(angle) before the plateau.
    """
    distance = np.asarray(distance, dtype=np.float64)
    slope = math.tan(math.radians(chamfer_angle))
    raw_height = np.maximum(distance, 0.0) * slope
    cap_height = edge_width * slope
    normalized = np.clip(raw_height / max(cap_height, edge_width), 0.0, 1.0)
    profile = np.floor(FULL_DEPTH * normalized)
    return np.where(distance >= edge_width, FULL_DEPTH, profile).astype(np.int32)


def evaluate(
    distance: ArrayLike,
    inside: Union[bool, np.ndarray],
    params: EdgeParameters
) -> np.ndarray:
    """
    Depth for one pixel or an array of pixels.

    Args:
        distance: Distance field value(s); -1 marks outside
        inside: Silhouette mask value(s)
        params: Edge parameters (validated here)

    Returns:
        Depth value(s) in [0, 255]
    """
    params.validate()
    distance = np.asarray(distance, dtype=np.float64)
    inside = np.asarray(inside, dtype=bool)

    if params.edge_type is EdgeType.VERTICAL:
        depth = np.full(np.broadcast(distance, inside).shape, FULL_DEPTH, dtype=np.int32)
    else:
        # Inside pixel without a distance is out-of-band: full height
        band_distance = np.where(distance < 0, np.inf, distance)
        if params.edge_type is EdgeType.ROUNDED:
            depth = rounded_depth(band_distance, params.edge_width)
        else:
            depth = chamfered_depth(band_distance, params.edge_width, params.chamfer_angle)

    return np.where(inside, depth, 0).astype(np.int32)


def evaluate_raster(
    mask: np.ndarray,
    distances: Optional[np.ndarray],
    params: EdgeParameters,
    source_alpha: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Evaluate the profile over a whole raster.

    Args:
        mask: (H, W) silhouette mask
        distances: (H, W) distance field, may be None for vertical edges
        params: Edge parameters
        source_alpha: (H, W) alpha of the source raster

    Returns:
        Tuple of (depth, alpha) uint8 arrays. Inside pixels keep their
        source alpha; outside pixels are forced fully transparent.
    """
    if distances is None:
        if params.edge_type is not EdgeType.VERTICAL:
            raise ValueError(f"{params.edge_type.value} edges need a distance field")
        distances = np.zeros(mask.shape, dtype=np.float64)

    depth = evaluate(distances, mask, params).astype(np.uint8)
    alpha = np.where(mask, source_alpha, 0).astype(np.uint8)

    logger.info(
        f"Evaluated {params.edge_type.value} profile: "
        f"{int((depth == FULL_DEPTH).sum())} plateau pixels, "
        f"{int((mask & (depth < FULL_DEPTH)).sum())} edge band pixels"
    )
    return depth, alpha
