"""
Capped distance field over a silhouette mask.

For every inside pixel, the field holds the distance to the nearest
edge pixel (an inside pixel touching the outside or the raster border),
capped at max_distance. Outside pixels hold the OUTSIDE sentinel (-1).

Default metric is a chamfer distance: the shortest 8-connected lattice
path with step costs 1 (orthogonal) and sqrt(2) (diagonal). It is an
approximation of the Euclidean distance and slightly overestimates it
off the lattice axes. metric="euclidean" substitutes an exact EDT.
"""

import heapq
import logging
import math
from typing import List, Tuple

import numpy as np
from scipy.ndimage import binary_erosion, distance_transform_edt

from .errors import InvalidDimensionsError, InvalidParameterError
from .raster import check_dimensions

logger = logging.getLogger(__name__)

OUTSIDE = -1.0

SQRT2 = math.sqrt(2.0)

# (dy, dx, step cost)
NEIGHBOR_STEPS: List[Tuple[int, int, float]] = [
    (-1, -1, SQRT2), (-1, 0, 1.0), (-1, 1, SQRT2),
    (0, -1, 1.0),                  (0, 1, 1.0),
    (1, -1, SQRT2),  (1, 0, 1.0),  (1, 1, SQRT2),
]

METRICS = ("chamfer", "euclidean")


def find_edge_pixels(mask: np.ndarray) -> np.ndarray:
    """
    Inside pixels with at least one outside 8-neighbour.

    Pixels on the raster border count as edge pixels because their
    missing neighbours are treated as outside.
    """
    interior = binary_erosion(mask, structure=np.ones((3, 3), dtype=bool), border_value=0)
    return mask & ~interior


def compute(mask: np.ndarray, max_distance: float, metric: str = "chamfer") -> np.ndarray:
    """
    Compute the capped distance field of a silhouette mask.

    Args:
        mask: (H, W) boolean mask, True = inside
        max_distance: Cap in pixels (> 0); interior pixels further than
            this from any edge hold exactly max_distance
        metric: "chamfer" (lattice path, default) or "euclidean" (exact EDT)

    Returns:
        (H, W) float64 array: -1 outside, 0 on edge pixels, otherwise
        the capped distance in (0, max_distance]
    """
    mask = np.asarray(mask, dtype=bool)
    if mask.ndim != 2:
        raise InvalidDimensionsError(f"Mask must be 2D, got shape {mask.shape}")
    check_dimensions(mask.shape[1], mask.shape[0])
    if not math.isfinite(max_distance) or max_distance <= 0:
        raise InvalidParameterError(f"max_distance must be > 0, got {max_distance}")
    if metric not in METRICS:
        raise InvalidParameterError(f"Unknown distance metric: {metric!r}")

    distances = np.full(mask.shape, OUTSIDE, dtype=np.float64)
    edges = find_edge_pixels(mask)
    distances[mask] = max_distance
    distances[edges] = 0.0

    n_edges = int(edges.sum())
    logger.info(f"Found {n_edges} edge pixels of {int(mask.sum())} inside pixels")

    if n_edges == 0:
        return distances

    if metric == "euclidean":
        edt = distance_transform_edt(~edges)
        distances[mask] = np.minimum(edt[mask], max_distance)
    else:
        distances = _propagate(distances, mask, edges, max_distance)

    return distances


def _propagate(
    distances: np.ndarray,
    mask: np.ndarray,
    edges: np.ndarray,
    max_distance: float
) -> np.ndarray:
    """
    Relax inside pixels outward from the edge pixels in non-decreasing
    distance order (Dijkstra on the 8-connected pixel lattice).

    Relaxation stops at max_distance, so only the edge band is visited.
    """
    height, width = mask.shape
    dist = distances.ravel().tolist()
    inside = mask.ravel().tolist()

    frontier = [(0.0, int(idx)) for idx in np.flatnonzero(edges.ravel())]
    heapq.heapify(frontier)

    n_relaxed = 0
    while frontier:
        d, idx = heapq.heappop(frontier)
        if d > dist[idx] or d >= max_distance:
            continue

        y, x = divmod(idx, width)
        for dy, dx, step in NEIGHBOR_STEPS:
            ny = y + dy
            nx = x + dx
            if ny < 0 or ny >= height or nx < 0 or nx >= width:
                continue
            n = ny * width + nx
            if not inside[n]:
                continue
            candidate = d + step
            if candidate < dist[n] and candidate <= max_distance:
                dist[n] = candidate
                heapq.heappush(frontier, (candidate, n))
                n_relaxed += 1

    logger.debug(f"Distance propagation relaxed {n_relaxed} pixels")
    return np.array(dist, dtype=np.float64).reshape(height, width)
