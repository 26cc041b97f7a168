"""
Edge-aware smoothing of depth rasters.

Only near-edge pixels (some 8-neighbour differs by more than the edge
threshold) are filtered. The filter is a bilateral-style weighted
average: a neighbour contributes only if its depth is within the
similarity threshold of the centre, so true silhouette walls are not
blurred into the background.

Strength s in (0, 1] controls everything:
- kernel:      s <= 0.3 -> 3x3, s <= 0.7 -> 5x5, else 7x7 (integer pyramids)
- similarity:  30 + 70 s
- blend:       sqrt(s) of the filtered value
- iterations:  ceil(4 s)
"""

import logging
import math

import numpy as np

from .config import MAX_SMOOTHING_STRENGTH, MIN_SMOOTHING_STRENGTH, clamp
from .raster import DepthRaster
from .resample import edge_map

logger = logging.getLogger(__name__)

DEFAULT_EDGE_THRESHOLD = 8


def pyramid_kernel(size: int) -> np.ndarray:
    """Separable integer pyramid, e.g. size 3 -> outer([1, 2, 1], [1, 2, 1])."""
    half = size // 2
    ramp = np.concatenate([np.arange(1, half + 2), np.arange(half, 0, -1)])
    return np.outer(ramp, ramp).astype(np.float64)


KERNELS = {size: pyramid_kernel(size) for size in (3, 5, 7)}


def kernel_size_for(strength: float) -> int:
    if strength <= 0.3:
        return 3
    if strength <= 0.7:
        return 5
    return 7


def _smooth_pass(
    values: np.ndarray,
    kernel: np.ndarray,
    similarity: float,
    mix: float,
    edge_threshold: float
) -> np.ndarray:
    near_edge = edge_map(values, edge_threshold)
    if not near_edge.any():
        return values

    height, width = values.shape
    radius = kernel.shape[0] // 2
    padded = np.pad(values, radius, mode="constant")
    valid = np.pad(np.ones(values.shape, dtype=bool), radius, mode="constant")

    weighted = np.zeros_like(values)
    weights = np.zeros_like(values)
    for dy in range(kernel.shape[0]):
        for dx in range(kernel.shape[1]):
            neighbour = padded[dy:dy + height, dx:dx + width]
            similar = valid[dy:dy + height, dx:dx + width] & (np.abs(neighbour - values) < similarity)
            w = np.where(similar, kernel[dy, dx], 0.0)
            weighted += w * neighbour
            weights += w

    # The centre sample always qualifies, so weights > 0
    filtered = weighted / weights
    blended = values + (filtered - values) * mix
    return np.where(near_edge, blended, values)


def smooth(
    depth: DepthRaster,
    strength: float,
    edge_threshold: float = DEFAULT_EDGE_THRESHOLD
) -> DepthRaster:
    """
    Smooth the near-edge pixels of a depth raster.

    Args:
        depth: Depth raster
        strength: Smoothing strength, clamped to [0.01, 1]
        edge_threshold: Depth step (0-255) that marks a near-edge pixel

    Returns:
        New raster; alpha is passed through unchanged
    """
    strength = clamp(strength, MIN_SMOOTHING_STRENGTH, MAX_SMOOTHING_STRENGTH, name="smoothing_strength")

    size = kernel_size_for(strength)
    kernel = KERNELS[size]
    similarity = 30.0 + 70.0 * strength
    mix = math.sqrt(strength)
    iterations = math.ceil(4 * strength)

    values = depth.depth.astype(np.float64)
    for _ in range(iterations):
        values = _smooth_pass(values, kernel, similarity, mix, edge_threshold)

    out = np.clip(np.rint(values), 0, 255).astype(np.uint8)
    logger.info(
        f"Smoothed with strength={strength:.2f}: {size}x{size} kernel, "
        f"{iterations} iterations, {int((out != depth.depth).sum())} pixels changed"
    )
    return depth.with_pixels(out, depth.alpha.copy())
