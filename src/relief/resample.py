"""
Resolution normalisation for depth rasters.

Upscaling is edge-aware: destination pixels whose source neighbourhood
contains a depth step larger than the edge threshold are filled by
nearest-neighbour sampling (keeps silhouette walls sharp), everything
else is bilinearly interpolated. Downsampling is a box/area average.

Resampling changes the pixel grid only. The physical footprint of a
DepthRaster (physical_width_mm, physical_height_mm) is carried through
unchanged, so the mesh builder produces the same physical model at any
pixel density.

DPI handling:
- A supplied DPI (config, CLI or file metadata) is used as-is.
- Otherwise DPI is ESTIMATED from pixel count via fixed bands. The
  estimate is a heuristic, not a measurement; DpiInfo.estimated says
  which one you got.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from scipy.ndimage import map_coordinates, maximum_filter, minimum_filter

from .config import MAX_TARGET_DPI, MIN_TARGET_DPI, clamp
from .raster import DepthRaster, check_dimensions

logger = logging.getLogger(__name__)

DEFAULT_EDGE_THRESHOLD = 10

# (pixel count upper bound, dpi)
DPI_BANDS = (
    (100_000, 72),
    (400_000, 150),
    (1_000_000, 200),
)
DPI_ABOVE_BANDS = 300

DEFAULT_MAX_PIXELS = 16_000_000


@dataclass(frozen=True)
class DpiInfo:
    """Resolved DPI and whether it was estimated rather than supplied."""
    dpi: float
    estimated: bool


def estimate_dpi(width: int, height: int) -> DpiInfo:
    """Guess DPI from pixel count: <100K -> 72, <400K -> 150, <1M -> 200, else 300."""
    check_dimensions(width, height)
    n_pixels = width * height
    for upper, dpi in DPI_BANDS:
        if n_pixels < upper:
            return DpiInfo(dpi=float(dpi), estimated=True)
    return DpiInfo(dpi=float(DPI_ABOVE_BANDS), estimated=True)


def resolve_dpi(width: int, height: int, supplied: Optional[float] = None) -> DpiInfo:
    """Use the supplied DPI when there is one, otherwise estimate it."""
    if supplied is None:
        info = estimate_dpi(width, height)
        logger.info(f"No DPI supplied, estimated {info.dpi:.0f} from {width}x{height} pixels")
        return info
    return DpiInfo(dpi=float(clamp(supplied, 1.0, math.inf, name="source_dpi")), estimated=False)


def edge_map(values: np.ndarray, threshold: float) -> np.ndarray:
    """
    True where any 8-neighbour differs from the pixel by more than threshold.

    Neighbours beyond the raster border are ignored.
    """
    values = values.astype(np.float64)
    local_max = maximum_filter(values, size=3, mode="nearest")
    local_min = minimum_filter(values, size=3, mode="nearest")
    return ((local_max - values) > threshold) | ((values - local_min) > threshold)


def _source_coords(n_dst: int, n_src: int) -> np.ndarray:
    """Pixel-centre aligned source coordinate of each destination index."""
    coords = (np.arange(n_dst, dtype=np.float64) + 0.5) * (n_src / n_dst) - 0.5
    return np.clip(coords, 0.0, n_src - 1)


def upscale(
    depth: DepthRaster,
    scale_factor: float,
    edge_threshold: float = DEFAULT_EDGE_THRESHOLD
) -> DepthRaster:
    """
    Edge-aware upscale of a depth raster.

    Args:
        depth: Source raster
        scale_factor: Linear scale (>= 1, smaller values are clamped to 1)
        edge_threshold: Depth step (0-255) that marks an edge neighbourhood

    Returns:
        New raster with round(width * k) x round(height * k) pixels and
        the same physical size
    """
    scale_factor = clamp(scale_factor, 1.0, math.inf, name="scale_factor")
    dst_w = max(1, int(round(depth.width * scale_factor)))
    dst_h = max(1, int(round(depth.height * scale_factor)))

    xs = _source_coords(dst_w, depth.width)
    ys = _source_coords(dst_h, depth.height)
    grid_y, grid_x = np.meshgrid(ys, xs, indexing="ij")
    near_y = np.rint(grid_y).astype(np.intp)
    near_x = np.rint(grid_x).astype(np.intp)

    src_edges = edge_map(depth.depth, edge_threshold)
    dst_edges = src_edges[near_y, near_x]

    nearest = depth.depth[near_y, near_x]
    bilinear = map_coordinates(
        depth.depth.astype(np.float64), [grid_y, grid_x], order=1, mode="nearest"
    )
    out_depth = np.where(dst_edges, nearest, np.clip(np.rint(bilinear), 0, 255))
    out_alpha = depth.alpha[near_y, near_x]

    logger.info(
        f"Upscaled {depth.width}x{depth.height} -> {dst_w}x{dst_h} "
        f"(x{scale_factor:.3f}, {int(dst_edges.sum())} edge pixels kept sharp)"
    )
    dpi = depth.dpi * dst_w / depth.width if depth.dpi else None
    return depth.with_pixels(out_depth.astype(np.uint8), out_alpha, dpi=dpi)


def _footprints(n_dst: int, n_src: int) -> Tuple[np.ndarray, np.ndarray]:
    """[start, stop) source index range overlapped by each destination pixel."""
    idx = np.arange(n_dst, dtype=np.int64)
    start = (idx * n_src) // n_dst
    stop = -((-(idx + 1) * n_src) // n_dst)
    stop = np.maximum(stop, start + 1)
    return start, np.minimum(stop, n_src)


def _box_average(values: np.ndarray, target_w: int, target_h: int) -> np.ndarray:
    """Mean of every source pixel overlapping each destination pixel."""
    height, width = values.shape
    table = np.zeros((height + 1, width + 1), dtype=np.float64)
    table[1:, 1:] = values.astype(np.float64).cumsum(axis=0).cumsum(axis=1)

    x0, x1 = _footprints(target_w, width)
    y0, y1 = _footprints(target_h, height)
    y0 = y0[:, None]
    y1 = y1[:, None]

    sums = table[y1, x1] - table[y0, x1] - table[y1, x0] + table[y0, x0]
    counts = (y1 - y0) * (x1 - x0)
    return np.clip(np.rint(sums / counts), 0, 255)


def downsample(depth: DepthRaster, target_w: int, target_h: int) -> DepthRaster:
    """
    Box-filter a depth raster down to target_w x target_h.

    Depth and alpha are averaged independently.
    """
    check_dimensions(target_w, target_h)
    out_depth = _box_average(depth.depth, target_w, target_h)
    out_alpha = _box_average(depth.alpha, target_w, target_h)

    logger.info(f"Downsampled {depth.width}x{depth.height} -> {target_w}x{target_h}")
    dpi = depth.dpi * target_w / depth.width if depth.dpi else None
    return depth.with_pixels(out_depth.astype(np.uint8), out_alpha.astype(np.uint8), dpi=dpi)


def normalize_resolution(
    depth: DepthRaster,
    target_dpi: float,
    source_dpi: Optional[float] = None,
    max_pixels: int = DEFAULT_MAX_PIXELS,
    edge_threshold: float = DEFAULT_EDGE_THRESHOLD
) -> Tuple[DepthRaster, DpiInfo]:
    """
    Resample a depth raster to reach target_dpi at its physical size.

    Args:
        depth: Depth raster
        target_dpi: Desired pixel density (clamped to 72-1200)
        source_dpi: DPI of the raster; falls back to depth.dpi, then to
            the pixel-count estimate
        max_pixels: Output pixel budget; the scale is reduced to fit
        edge_threshold: Edge threshold for the upscale path

    Returns:
        Tuple of (resampled raster, DpiInfo of the SOURCE raster)
    """
    target_dpi = clamp(target_dpi, MIN_TARGET_DPI, MAX_TARGET_DPI, name="target_dpi")
    source = resolve_dpi(
        depth.width, depth.height, source_dpi if source_dpi is not None else depth.dpi
    )
    src = depth.with_pixels(depth.depth, depth.alpha, dpi=source.dpi)

    scale = target_dpi / source.dpi
    n_pixels = depth.width * depth.height
    if n_pixels * scale * scale > max_pixels:
        capped = math.sqrt(max_pixels / n_pixels)
        logger.warning(
            f"Scale {scale:.3f} exceeds the {max_pixels} pixel budget, using {capped:.3f}"
        )
        scale = capped

    dst_w = max(1, int(round(depth.width * scale)))
    dst_h = max(1, int(round(depth.height * scale)))

    if (dst_w, dst_h) == (depth.width, depth.height):
        logger.info(f"Raster already at {source.dpi:.0f} DPI, no resampling")
        return src, source
    if scale > 1.0:
        return upscale(src, scale, edge_threshold=edge_threshold), source
    return downsample(src, dst_w, dst_h), source
