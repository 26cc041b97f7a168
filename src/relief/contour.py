"""
Silhouette extraction.

A raster with transparency is classified by alpha (inside iff
alpha > 32). An opaque raster is classified by luminance
(0.299 R + 0.587 G + 0.114 B > threshold).
"""

import logging

import numpy as np

from .config import ALPHA_INSIDE_THRESHOLD, DEFAULT_LUMINANCE_THRESHOLD, clamp
from .raster import Raster

logger = logging.getLogger(__name__)

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


def luminance(pixels: np.ndarray) -> np.ndarray:
    """Rec. 601 luma of an (H, W, 3+) byte image."""
    return pixels[:, :, :3].astype(np.float64) @ LUMA_WEIGHTS


def extract(raster: Raster, threshold: float = DEFAULT_LUMINANCE_THRESHOLD) -> np.ndarray:
    """
    Classify every pixel as inside (True) or outside (False).

    Args:
        raster: Source raster
        threshold: Luminance threshold, used only when the raster has no alpha

    Returns:
        (H, W) boolean silhouette mask
    """
    if raster.has_alpha:
        mask = raster.alpha > ALPHA_INSIDE_THRESHOLD
    else:
        threshold = clamp(threshold, 0, 255, name="luminance_threshold")
        mask = luminance(raster.pixels) > threshold

    logger.info(
        f"Contour extracted ({'alpha' if raster.has_alpha else 'luminance'}): "
        f"{int(mask.sum())}/{mask.size} pixels inside"
    )
    return mask


def contour_image(mask: np.ndarray) -> np.ndarray:
    """
    Render a mask as an RGBA preview.

    Inside pixels are opaque white, outside pixels transparent black.
    """
    value = np.where(mask, 255, 0).astype(np.uint8)
    return np.dstack([value, value, value, value])
