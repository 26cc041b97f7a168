"""
Raster types shared by every pipeline stage.

All rasters are row-major with the origin at the top-left pixel, stored
as numpy arrays indexed [row, column]. Each stage produces new arrays;
no stage writes into another stage's buffer.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from .errors import DecodeError, InvalidDimensionsError


MM_PER_INCH = 25.4


def check_dimensions(width: int, height: int) -> None:
    """Raise InvalidDimensionsError unless both sides are positive."""
    if width <= 0 or height <= 0:
        raise InvalidDimensionsError(
            f"Raster dimensions must be positive, got {width}x{height}"
        )


@dataclass
class Raster:
    """
    Source image as an RGBA byte raster.

    has_alpha tells the contour extractor whether the alpha channel is
    meaningful (PNG with transparency) or whether the image is opaque
    and must be classified by luminance instead.
    """
    pixels: np.ndarray  # (H, W, 4) uint8
    has_alpha: bool = True
    name: str = "raster"
    dpi: Optional[float] = None  # DPI recorded in the source file, if any

    def __post_init__(self):
        pixels = np.asarray(self.pixels)
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise DecodeError(f"Expected (H, W, 4) RGBA pixels, got shape {pixels.shape}")
        check_dimensions(pixels.shape[1], pixels.shape[0])
        if pixels.dtype != np.uint8 and (pixels.min() < 0 or pixels.max() > 255):
            raise DecodeError(
                f"RGBA values must lie in 0-255, got {pixels.min()}..{pixels.max()}"
            )
        # Own the buffer; callers may keep mutating the array they passed in
        self.pixels = np.array(pixels, dtype=np.uint8, copy=True)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def shape(self) -> Tuple[int, int]:
        """(height, width)"""
        return self.pixels.shape[:2]

    @property
    def n_pixels(self) -> int:
        return self.width * self.height

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[:, :, 3]

    @classmethod
    def from_rgba_bytes(
        cls,
        width: int,
        height: int,
        data: bytes,
        has_alpha: bool = True,
        name: str = "raster"
    ) -> "Raster":
        """
        Build a raster from a raw row-major RGBA byte buffer.

        The buffer is copied so the raster owns its pixels.
        """
        check_dimensions(width, height)
        expected = width * height * 4
        if len(data) != expected:
            raise DecodeError(
                f"RGBA buffer has {len(data)} bytes, expected {expected} for {width}x{height}"
            )
        pixels = np.frombuffer(bytes(data), dtype=np.uint8).reshape(height, width, 4)
        return cls(pixels=pixels, has_alpha=has_alpha, name=name)


@dataclass
class DepthRaster:
    """
    Single-channel relief height raster plus a visibility channel.

    The physical size is carried separately from the pixel size: DPI
    normalisation changes the pixel grid but never the physical
    footprint the mesh builder maps onto.
    """
    depth: np.ndarray  # (H, W) uint8, 0-255
    alpha: np.ndarray  # (H, W) uint8, 0 = background
    physical_width_mm: float
    physical_height_mm: float
    dpi: Optional[float] = None

    def __post_init__(self):
        depth = np.asarray(self.depth)
        alpha = np.asarray(self.alpha)
        if depth.ndim != 2:
            raise InvalidDimensionsError(f"Depth raster must be 2D, got shape {depth.shape}")
        if depth.shape != alpha.shape:
            raise InvalidDimensionsError(
                f"Depth {depth.shape} and alpha {alpha.shape} shapes differ"
            )
        check_dimensions(depth.shape[1], depth.shape[0])
        self.depth = np.clip(depth, 0, 255).astype(np.uint8, copy=False)
        self.alpha = np.clip(alpha, 0, 255).astype(np.uint8, copy=False)

    @property
    def width(self) -> int:
        return self.depth.shape[1]

    @property
    def height(self) -> int:
        return self.depth.shape[0]

    @property
    def shape(self) -> Tuple[int, int]:
        return self.depth.shape

    @property
    def physical_size_mm(self) -> Tuple[float, float]:
        return (self.physical_width_mm, self.physical_height_mm)

    def with_pixels(self, depth: np.ndarray, alpha: np.ndarray, dpi: Optional[float] = None) -> "DepthRaster":
        """New raster with different pixels but the same physical footprint."""
        return DepthRaster(
            depth=depth,
            alpha=alpha,
            physical_width_mm=self.physical_width_mm,
            physical_height_mm=self.physical_height_mm,
            dpi=self.dpi if dpi is None else dpi,
        )

    def to_rgba(self) -> np.ndarray:
        """(H, W, 4) image with R=G=B=depth and A=visibility."""
        return np.dstack([self.depth, self.depth, self.depth, self.alpha])

    def size_dict(self) -> Dict[str, int]:
        return {"width": self.width, "height": self.height}


def physical_size_mm(width: int, height: int, dpi: float) -> Tuple[float, float]:
    """Physical footprint in mm of a width x height pixel grid at dpi."""
    return (width / dpi * MM_PER_INCH, height / dpi * MM_PER_INCH)
