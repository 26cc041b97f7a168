"""
Configuration and constants for relief generation.

Parameter policy:
- Edge parameters (edge_width, chamfer_angle) are REJECTED when out of
  domain - clamping them would hide a caller bug.
- Continuous tuning parameters (smoothing strength, target DPI, model
  height, luminance threshold) are CLAMPED to their nearest valid bound.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
import json
import logging
import math
from pathlib import Path

from .errors import InvalidParameterError

logger = logging.getLogger(__name__)

# Alpha above this (out of 255) counts as inside
ALPHA_INSIDE_THRESHOLD = 32

DEFAULT_LUMINANCE_THRESHOLD = 128

# World-space constants used by the mesh builder
PHYSICAL_SCALE = 10.0
HEIGHT_SCALE = 0.05

MIN_SMOOTHING_STRENGTH = 0.01
MAX_SMOOTHING_STRENGTH = 1.0
MIN_TARGET_DPI = 72
MAX_TARGET_DPI = 1200


class EdgeType(Enum):
    """
    Edge style of the relief.

    VERTICAL: binary plateau, the distance field is not needed
    ROUNDED: concave quarter-circle fillet across the edge band
    CHAMFERED: linear bevel whose slope follows chamfer_angle
    """
    VERTICAL = "vertical"
    ROUNDED = "rounded"
    CHAMFERED = "chamfered"


class Quality(Enum):
    """Mesh quality tier. Each tier maps to a sampling step in pixels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    ULTRA = "ultra"

    @property
    def sampling_step(self) -> int:
        return SAMPLING_STEPS[self]


SAMPLING_STEPS = {
    Quality.LOW: 8,
    Quality.MEDIUM: 4,
    Quality.HIGH: 2,
    Quality.ULTRA: 1,
}

VALID_SAMPLING_STEPS = tuple(sorted(SAMPLING_STEPS.values()))


def clamp(value: float, low: float, high: float, name: str = "value") -> float:
    """
    Clamp a tunable parameter, logging when the caller's value changes.

    NaN has no place in any range and is rejected rather than clamped.
    """
    if math.isnan(value):
        raise InvalidParameterError(f"{name} must be a number, got NaN")
    clamped = min(max(value, low), high)
    if clamped != value:
        logger.warning(f"{name}={value} out of range, clamped to {clamped}")
    return clamped


@dataclass(frozen=True)
class EdgeParameters:
    """
    Edge shaping parameters.

    edge_width is in pixels (> 0). chamfer_angle is in degrees and must
    lie in the open interval (0, 90); it is only checked for the
    chamfered style.
    """
    edge_type: EdgeType = EdgeType.VERTICAL
    edge_width: float = 20.0
    chamfer_angle: float = 45.0

    def validate(self) -> "EdgeParameters":
        if not isinstance(self.edge_type, EdgeType):
            raise InvalidParameterError(f"Unknown edge type: {self.edge_type!r}")
        if not math.isfinite(self.edge_width) or self.edge_width <= 0:
            raise InvalidParameterError(
                f"edge_width must be > 0, got {self.edge_width}"
            )
        if self.edge_type is EdgeType.CHAMFERED:
            if not (0.0 < self.chamfer_angle < 90.0):
                raise InvalidParameterError(
                    f"chamfer_angle must be in (0, 90) degrees, got {self.chamfer_angle}"
                )
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "edge_type": self.edge_type.value,
            "edge_width": self.edge_width,
            "chamfer_angle": self.chamfer_angle,
        }


@dataclass
class ReliefMetadata:
    """
    Metadata written next to every exported relief.

    Keeps the estimated/supplied distinction for DPI explicit: an
    estimated DPI is a pixel-count heuristic, not a measurement.
    """
    source_name: str
    source_size_px: Dict[str, int]
    output_size_px: Dict[str, int]
    physical_size_mm: Dict[str, float]
    dpi: float
    dpi_estimated: bool
    grid_size: Dict[str, int]
    sampling_step: int
    n_vertices: int
    n_triangles: int
    generation_params: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_name": self.source_name,
            "source_size_px": self.source_size_px,
            "output_size_px": self.output_size_px,
            "physical_size_mm": self.physical_size_mm,
            "dpi": self.dpi,
            "dpi_estimated": self.dpi_estimated,
            "grid_size": self.grid_size,
            "sampling_step": self.sampling_step,
            "n_vertices": self.n_vertices,
            "n_triangles": self.n_triangles,
            "generation_params": self.generation_params,
        }

    def save(self, path: Path) -> None:
        """Save metadata to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReliefMetadata":
        return cls(**data)


@dataclass
class ReliefConfig:
    """
    Global configuration for one relief run.

    Defaults follow the interactive tool: vertical edges, 20 px edge
    band, 45 degree chamfer, 1.5 mm model height, high quality mesh.
    """

    # Edge shaping
    edge_type: EdgeType = EdgeType.VERTICAL
    edge_width: float = 20.0
    chamfer_angle: float = 45.0

    # Contour extraction (used only for rasters without alpha)
    luminance_threshold: float = DEFAULT_LUMINANCE_THRESHOLD

    # Physical height of the relief in mm
    model_height: float = 1.5

    # DPI normalisation
    enable_dpi_optimization: bool = False
    target_dpi: float = 300.0
    source_dpi: Optional[float] = None  # None -> estimate from pixel count

    # Edge-aware smoothing
    enable_smoothing: bool = False
    smoothing_strength: float = 0.6

    # Mesh sampling tier
    quality: Quality = Quality.HIGH

    output_dir: Path = field(default_factory=lambda: Path("outputs"))

    @property
    def edge_parameters(self) -> EdgeParameters:
        return EdgeParameters(
            edge_type=self.edge_type,
            edge_width=self.edge_width,
            chamfer_angle=self.chamfer_angle,
        )

    @property
    def sampling_step(self) -> int:
        return self.quality.sampling_step

    def to_dict(self) -> Dict[str, Any]:
        return {
            "edge_type": self.edge_type.value,
            "edge_width": self.edge_width,
            "chamfer_angle": self.chamfer_angle,
            "luminance_threshold": self.luminance_threshold,
            "model_height": self.model_height,
            "enable_dpi_optimization": self.enable_dpi_optimization,
            "target_dpi": self.target_dpi,
            "source_dpi": self.source_dpi,
            "enable_smoothing": self.enable_smoothing,
            "smoothing_strength": self.smoothing_strength,
            "quality": self.quality.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReliefConfig":
        data = dict(data)
        try:
            if "edge_type" in data:
                data["edge_type"] = EdgeType(data["edge_type"])
            if "quality" in data:
                data["quality"] = Quality(data["quality"])
        except ValueError as e:
            raise InvalidParameterError(str(e)) from e
        if "output_dir" in data:
            data["output_dir"] = Path(data["output_dir"])
        return cls(**data)

    @classmethod
    def from_json(cls, path: Path) -> "ReliefConfig":
        """Load config from JSON file."""
        with open(path) as f:
            data = json.load(f)
        return cls.from_dict(data)

    def save(self, path: Path) -> None:
        """Save config to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


# Global default config
DEFAULT_CONFIG = ReliefConfig()
