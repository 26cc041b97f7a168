"""
Silhouette relief generation.

Pipeline (each stage produces new arrays, nothing is shared):
- RGBA raster -> silhouette mask (alpha > 32, or luminance when opaque)
- mask -> capped chamfer distance field (-1 outside, 0 on the edge)
- distance field -> depth raster (vertical / rounded / chamfered profile)
- optional DPI normalisation and edge-aware smoothing
- depth raster -> heightfield mesh with per-vertex normals
"""

__version__ = "1.0.0"

from .config import EdgeType, Quality, EdgeParameters, ReliefConfig, ReliefMetadata
from .errors import ReliefError, DecodeError, InvalidDimensionsError, InvalidParameterError
from .raster import Raster, DepthRaster
from .heightfield import Mesh
from .io import decode_raster, load_raster, save_depth_png, save_mesh, load_mesh
from .pipeline import ReliefResult, compute_depth_raster, build_relief
from .stl_export import mesh_to_ascii_stl, write_ascii_stl

__all__ = [
    'EdgeType', 'Quality', 'EdgeParameters', 'ReliefConfig', 'ReliefMetadata',
    'ReliefError', 'DecodeError', 'InvalidDimensionsError', 'InvalidParameterError',
    'Raster', 'DepthRaster',
    'Mesh',
    'decode_raster', 'load_raster', 'save_depth_png', 'save_mesh', 'load_mesh',
    'ReliefResult', 'compute_depth_raster', 'build_relief',
    'mesh_to_ascii_stl', 'write_ascii_stl',
]
