"""
Data I/O utilities.

Decodes source images into RGBA rasters and saves depth images and
meshes with their metadata sidecar.
"""

import io
import json
import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import cairosvg
import numpy as np
import trimesh
from PIL import Image, UnidentifiedImageError

from .config import ReliefMetadata
from .errors import DecodeError
from .gltf_exporter import GLTFExporter
from .heightfield import Mesh
from .mesh_ops import from_trimesh, to_trimesh
from .raster import DepthRaster, Raster
from .stl_export import write_ascii_stl

logger = logging.getLogger(__name__)

ALPHA_MODES = ("RGBA", "LA", "PA", "RGBa", "La")

MESH_FORMATS = ("glb", "stl", "ply", "obj")

# Vector sources are drawn onto a square canvas of this many pixels
SVG_RASTER_SIZE = 512


def decode_raster(data: bytes, name: str = "raster") -> Raster:
    """
    Decode encoded image bytes (PNG, JPEG, ...) into an RGBA raster.

    Args:
        data: Encoded image
        name: Name recorded on the raster

    Returns:
        Raster; has_alpha is True when the image carries transparency
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            has_alpha = img.mode in ALPHA_MODES or "transparency" in img.info
            dpi = img.info.get("dpi")
            pixels = np.asarray(img.convert("RGBA"), dtype=np.uint8)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeError(f"Could not decode image {name}: {e}") from e

    file_dpi = None
    if dpi and float(dpi[0]) > 0:
        file_dpi = float(dpi[0])

    raster = Raster(pixels=pixels, has_alpha=has_alpha, name=name, dpi=file_dpi)
    logger.info(
        f"Decoded {name}: {raster.width}x{raster.height}px, "
        f"alpha={'yes' if has_alpha else 'no'}, dpi={file_dpi or 'unknown'}"
    )
    return raster


def rasterize_svg(data: Union[bytes, str], name: str = "raster", size: int = SVG_RASTER_SIZE) -> Raster:
    """
    Render SVG markup onto an opaque white size x size canvas.

    The result carries no transparency, so the silhouette is classified
    by luminance: bright (including the white canvas) is inside, dark
    strokes and fills are outside.

    Args:
        data: SVG document (bytes or text)
        name: Name recorded on the raster
        size: Canvas width and height in pixels

    Returns:
        Opaque raster with has_alpha False
    """
    raw = data.encode("utf-8") if isinstance(data, str) else data
    try:
        png_data = cairosvg.svg2png(
            bytestring=raw, output_width=size, output_height=size, background_color="white"
        )
    except (ValueError, SyntaxError, OSError) as e:
        raise DecodeError(f"Could not render SVG {name}: {e}") from e

    rendered = decode_raster(png_data, name=name)
    logger.info(f"Rasterized SVG {name} at {size}x{size}px on white")
    return Raster(pixels=rendered.pixels, has_alpha=False, name=name)


def load_raster(path: Union[str, Path]) -> Raster:
    """Load an image file (raster formats or .svg) as an RGBA raster."""
    path = Path(path)
    with open(path, 'rb') as f:
        data = f.read()
    if path.suffix.lower() == ".svg":
        return rasterize_svg(data, name=path.stem)
    return decode_raster(data, name=path.stem)


def save_rgba_png(rgba: np.ndarray, path: Path, dpi: Optional[float] = None) -> Path:
    """Write an (H, W, 4) uint8 array as PNG."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    kwargs = {"dpi": (dpi, dpi)} if dpi else {}
    Image.fromarray(np.ascontiguousarray(rgba, dtype=np.uint8)).save(str(path), format="PNG", **kwargs)
    logger.info(f"Saved image: {path}")
    return path


def save_depth_png(depth: DepthRaster, path: Path) -> Path:
    """Write a depth raster as RGBA PNG (R=G=B=depth, A=visibility)."""
    return save_rgba_png(depth.to_rgba(), path, dpi=depth.dpi)


def save_mesh(
    mesh: Mesh,
    path: Path,
    metadata: Optional[ReliefMetadata] = None
) -> Path:
    """
    Save mesh with a JSON metadata sidecar.

    The format follows the suffix: .glb (GLTFExporter), .stl (ASCII
    triangle soup), .ply / .obj (trimesh).

    Args:
        mesh: Relief mesh
        path: Output path
        metadata: ReliefMetadata (saved as .json sidecar)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fmt = path.suffix.lower().lstrip(".")

    if fmt == "glb":
        GLTFExporter().export(mesh, path, metadata.to_dict() if metadata else None)
    elif fmt == "stl":
        write_ascii_stl(mesh, path, name=metadata.source_name if metadata else "generated_model")
    elif fmt in MESH_FORMATS:
        to_trimesh(mesh).export(str(path), file_type=fmt)
        logger.info(f"Saved mesh: {path} ({mesh.n_vertices} verts, {mesh.n_faces} tris)")
    else:
        raise ValueError(f"Unsupported mesh format '{path.suffix}', expected one of {MESH_FORMATS}")

    if metadata is not None:
        meta_path = path.with_suffix('.json')
        metadata.save(meta_path)
        logger.info(f"Saved metadata: {meta_path}")

    return path


def load_mesh(path: Path) -> Tuple[Mesh, Optional[ReliefMetadata]]:
    """
    Load mesh and its metadata sidecar.

    Args:
        path: Path to mesh file

    Returns:
        Tuple of (mesh, metadata) - metadata may be None if not found
    """
    path = Path(path)
    tm = trimesh.load(str(path), force="mesh", process=False)
    mesh = from_trimesh(tm)

    meta_path = path.with_suffix('.json')
    metadata = None
    if meta_path.exists():
        with open(meta_path) as f:
            metadata = ReliefMetadata.from_dict(json.load(f))

    return mesh, metadata
