#!/usr/bin/env python3
"""
Silhouette Relief - Orchestrator

Turn silhouette images into relief meshes.

Usage:
    relief-run logo.png --edge-type rounded --edge-width 12 --format stl
    relief-run images/ --config relief.json --target-dpi 300 --smooth 0.5
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from . import contour
from .config import EdgeType, Quality, ReliefConfig
from .io import MESH_FORMATS, load_raster, save_depth_png, save_mesh, save_rgba_png
from .mesh_ops import compute_mesh_stats
from .pipeline import build_relief

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".bmp", ".gif", ".tif", ".tiff", ".webp", ".svg")


def find_input_files(inputs: List[Path]) -> List[Path]:
    """
    Expand the command-line inputs.

    Files are taken as given; directories contribute their images
    (sorted, non-recursive).
    """
    files = []
    for path in inputs:
        if path.is_dir():
            files.extend(sorted(
                p for p in path.iterdir()
                if p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES
            ))
        else:
            files.append(path)

    logger.info(f"Found {len(files)} input images")
    return files


def process_file(
    image_path: Path,
    config: ReliefConfig,
    output_dir: Path,
    mesh_format: str = "glb"
) -> dict:
    """Run the pipeline on one image and write its outputs."""
    raster = load_raster(image_path)
    result = build_relief(raster, config)
    name = raster.name

    depth_path = save_depth_png(result.depth, output_dir / f"{name}_depth.png")
    contour_path = save_rgba_png(
        contour.contour_image(contour.extract(raster, config.luminance_threshold)),
        output_dir / f"{name}_contour.png",
    )
    mesh_path = save_mesh(result.mesh, output_dir / f"{name}.{mesh_format}", result.metadata)

    return {
        "metadata": result.metadata.to_dict(),
        "mesh_stats": compute_mesh_stats(result.mesh),
        "outputs": {
            "depth": str(depth_path),
            "contour": str(contour_path),
            "mesh": str(mesh_path),
        },
    }


def run_all(
    image_files: List[Path],
    config: ReliefConfig,
    output_dir: Path,
    mesh_format: str = "glb"
) -> dict:
    """
    Process every image, recording failures instead of stopping.

    Args:
        image_files: Images to process
        config: Configuration
        output_dir: Output directory
        mesh_format: One of glb, stl, ply, obj

    Returns:
        Summary dictionary
    """
    summary = {
        "timestamp": datetime.now().isoformat(),
        "config": config.to_dict(),
        "format": mesh_format,
        "inputs": [],
        "errors": []
    }

    for image_file in image_files:
        logger.info(f"\n{'='*60}")
        logger.info(f"Processing: {image_file.name}")
        logger.info(f"{'='*60}")

        entry = {"input": str(image_file)}
        try:
            entry.update(process_file(image_file, config, output_dir, mesh_format))
            entry["status"] = "success"
        except Exception as e:
            logger.error(f"Failed to process {image_file.name}: {e}")
            entry["status"] = "error"
            entry["error"] = str(e)
            summary["errors"].append({
                "input": str(image_file),
                "error_type": type(e).__name__,
                "error": str(e)
            })

        summary["inputs"].append(entry)

    return summary


def build_config(args: argparse.Namespace) -> ReliefConfig:
    """Config file (if any) overridden by explicit command-line flags."""
    config = ReliefConfig.from_json(args.config) if args.config else ReliefConfig()

    if args.edge_type is not None:
        config.edge_type = EdgeType(args.edge_type)
    if args.edge_width is not None:
        config.edge_width = args.edge_width
    if args.chamfer_angle is not None:
        config.chamfer_angle = args.chamfer_angle
    if args.model_height is not None:
        config.model_height = args.model_height
    if args.quality is not None:
        config.quality = Quality(args.quality)
    if args.dpi is not None:
        config.source_dpi = args.dpi
    if args.target_dpi is not None:
        config.enable_dpi_optimization = True
        config.target_dpi = args.target_dpi
    if args.smooth is not None:
        config.enable_smoothing = True
        config.smoothing_strength = args.smooth
    config.output_dir = args.output
    return config


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Silhouette Relief - Turn silhouette images into relief meshes"
    )
    parser.add_argument(
        "inputs",
        nargs="+",
        type=Path,
        help="Image files or directories of images"
    )
    parser.add_argument(
        "--output", "-o",
        type=Path,
        default=Path("outputs"),
        help="Output directory"
    )
    parser.add_argument(
        "--edge-type", "-e",
        choices=[t.value for t in EdgeType],
        default=None,
        help="Edge profile (default: vertical)"
    )
    parser.add_argument(
        "--edge-width", "-w",
        type=float,
        default=None,
        help="Edge band width in pixels"
    )
    parser.add_argument(
        "--chamfer-angle",
        type=float,
        default=None,
        help="Chamfer angle in degrees, 0-90 exclusive"
    )
    parser.add_argument(
        "--model-height",
        type=float,
        default=None,
        help="Relief height"
    )
    parser.add_argument(
        "--quality", "-q",
        choices=[q.value for q in Quality],
        default=None,
        help="Mesh sampling tier (default: high)"
    )
    parser.add_argument(
        "--dpi",
        type=float,
        default=None,
        help="Source DPI (overrides file metadata and the estimate)"
    )
    parser.add_argument(
        "--target-dpi",
        type=float,
        default=None,
        help="Resample the depth raster to this DPI"
    )
    parser.add_argument(
        "--smooth",
        type=float,
        default=None,
        metavar="STRENGTH",
        help="Edge-aware smoothing strength, 0-1"
    )
    parser.add_argument(
        "--format", "-f",
        choices=list(MESH_FORMATS),
        default="glb",
        help="Mesh format"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="JSON config file"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None):
    args = parse_args(argv)

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    config = build_config(args)

    image_files = find_input_files(args.inputs)
    if not image_files:
        logger.error("No input images found!")
        sys.exit(1)

    logger.info(f"Processing {len(image_files)} images")
    logger.info(f"Edge: {config.edge_type.value}, quality: {config.quality.value}")
    logger.info(f"Output: {args.output}")

    summary = run_all(
        image_files=image_files,
        config=config,
        output_dir=args.output,
        mesh_format=args.format
    )

    # Save summary
    summary_path = args.output / "run_summary.json"
    summary_path.parent.mkdir(parents=True, exist_ok=True)
    with open(summary_path, 'w') as f:
        json.dump(summary, f, indent=2)

    logger.info(f"\nSummary saved to: {summary_path}")

    n_success = sum(1 for entry in summary["inputs"] if entry["status"] == "success")
    n_errors = len(summary["errors"])

    logger.info(f"\n{'='*60}")
    logger.info(f"COMPLETE: {n_success} successful, {n_errors} errors")
    logger.info(f"{'='*60}")

    if n_errors > 0:
        sys.exit(1)


if __name__ == "__main__":
    main()
