#!/usr/bin/env python3
"""
meshnormals command line

Loads a mesh, recomputes its vertex normals and prints normals diagnostics.
Optionally writes the mesh with the new normals, the raw normal array and
the normal display segments.
"""

import sys
import logging
import argparse
from pathlib import Path
from typing import Optional, List

from meshnormals.config import NormalsConfig
from meshnormals.mesh_loader import load_mesh_file, apply_normals, save_normals
from meshnormals.normals_analysis import analyze_normals, build_normal_segments, save_segments
from meshnormals.normals_calculator import InvalidInputError, NormalCalculationMode
from meshnormals.position_grouping import GROUPING_STRATEGIES

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

# Silence noisy third-party loggers
logging.getLogger('trimesh').setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="meshnormals",
        description="Recalculate weighted vertex normals of a triangle mesh"
    )
    parser.add_argument("mesh", help="Input mesh file (stl, obj, ply, off, glb, gltf)")
    parser.add_argument("--config", type=Path, help="JSON config file; flags override it")
    parser.add_argument("--mode", choices=[m.value for m in NormalCalculationMode],
                        help="Weighting mode")
    parser.add_argument("--smoothing-angle", type=float,
                        help="Hard-edge threshold in degrees")
    parser.add_argument("--grouping", choices=sorted(GROUPING_STRATEGIES),
                        help="Position equality strategy")
    parser.add_argument("--grid-decimals", type=int, help="Decimals for grid grouping")
    parser.add_argument("--tolerance", type=float, help="Merge distance for tolerance grouping")
    parser.add_argument("--output", type=Path, help="Write the mesh with recomputed normals")
    parser.add_argument("--normals-out", type=Path, help="Write normals (.npy, .csv, .txt)")
    parser.add_argument("--segments-out", type=Path, help="Write normal display segments")
    parser.add_argument("--normals-length", type=float, help="Display segment length")
    parser.add_argument("--only-split", action="store_true", default=None,
                        help="Only emit segments for split vertices")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def resolve_config(args: argparse.Namespace) -> NormalsConfig:
    """Merge the optional JSON config with command line overrides."""
    config = NormalsConfig.from_json(args.config) if args.config else NormalsConfig()

    overrides = {
        "mode": args.mode,
        "smoothing_angle": args.smoothing_angle,
        "grouping": args.grouping,
        "grid_decimals": args.grid_decimals,
        "merge_tolerance": args.tolerance,
        "normals_length": args.normals_length,
        "show_only_split_vertices": args.only_split,
    }
    data = config.to_dict()
    data.update({k: v for k, v in overrides.items() if v is not None})
    return NormalsConfig.from_dict(data)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = resolve_config(args)
        calculator = config.make_calculator()
    except (OSError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    logger.info(f"Using {calculator}")

    result = load_mesh_file(args.mesh)
    if not result.success:
        logger.error(f"Could not load mesh: {result.error_message}")
        return 1

    mesh = result.mesh
    try:
        normals = calculator.calculate_for_mesh(mesh)
    except InvalidInputError as e:
        logger.error(f"Invalid mesh data: {e}")
        return 1

    diagnostics = analyze_normals(mesh.vertices, mesh.faces, normals, calculator.grouping)
    print(diagnostics.format())

    if args.normals_out:
        save_normals(args.normals_out, normals)

    if args.segments_out:
        segments = build_normal_segments(
            mesh.vertices,
            normals,
            length=config.normals_length,
            only_split=config.show_only_split_vertices,
            grouping=calculator.grouping,
        )
        save_segments(args.segments_out, segments)

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        apply_normals(mesh, normals).export(str(args.output))
        logger.info(f"Wrote mesh with recomputed normals to {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
