"""Command-line interface for reflectional symmetry detection."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict

from .cloud import load_point_cloud
from .detect import ReflectionalSymmetryDetection
from .errors import InvalidParameterError
from .occupancy import VoxelOccupancyMap
from .params import ANGLE_FIELDS, DetectionParams

PARAM_HELP = {
    "voxel_size": "Downsampling voxel size (0 disables)",
    "num_angle_divisions": "Hemisphere divisions for initial plane normals",
    "flatness_threshold": "Minimum cloud extent along a candidate normal",
    "refine_iterations": "Refinement rounds per hypothesis",
    "max_refine_correspondence_distance": "Reflected distance beyond which correspondences are ignored by refinement",
    "max_correspondence_reflected_distance": "Inlier distance for reflected correspondences",
    "min_occlusion_distance": "Distance from observed surface where occlusion penalties start",
    "max_occlusion_distance": "Distance from observed surface where occlusion penalties saturate",
    "min_inlier_normal_angle": "Normal disagreement (degrees) below which matches weigh fully",
    "max_inlier_normal_angle": "Normal disagreement (degrees) above which matches are rejected",
    "max_occlusion_score": "Maximum occlusion score of a kept symmetry",
    "min_cloud_inlier_score": "Minimum cloud inlier score of a kept symmetry",
    "min_corresp_inlier_score": "Minimum correspondence inlier score of a kept symmetry",
    "symmetry_min_angle_diff": "Normal angle (degrees) under which symmetries are merged",
    "symmetry_min_distance_diff": "Offset difference under which symmetries are merged",
    "max_reference_point_distance": "Reference point distance limit for merging (negative disables)",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Detect reflectional symmetry planes in a point cloud")
    parser.add_argument("point_cloud", type=Path, help="Path to the input point cloud (.ply with normals)")
    parser.add_argument(
        "--output-json",
        type=Path,
        help="Optional path to write the detected symmetries as JSON",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="JSON file of detection parameters (angles in degrees); flags take precedence",
    )
    parser.add_argument(
        "--occupancy-resolution",
        type=float,
        default=0.01,
        help="Voxel size of the occupancy map built from the input cloud",
    )
    parser.add_argument(
        "--viewpoint",
        type=float,
        nargs=3,
        metavar=("X", "Y", "Z"),
        help="Sensor position used to carve free space in the occupancy map",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Report every refined symmetry instead of the merged ones",
    )
    parser.add_argument("--progress", action="store_true", help="Show a progress bar during refinement")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    group = parser.add_argument_group("detection parameters")
    defaults = DetectionParams()
    for field in fields(DetectionParams):
        value_type = int if field.name in ("num_angle_divisions", "refine_iterations") else float
        flag = "--" + field.name.replace("_", "-")
        default = getattr(defaults, field.name)
        if field.name in ANGLE_FIELDS:
            default = round(defaults.to_dict(degrees=True)[field.name], 6)
        group.add_argument(
            flag,
            dest=field.name,
            type=value_type,
            default=None,
            help=f"{PARAM_HELP[field.name]} (default: {default})",
        )
    return parser


def params_from_args(args: argparse.Namespace) -> DetectionParams:
    values: Dict[str, Any] = {}
    if args.config is not None:
        with open(args.config, "r", encoding="utf8") as fp:
            values.update(json.load(fp))

    for field in fields(DetectionParams):
        flag_value = getattr(args, field.name)
        if flag_value is not None:
            values[field.name] = flag_value

    return DetectionParams.from_dict(values, degrees=True)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    point_cloud_path: Path = args.point_cloud
    if not point_cloud_path.exists():
        parser.error(f"Point cloud file '{point_cloud_path}' does not exist")
    if args.config is not None and not args.config.exists():
        parser.error(f"Config file '{args.config}' does not exist")

    try:
        params = params_from_args(args)
    except InvalidParameterError as exc:
        parser.error(str(exc))

    cloud = load_point_cloud(point_cloud_path)
    occupancy_map = VoxelOccupancyMap.from_points(
        cloud.points,
        args.occupancy_resolution,
        viewpoint=args.viewpoint,
        margin=params.max_occlusion_distance,
    )

    detector = ReflectionalSymmetryDetection(params)
    detector.set_input_cloud(cloud)
    detector.set_input_occupancy_map(occupancy_map)
    if not detector.detect(progress=args.progress):
        print("No symmetry hypotheses could be generated", file=sys.stderr)
        return 1
    detector.filter()
    detector.merge()

    state = detector.state
    payload = state.to_dicts(None if args.all else state.merged_ids)
    if not payload:
        print("No symmetries detected", file=sys.stderr)
        return 1

    if args.output_json is not None:
        with open(args.output_json, "w", encoding="utf8") as fp:
            json.dump(payload, fp, indent=2)

    json.dump(payload, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
