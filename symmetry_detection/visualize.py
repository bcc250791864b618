"""Visualization helpers for symmetry detection results.

This script renders a point cloud together with patches of the detected
reflection planes so that the symmetries can be inspected in the frame of
the input cloud.

Example
-------
.. code-block:: bash

	MPLBACKEND=Agg python3 -m symmetry_detection.visualize \
		scene/object.ply \
		scene/symmetries.json \
		--output scene/symmetries.png

"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
from mpl_toolkits.mplot3d.art3d import Poly3DCollection

from .cloud import load_point_cloud
from .geometry import as_symmetry, plane_patch_vertices


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		description="Visualise reflectional symmetry planes over a point cloud",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,
	)
	parser.add_argument("point_cloud", type=Path, help="Path to the input point cloud (.ply)")
	parser.add_argument("detection", type=Path, help="JSON file produced by the detection CLI")
	parser.add_argument(
		"--output",
		type=Path,
		help="Optional path to save the rendered figure instead of showing it",
	)
	parser.add_argument(
		"--max-points",
		type=int,
		default=60000,
		help="Randomly subsample to this many points for plotting (0 disables)",
	)
	parser.add_argument(
		"--patch-scale",
		type=float,
		default=0.6,
		help="Half-size of each plane patch relative to the cloud's largest extent",
	)
	parser.add_argument(
		"--point-size",
		type=float,
		default=1.0,
		help="Scatter point size for matplotlib",
	)
	parser.add_argument(
		"--seed",
		type=int,
		default=None,
		help="Random seed used for plot subsampling",
	)
	return parser


def main(argv: Optional[list[str]] = None) -> int:
	parser = build_parser()
	args = parser.parse_args(argv)

	if not args.point_cloud.exists():
		parser.error(f"Point cloud file '{args.point_cloud}' does not exist")

	if not args.detection.exists():
		parser.error(f"Detection file '{args.detection}' does not exist")

	points = load_point_cloud(args.point_cloud).points

	with open(args.detection, "r", encoding="utf8") as fp:
		detection_raw = json.load(fp)

	detections = detection_raw if isinstance(detection_raw, list) else [detection_raw]
	if not detections:
		parser.error("Detection JSON contains no entries")

	required_keys = {"normal", "offset"}
	for idx, det in enumerate(detections):
		missing_keys = required_keys - det.keys()
		if missing_keys:
			parser.error(
				f"Detection JSON entry {idx} missing required keys: {sorted(missing_keys)}"
			)

	centroid = points.mean(axis=0) if points.shape[0] else np.zeros(3)
	half_extent = args.patch_scale * float(np.max(np.ptp(points, axis=0))) if points.shape[0] else 1.0

	rng = np.random.default_rng(args.seed)
	if args.max_points and points.shape[0] > args.max_points:
		idx = rng.choice(points.shape[0], size=args.max_points, replace=False)
		points = points[idx]

	fig = plt.figure(figsize=(10, 10))
	ax = fig.add_subplot(111, projection="3d")

	plot_point_cloud(ax, points, args.point_size)
	palette = [
		"#1a237e",
		"#c62828",
		"#2e7d32",
		"#6a1b9a",
		"#ff8f00",
	]

	for idx, det in enumerate(detections):
		colour = palette[idx % len(palette)]
		center = det.get("reference_point", centroid)
		plot_plane(ax, det, center, colour, half_extent=half_extent, alpha=0.18)
		plot_reference_point(ax, det, center, colour, label=f"Symmetry {det.get('id', idx)}")

	configure_axes(ax, points)
	fig.tight_layout()

	if args.output:
		args.output.parent.mkdir(parents=True, exist_ok=True)
		fig.savefig(args.output, dpi=200)
		plt.close(fig)
	else:
		plt.show()

	return 0


def plot_point_cloud(ax, points: np.ndarray, point_size: float) -> None:
	ax.scatter(
		points[:, 0],
		points[:, 1],
		points[:, 2],
		s=point_size,
		c="#7a7a7a",
		alpha=0.35,
		linewidths=0,
	)


def plot_plane(ax, detection: dict, center, color: str, *, half_extent: float, alpha: float = 0.15) -> None:
	vertices = plane_patch_vertices(detection, center, half_extent)

	poly = Poly3DCollection([list(vertices)], alpha=alpha, linewidths=1.0)
	poly.set_facecolor(color)
	poly.set_edgecolor(color)
	ax.add_collection3d(poly)


def plot_reference_point(ax, detection: dict, center, color: str, label: Optional[str] = None) -> None:
	anchor = as_symmetry(detection).project_point(np.asarray(center, dtype=np.float64))
	ax.scatter([anchor[0]], [anchor[1]], [anchor[2]], s=40.0, c=color, marker="x", label=label)


def configure_axes(ax, points: np.ndarray) -> None:
	ax.set_xlabel("X")
	ax.set_ylabel("Y")
	ax.set_zlabel("Z")
	if points.shape[0]:
		extents = np.maximum(np.ptp(points, axis=0), 1e-6)
		ax.set_box_aspect(tuple(float(v) for v in extents))
	ax.view_init(elev=20.0, azim=-60.0)
	ax.grid(False)
	ax.legend(loc="upper right")


if __name__ == "__main__":  # pragma: no cover
	raise SystemExit(main())
