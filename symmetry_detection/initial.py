"""Initial reflectional symmetry hypotheses."""

from __future__ import annotations

import logging
import math
from typing import List

import numpy as np

from .symmetry import ReflectionalSymmetry

logger = logging.getLogger(__name__)


def hemisphere_directions(num_angle_divisions: int) -> np.ndarray:
    """Return unit directions covering the upper hemisphere.

    The pole ``(0, 0, 1)`` is followed by ``num_angle_divisions - 1`` rings of
    constant polar angle and finally the equator. Ring sizes grow with the
    ring circumference so the directions are roughly evenly spread. The
    equator only spans ``[0, pi)`` because a plane normal and its negation
    describe the same plane.
    """

    if num_angle_divisions < 1:
        raise ValueError("num_angle_divisions must be at least 1")

    n = int(num_angle_divisions)
    directions = [np.array([0.0, 0.0, 1.0])]

    for ring in range(1, n + 1):
        theta = ring * (math.pi / 2.0) / n
        if ring == n:
            phis = np.arange(2 * n) * (math.pi / (2 * n))
            theta = math.pi / 2.0
        else:
            count = max(1, int(round(4 * n * math.sin(theta))))
            phis = np.arange(count) * (2.0 * math.pi / count)

        ring_dirs = np.stack(
            [
                math.sin(theta) * np.cos(phis),
                math.sin(theta) * np.sin(phis),
                np.full(phis.shape, math.cos(theta)),
            ],
            axis=1,
        )
        directions.extend(ring_dirs)

    directions = np.asarray(directions, dtype=np.float64)
    # Exact zeros keep the axis-aligned directions axis aligned.
    directions[np.abs(directions) < 1e-12] = 0.0
    return directions / np.linalg.norm(directions, axis=1, keepdims=True)


def cloud_extent(points: np.ndarray, centroid: np.ndarray, direction: np.ndarray) -> float:
    """Extent of ``points`` along ``direction``."""

    if points.shape[0] == 0:
        return 0.0
    projections = (points - centroid) @ direction
    return float(projections.max() - projections.min())


def generate_initial_symmetries(
    points: np.ndarray,
    centroid: np.ndarray,
    num_angle_divisions: int,
    flatness_threshold: float,
) -> List[ReflectionalSymmetry]:
    """Candidate planes through ``centroid`` for every non-degenerate direction.

    A direction is skipped when the cloud is flatter than
    ``flatness_threshold`` along it: reflecting a slab across its own
    tangent plane maps it onto itself regardless of its shape.
    """

    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    centroid = np.asarray(centroid, dtype=np.float64).reshape(3)

    symmetries: List[ReflectionalSymmetry] = []
    rejected = 0
    for direction in hemisphere_directions(num_angle_divisions):
        extent = cloud_extent(points, centroid, direction)
        if extent < flatness_threshold or extent == 0.0:
            rejected += 1
            logger.debug("Skipping direction %s: extent %.5f below flatness threshold", direction, extent)
            continue
        symmetries.append(ReflectionalSymmetry.from_point_normal(centroid, direction))

    logger.info(
        "Generated %d initial symmetry hypotheses (%d directions rejected as flat)",
        len(symmetries),
        rejected,
    )
    return symmetries
