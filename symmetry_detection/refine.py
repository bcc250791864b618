"""Iterative refinement of reflectional symmetry hypotheses.

Each round reflects the cloud across the current plane, matches every
reflected point to its nearest neighbour in the unreflected cloud, keeps the
matches whose normals agree, and re-estimates the plane in closed form:
for a true mirror pair ``(p, q)`` the displacement ``q - p`` is parallel to
the plane normal and the midpoint lies on the plane.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .cloud import PointCloud
from .search import NeighborIndex
from .symmetry import ReflectionalSymmetry

logger = logging.getLogger(__name__)

MIN_REFINE_CORRESPONDENCES = 3


@dataclass
class Correspondences:
    """Matches between points and the neighbours of their reflections.

    Attributes
    ----------
    source:
        Index of the point that was reflected.
    target:
        Index of the nearest neighbour of the reflected point.
    distance:
        Distance between the reflected source point and the target.
    weight:
        Normal agreement weight in ``[0, 1]``.
    """

    source: np.ndarray
    target: np.ndarray
    distance: np.ndarray
    weight: np.ndarray

    @classmethod
    def empty(cls) -> "Correspondences":
        return cls(
            source=np.zeros(0, dtype=np.int64),
            target=np.zeros(0, dtype=np.int64),
            distance=np.zeros(0, dtype=np.float64),
            weight=np.zeros(0, dtype=np.float64),
        )

    def __len__(self) -> int:
        return int(self.source.shape[0])


def normal_band_weight(angles: np.ndarray, min_angle: float, max_angle: float) -> np.ndarray:
    """Map normal disagreement angles to weights.

    Angles at or below ``min_angle`` weigh 1, the weight falls linearly to 0
    at ``max_angle``. Angles above ``max_angle`` are rejected by the caller.
    """

    angles = np.asarray(angles, dtype=np.float64)
    span = max_angle - min_angle
    return np.clip((max_angle - angles) / span, 0.0, 1.0)


def symmetric_normal_angles(
    symmetry: ReflectionalSymmetry,
    source_normals: np.ndarray,
    target_normals: np.ndarray,
) -> np.ndarray:
    """Angle between each source normal and its target normal reflected back.

    Normals are treated as unoriented, so the angle lies in ``[0, pi/2]``.
    """

    reflected = symmetry.reflect_normal(target_normals)
    dots = np.abs(np.sum(source_normals * reflected, axis=1))
    return np.arccos(np.clip(dots, 0.0, 1.0))


def find_correspondences(
    symmetry: ReflectionalSymmetry,
    cloud: PointCloud,
    index: NeighborIndex,
    min_inlier_normal_angle: float,
    max_inlier_normal_angle: float,
) -> Correspondences:
    """Match each reflected point of ``cloud`` to its nearest original point.

    Matches whose normal disagreement exceeds ``max_inlier_normal_angle``
    are dropped; both band boundaries are inclusive.
    """

    if len(cloud) == 0 or len(index) == 0:
        return Correspondences.empty()

    reflected = symmetry.reflect_point(cloud.points)
    targets, distances = index.nearest(reflected)
    sources = np.arange(len(cloud), dtype=np.int64)

    angles = symmetric_normal_angles(symmetry, cloud.normals, cloud.normals[targets])
    keep = angles <= max_inlier_normal_angle
    weights = normal_band_weight(angles[keep], min_inlier_normal_angle, max_inlier_normal_angle)

    return Correspondences(
        source=sources[keep],
        target=targets[keep],
        distance=distances[keep],
        weight=weights,
    )


def fit_symmetry(
    cloud: PointCloud,
    correspondences: Correspondences,
    previous: ReflectionalSymmetry,
    max_distance: float = math.inf,
) -> Optional[ReflectionalSymmetry]:
    """Weighted closed-form plane estimate from symmetric correspondences.

    The normal is the principal direction of the weighted scatter of the
    displacement vectors ``target - source``; the offset places the plane
    through the weighted mean of the pair midpoints. Only pairs whose
    reflected distance is at most ``max_distance`` take part, so points whose
    mirror image is missing do not pull the plane towards unrelated
    neighbours. Returns ``None`` when the remaining pairs cannot constrain a
    plane.
    """

    weights = correspondences.weight
    usable = (weights > 0.0) & (correspondences.distance <= max_distance)
    if int(np.count_nonzero(usable)) < MIN_REFINE_CORRESPONDENCES:
        return None

    weights = weights[usable]
    sources = cloud.points[correspondences.source[usable]]
    targets = cloud.points[correspondences.target[usable]]
    displacements = targets - sources
    midpoints = 0.5 * (sources + targets)

    scatter = (displacements * weights[:, None]).T @ displacements
    if not np.all(np.isfinite(scatter)) or np.trace(scatter) <= 1e-18:
        return None

    eigvals, eigvecs = np.linalg.eigh(scatter)
    normal = eigvecs[:, int(np.argmax(eigvals))]
    if float(np.dot(normal, previous.normal)) < 0.0:
        normal = -normal

    centre = np.average(midpoints, axis=0, weights=weights)
    return ReflectionalSymmetry.from_point_normal(centre, normal)


def refine_symmetry(
    symmetry: ReflectionalSymmetry,
    cloud: PointCloud,
    index: NeighborIndex,
    iterations: int,
    min_inlier_normal_angle: float,
    max_inlier_normal_angle: float,
    max_fit_distance: float = math.inf,
) -> Tuple[ReflectionalSymmetry, Correspondences]:
    """Run ``iterations`` refinement rounds starting from ``symmetry``.

    Returns the refined plane and the correspondences of that plane. When a
    round has too few correspondences to solve for a plane, refinement stops
    and the plane of the previous round is kept. Pairs further apart than
    ``max_fit_distance`` are ignored by the fit but still returned.
    """

    current = symmetry
    for iteration in range(iterations):
        correspondences = find_correspondences(
            current, cloud, index, min_inlier_normal_angle, max_inlier_normal_angle
        )
        updated = fit_symmetry(cloud, correspondences, current, max_fit_distance)
        if updated is None:
            logger.info(
                "Stopping refinement of %r after %d/%d rounds: %d correspondences",
                symmetry,
                iteration,
                iterations,
                len(correspondences),
            )
            break
        current = updated

    final = find_correspondences(current, cloud, index, min_inlier_normal_angle, max_inlier_normal_angle)
    return current, final
