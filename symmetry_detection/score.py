"""Occlusion-aware scoring of refined symmetries."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .cloud import PointCloud
from .occupancy import OccupancyMap, OccupancyState
from .params import DetectionParams
from .refine import Correspondences
from .symmetry import ReflectionalSymmetry


@dataclass
class SymmetryScores:
    """Scores of one symmetry hypothesis.

    Attributes
    ----------
    occlusion_score:
        Normalised evidence against the symmetry from unmatched reflections
        that land in observed space. Lower is better.
    cloud_inlier_score:
        Fraction of points that are matched or explained by occlusion.
    corresp_inlier_score:
        Fraction of correspondences whose reflected distance is within
        tolerance.
    point_symmetry_scores:
        Per-point symmetry error in ``[0, 1]`` (0 for a perfect match,
        1 for unmatched points).
    point_occlusion_scores:
        Per-point occlusion penalty in ``[0, 1]``.
    """

    occlusion_score: float
    cloud_inlier_score: float
    corresp_inlier_score: float
    point_symmetry_scores: np.ndarray
    point_occlusion_scores: np.ndarray

    @classmethod
    def zeros(cls, num_points: int = 0) -> "SymmetryScores":
        return cls(
            occlusion_score=0.0,
            cloud_inlier_score=0.0,
            corresp_inlier_score=0.0,
            point_symmetry_scores=np.zeros(num_points, dtype=np.float64),
            point_occlusion_scores=np.zeros(num_points, dtype=np.float64),
        )


def occlusion_penalty(distance: np.ndarray, min_distance: float, max_distance: float) -> np.ndarray:
    """Linear ramp from 0 at ``min_distance`` to 1 at ``max_distance``."""

    distance = np.asarray(distance, dtype=np.float64)
    return np.clip((distance - min_distance) / (max_distance - min_distance), 0.0, 1.0)


def score_symmetry(
    symmetry: ReflectionalSymmetry,
    cloud: PointCloud,
    correspondences: Correspondences,
    occupancy_map: OccupancyMap,
    params: DetectionParams,
) -> SymmetryScores:
    """Score ``symmetry`` against ``cloud`` using its final correspondences.

    A point whose reflection has an inlier match supports the symmetry.
    Every other point is judged by the occupancy of its reflected location:

    * unknown space is occlusion: the point is excused and left out of the
      occlusion score;
    * free space carries no penalty;
    * occupied space within ``min_occlusion_distance`` of an observed surface
      explains the point; further away the point is penalised on a ramp up
      to ``max_occlusion_distance``.
    """

    num_points = len(cloud)
    if num_points == 0:
        return SymmetryScores.zeros()

    reflected = symmetry.reflect_point(cloud.points)

    inlier_source = np.zeros(0, dtype=np.int64)
    inlier_weight = np.zeros(0, dtype=np.float64)
    corresp_inlier_score = 0.0
    if len(correspondences) > 0:
        distances = np.linalg.norm(
            reflected[correspondences.source] - cloud.points[correspondences.target], axis=1
        )
        inliers = distances <= params.max_correspondence_reflected_distance
        corresp_inlier_score = float(np.count_nonzero(inliers)) / len(correspondences)
        inlier_source = correspondences.source[inliers]
        inlier_weight = correspondences.weight[inliers]

    matched = np.zeros(num_points, dtype=bool)
    matched[inlier_source] = True

    point_symmetry_scores = np.ones(num_points, dtype=np.float64)
    point_symmetry_scores[inlier_source] = 1.0 - inlier_weight
    point_occlusion_scores = np.zeros(num_points, dtype=np.float64)

    explained = matched.copy()
    scored = np.ones(num_points, dtype=bool)

    unmatched = np.flatnonzero(~matched)
    if unmatched.size > 0:
        occupancy = occupancy_map.query(reflected[unmatched])
        state = occupancy.state

        unknown = state == OccupancyState.UNKNOWN
        explained[unmatched[unknown]] = True
        scored[unmatched[unknown]] = False

        occupied = state == OccupancyState.OCCUPIED
        on_surface = occupied & (occupancy.distance <= params.min_occlusion_distance)
        explained[unmatched[on_surface]] = True

        penalised = occupied & ~on_surface
        point_occlusion_scores[unmatched[penalised]] = occlusion_penalty(
            occupancy.distance[penalised],
            params.min_occlusion_distance,
            params.max_occlusion_distance,
        )

    num_scored = int(np.count_nonzero(scored))
    occlusion_score = float(point_occlusion_scores[scored].sum()) / num_scored if num_scored else 0.0
    cloud_inlier_score = float(np.count_nonzero(explained)) / num_points

    return SymmetryScores(
        occlusion_score=occlusion_score,
        cloud_inlier_score=cloud_inlier_score,
        corresp_inlier_score=corresp_inlier_score,
        point_symmetry_scores=point_symmetry_scores,
        point_occlusion_scores=point_occlusion_scores,
    )
