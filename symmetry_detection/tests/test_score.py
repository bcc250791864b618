"""Tests for occlusion-aware symmetry scoring."""

from __future__ import annotations

import unittest

import numpy as np
from scipy.spatial import cKDTree

from symmetry_detection.cloud import PointCloud
from symmetry_detection.occupancy import OccupancyQuery, OccupancyState
from symmetry_detection.params import DetectionParams
from symmetry_detection.refine import Correspondences, find_correspondences
from symmetry_detection.score import occlusion_penalty, score_symmetry
from symmetry_detection.search import NeighborIndex
from symmetry_detection.symmetry import ReflectionalSymmetry
from symmetry_detection.synthetic import (
    SymmetricCloudSpec,
    generate_symmetric_cloud,
    remove_mirror_fraction,
)


class ConstantOccupancy:
    """Reports the same state for every location."""

    def __init__(self, state: OccupancyState, distance: float = np.inf) -> None:
        self.state = state
        self.distance = distance
        self.queries = 0

    def query(self, points: np.ndarray) -> OccupancyQuery:
        self.queries += 1
        count = len(points)
        return OccupancyQuery(np.full(count, self.state), np.full(count, self.distance))


class RegionOccupancy:
    """Reports ``state`` near the given locations and unknown elsewhere."""

    def __init__(self, locations: np.ndarray, state: OccupancyState, distance: float) -> None:
        self.tree = cKDTree(locations)
        self.state = state
        self.distance = distance

    def query(self, points: np.ndarray) -> OccupancyQuery:
        gaps, _ = self.tree.query(points, k=1)
        near = gaps < 1e-6
        state = np.where(near, self.state, OccupancyState.UNKNOWN)
        distance = np.where(near & (self.state == OccupancyState.OCCUPIED), self.distance, np.inf)
        return OccupancyQuery(state, distance)


class TestScoreSymmetry(unittest.TestCase):
    def setUp(self) -> None:
        self.params = DetectionParams()
        self.plane0 = ReflectionalSymmetry([0.0, 1.0, 0.0], -0.1)
        spec = SymmetricCloudSpec(symmetry=self.plane0, min_gap=0.05)
        self.cloud = generate_symmetric_cloud(spec, num_points=150, random_state=21)

    def _score(self, cloud: PointCloud, occupancy):
        corr = find_correspondences(
            self.plane0,
            cloud,
            NeighborIndex(cloud.points),
            self.params.min_inlier_normal_angle,
            self.params.max_inlier_normal_angle,
        )
        return score_symmetry(self.plane0, cloud, corr, occupancy, self.params)

    def test_exact_symmetry_scores_perfectly(self) -> None:
        occupancy = ConstantOccupancy(OccupancyState.OCCUPIED, 0.5)
        scores = self._score(self.cloud, occupancy)
        self.assertEqual(scores.corresp_inlier_score, 1.0)
        self.assertEqual(scores.cloud_inlier_score, 1.0)
        self.assertEqual(scores.occlusion_score, 0.0)
        np.testing.assert_allclose(scores.point_symmetry_scores, 0.0)
        # Every point is matched, so the map is never consulted.
        self.assertEqual(occupancy.queries, 0)

    def test_free_space_at_missing_mirrors_does_not_penalise(self) -> None:
        partial, removed = remove_mirror_fraction(self.cloud, 0.5, random_state=3)
        scores = self._score(partial, RegionOccupancy(removed, OccupancyState.FREE, np.inf))

        self.assertAlmostEqual(scores.occlusion_score, 0.0)
        # The 75 points whose mirrors were removed are neither matched nor excused.
        self.assertAlmostEqual(scores.cloud_inlier_score, 150.0 / 225.0)
        self.assertEqual(int(np.count_nonzero(scores.point_symmetry_scores == 1.0)), 75)

    def test_occupied_space_at_missing_mirrors_penalises(self) -> None:
        partial, removed = remove_mirror_fraction(self.cloud, 0.5, random_state=3)
        free = self._score(partial, RegionOccupancy(removed, OccupancyState.FREE, np.inf))
        occupied = self._score(partial, RegionOccupancy(removed, OccupancyState.OCCUPIED, 0.1))

        self.assertGreater(occupied.occlusion_score, free.occlusion_score)
        expected_penalty = (0.1 - 0.01) / (0.2 - 0.01)
        self.assertAlmostEqual(occupied.occlusion_score, 75 * expected_penalty / 225.0)
        self.assertEqual(int(np.count_nonzero(occupied.point_occlusion_scores > 0.0)), 75)

    def test_unknown_space_is_excused(self) -> None:
        partial, _ = remove_mirror_fraction(self.cloud, 0.5, random_state=3)
        scores = self._score(partial, ConstantOccupancy(OccupancyState.UNKNOWN))
        self.assertEqual(scores.occlusion_score, 0.0)
        self.assertEqual(scores.cloud_inlier_score, 1.0)

    def test_reflection_on_observed_surface_is_explained(self) -> None:
        partial, removed = remove_mirror_fraction(self.cloud, 0.5, random_state=3)
        scores = self._score(partial, RegionOccupancy(removed, OccupancyState.OCCUPIED, 0.005))
        self.assertEqual(scores.occlusion_score, 0.0)
        self.assertEqual(scores.cloud_inlier_score, 1.0)

    def test_empty_cloud_scores_zero(self) -> None:
        scores = score_symmetry(
            self.plane0, PointCloud.empty(), Correspondences.empty(), ConstantOccupancy(OccupancyState.FREE), self.params
        )
        self.assertEqual(
            (scores.occlusion_score, scores.cloud_inlier_score, scores.corresp_inlier_score), (0.0, 0.0, 0.0)
        )
        self.assertEqual(scores.point_symmetry_scores.shape, (0,))

    def test_occlusion_penalty_ramp(self) -> None:
        np.testing.assert_allclose(
            occlusion_penalty(np.array([0.0, 0.01, 0.105, 0.2, 1.0]), 0.01, 0.2),
            [0.0, 0.0, 0.5, 1.0, 1.0],
        )


if __name__ == "__main__":
    unittest.main()
