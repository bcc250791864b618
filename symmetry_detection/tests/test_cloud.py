"""Tests for point clouds, downsampling and the search/occupancy collaborators."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

import numpy as np
from plyfile import PlyData, PlyElement

from symmetry_detection.cloud import PointCloud, downsample, load_point_cloud, save_point_cloud_ply
from symmetry_detection.occupancy import OccupancyState, VoxelOccupancyMap
from symmetry_detection.search import NeighborIndex


class TestPointCloud(unittest.TestCase):
    def test_normals_are_normalised(self) -> None:
        cloud = PointCloud(np.zeros((2, 3)), np.array([[0.0, 0.0, 2.0], [3.0, 4.0, 0.0]]))
        np.testing.assert_allclose(cloud.normals, [[0.0, 0.0, 1.0], [0.6, 0.8, 0.0]])

    def test_shape_validation(self) -> None:
        with self.assertRaises(ValueError):
            PointCloud(np.zeros((3, 2)), np.zeros((3, 2)))
        with self.assertRaises(ValueError):
            PointCloud(np.zeros((3, 3)), np.ones((2, 3)))
        with self.assertRaises(ValueError):
            PointCloud(np.zeros((1, 3)), np.zeros((1, 3)))

    def test_empty_cloud(self) -> None:
        cloud = PointCloud.empty()
        self.assertEqual(len(cloud), 0)
        np.testing.assert_allclose(cloud.centroid(), np.zeros(3))


class TestDownsample(unittest.TestCase):
    def test_voxel_binning_averages_members(self) -> None:
        cloud = PointCloud(
            np.array([[0.51, 0.0, 0.0], [0.01, 0.01, 0.01], [0.03, 0.05, 0.07], [0.52, 0.0, 0.0]]),
            np.array([[1.0, 0.0, 0.0], [0.0, 0.0, 1.0], [0.0, 0.0, 1.0], [1.0, 0.0, 0.0]]),
        )
        reduced = downsample(cloud, 0.1)
        self.assertEqual(len(reduced), 2)
        # Voxels keep the order of their first member.
        np.testing.assert_allclose(reduced.points[0], [0.515, 0.0, 0.0])
        np.testing.assert_allclose(reduced.points[1], [0.02, 0.03, 0.04])
        np.testing.assert_allclose(reduced.normals, [[1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])

    def test_cancelling_normals_fall_back_to_first_member(self) -> None:
        cloud = PointCloud(
            np.array([[0.01, 0.0, 0.0], [0.02, 0.0, 0.0]]),
            np.array([[0.0, 1.0, 0.0], [0.0, -1.0, 0.0]]),
        )
        reduced = downsample(cloud, 0.1)
        np.testing.assert_allclose(reduced.normals, [[0.0, 1.0, 0.0]])

    def test_is_deterministic_and_zero_disables(self) -> None:
        rng = np.random.default_rng(0)
        cloud = PointCloud(rng.uniform(-1, 1, size=(500, 3)), rng.normal(size=(500, 3)))
        first = downsample(cloud, 0.2)
        second = downsample(cloud, 0.2)
        np.testing.assert_array_equal(first.points, second.points)
        self.assertLess(len(first), len(cloud))
        self.assertIs(downsample(cloud, 0.0), cloud)
        with self.assertRaises(ValueError):
            downsample(cloud, -0.1)


class TestPointCloudIO(unittest.TestCase):
    def test_ply_round_trip(self) -> None:
        rng = np.random.default_rng(5)
        cloud = PointCloud(rng.uniform(-1, 1, size=(40, 3)), rng.normal(size=(40, 3)))
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "cloud.ply"
            save_point_cloud_ply(path, cloud)
            loaded = load_point_cloud(path)
        np.testing.assert_allclose(loaded.points, cloud.points, atol=1e-6)
        np.testing.assert_allclose(loaded.normals, cloud.normals, atol=1e-6)

    def test_missing_normals_raise(self) -> None:
        vertex_data = np.zeros(3, dtype=[("x", "f4"), ("y", "f4"), ("z", "f4")])
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "xyz.ply"
            PlyData([PlyElement.describe(vertex_data, "vertex")], text=False).write(str(path))
            with self.assertRaises(ValueError):
                load_point_cloud(path)


class TestNeighborIndex(unittest.TestCase):
    def test_nearest(self) -> None:
        index = NeighborIndex(np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 2.0, 0.0]]))
        indices, distances = index.nearest(np.array([[0.9, 0.1, 0.0], [0.0, 1.5, 0.0]]))
        np.testing.assert_array_equal(indices, [1, 2])
        np.testing.assert_allclose(distances, [np.hypot(0.1, 0.1), 0.5])

    def test_empty_index(self) -> None:
        index = NeighborIndex(np.zeros((0, 3)))
        indices, distances = index.nearest(np.zeros((2, 3)))
        np.testing.assert_array_equal(indices, [-1, -1])
        self.assertTrue(np.all(np.isinf(distances)))


class TestVoxelOccupancyMap(unittest.TestCase):
    def setUp(self) -> None:
        xs, ys = np.meshgrid(np.linspace(-0.5, 0.5, 21), np.linspace(-0.5, 0.5, 21))
        self.wall = np.column_stack([xs.ravel(), ys.ravel(), np.ones(xs.size)])
        self.occupancy = VoxelOccupancyMap.from_points(
            self.wall, resolution=0.05, viewpoint=[0.0, 0.0, 0.0], margin=0.6
        )

    def test_states(self) -> None:
        queries = np.array(
            [
                [0.0, 0.0, 0.5],  # between the sensor and the wall
                self.wall[17],  # on the wall
                [0.0, 0.0, 1.5],  # behind the wall
                [10.0, 10.0, 10.0],  # outside the grid
            ]
        )
        result = self.occupancy.query(queries)
        self.assertEqual(
            result.state.tolist(),
            [OccupancyState.FREE, OccupancyState.OCCUPIED, OccupancyState.UNKNOWN, OccupancyState.UNKNOWN],
        )
        self.assertAlmostEqual(float(result.distance[1]), 0.0, places=9)
        self.assertTrue(np.isinf(result.distance[0]))

    def test_without_viewpoint_nothing_is_free(self) -> None:
        occupancy = VoxelOccupancyMap.from_points(self.wall, resolution=0.05, margin=0.6)
        result = occupancy.query(np.array([[0.0, 0.0, 0.5], self.wall[0]]))
        self.assertEqual(result.state.tolist(), [OccupancyState.UNKNOWN, OccupancyState.OCCUPIED])

    def test_occupied_distance_measures_surface_gap(self) -> None:
        occupancy = VoxelOccupancyMap.from_points(np.array([[0.1, 0.1, 0.1]]), resolution=0.2, margin=0.3)
        result = occupancy.query(np.array([[0.1, 0.1, 0.13]]))
        self.assertEqual(result.state.tolist(), [OccupancyState.OCCUPIED])
        self.assertAlmostEqual(float(result.distance[0]), 0.03, places=9)


if __name__ == "__main__":
    unittest.main()
