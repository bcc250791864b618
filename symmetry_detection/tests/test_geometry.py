"""Tests for plane rendering geometry."""

from __future__ import annotations

import unittest

import numpy as np

from symmetry_detection.geometry import as_symmetry, orthonormal_basis, plane_patch_vertices
from symmetry_detection.symmetry import ReflectionalSymmetry


class TestGeometry(unittest.TestCase):
    def test_orthonormal_basis(self) -> None:
        for normal in ([0.0, 0.0, 1.0], [0.0, 0.0, -2.0], [1.0, 2.0, 3.0]):
            unit = np.asarray(normal) / np.linalg.norm(normal)
            basis_u, basis_v = orthonormal_basis(normal)
            self.assertAlmostEqual(float(np.dot(basis_u, unit)), 0.0, places=12)
            self.assertAlmostEqual(float(np.dot(basis_v, unit)), 0.0, places=12)
            self.assertAlmostEqual(float(np.dot(basis_u, basis_v)), 0.0, places=12)
            self.assertAlmostEqual(float(np.linalg.norm(basis_u)), 1.0, places=12)

    def test_patch_lies_in_plane_around_projected_center(self) -> None:
        detection = {"normal": [0.0, 2.0, 0.0], "offset": 0.5}
        vertices = plane_patch_vertices(detection, [0.3, 4.0, -0.2], 0.25)
        self.assertEqual(vertices.shape, (4, 3))
        np.testing.assert_allclose(vertices[:, 1], 0.5)
        np.testing.assert_allclose(vertices.mean(axis=0), [0.3, 0.5, -0.2], atol=1e-12)
        edges = np.linalg.norm(np.roll(vertices, -1, axis=0) - vertices, axis=1)
        np.testing.assert_allclose(edges, 0.5)

    def test_as_symmetry(self) -> None:
        plane = ReflectionalSymmetry([1.0, 0.0, 0.0], 0.2)
        self.assertIs(as_symmetry(plane), plane)
        self.assertTrue(as_symmetry(plane.to_dict()).is_close(plane))
        with self.assertRaises(TypeError):
            as_symmetry([1.0, 0.0, 0.0])


if __name__ == "__main__":
    unittest.main()
