"""Synthetic data utilities for symmetry detection tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from .cloud import PointCloud
from .geometry import orthonormal_basis
from .symmetry import ReflectionalSymmetry


@dataclass
class SymmetricCloudSpec:
    """Defines a cloud that is mirror symmetric about ``symmetry``.

    Points are drawn on one side of the plane, between ``min_gap`` and
    ``min_gap + depth`` from it, within a square of half-width ``half_extent``
    along the plane, and then mirrored.
    """

    symmetry: ReflectionalSymmetry
    half_extent: float = 0.5
    depth: float = 0.4
    min_gap: float = 0.02
    center: np.ndarray = field(default_factory=lambda: np.zeros(3))


def random_unit_vectors(num: int, rng: np.random.Generator) -> np.ndarray:
    vectors = rng.normal(size=(num, 3))
    return vectors / np.linalg.norm(vectors, axis=1, keepdims=True)


def generate_half_cloud(
    spec: SymmetricCloudSpec,
    num_points: int,
    random_state: Optional[int] = None,
) -> PointCloud:
    """Random oriented points on the positive side of ``spec.symmetry``."""

    if num_points <= 0:
        raise ValueError("num_points must be positive")

    rng = np.random.default_rng(random_state)
    normal = spec.symmetry.normal
    a, b = orthonormal_basis(normal)
    anchor = spec.symmetry.project_point(np.asarray(spec.center, dtype=np.float64))

    heights = rng.uniform(spec.min_gap, spec.min_gap + spec.depth, size=num_points)
    u = rng.uniform(-spec.half_extent, spec.half_extent, size=num_points)
    v = rng.uniform(-spec.half_extent, spec.half_extent, size=num_points)
    points = anchor + heights[:, None] * normal + u[:, None] * a + v[:, None] * b
    return PointCloud(points, random_unit_vectors(num_points, rng))


def mirror_cloud(cloud: PointCloud, symmetry: ReflectionalSymmetry) -> PointCloud:
    return PointCloud(symmetry.reflect_point(cloud.points), symmetry.reflect_normal(cloud.normals))


def generate_symmetric_cloud(
    spec: SymmetricCloudSpec,
    num_points: int,
    noise_std: float = 0.0,
    random_state: Optional[int] = None,
) -> PointCloud:
    """Generate ``P`` union its mirror image, ``2 * num_points`` points in total.

    The first ``num_points`` points are ``P``; point ``i + num_points`` is the
    mirror of point ``i``.
    """

    half = generate_half_cloud(spec, num_points, random_state=random_state)
    mirror = mirror_cloud(half, spec.symmetry)
    points = np.vstack([half.points, mirror.points])
    if noise_std > 0.0:
        rng = np.random.default_rng(None if random_state is None else random_state + 1)
        points = points + rng.normal(scale=noise_std, size=points.shape)
    return PointCloud(points, np.vstack([half.normals, mirror.normals]))


def remove_mirror_fraction(
    cloud: PointCloud,
    fraction: float,
    random_state: Optional[int] = None,
) -> Tuple[PointCloud, np.ndarray]:
    """Drop a fraction of the mirrored half of a cloud from :func:`generate_symmetric_cloud`.

    Returns the reduced cloud and the positions that were removed.
    """

    if not (0.0 <= fraction <= 1.0):
        raise ValueError("fraction must be in [0, 1]")
    if len(cloud) % 2:
        raise ValueError("cloud must contain a point and its mirror for every sample")

    half = len(cloud) // 2
    rng = np.random.default_rng(random_state)
    num_removed = int(round(fraction * half))
    removed = half + rng.choice(half, size=num_removed, replace=False)

    keep = np.ones(len(cloud), dtype=bool)
    keep[removed] = False
    return cloud.subset(np.flatnonzero(keep)), cloud.points[removed]


def generate_flat_cloud(
    num_points: int,
    half_extent: float = 0.5,
    random_state: Optional[int] = None,
) -> PointCloud:
    """Points on the ``z = 0`` plane with ``+z`` normals."""

    rng = np.random.default_rng(random_state)
    xy = rng.uniform(-half_extent, half_extent, size=(num_points, 2))
    points = np.column_stack([xy, np.zeros(num_points)])
    normals = np.tile(np.array([0.0, 0.0, 1.0]), (num_points, 1))
    return PointCloud(points, normals)
