"""Point clouds with normals: container, PLY I/O and voxel downsampling."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

import numpy as np
from plyfile import PlyData, PlyElement

logger = logging.getLogger(__name__)

POSITION_FIELDS = ("x", "y", "z")
NORMAL_FIELDS = ("nx", "ny", "nz")


class OrientedPoints(Protocol):
    """Anything exposing ``(N, 3)`` positions and unit normals."""

    points: np.ndarray
    normals: np.ndarray


@dataclass
class PointCloud:
    """Point positions with per-point unit surface normals.

    Attributes
    ----------
    points:
        ``(N, 3)`` array of positions.
    normals:
        ``(N, 3)`` array of surface normals; normalised on construction.
    """

    points: np.ndarray
    normals: np.ndarray

    def __post_init__(self) -> None:
        points = _as_xyz(self.points)
        normals = _as_xyz(self.normals)
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError("points must be an array with shape (N, 3)")
        if normals.shape != points.shape:
            raise ValueError("normals must have the same shape as points")

        lengths = np.linalg.norm(normals, axis=1)
        if np.any(~np.isfinite(lengths)) or np.any(lengths == 0.0):
            raise ValueError("normals must be finite and non-zero")

        self.points = points
        self.normals = normals / lengths[:, None]

    @classmethod
    def from_oriented(cls, cloud: OrientedPoints) -> "PointCloud":
        if isinstance(cloud, cls):
            return cloud
        return cls(np.asarray(cloud.points), np.asarray(cloud.normals))

    @classmethod
    def empty(cls) -> "PointCloud":
        return cls(np.zeros((0, 3)), np.zeros((0, 3)))

    def __len__(self) -> int:
        return int(self.points.shape[0])

    def centroid(self) -> np.ndarray:
        """Mean position, or the zero vector for an empty cloud."""

        if len(self) == 0:
            return np.zeros(3, dtype=np.float64)
        return self.points.mean(axis=0)

    def subset(self, indices: Sequence[int] | np.ndarray) -> "PointCloud":
        indices = np.asarray(indices, dtype=np.int64)
        return PointCloud(self.points[indices], self.normals[indices])


def _as_xyz(values) -> np.ndarray:
    array = np.asarray(values, dtype=np.float64)
    if array.size == 0:
        return array.reshape(0, 3)
    return array


def downsample(cloud: PointCloud, voxel_size: float) -> PointCloud:
    """Bin ``cloud`` into a voxel grid of edge ``voxel_size``.

    Each occupied voxel contributes one point: the mean position of its
    members and their renormalised summed normal. Voxels are emitted in the
    order of their first member, so the result is deterministic. A
    ``voxel_size`` of zero returns the cloud unchanged.
    """

    if voxel_size < 0.0:
        raise ValueError("voxel_size must be non-negative")
    if voxel_size == 0.0 or len(cloud) == 0:
        return cloud

    keys = np.floor(cloud.points / voxel_size).astype(np.int64)
    _, first_index, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
    inverse = inverse.reshape(-1)

    # np.unique sorts voxels lexicographically; reorder by first occurrence.
    order = np.argsort(first_index, kind="stable")
    rank = np.empty_like(order)
    rank[order] = np.arange(order.shape[0])
    voxel_ids = rank[inverse]
    num_voxels = order.shape[0]

    counts = np.bincount(voxel_ids, minlength=num_voxels).astype(np.float64)
    points = np.zeros((num_voxels, 3), dtype=np.float64)
    normals = np.zeros((num_voxels, 3), dtype=np.float64)
    np.add.at(points, voxel_ids, cloud.points)
    np.add.at(normals, voxel_ids, cloud.normals)
    points /= counts[:, None]

    # Opposing normals can cancel out inside a voxel.
    lengths = np.linalg.norm(normals, axis=1)
    degenerate = lengths < 1e-12
    if np.any(degenerate):
        normals[degenerate] = cloud.normals[first_index[order][degenerate]]

    logger.debug("Downsampled %d points to %d voxels (voxel size %.4f)", len(cloud), num_voxels, voxel_size)
    return PointCloud(points, normals)


def load_point_cloud(path: str | Path) -> PointCloud:
    """Load positions and normals from a PLY file.

    Raises
    ------
    ValueError
        If the file has no vertex element or lacks any of the ``x``, ``y``,
        ``z``, ``nx``, ``ny``, ``nz`` vertex fields.
    """

    ply = PlyData.read(str(path))
    try:
        vertex_data = ply["vertex"].data
    except KeyError as exc:
        raise ValueError(f"PLY file '{path}' does not contain a vertex element") from exc

    required = POSITION_FIELDS + NORMAL_FIELDS
    missing = [field for field in required if field not in vertex_data.dtype.names]
    if missing:
        raise ValueError(f"PLY file '{path}' is missing required vertex fields: {missing}")

    points = np.vstack([vertex_data[field] for field in POSITION_FIELDS]).T
    normals = np.vstack([vertex_data[field] for field in NORMAL_FIELDS]).T
    return PointCloud(points.astype(np.float64), normals.astype(np.float64))


def save_point_cloud_ply(path: str | Path, cloud: PointCloud) -> None:
    """Write ``cloud`` to a binary little-endian PLY file."""

    dtype = [(name, "f4") for name in POSITION_FIELDS + NORMAL_FIELDS]
    vertex_data = np.empty(len(cloud), dtype=dtype)
    for axis, name in enumerate(POSITION_FIELDS):
        vertex_data[name] = cloud.points[:, axis]
    for axis, name in enumerate(NORMAL_FIELDS):
        vertex_data[name] = cloud.normals[:, axis]

    element = PlyElement.describe(vertex_data, "vertex")
    PlyData([element], text=False).write(str(path))
