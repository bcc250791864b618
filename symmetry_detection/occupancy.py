"""Occupancy maps used to reason about occluded space.

The detection pipeline only needs :meth:`query`; any object with a
conforming method can stand in for :class:`VoxelOccupancyMap`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Protocol, Sequence

import numpy as np
from scipy.spatial import cKDTree

logger = logging.getLogger(__name__)


class OccupancyState(IntEnum):
    UNKNOWN = 0
    FREE = 1
    OCCUPIED = 2


@dataclass
class OccupancyQuery:
    """Result of an occupancy query over ``N`` locations.

    Attributes
    ----------
    state:
        ``(N,)`` integer array of :class:`OccupancyState` codes.
    distance:
        ``(N,)`` distance from each location to the nearest observed surface.
        Only meaningful where ``state`` is ``OCCUPIED``; ``inf`` elsewhere.
    """

    state: np.ndarray
    distance: np.ndarray

    def __post_init__(self) -> None:
        self.state = np.asarray(self.state, dtype=np.int8).reshape(-1)
        self.distance = np.asarray(self.distance, dtype=np.float64).reshape(-1)
        if self.state.shape != self.distance.shape:
            raise ValueError("state and distance must have the same length")


class OccupancyMap(Protocol):
    def query(self, points: np.ndarray) -> OccupancyQuery: ...


class VoxelOccupancyMap:
    """Dense voxel grid of observed occupied, free and unknown space.

    Voxels containing observed points are occupied. When a sensor viewpoint
    is known, voxels crossed by the rays from the viewpoint to each point are
    free. Everything else, including all space outside the grid, is unknown.
    """

    def __init__(
        self,
        grid: np.ndarray,
        origin: np.ndarray,
        resolution: float,
        surface_points: np.ndarray,
    ) -> None:
        if resolution <= 0.0:
            raise ValueError("resolution must be positive")
        self.grid = np.asarray(grid, dtype=np.int8)
        if self.grid.ndim != 3:
            raise ValueError("grid must be a 3-D array")
        self.origin = np.asarray(origin, dtype=np.float64).reshape(3)
        self.resolution = float(resolution)

        surface_points = np.asarray(surface_points, dtype=np.float64).reshape(-1, 3)
        self._surface_tree = cKDTree(surface_points) if surface_points.shape[0] > 0 else None

    @classmethod
    def from_points(
        cls,
        points: np.ndarray,
        resolution: float,
        viewpoint: Optional[Sequence[float] | np.ndarray] = None,
        margin: float = 0.0,
    ) -> "VoxelOccupancyMap":
        """Build a map from observed surface ``points``.

        Parameters
        ----------
        points:
            ``(N, 3)`` observed surface points.
        resolution:
            Voxel edge length.
        viewpoint:
            Optional sensor position used to carve free space.
        margin:
            Extra padding added around the bounds of the points (and the
            viewpoint) before allocating the grid.
        """

        if resolution <= 0.0:
            raise ValueError("resolution must be positive")
        if margin < 0.0:
            raise ValueError("margin must be non-negative")

        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if points.shape[0] == 0:
            return cls(np.zeros((1, 1, 1), dtype=np.int8), np.zeros(3), resolution, points)

        bounds = points
        if viewpoint is not None:
            viewpoint = np.asarray(viewpoint, dtype=np.float64).reshape(3)
            bounds = np.vstack([points, viewpoint])

        origin = bounds.min(axis=0) - margin
        upper = bounds.max(axis=0) + margin
        shape = tuple(int(v) for v in np.floor((upper - origin) / resolution).astype(np.int64) + 1)
        grid = np.full(shape, OccupancyState.UNKNOWN, dtype=np.int8)

        occupancy = cls(grid, origin, resolution, points)
        if viewpoint is not None:
            occupancy._carve_free_space(points, viewpoint)

        occupied = occupancy._voxel_indices(points)
        grid[occupied[:, 0], occupied[:, 1], occupied[:, 2]] = OccupancyState.OCCUPIED

        logger.debug(
            "Built occupancy grid %s at resolution %.4f (%d occupied, %d free voxels)",
            shape,
            resolution,
            int(np.count_nonzero(grid == OccupancyState.OCCUPIED)),
            int(np.count_nonzero(grid == OccupancyState.FREE)),
        )
        return occupancy

    def query(self, points: np.ndarray) -> OccupancyQuery:
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        state = np.full(points.shape[0], OccupancyState.UNKNOWN, dtype=np.int8)
        distance = np.full(points.shape[0], np.inf, dtype=np.float64)
        if points.shape[0] == 0:
            return OccupancyQuery(state, distance)

        indices = self._voxel_indices(points)
        inside = self._inside(indices)
        inside_idx = indices[inside]
        state[inside] = self.grid[inside_idx[:, 0], inside_idx[:, 1], inside_idx[:, 2]]

        occupied = state == OccupancyState.OCCUPIED
        if np.any(occupied) and self._surface_tree is not None:
            distance[occupied], _ = self._surface_tree.query(points[occupied], k=1)

        return OccupancyQuery(state, distance)

    def _voxel_indices(self, points: np.ndarray) -> np.ndarray:
        return np.floor((points - self.origin) / self.resolution).astype(np.int64)

    def _inside(self, indices: np.ndarray) -> np.ndarray:
        upper = np.asarray(self.grid.shape, dtype=np.int64)
        return np.all((indices >= 0) & (indices < upper), axis=1)

    def _carve_free_space(self, points: np.ndarray, viewpoint: np.ndarray, chunk_size: int = 1024) -> None:
        """Mark voxels between ``viewpoint`` and each point as free."""

        step = 0.5 * self.resolution
        for start in range(0, points.shape[0], chunk_size):
            chunk = points[start:start + chunk_size]
            rays = chunk - viewpoint
            lengths = np.linalg.norm(rays, axis=1)
            valid = lengths > self.resolution
            if not np.any(valid):
                continue

            rays = rays[valid] / lengths[valid, None]
            lengths = lengths[valid]
            num_steps = int(np.ceil(lengths.max() / step))
            ts = np.arange(num_steps) * step

            # Stop one voxel short of the surface point.
            keep = ts[None, :] < (lengths[:, None] - self.resolution)
            samples = viewpoint + rays[:, None, :] * ts[None, :, None]
            samples = samples[keep]

            indices = self._voxel_indices(samples)
            indices = indices[self._inside(indices)]
            self.grid[indices[:, 0], indices[:, 1], indices[:, 2]] = OccupancyState.FREE
