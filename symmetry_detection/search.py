"""Nearest-neighbour search over point positions."""

from __future__ import annotations

from typing import Tuple

import numpy as np
from scipy.spatial import cKDTree


class NeighborIndex:
    """KD-tree over a fixed set of positions.

    The index is built once per detection run over the downsampled cloud and
    answers queries against those original positions only.
    """

    def __init__(self, points: np.ndarray) -> None:
        points = np.asarray(points, dtype=np.float64)
        if points.size == 0:
            points = points.reshape(0, 3)
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError("points must be an array with shape (N, 3)")

        self._size = int(points.shape[0])
        self._tree = cKDTree(points) if self._size > 0 else None

    def __len__(self) -> int:
        return self._size

    def nearest(self, queries: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Return ``(indices, distances)`` of the nearest indexed point per query.

        An empty index answers every query with index ``-1`` and an infinite
        distance.
        """

        queries = np.asarray(queries, dtype=np.float64).reshape(-1, 3)
        if self._tree is None:
            return (
                np.full(queries.shape[0], -1, dtype=np.int64),
                np.full(queries.shape[0], np.inf, dtype=np.float64),
            )

        distances, indices = self._tree.query(queries, k=1)
        return np.asarray(indices, dtype=np.int64), np.asarray(distances, dtype=np.float64)
