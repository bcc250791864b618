"""Filtering and merging of scored symmetry hypotheses."""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Sequence

import numpy as np

from .params import DetectionParams
from .symmetry import ReflectionalSymmetry, plane_normal_angle

logger = logging.getLogger(__name__)


def filter_symmetries(
    occlusion_scores: Sequence[float],
    cloud_inlier_scores: Sequence[float],
    corresp_inlier_scores: Sequence[float],
    params: DetectionParams,
) -> List[int]:
    """Indices of symmetries passing every score threshold, in ascending order."""

    if not (len(occlusion_scores) == len(cloud_inlier_scores) == len(corresp_inlier_scores)):
        raise ValueError("score sequences must have the same length")

    return [
        sym_id
        for sym_id, (occlusion, cloud_inlier, corresp_inlier) in enumerate(
            zip(occlusion_scores, cloud_inlier_scores, corresp_inlier_scores)
        )
        if occlusion <= params.max_occlusion_score
        and cloud_inlier >= params.min_cloud_inlier_score
        and corresp_inlier >= params.min_corresp_inlier_score
    ]


def symmetries_similar(
    symmetry_a: ReflectionalSymmetry,
    symmetry_b: ReflectionalSymmetry,
    reference_point_a: np.ndarray,
    reference_point_b: np.ndarray,
    max_normal_angle_diff: float,
    max_distance_diff: float,
    max_reference_point_distance: float = -1.0,
) -> bool:
    """Return ``True`` if two symmetries are near-duplicates.

    Normal signs are ignored and offsets are compared after aligning the
    normals. The reference point check is skipped when
    ``max_reference_point_distance`` is negative.
    """

    if plane_normal_angle(symmetry_a.normal, symmetry_b.normal) > max_normal_angle_diff:
        return False

    aligned_b = symmetry_b.aligned_with(symmetry_a)
    if abs(symmetry_a.offset - aligned_b.offset) > max_distance_diff:
        return False

    if max_reference_point_distance >= 0.0:
        gap = float(np.linalg.norm(np.asarray(reference_point_a) - np.asarray(reference_point_b)))
        if gap > max_reference_point_distance:
            return False

    return True


class _DisjointSet:
    def __init__(self, items: Sequence[int]) -> None:
        self._parent: Dict[int, int] = {item: item for item in items}

    def find(self, item: int) -> int:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: int, b: int) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a != root_b:
            self._parent[max(root_a, root_b)] = min(root_a, root_b)

    def groups(self) -> Dict[int, List[int]]:
        clusters: Dict[int, List[int]] = {}
        for item in self._parent:
            clusters.setdefault(self.find(item), []).append(item)
        return clusters


def merge_duplicate_symmetries(
    symmetries: Sequence[ReflectionalSymmetry],
    reference_points: Sequence[np.ndarray] | np.ndarray,
    occlusion_scores: Sequence[float],
    indices: Optional[Sequence[int]] = None,
    max_normal_angle_diff: float = math.radians(10.0),
    max_distance_diff: float = 0.01,
    max_reference_point_distance: float = -1.0,
) -> List[int]:
    """Cluster near-duplicate symmetries and keep one per cluster.

    Parameters
    ----------
    symmetries:
        All symmetries; ``indices`` refer into this sequence.
    reference_points:
        One reference point per symmetry.
    occlusion_scores:
        One occlusion score per symmetry.
    indices:
        Subset of symmetries to merge (for example the filtered ids). All
        symmetries are used when ``None``.
    max_normal_angle_diff, max_distance_diff, max_reference_point_distance:
        Similarity thresholds, see :func:`symmetries_similar`.

    Returns
    -------
    list of int
        One id per cluster, sorted ascending. Similarity is closed
        transitively, and each cluster is represented by its member with the
        lowest occlusion score (lowest id on ties).
    """

    if not (len(symmetries) == len(reference_points) == len(occlusion_scores)):
        raise ValueError("symmetries, reference_points and occlusion_scores must have the same length")

    ids = sorted(set(range(len(symmetries)) if indices is None else (int(i) for i in indices)))
    for sym_id in ids:
        if not 0 <= sym_id < len(symmetries):
            raise IndexError(f"symmetry index {sym_id} out of range")

    clusters = _DisjointSet(ids)
    for pos, id_a in enumerate(ids):
        for id_b in ids[pos + 1:]:
            if symmetries_similar(
                symmetries[id_a],
                symmetries[id_b],
                reference_points[id_a],
                reference_points[id_b],
                max_normal_angle_diff,
                max_distance_diff,
                max_reference_point_distance,
            ):
                clusters.union(id_a, id_b)

    merged_ids = sorted(
        min(members, key=lambda sym_id: (occlusion_scores[sym_id], sym_id))
        for members in clusters.groups().values()
    )
    logger.info("Merged %d symmetries into %d clusters", len(ids), len(merged_ids))
    return merged_ids
