"""Reflectional symmetry detection session.

:class:`ReflectionalSymmetryDetection` drives the pipeline::

    detector = ReflectionalSymmetryDetection(DetectionParams(voxel_size=0.005))
    detector.set_input_cloud(cloud)
    detector.set_input_occupancy_map(occupancy_map)
    detector.detect()
    detector.filter()
    detector.merge()
    symmetries, filtered_ids, merged_ids = detector.get_symmetries()

Every stage produces a new :class:`DetectionState`; the session only swaps
the state it holds.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np
from tqdm import tqdm

from .cloud import OrientedPoints, PointCloud, downsample
from .errors import InvalidParameterError, PreconditionError
from .initial import generate_initial_symmetries
from .merge import filter_symmetries, merge_duplicate_symmetries
from .occupancy import OccupancyMap
from .params import DetectionParams
from .refine import Correspondences, refine_symmetry
from .score import score_symmetry
from .search import NeighborIndex
from .symmetry import ReflectionalSymmetry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class DetectionState:
    """Results of one detection run, indexed by symmetry id."""

    params: DetectionParams
    cloud_ds: PointCloud
    cloud_mean: np.ndarray
    symmetries_initial: Tuple[ReflectionalSymmetry, ...]
    symmetries: Tuple[ReflectionalSymmetry, ...]
    correspondences: Tuple[Correspondences, ...]
    occlusion_scores: Tuple[float, ...]
    cloud_inlier_scores: Tuple[float, ...]
    corresp_inlier_scores: Tuple[float, ...]
    point_symmetry_scores: Tuple[np.ndarray, ...]
    point_occlusion_scores: Tuple[np.ndarray, ...]
    filtered_ids: Optional[Tuple[int, ...]] = None
    merged_ids: Optional[Tuple[int, ...]] = None

    def reference_points(self) -> np.ndarray:
        """Projection of the input cloud mean onto each symmetry plane."""

        if not self.symmetries:
            return np.zeros((0, 3), dtype=np.float64)
        return np.stack([symmetry.project_point(self.cloud_mean) for symmetry in self.symmetries])

    def to_dicts(self, ids: Optional[Iterable[int]] = None) -> List[dict]:
        """JSON-serialisable summary of the selected (default: all) symmetries."""

        selected = range(len(self.symmetries)) if ids is None else ids
        reference_points = self.reference_points()
        payload = []
        for sym_id in selected:
            entry = self.symmetries[sym_id].to_dict()
            entry.update(
                {
                    "id": int(sym_id),
                    "reference_point": reference_points[sym_id].tolist(),
                    "occlusion_score": float(self.occlusion_scores[sym_id]),
                    "cloud_inlier_score": float(self.cloud_inlier_scores[sym_id]),
                    "corresp_inlier_score": float(self.corresp_inlier_scores[sym_id]),
                    "num_correspondences": len(self.correspondences[sym_id]),
                }
            )
            payload.append(entry)
        return payload


def run_detection(
    cloud: PointCloud,
    occupancy_map: OccupancyMap,
    params: DetectionParams,
    initial_symmetries: Optional[Iterable[ReflectionalSymmetry]] = None,
    progress: bool = False,
) -> DetectionState:
    """Downsample, generate (unless given), refine and score hypotheses."""

    cloud_mean = cloud.centroid()
    cloud_ds = downsample(cloud, params.voxel_size)

    if initial_symmetries is None:
        symmetries_initial = tuple(
            generate_initial_symmetries(
                cloud_ds.points,
                cloud_ds.centroid(),
                params.num_angle_divisions,
                params.flatness_threshold,
            )
        )
    else:
        symmetries_initial = tuple(initial_symmetries)

    index = NeighborIndex(cloud_ds.points)
    refined: List[ReflectionalSymmetry] = []
    correspondences: List[Correspondences] = []
    scores = []
    for symmetry in tqdm(symmetries_initial, desc="Refining symmetries", unit="hypothesis", disable=not progress):
        symmetry_refined, corr = refine_symmetry(
            symmetry,
            cloud_ds,
            index,
            params.refine_iterations,
            params.min_inlier_normal_angle,
            params.max_inlier_normal_angle,
            max_fit_distance=params.max_refine_correspondence_distance,
        )
        refined.append(symmetry_refined)
        correspondences.append(corr)
        scores.append(score_symmetry(symmetry_refined, cloud_ds, corr, occupancy_map, params))

    logger.info("Refined and scored %d symmetry hypotheses on %d points", len(refined), len(cloud_ds))
    return DetectionState(
        params=params,
        cloud_ds=cloud_ds,
        cloud_mean=cloud_mean,
        symmetries_initial=symmetries_initial,
        symmetries=tuple(refined),
        correspondences=tuple(correspondences),
        occlusion_scores=tuple(s.occlusion_score for s in scores),
        cloud_inlier_scores=tuple(s.cloud_inlier_score for s in scores),
        corresp_inlier_scores=tuple(s.corresp_inlier_score for s in scores),
        point_symmetry_scores=tuple(s.point_symmetry_scores for s in scores),
        point_occlusion_scores=tuple(s.point_occlusion_scores for s in scores),
    )


def filter_state(state: DetectionState) -> DetectionState:
    filtered_ids = filter_symmetries(
        state.occlusion_scores,
        state.cloud_inlier_scores,
        state.corresp_inlier_scores,
        state.params,
    )
    logger.info("%d of %d symmetries passed filtering", len(filtered_ids), len(state.symmetries))
    filtered_ids = tuple(filtered_ids)
    # Merge results stay valid as long as the filtered set is unchanged.
    merged_ids = state.merged_ids if filtered_ids == state.filtered_ids else None
    return dataclasses.replace(state, filtered_ids=filtered_ids, merged_ids=merged_ids)


def merge_state(state: DetectionState) -> DetectionState:
    if state.filtered_ids is None:
        raise PreconditionError("filter() must run before merge()")

    params = state.params
    merged_ids = merge_duplicate_symmetries(
        state.symmetries,
        state.reference_points(),
        state.occlusion_scores,
        indices=state.filtered_ids,
        max_normal_angle_diff=params.symmetry_min_angle_diff,
        max_distance_diff=params.symmetry_min_distance_diff,
        max_reference_point_distance=params.max_reference_point_distance,
    )
    return dataclasses.replace(state, merged_ids=tuple(merged_ids))


class ReflectionalSymmetryDetection:
    """Stateful front end over the detection pipeline.

    Inputs are attached with the ``set_*`` methods, then :meth:`detect`,
    :meth:`filter` and :meth:`merge` run in that order. Calling a stage or a
    getter before its prerequisites raises :class:`PreconditionError`.
    """

    def __init__(self, params: Optional[DetectionParams] = None) -> None:
        self._params = params if params is not None else DetectionParams()
        self._cloud: Optional[PointCloud] = None
        self._occupancy_map: Optional[OccupancyMap] = None
        self._initial_symmetries: Optional[Tuple[ReflectionalSymmetry, ...]] = None
        self._state: Optional[DetectionState] = None

    @property
    def params(self) -> DetectionParams:
        return self._params

    @property
    def state(self) -> DetectionState:
        if self._state is None:
            raise PreconditionError("detect() has not been run")
        return self._state

    def set_input_cloud(self, cloud: OrientedPoints) -> None:
        self._cloud = PointCloud.from_oriented(cloud)

    def set_input_occupancy_map(self, occupancy_map: OccupancyMap) -> None:
        self._occupancy_map = occupancy_map

    def set_input_symmetries(self, symmetries: Optional[Iterable[ReflectionalSymmetry]]) -> None:
        """Use ``symmetries`` instead of generated hypotheses (``None`` restores generation)."""

        self._initial_symmetries = None if symmetries is None else tuple(symmetries)

    def set_parameters(self, params: Optional[DetectionParams] = None, **overrides) -> None:
        """Replace the parameters and/or override individual fields.

        Raises :class:`~symmetry_detection.errors.InvalidParameterError` for
        invalid values or unknown field names; the previous parameters are kept
        in that case.
        """

        unknown = sorted(set(overrides) - {field.name for field in dataclasses.fields(DetectionParams)})
        if unknown:
            raise InvalidParameterError(f"Unknown detection parameters: {unknown}")
        base = params if params is not None else self._params
        self._params = dataclasses.replace(base, **overrides) if overrides else base

    def detect(self, progress: bool = False) -> bool:
        """Run generation, refinement and scoring.

        Returns ``True`` if at least one symmetry hypothesis was refined and
        scored. Errors raised by the occupancy map propagate.
        """

        if self._cloud is None:
            raise PreconditionError("set_input_cloud() must be called before detect()")
        if self._occupancy_map is None:
            raise PreconditionError("set_input_occupancy_map() must be called before detect()")

        self._state = None
        self._state = run_detection(
            self._cloud,
            self._occupancy_map,
            self._params,
            initial_symmetries=self._initial_symmetries,
            progress=progress,
        )
        return len(self._state.symmetries) > 0

    def filter(self) -> None:
        self._state = filter_state(self.state)

    def merge(self) -> None:
        self._state = merge_state(self.state)

    def get_symmetries(self) -> Tuple[List[ReflectionalSymmetry], List[int], List[int]]:
        """Return all refined symmetries with the filtered and merged ids.

        Ids of stages that have not run yet are returned as empty lists.
        """

        state = self.state
        return (
            list(state.symmetries),
            list(state.filtered_ids or ()),
            list(state.merged_ids or ()),
        )

    def get_scores(self) -> Tuple[List[float], List[float], List[float]]:
        """Return occlusion, cloud inlier and correspondence inlier scores."""

        state = self.state
        return (
            list(state.occlusion_scores),
            list(state.cloud_inlier_scores),
            list(state.corresp_inlier_scores),
        )

    def get_point_scores(
        self,
    ) -> Tuple[PointCloud, List[Correspondences], List[np.ndarray], List[np.ndarray]]:
        """Return the downsampled cloud, correspondences and per-point scores."""

        state = self.state
        return (
            state.cloud_ds,
            list(state.correspondences),
            list(state.point_symmetry_scores),
            list(state.point_occlusion_scores),
        )
