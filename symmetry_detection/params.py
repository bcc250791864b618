"""Detection parameters for reflectional symmetry detection."""

from __future__ import annotations

import math
import numbers
from dataclasses import asdict, dataclass, fields
from typing import Any, Mapping

from .errors import InvalidParameterError

ANGLE_FIELDS = (
    "min_inlier_normal_angle",
    "max_inlier_normal_angle",
    "symmetry_min_angle_diff",
)


@dataclass(frozen=True)
class DetectionParams:
    """Configuration record for a single detection run.

    Distances are in scene units and angles in radians. The record is
    immutable; use :func:`dataclasses.replace` (which re-validates) to derive
    a modified copy.

    Attributes
    ----------
    voxel_size:
        Edge length of the downsampling voxel grid. ``0`` disables
        downsampling.
    num_angle_divisions:
        Resolution of the hemisphere of initial plane normals.
    flatness_threshold:
        Minimum extent of the cloud along a candidate normal for the
        candidate to be kept.
    refine_iterations:
        Fixed number of refinement rounds per hypothesis.
    max_refine_correspondence_distance:
        Maximum reflected distance of a correspondence used to re-estimate
        the plane during refinement.
    max_correspondence_reflected_distance:
        Maximum distance between a reflected point and its match for the
        match to count as an inlier.
    min_occlusion_distance, max_occlusion_distance:
        Distance band over which an unmatched, occupied reflection ramps
        from no penalty to a full occlusion penalty.
    min_inlier_normal_angle, max_inlier_normal_angle:
        Normal disagreement band. Matches at or below the minimum get full
        weight, weights fall linearly to zero at the maximum and matches
        above the maximum are rejected.
    max_occlusion_score, min_cloud_inlier_score, min_corresp_inlier_score:
        Filtering thresholds.
    symmetry_min_angle_diff, symmetry_min_distance_diff, max_reference_point_distance:
        Merging thresholds. A negative ``max_reference_point_distance``
        disables the reference point check.
    """

    # Downsample parameters
    voxel_size: float = 0.0

    # Initialization parameters
    num_angle_divisions: int = 5
    flatness_threshold: float = 0.005

    # Refinement parameters
    refine_iterations: int = 20
    max_refine_correspondence_distance: float = 0.05

    # Scoring parameters
    max_correspondence_reflected_distance: float = 0.01
    min_occlusion_distance: float = 0.01
    max_occlusion_distance: float = 0.2
    min_inlier_normal_angle: float = math.radians(10.0)
    max_inlier_normal_angle: float = math.radians(15.0)

    # Filtering parameters
    max_occlusion_score: float = 0.01
    min_cloud_inlier_score: float = 0.2
    min_corresp_inlier_score: float = 0.5

    # Merging parameters
    symmetry_min_angle_diff: float = math.radians(7.0)
    symmetry_min_distance_diff: float = 0.02
    max_reference_point_distance: float = 0.3

    def __post_init__(self) -> None:
        for field in fields(self):
            value = getattr(self, field.name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise InvalidParameterError(f"{field.name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise InvalidParameterError(f"{field.name} must be finite, got {value!r}")

        for name in ("num_angle_divisions", "refine_iterations"):
            if int(getattr(self, name)) != getattr(self, name):
                raise InvalidParameterError(f"{name} must be an integer")

        _require(self.voxel_size >= 0.0, "voxel_size must be non-negative")
        _require(self.num_angle_divisions >= 1, "num_angle_divisions must be at least 1")
        _require(self.flatness_threshold >= 0.0, "flatness_threshold must be non-negative")
        _require(self.refine_iterations >= 0, "refine_iterations must be non-negative")
        _require(
            self.max_refine_correspondence_distance > 0.0,
            "max_refine_correspondence_distance must be positive",
        )
        _require(
            self.max_correspondence_reflected_distance > 0.0,
            "max_correspondence_reflected_distance must be positive",
        )
        _require(self.min_occlusion_distance >= 0.0, "min_occlusion_distance must be non-negative")
        _require(
            self.max_occlusion_distance > self.min_occlusion_distance,
            "max_occlusion_distance must exceed min_occlusion_distance",
        )
        _require(self.min_inlier_normal_angle >= 0.0, "min_inlier_normal_angle must be non-negative")
        _require(
            self.min_inlier_normal_angle < self.max_inlier_normal_angle <= math.pi / 2.0,
            "max_inlier_normal_angle must lie in (min_inlier_normal_angle, pi/2]",
        )
        _require(0.0 <= self.max_occlusion_score <= 1.0, "max_occlusion_score must lie in [0, 1]")
        _require(0.0 <= self.min_cloud_inlier_score <= 1.0, "min_cloud_inlier_score must lie in [0, 1]")
        _require(
            0.0 <= self.min_corresp_inlier_score <= 1.0,
            "min_corresp_inlier_score must lie in [0, 1]",
        )
        _require(self.symmetry_min_angle_diff >= 0.0, "symmetry_min_angle_diff must be non-negative")
        _require(
            self.symmetry_min_distance_diff >= 0.0,
            "symmetry_min_distance_diff must be non-negative",
        )

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], *, degrees: bool = False) -> "DetectionParams":
        """Build parameters from a mapping of field names to values.

        When ``degrees`` is true the angle fields are interpreted in degrees.
        Unknown keys raise :class:`InvalidParameterError`.
        """

        known = {field.name for field in fields(cls)}
        unknown = sorted(set(payload) - known)
        if unknown:
            raise InvalidParameterError(f"Unknown detection parameters: {unknown}")

        values = dict(payload)
        if degrees:
            for name in ANGLE_FIELDS:
                if name in values:
                    try:
                        values[name] = math.radians(float(values[name]))
                    except (TypeError, ValueError) as exc:
                        raise InvalidParameterError(f"{name} must be a number, got {values[name]!r}") from exc
        return cls(**values)

    def to_dict(self, *, degrees: bool = False) -> dict:
        values = asdict(self)
        if degrees:
            for name in ANGLE_FIELDS:
                values[name] = math.degrees(values[name])
        return values


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise InvalidParameterError(message)
