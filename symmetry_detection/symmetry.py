"""Reflectional symmetry plane model.

A reflectional symmetry is stored as a plane ``{x : normal . x = offset}``
with a unit-length ``normal``. The sign of the normal carries no meaning:
``(n, d)`` and ``(-n, -d)`` describe the same reflection, which is why the
comparison helpers below work with the sign-ambiguous angle.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import numpy as np

VectorLike = Sequence[float] | np.ndarray


def _normalise(vec: VectorLike) -> np.ndarray:
    vec = np.asarray(vec, dtype=np.float64).reshape(3)
    norm = float(np.linalg.norm(vec))
    if not np.isfinite(norm) or norm == 0.0:
        raise ValueError("Symmetry normal must be a finite, non-zero vector")
    return vec / norm


def normal_angle(normal_a: VectorLike, normal_b: VectorLike) -> float:
    """Return the literal angle between two unit vectors in radians."""

    dot = float(np.clip(np.dot(normal_a, normal_b), -1.0, 1.0))
    return math.acos(dot)


def plane_normal_angle(normal_a: VectorLike, normal_b: VectorLike) -> float:
    """Return the angle between two plane normals, ignoring their sign.

    The result is ``min(theta, pi - theta)`` and therefore lies in
    ``[0, pi / 2]``.
    """

    dot = float(np.clip(abs(np.dot(normal_a, normal_b)), 0.0, 1.0))
    return math.acos(dot)


@dataclass(frozen=True, eq=False)
class ReflectionalSymmetry:
    """A reflection plane with unit ``normal`` and signed ``offset``.

    Attributes
    ----------
    normal:
        Unit-length plane normal (``float64``).
    offset:
        Signed distance of the plane from the coordinate origin along
        ``normal``.
    """

    normal: np.ndarray
    offset: float

    def __post_init__(self) -> None:
        normal = _normalise(self.normal)
        normal.setflags(write=False)
        offset = float(self.offset)
        if not math.isfinite(offset):
            raise ValueError("Symmetry offset must be finite")
        object.__setattr__(self, "normal", normal)
        object.__setattr__(self, "offset", offset)

    @classmethod
    def from_point_normal(cls, point: VectorLike, normal: VectorLike) -> "ReflectionalSymmetry":
        """Build the plane through ``point`` with the given ``normal``."""

        unit = _normalise(normal)
        point = np.asarray(point, dtype=np.float64).reshape(3)
        return cls(unit, float(np.dot(unit, point)))

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ReflectionalSymmetry":
        return cls(np.asarray(payload["normal"], dtype=np.float64), float(payload["offset"]))

    @property
    def origin(self) -> np.ndarray:
        """Point on the plane closest to the coordinate origin."""

        return self.normal * self.offset

    def signed_distance(self, points: VectorLike) -> np.ndarray | float:
        points = np.asarray(points, dtype=np.float64)
        distance = points @ self.normal - self.offset
        if points.ndim == 1:
            return float(distance)
        return distance

    def reflect_point(self, points: VectorLike) -> np.ndarray:
        """Mirror one point ``(3,)`` or many points ``(N, 3)`` across the plane."""

        points = np.asarray(points, dtype=np.float64)
        distance = points @ self.normal - self.offset
        return points - 2.0 * np.multiply.outer(distance, self.normal)

    def reflect_normal(self, normals: VectorLike) -> np.ndarray:
        """Mirror direction vectors across the plane (the offset is ignored)."""

        normals = np.asarray(normals, dtype=np.float64)
        return normals - 2.0 * np.multiply.outer(normals @ self.normal, self.normal)

    def project_point(self, points: VectorLike) -> np.ndarray:
        points = np.asarray(points, dtype=np.float64)
        distance = points @ self.normal - self.offset
        return points - np.multiply.outer(distance, self.normal)

    def aligned_with(self, other: "ReflectionalSymmetry") -> "ReflectionalSymmetry":
        """Return the same plane with its normal pointing into ``other``'s half-space."""

        if float(np.dot(self.normal, other.normal)) < 0.0:
            return ReflectionalSymmetry(-self.normal, -self.offset)
        return self

    def is_close(
        self,
        other: "ReflectionalSymmetry",
        angle_tol: float = 1e-6,
        offset_tol: float = 1e-6,
    ) -> bool:
        """Return ``True`` if ``other`` describes the same plane within tolerance."""

        aligned = other.aligned_with(self)
        return (
            plane_normal_angle(self.normal, aligned.normal) <= angle_tol
            and abs(self.offset - aligned.offset) <= offset_tol
        )

    def to_dict(self) -> dict:
        return {
            "normal": self.normal.tolist(),
            "offset": float(self.offset),
            "origin": self.origin.tolist(),
        }

    def __repr__(self) -> str:
        nx, ny, nz = (float(v) for v in self.normal)
        return f"ReflectionalSymmetry(normal=({nx:.4f}, {ny:.4f}, {nz:.4f}), offset={self.offset:.4f})"
