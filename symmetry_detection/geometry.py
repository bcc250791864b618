"""Reusable geometry utilities for rendering symmetry planes."""

from __future__ import annotations

from typing import Any, Mapping, Sequence, Tuple

import numpy as np

from .symmetry import ReflectionalSymmetry

SymmetryLike = Mapping[str, Any] | ReflectionalSymmetry


def _normalise(vec: np.ndarray) -> np.ndarray:
    vec = np.asarray(vec, dtype=np.float64)
    norm = float(np.linalg.norm(vec))
    if norm == 0.0:
        raise ValueError("Cannot normalise zero-length vector")
    return vec / norm


def as_symmetry(symmetry: SymmetryLike) -> ReflectionalSymmetry:
    """Accept a :class:`ReflectionalSymmetry` or a dict produced by the CLI."""

    if isinstance(symmetry, ReflectionalSymmetry):
        return symmetry
    if isinstance(symmetry, Mapping):
        return ReflectionalSymmetry.from_dict(symmetry)
    raise TypeError(f"Cannot interpret {type(symmetry).__name__} as a symmetry")


def orthonormal_basis(normal: Sequence[float] | np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Return two unit vectors spanning the plane orthogonal to ``normal``."""

    normal = _normalise(normal)
    canonical = np.array([0.0, 0.0, 1.0])
    if np.allclose(np.abs(normal), canonical):
        arbitrary = np.array([1.0, 0.0, 0.0])
    else:
        arbitrary = canonical

    basis_u = arbitrary - normal * np.dot(normal, arbitrary)
    basis_u = basis_u / np.linalg.norm(basis_u)
    basis_v = np.cross(normal, basis_u)
    basis_v = basis_v / np.linalg.norm(basis_v)
    return basis_u, basis_v


def plane_patch_vertices(
    symmetry: SymmetryLike,
    center: Sequence[float] | np.ndarray,
    half_extent: float,
) -> np.ndarray:
    """Corners ``(4, 3)`` of a square patch of the plane around ``center``.

    ``center`` is projected onto the plane first, so any nearby point (for
    example the cloud centroid) can be used.
    """

    symmetry = as_symmetry(symmetry)
    anchor = symmetry.project_point(np.asarray(center, dtype=np.float64))
    basis_u, basis_v = orthonormal_basis(symmetry.normal)
    offsets = (-basis_u - basis_v, basis_u - basis_v, basis_u + basis_v, -basis_u + basis_v)
    return np.stack([anchor + half_extent * offset for offset in offsets], axis=0)

