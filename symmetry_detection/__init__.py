"""Reflectional symmetry detection utilities.

This package detects mirror symmetry planes in point clouds with surface
normals. Hypotheses are refined against the cloud and scored with an
occupancy map so that parts of the scene that were never observed do not
count against a symmetry.
"""

from .cloud import PointCloud, downsample, load_point_cloud, save_point_cloud_ply
from .errors import InvalidParameterError, PreconditionError
from .geometry import orthonormal_basis, plane_patch_vertices
from .initial import generate_initial_symmetries, hemisphere_directions
from .merge import filter_symmetries, merge_duplicate_symmetries, symmetries_similar
from .occupancy import OccupancyMap, OccupancyQuery, OccupancyState, VoxelOccupancyMap
from .params import DetectionParams
from .refine import Correspondences, find_correspondences, fit_symmetry, refine_symmetry
from .score import SymmetryScores, score_symmetry
from .search import NeighborIndex
from .symmetry import ReflectionalSymmetry, normal_angle, plane_normal_angle
from .synthetic import (
    SymmetricCloudSpec,
    generate_flat_cloud,
    generate_symmetric_cloud,
    remove_mirror_fraction,
)

from .detect import DetectionState, ReflectionalSymmetryDetection, run_detection

__all__ = [
    "Correspondences",
    "DetectionParams",
    "DetectionState",
    "InvalidParameterError",
    "NeighborIndex",
    "OccupancyMap",
    "OccupancyQuery",
    "OccupancyState",
    "PointCloud",
    "PreconditionError",
    "ReflectionalSymmetry",
    "ReflectionalSymmetryDetection",
    "SymmetricCloudSpec",
    "SymmetryScores",
    "VoxelOccupancyMap",
    "downsample",
    "filter_symmetries",
    "find_correspondences",
    "fit_symmetry",
    "generate_flat_cloud",
    "generate_initial_symmetries",
    "generate_symmetric_cloud",
    "hemisphere_directions",
    "load_point_cloud",
    "merge_duplicate_symmetries",
    "normal_angle",
    "orthonormal_basis",
    "plane_normal_angle",
    "plane_patch_vertices",
    "refine_symmetry",
    "remove_mirror_fraction",
    "run_detection",
    "save_point_cloud_ply",
    "score_symmetry",
    "symmetries_similar",
]
