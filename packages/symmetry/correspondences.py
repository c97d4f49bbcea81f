"""Symmetric correspondences: pair each point with the neighbour of its mirror image."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.spatial import cKDTree

from packages.core.types import SymmetryPlane


@dataclass(frozen=True)
class CorrespondenceSet:
    """Correspondences of one candidate plane over the downsampled cloud.

    Row ``i`` describes point ``i``: the index of the nearest neighbour of
    its reflection, the reflected distance, the unoriented angle between
    the reflected normal and the neighbour's normal, and whether the pair
    passed the distance / normal-angle test.
    """

    targets: np.ndarray
    distances: np.ndarray
    normal_angles: np.ndarray
    valid: np.ndarray

    def __len__(self) -> int:
        return len(self.targets)

    @property
    def sources(self) -> np.ndarray:
        return np.arange(len(self.targets))

    @property
    def inlier_count(self) -> int:
        return int(self.valid.sum())

    def pairs(self) -> np.ndarray:
        """Accepted ``(source, target)`` index pairs as a (K, 2) array."""
        src = np.flatnonzero(self.valid)
        return np.column_stack((src, self.targets[src]))


def find_correspondences(
    plane: SymmetryPlane,
    points: np.ndarray,
    normals: np.ndarray,
    tree: cKDTree,
    *,
    max_distance: float,
    max_normal_angle: float,
) -> CorrespondenceSet:
    """Reflect the cloud through *plane* and match it against itself.

    A correspondence is accepted when the reflected point lies within
    *max_distance* of its nearest neighbour and the reflected normal is
    within *max_normal_angle* of the neighbour's normal.
    """
    if len(points) == 0:
        empty = np.zeros(0)
        return CorrespondenceSet(
            targets=np.zeros(0, dtype=np.int64),
            distances=empty,
            normal_angles=empty.copy(),
            valid=np.zeros(0, dtype=bool),
        )

    reflected = plane.reflect_points(points)
    reflected_normals = plane.reflect_normals(normals)
    distances, targets = tree.query(reflected, k=1)
    targets = np.asarray(targets, dtype=np.int64)
    distances = np.asarray(distances, dtype=np.float64)

    dots = np.abs(np.einsum("ij,ij->i", reflected_normals, normals[targets]))
    normal_angles = np.arccos(np.clip(dots, 0.0, 1.0))

    valid = (distances <= max_distance) & (normal_angles <= max_normal_angle)
    return CorrespondenceSet(
        targets=targets,
        distances=distances,
        normal_angles=normal_angles,
        valid=valid,
    )
