"""Duplicate merging of symmetry planes.

Two symmetries are duplicates when their normals are nearly parallel, the
planes nearly coincide, and (optionally) their reference points are close.
Duplicates are grouped by transitive closure, so A and C end up in the
same cluster when both are duplicates of B.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

import numpy as np

from packages.core.types import SymmetryPlane

logger = logging.getLogger(__name__)


def are_similar(
    a: SymmetryPlane,
    b: SymmetryPlane,
    ref_a: np.ndarray,
    ref_b: np.ndarray,
    *,
    max_normal_angle_diff: float,
    max_distance_diff: float,
    max_reference_point_distance: float = -1.0,
) -> bool:
    """Return True if *a* and *b* describe the same symmetry.

    The plane distance is measured at the reference points, in both
    directions, and the larger value is used so that the test does not
    depend on argument order.
    """
    if a.angle_to(b) >= max_normal_angle_diff:
        return False

    plane_dist = max(abs(a.signed_distance(ref_b)), abs(b.signed_distance(ref_a)))
    if plane_dist >= max_distance_diff:
        return False

    if max_reference_point_distance >= 0:
        if float(np.linalg.norm(np.asarray(ref_a) - np.asarray(ref_b))) >= max_reference_point_distance:
            return False

    return True


class _UnionFind:
    def __init__(self, n: int) -> None:
        self.parent = list(range(n))

    def find(self, i: int) -> int:
        root = i
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[i] != root:
            self.parent[i], i = root, self.parent[i]
        return root

    def union(self, i: int, j: int) -> None:
        ri, rj = self.find(i), self.find(j)
        if ri != rj:
            # The earlier member stays the root
            if rj < ri:
                ri, rj = rj, ri
            self.parent[rj] = ri


def cluster_symmetries(
    symmetries: Sequence[SymmetryPlane],
    reference_points: Sequence[np.ndarray],
    indices: Sequence[int] | None = None,
    *,
    max_normal_angle_diff: float = math.radians(10.0),
    max_distance_diff: float = 0.01,
    max_reference_point_distance: float = -1.0,
) -> list[list[int]]:
    """Group candidate indices into clusters of duplicates.

    Members of each cluster are in ascending candidate index, and clusters
    are ordered by their lowest member.  *indices* defaults to all
    candidates; its order does not matter.
    """
    if len(reference_points) != len(symmetries):
        raise ValueError("need one reference point per symmetry")
    if indices is None:
        indices = range(len(symmetries))
    ids = sorted(set(indices))

    uf = _UnionFind(len(ids))
    for i in range(len(ids)):
        for j in range(i + 1, len(ids)):
            a, b = ids[i], ids[j]
            if are_similar(
                symmetries[a],
                symmetries[b],
                reference_points[a],
                reference_points[b],
                max_normal_angle_diff=max_normal_angle_diff,
                max_distance_diff=max_distance_diff,
                max_reference_point_distance=max_reference_point_distance,
            ):
                uf.union(i, j)

    clusters: dict[int, list[int]] = {}
    for pos, idx in enumerate(ids):
        clusters.setdefault(uf.find(pos), []).append(idx)
    return list(clusters.values())


def merge_duplicate_symmetries(
    symmetries: Sequence[SymmetryPlane],
    reference_points: Sequence[np.ndarray],
    indices: Sequence[int] | None = None,
    *,
    max_normal_angle_diff: float = math.radians(10.0),
    max_distance_diff: float = 0.01,
    max_reference_point_distance: float = -1.0,
) -> list[int]:
    """Collapse duplicate symmetries, keeping the lowest index of each cluster.

    With ``indices=None`` every candidate takes part; passing an explicit
    index list restricts merging to those candidates.  Returns the
    surviving indices in ascending order.
    """
    clusters = cluster_symmetries(
        symmetries,
        reference_points,
        indices,
        max_normal_angle_diff=max_normal_angle_diff,
        max_distance_diff=max_distance_diff,
        max_reference_point_distance=max_reference_point_distance,
    )
    merged = [members[0] for members in clusters]
    for members in clusters:
        if len(members) > 1:
            logger.debug("Merged symmetries %s into %d", members[1:], members[0])
    logger.info("Merged %d symmetries down to %d", sum(len(c) for c in clusters), len(merged))
    return merged
