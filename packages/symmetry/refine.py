"""Iterative refinement of a symmetry plane against the cloud it mirrors.

Each round reflects the cloud through the current plane, pairs every
reflected point with its nearest neighbour, and re-fits the plane to the
accepted pairs.  A true mirror pair ``(p, q)`` satisfies two constraints
at once: ``q - p`` is parallel to the plane normal and the midpoint
``(p + q) / 2`` lies on the plane.  The fit therefore takes the dominant
direction of the displacement vectors as the new normal and the mean
midpoint offset as the new plane position.
"""

from __future__ import annotations

import logging

import numpy as np
from scipy.spatial import cKDTree

from packages.core.errors import DegenerateGeometryError
from packages.core.types import DetectionParameters, SymmetryPlane
from packages.symmetry.correspondences import CorrespondenceSet, find_correspondences

logger = logging.getLogger(__name__)

_MIN_CORRESPONDENCES = 3
_CONVERGENCE_THRESHOLD = 1e-6


def fit_reflection_plane(
    sources: np.ndarray,
    targets: np.ndarray,
    previous: SymmetryPlane,
    anchor: np.ndarray,
) -> SymmetryPlane:
    """Least-squares reflection plane for point pairs ``sources[i] ↔ targets[i]``.

    The returned normal keeps the orientation of *previous*; the plane
    point is the projection of *anchor* onto the fitted plane.

    Raises :class:`DegenerateGeometryError` when there are too few pairs
    or every pair is a self-match (no displacement to fit a normal to).
    """
    if len(sources) < _MIN_CORRESPONDENCES:
        raise DegenerateGeometryError(
            f"{len(sources)} correspondences, need at least {_MIN_CORRESPONDENCES}"
        )

    displacements = targets - sources
    scatter = displacements.T @ displacements
    if np.trace(scatter) < 1e-12:
        raise DegenerateGeometryError("all correspondences are self-matches")

    _, eigvecs = np.linalg.eigh(scatter)
    normal = eigvecs[:, 2]
    if normal @ previous.normal_array < 0:
        normal = -normal

    midpoints = 0.5 * (sources + targets)
    offset = float(np.mean(midpoints @ normal))
    point = anchor - (float(anchor @ normal) - offset) * normal
    return SymmetryPlane.from_arrays(normal, point)


def _update_magnitude(old: SymmetryPlane, new: SymmetryPlane) -> float:
    dot = float(np.clip(old.normal_array @ new.normal_array, -1.0, 1.0))
    return float(np.arccos(dot)) + abs(new.offset - old.offset)


def refine_symmetry(
    plane: SymmetryPlane,
    points: np.ndarray,
    normals: np.ndarray,
    tree: cKDTree,
    params: DetectionParameters,
    *,
    anchor: np.ndarray | None = None,
) -> tuple[SymmetryPlane, CorrespondenceSet]:
    """Refine one candidate and return it with its final correspondences.

    Runs at most ``params.refine_iterations`` rounds and stops early once
    an update moves the plane by less than a small threshold.  If any
    round finds too few correspondences the input plane is returned
    unchanged.
    """
    if anchor is None:
        anchor = points.mean(axis=0)

    def correspondences_for(p: SymmetryPlane) -> CorrespondenceSet:
        return find_correspondences(
            p,
            points,
            normals,
            tree,
            max_distance=params.max_correspondence_reflected_distance,
            max_normal_angle=params.max_inlier_normal_angle,
        )

    current = plane
    corr = correspondences_for(current)
    for iteration in range(params.refine_iterations):
        pairs = corr.pairs()
        try:
            updated = fit_reflection_plane(
                points[pairs[:, 0]], points[pairs[:, 1]], current, anchor
            )
        except DegenerateGeometryError as exc:
            logger.debug("Refinement kept candidate unrefined at iteration %d: %s", iteration, exc)
            if current is plane:
                return plane, corr
            return plane, correspondences_for(plane)

        step = _update_magnitude(current, updated)
        current = updated
        corr = correspondences_for(current)
        if step < _CONVERGENCE_THRESHOLD:
            logger.debug("Refinement converged after %d iteration(s)", iteration + 1)
            break

    return current, corr
