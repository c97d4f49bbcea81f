"""Scoring of refined symmetry candidates.

Three independent scores are computed per candidate:

* **occlusion** – mean per-point penalty for reflections that fall into
  occluded space away from any observed surface,
* **cloud inlier** – fraction of the cloud with an accepted correspondence,
* **correspondence inlier** – sum of per-correspondence quality weights,
  so many weak matches and few strong matches are told apart.

Per-point vectors are only needed for inspection and are computed on
request by :func:`compute_point_scores`.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from packages.core.types import (
    DetectionParameters,
    OccupancyState,
    SymmetryPlane,
    SymmetryScores,
)
from packages.symmetry.correspondences import CorrespondenceSet
from packages.symmetry.occupancy import OccupancyQuery


@dataclass(frozen=True)
class PointScores:
    """Per-point symmetry and occlusion scores of one candidate."""

    symmetry: np.ndarray
    occlusion: np.ndarray


def correspondence_weights(
    corr: CorrespondenceSet,
    params: DetectionParameters,
) -> np.ndarray:
    """Quality weight in ``[0, 1]`` per point; 0 for rejected correspondences.

    The distance term falls linearly from 1 at zero distance to 0 at the
    correspondence distance limit.  The normal term is 1 up to
    ``min_inlier_normal_angle`` and falls linearly to 0 at
    ``max_inlier_normal_angle``.
    """
    max_dist = params.max_correspondence_reflected_distance
    dist_w = np.clip(1.0 - corr.distances / max_dist, 0.0, 1.0)

    lo, hi = params.min_inlier_normal_angle, params.max_inlier_normal_angle
    if hi > lo:
        angle_w = np.clip((hi - corr.normal_angles) / (hi - lo), 0.0, 1.0)
    else:
        angle_w = (corr.normal_angles <= hi).astype(np.float64)

    return np.where(corr.valid, dist_w * angle_w, 0.0)


def point_occlusion_scores(
    plane: SymmetryPlane,
    points: np.ndarray,
    occupancy: OccupancyQuery,
    corr: CorrespondenceSet,
    params: DetectionParameters,
) -> np.ndarray:
    """Occlusion penalty in ``[0, 1]`` per point.

    A reflected point within ``min_occlusion_distance`` of the cloud is
    matched and costs nothing, as does one the occupancy map reports as
    anything other than occluded.  Otherwise the penalty grows linearly
    with the distance to the nearest observed point and saturates at
    ``max_occlusion_distance``.  Reflections into FREE space are not
    penalised, so a partial view is never charged for empty space the
    sensor looked through.
    """
    lo, hi = params.min_occlusion_distance, params.max_occlusion_distance
    scores = np.zeros(len(points), dtype=np.float64)
    unmatched = np.flatnonzero(corr.distances > lo)
    if len(unmatched) == 0:
        return scores

    reflected = plane.reflect_points(points[unmatched])
    for i, p in zip(unmatched, reflected):
        if occupancy.classify(p) == OccupancyState.OCCLUDED:
            scores[i] = min(1.0, (corr.distances[i] - lo) / (hi - lo))
    return scores


def score_symmetry(
    plane: SymmetryPlane,
    points: np.ndarray,
    occupancy: OccupancyQuery,
    corr: CorrespondenceSet,
    params: DetectionParameters,
) -> SymmetryScores:
    """Compute the score triple of one candidate."""
    if len(points) == 0:
        return SymmetryScores(occlusion_score=0.0, cloud_inlier_score=0.0, corresp_inlier_score=0.0)

    occlusion = point_occlusion_scores(plane, points, occupancy, corr, params)
    weights = correspondence_weights(corr, params)
    return SymmetryScores(
        occlusion_score=float(occlusion.mean()),
        cloud_inlier_score=float(corr.valid.mean()),
        corresp_inlier_score=float(weights.sum()),
    )


def compute_point_scores(
    plane: SymmetryPlane,
    points: np.ndarray,
    occupancy: OccupancyQuery,
    corr: CorrespondenceSet,
    params: DetectionParameters,
) -> PointScores:
    """Per-point score vectors of one candidate, for inspection."""
    return PointScores(
        symmetry=correspondence_weights(corr, params),
        occlusion=point_occlusion_scores(plane, points, occupancy, corr, params),
    )
