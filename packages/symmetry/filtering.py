"""Threshold filtering of scored symmetry candidates."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from packages.core.types import SymmetryScores

logger = logging.getLogger(__name__)


def passes_filter(
    scores: SymmetryScores,
    *,
    max_occlusion_score: float,
    min_cloud_inlier_score: float,
    min_corresp_inlier_score: float,
) -> bool:
    return (
        scores.occlusion_score <= max_occlusion_score
        and scores.cloud_inlier_score >= min_cloud_inlier_score
        and scores.corresp_inlier_score >= min_corresp_inlier_score
    )


def filter_symmetries(
    scores: Sequence[SymmetryScores],
    *,
    max_occlusion_score: float = 0.01,
    min_cloud_inlier_score: float = 0.2,
    min_corresp_inlier_score: float = 4.0,
) -> list[int]:
    """Return the indices of candidates that pass all three thresholds.

    Indices keep their original order.
    """
    kept = [
        i
        for i, s in enumerate(scores)
        if passes_filter(
            s,
            max_occlusion_score=max_occlusion_score,
            min_cloud_inlier_score=min_cloud_inlier_score,
            min_corresp_inlier_score=min_corresp_inlier_score,
        )
    ]
    logger.info("Filter kept %d of %d symmetries", len(kept), len(scores))
    return kept
