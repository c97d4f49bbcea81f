"""Reflectional symmetry detection: the stateful front end of the pipeline.

:class:`ReflectionalSymmetryDetector` owns one detection run.  Inputs are
set first, then the stages run in order::

    detector = ReflectionalSymmetryDetector(params)
    detector.set_input_cloud(points, normals)
    detector.set_occupancy_map(occupancy)
    if detector.detect():
        detector.filter()
        detector.merge()
    symmetries, filtered_ids, merged_ids = detector.get_symmetries()

Every stage is a pure function of its inputs; the detector only keeps
references to the latest outputs and replaces them wholesale.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from scipy.spatial import cKDTree

from packages.core.errors import ConfigurationError, SequencingError
from packages.core.types import (
    DetectionParameters,
    DetectionStage,
    SymmetryPlane,
    SymmetryScores,
)
from packages.symmetry.correspondences import CorrespondenceSet
from packages.symmetry.filtering import filter_symmetries
from packages.symmetry.hypotheses import generate_initial_symmetries
from packages.symmetry.merging import merge_duplicate_symmetries
from packages.symmetry.occupancy import OccupancyQuery
from packages.symmetry.preprocess import estimate_normals, voxel_downsample
from packages.symmetry.refine import refine_symmetry
from packages.symmetry.scoring import PointScores, compute_point_scores, score_symmetry

logger = logging.getLogger(__name__)

Downsampler = Callable[[np.ndarray, np.ndarray, float], tuple[np.ndarray, np.ndarray]]

_MIN_CLOUD_POINTS = 2


def _as_cloud_array(values: np.ndarray, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return arr.reshape(0, 3)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"{name} must be an (N, 3) array, got shape {arr.shape}")
    return arr


class ReflectionalSymmetryDetector:
    """Detect, filter and merge reflectional symmetries of a point cloud."""

    def __init__(
        self,
        params: DetectionParameters | None = None,
        *,
        downsampler: Downsampler = voxel_downsample,
    ) -> None:
        self._params = params or DetectionParameters()
        self._downsampler = downsampler

        self._points: np.ndarray | None = None
        self._normals: np.ndarray | None = None
        self._occupancy: OccupancyQuery | None = None
        self._initial_symmetries: list[SymmetryPlane] = []
        self._reset_results()

    # ── configuration ────────────────────────────────────────────────

    def set_input_cloud(self, points: np.ndarray, normals: np.ndarray | None = None) -> None:
        """Set the cloud to analyse.  Normals are estimated when omitted."""
        points = _as_cloud_array(points, "points")
        if normals is None:
            normals = estimate_normals(points)
        normals = _as_cloud_array(normals, "normals")
        if len(normals) != len(points):
            raise ValueError(
                f"got {len(points)} points but {len(normals)} normals"
            )
        self._points = points
        self._normals = normals
        self._reset_results()

    def set_occupancy_map(self, occupancy: OccupancyQuery) -> None:
        self._occupancy = occupancy
        self._reset_results()

    def set_input_symmetries(self, symmetries: Sequence[SymmetryPlane]) -> None:
        """Use *symmetries* as the initial candidates instead of generating them."""
        self._initial_symmetries = list(symmetries)
        self._reset_results()

    def set_parameters(self, params: DetectionParameters) -> None:
        self._params = params
        self._reset_results()

    @property
    def parameters(self) -> DetectionParameters:
        return self._params

    @property
    def stage(self) -> DetectionStage:
        if self._stage is not None:
            return self._stage
        if self._points is not None and self._occupancy is not None:
            return DetectionStage.CONFIGURED
        return DetectionStage.UNINITIALIZED

    def _reset_results(self) -> None:
        self._stage: DetectionStage | None = None
        self._points_ds = np.zeros((0, 3))
        self._normals_ds = np.zeros((0, 3))
        self._symmetries: list[SymmetryPlane] = []
        self._reference_points: list[np.ndarray] = []
        self._correspondences: list[CorrespondenceSet] = []
        self._scores: list[SymmetryScores] = []
        self._filtered_ids: list[int] | None = None
        self._merged_ids: list[int] | None = None

    # ── pipeline ─────────────────────────────────────────────────────

    def detect(self) -> bool:
        """Generate, refine and score symmetry candidates.

        Returns False when the cloud is too small to hold a symmetry or no
        candidate could be generated.  Raises :class:`ConfigurationError`
        when the cloud or the occupancy map has not been set.
        """
        if self._points is None or self._normals is None:
            raise ConfigurationError("input cloud has not been set")
        if self._occupancy is None:
            raise ConfigurationError("occupancy map has not been set")

        self._reset_results()
        params = self._params

        points, normals = self._points, self._normals
        if params.voxel_size > 0 and len(points) > 0:
            points, normals = self._downsampler(points, normals, params.voxel_size)
            logger.info(
                "Down-sampled %d → %d points (voxel_size=%.3f)",
                len(self._points), len(points), params.voxel_size,
            )

        if len(points) < _MIN_CLOUD_POINTS:
            logger.warning("Cloud has %d point(s); nothing to detect", len(points))
            return False

        if self._initial_symmetries:
            initial = list(self._initial_symmetries)
            logger.info("Using %d supplied initial symmetries", len(initial))
        else:
            initial = generate_initial_symmetries(
                points,
                num_angle_divisions=params.num_angle_divisions,
                flatness_threshold=params.flatness_threshold,
            )
        if not initial:
            logger.warning("No initial symmetries could be generated")
            return False

        tree = cKDTree(points)
        centroid = points.mean(axis=0)
        occupancy = self._occupancy

        def process(plane: SymmetryPlane) -> tuple[SymmetryPlane, CorrespondenceSet, SymmetryScores]:
            refined, corr = refine_symmetry(plane, points, normals, tree, params, anchor=centroid)
            scores = score_symmetry(refined, points, occupancy, corr, params)
            return refined, corr, scores

        logger.info("Refining and scoring %d candidates …", len(initial))
        if params.max_workers > 1:
            with ThreadPoolExecutor(max_workers=params.max_workers) as pool:
                results = list(pool.map(process, initial))
        else:
            results = [process(plane) for plane in initial]

        self._points_ds = points
        self._normals_ds = normals
        self._symmetries = [r[0] for r in results]
        self._correspondences = [r[1] for r in results]
        self._scores = [r[2] for r in results]
        self._reference_points = [
            sym.project_points(centroid) for sym in self._symmetries
        ]
        self._stage = DetectionStage.DETECTED

        for i, (sym, s) in enumerate(zip(self._symmetries, self._scores)):
            logger.debug(
                "  Symmetry %d: n=(%.3f, %.3f, %.3f) occlusion=%.3f cloud=%.3f corresp=%.2f",
                i, sym.normal.x, sym.normal.y, sym.normal.z,
                s.occlusion_score, s.cloud_inlier_score, s.corresp_inlier_score,
            )
        logger.info("Detected %d symmetry candidates", len(self._symmetries))
        return True

    def _require_detected(self, operation: str) -> None:
        if self._stage is None:
            raise SequencingError(f"{operation}() called before a successful detect()")

    def filter(self) -> list[int]:
        """Keep the candidates whose scores pass the configured thresholds."""
        self._require_detected("filter")
        params = self._params
        self._filtered_ids = filter_symmetries(
            self._scores,
            max_occlusion_score=params.max_occlusion_score,
            min_cloud_inlier_score=params.min_cloud_inlier_score,
            min_corresp_inlier_score=params.min_corresp_inlier_score,
        )
        self._merged_ids = None
        self._stage = DetectionStage.FILTERED
        return list(self._filtered_ids)

    def merge(self) -> list[int]:
        """Collapse duplicate candidates.

        Works on the filtered candidates when :meth:`filter` has run since
        the last :meth:`detect`, otherwise on all of them.
        """
        self._require_detected("merge")
        params = self._params
        self._merged_ids = merge_duplicate_symmetries(
            self._symmetries,
            self._reference_points,
            self._filtered_ids,
            max_normal_angle_diff=params.symmetry_min_angle_diff,
            max_distance_diff=params.symmetry_min_distance_diff,
            max_reference_point_distance=params.max_reference_point_distance,
        )
        self._stage = DetectionStage.MERGED
        return list(self._merged_ids)

    # ── results ──────────────────────────────────────────────────────

    def get_symmetries(self) -> tuple[list[SymmetryPlane], list[int], list[int]]:
        """Return ``(refined_symmetries, filtered_ids, merged_ids)``."""
        return (
            list(self._symmetries),
            list(self._filtered_ids or []),
            list(self._merged_ids or []),
        )

    def get_scores(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return ``(occlusion, cloud_inlier, corresp_inlier)`` score arrays."""
        return (
            np.array([s.occlusion_score for s in self._scores], dtype=np.float64),
            np.array([s.cloud_inlier_score for s in self._scores], dtype=np.float64),
            np.array([s.corresp_inlier_score for s in self._scores], dtype=np.float64),
        )

    @property
    def scores(self) -> list[SymmetryScores]:
        return list(self._scores)

    @property
    def reference_points(self) -> list[np.ndarray]:
        return [p.copy() for p in self._reference_points]

    @property
    def downsampled_cloud(self) -> tuple[np.ndarray, np.ndarray]:
        return self._points_ds, self._normals_ds

    def get_point_scores(
        self,
    ) -> tuple[np.ndarray, list[CorrespondenceSet], list[np.ndarray], list[np.ndarray]]:
        """Return ``(cloud_ds, correspondences, point_symmetry, point_occlusion)``.

        The per-point vectors are computed on each call.
        """
        self._require_detected("get_point_scores")
        point_scores: list[PointScores] = [
            compute_point_scores(sym, self._points_ds, self._occupancy, corr, self._params)
            for sym, corr in zip(self._symmetries, self._correspondences)
        ]
        return (
            self._points_ds,
            list(self._correspondences),
            [ps.symmetry for ps in point_scores],
            [ps.occlusion for ps in point_scores],
        )
