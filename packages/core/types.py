"""Pydantic models for symmetry planes, detection parameters and reports.

The report is the structured JSON output of the symmetry-detection
pipeline.  It lists every refined symmetry plane with its scores, plus
the ids that survived filtering and duplicate merging.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ── tiny helpers ──────────────────────────────────────────────────────
class Vec3(BaseModel):
    """A 3-component vector (x, y, z) in metres."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    z: float

    @classmethod
    def from_array(cls, values: np.ndarray) -> Vec3:
        return cls(x=float(values[0]), y=float(values[1]), z=float(values[2]))

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)


# ── symmetry primitive ───────────────────────────────────────────────
class SymmetryPlane(BaseModel):
    """A reflection plane given by a unit normal and a point on the plane.

    The normal is normalised on construction.  Instances are frozen:
    refinement always builds a new plane.
    """

    model_config = ConfigDict(frozen=True)

    normal: Vec3
    point: Vec3

    @field_validator("normal")
    @classmethod
    def _unit_normal(cls, v: Vec3) -> Vec3:
        n = v.to_array()
        norm = np.linalg.norm(n)
        if not np.isfinite(norm) or norm < 1e-12:
            raise ValueError("symmetry plane normal must be a non-zero vector")
        return Vec3.from_array(n / norm)

    @classmethod
    def from_arrays(cls, normal: np.ndarray, point: np.ndarray) -> SymmetryPlane:
        return cls(normal=Vec3.from_array(normal), point=Vec3.from_array(point))

    @property
    def normal_array(self) -> np.ndarray:
        return self.normal.to_array()

    @property
    def point_array(self) -> np.ndarray:
        return self.point.to_array()

    @property
    def offset(self) -> float:
        """Signed distance of the plane from the origin (Hesse form n·x = d)."""
        return float(np.dot(self.normal_array, self.point_array))

    def signed_distance(self, points: np.ndarray) -> np.ndarray | float:
        """Signed distance of a point or an (N, 3) array of points."""
        pts = np.asarray(points, dtype=np.float64)
        d = pts @ self.normal_array - self.offset
        return float(d) if pts.ndim == 1 else d

    def reflect_points(self, points: np.ndarray) -> np.ndarray:
        pts = np.asarray(points, dtype=np.float64)
        n = self.normal_array
        d = pts @ n - self.offset
        return pts - 2.0 * np.multiply.outer(d, n)

    def reflect_normals(self, normals: np.ndarray) -> np.ndarray:
        """Reflect direction vectors (no translation part)."""
        v = np.asarray(normals, dtype=np.float64)
        n = self.normal_array
        return v - 2.0 * np.multiply.outer(v @ n, n)

    def project_points(self, points: np.ndarray) -> np.ndarray:
        pts = np.asarray(points, dtype=np.float64)
        n = self.normal_array
        d = pts @ n - self.offset
        return pts - np.multiply.outer(d, n)

    def angle_to(self, other: SymmetryPlane) -> float:
        """Unoriented angle between the two plane normals, in ``[0, π/2]``."""
        dot = abs(float(np.dot(self.normal_array, other.normal_array)))
        return math.acos(min(dot, 1.0))


# ── occupancy ────────────────────────────────────────────────────────
class OccupancyState(str, Enum):
    OBSERVED = "observed"
    FREE = "free"
    OCCLUDED = "occluded"
    UNKNOWN = "unknown"


# ── detection parameters ─────────────────────────────────────────────
class DetectionParameters(BaseModel):
    """Configuration for one detection run.  Angles are in radians."""

    model_config = ConfigDict(frozen=True)

    # downsampling
    voxel_size: float = Field(default=0.0, ge=0.0, description="0 disables downsampling")

    # initialisation
    num_angle_divisions: int = Field(default=5, ge=1)
    flatness_threshold: float = Field(default=0.005, ge=0.0)

    # refinement
    refine_iterations: int = Field(default=20, ge=0)

    # scoring
    max_correspondence_reflected_distance: float = Field(default=0.01, gt=0.0)
    min_occlusion_distance: float = Field(default=0.01, ge=0.0)
    max_occlusion_distance: float = Field(default=0.2, gt=0.0)
    min_inlier_normal_angle: float = Field(default=math.radians(10.0), ge=0.0)
    max_inlier_normal_angle: float = Field(default=math.radians(15.0), ge=0.0)

    # filtering
    max_occlusion_score: float = 0.01
    min_cloud_inlier_score: float = 0.2
    min_corresp_inlier_score: float = 4.0

    # merging
    symmetry_min_angle_diff: float = Field(default=math.radians(7.0), ge=0.0)
    symmetry_min_distance_diff: float = Field(default=0.02, ge=0.0)
    max_reference_point_distance: float = Field(
        default=0.3, description="Negative disables the reference point check"
    )

    # execution
    max_workers: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def _check_windows(self) -> DetectionParameters:
        if self.min_inlier_normal_angle > self.max_inlier_normal_angle:
            raise ValueError("min_inlier_normal_angle must not exceed max_inlier_normal_angle")
        if self.min_occlusion_distance >= self.max_occlusion_distance:
            raise ValueError("min_occlusion_distance must be below max_occlusion_distance")
        return self


class SymmetryScores(BaseModel):
    """Scores of one refined candidate."""

    model_config = ConfigDict(frozen=True)

    occlusion_score: float
    cloud_inlier_score: float
    corresp_inlier_score: float


# ── report ───────────────────────────────────────────────────────────
class DetectedSymmetry(BaseModel):
    """A refined symmetry plane with its scores and pipeline verdicts."""

    index: int
    normal: Vec3
    point: Vec3
    reference_point: Vec3
    scores: SymmetryScores
    filtered: bool = False
    merged: bool = False


class SymmetryReport(BaseModel):
    """Top-level report produced by the detection pipeline."""

    version: str = "0.1.0"
    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    units: str = "metres"
    source_file: str = ""
    point_count: int = 0
    downsampled_point_count: int = 0
    parameters: DetectionParameters = Field(default_factory=DetectionParameters)
    symmetries: list[DetectedSymmetry] = Field(default_factory=list)
    filtered_ids: list[int] = Field(default_factory=list)
    merged_ids: list[int] = Field(default_factory=list)


# ── detection stage (orchestrator state machine) ─────────────────────
class DetectionStage(str, Enum):
    UNINITIALIZED = "UNINITIALIZED"
    CONFIGURED = "CONFIGURED"
    DETECTED = "DETECTED"
    FILTERED = "FILTERED"
    MERGED = "MERGED"
