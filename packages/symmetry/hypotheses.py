"""Initial symmetry hypotheses from the principal axes of the cloud."""

from __future__ import annotations

import logging

import numpy as np
from scipy.spatial.transform import Rotation

from packages.core.types import SymmetryPlane

logger = logging.getLogger(__name__)

_MIN_POINTS = 2


def principal_axes(points: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return ``(centroid, eigenvalues, eigenvectors)`` of the point covariance.

    Eigenvalues are ascending; eigenvector ``i`` is column ``i``.
    """
    centroid = points.mean(axis=0)
    centered = points - centroid
    cov = centered.T @ centered / len(points)
    eigvals, eigvecs = np.linalg.eigh(cov)
    return centroid, eigvals, eigvecs


def is_flat(eigvals: np.ndarray, flatness_threshold: float) -> bool:
    """True when the smallest principal variance is negligible."""
    total = float(eigvals.sum())
    if total <= 0:
        return True
    return float(eigvals[0]) / total < flatness_threshold


def canonical_normal(normal: np.ndarray) -> np.ndarray:
    """Flip *normal* so that its largest-magnitude component is positive."""
    n = normal / np.linalg.norm(normal)
    if n[int(np.argmax(np.abs(n)))] < 0:
        n = -n
    return n


def _rotations_about(axis: np.ndarray, base: np.ndarray, divisions: int) -> list[np.ndarray]:
    angles = np.pi * np.arange(divisions) / divisions
    return list(Rotation.from_rotvec(np.outer(angles, axis)).apply(base))


def generate_initial_symmetries(
    points: np.ndarray,
    *,
    num_angle_divisions: int = 5,
    flatness_threshold: float = 0.005,
) -> list[SymmetryPlane]:
    """Sample candidate symmetry planes through the centroid of *points*.

    The principal axes are candidate normals themselves.  In addition the
    next principal axis is rotated about each reference axis in
    ``num_angle_divisions`` even steps over half a turn.  For a flat cloud
    the only reference axis is the flat normal, and the flat normal itself
    is never a candidate.  Normals within ``flatness_threshold`` of an
    accepted one (``1 - |n·m|``) are dropped as duplicates.
    """
    if len(points) < _MIN_POINTS:
        return []

    centroid, eigvals, eigvecs = principal_axes(points)
    axes = [eigvecs[:, i] for i in range(3)]  # minor, middle, major
    flat = is_flat(eigvals, flatness_threshold)

    if flat:
        candidates = [axes[2], axes[1]]
        candidates += _rotations_about(axes[0], axes[2], num_angle_divisions)
    else:
        candidates = [axes[2], axes[1], axes[0]]
        for ref in (2, 1, 0):
            base = axes[(ref + 2) % 3]
            candidates += _rotations_about(axes[ref], base, num_angle_divisions)

    tolerance = max(flatness_threshold, 1e-9)
    accepted: list[np.ndarray] = []
    for normal in candidates:
        normal = canonical_normal(normal)
        if flat and 1.0 - abs(float(normal @ axes[0])) < tolerance:
            continue
        if any(1.0 - abs(float(normal @ other)) < tolerance for other in accepted):
            continue
        accepted.append(normal)

    logger.info(
        "Generated %d initial symmetries (%s cloud, %d angle divisions)",
        len(accepted), "flat" if flat else "volumetric", num_angle_divisions,
    )
    return [SymmetryPlane.from_arrays(n, centroid) for n in accepted]
