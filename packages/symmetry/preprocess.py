"""Preprocessing helpers: voxel down-sampling and normal estimation."""

from __future__ import annotations

import numpy as np
from scipy.spatial import cKDTree


def voxel_downsample(
    points: np.ndarray,
    normals: np.ndarray,
    voxel_size: float = 0.05,
) -> tuple[np.ndarray, np.ndarray]:
    """Voxel-grid down-sampling of an oriented cloud.

    Each occupied voxel keeps the centroid of its points and the
    renormalised mean of their normals.  Voxels are emitted in the order
    in which they are first hit, so the output is deterministic.
    Returns ``(points, normals)`` with M ≤ N rows.
    """
    if voxel_size <= 0:
        raise ValueError("voxel_size must be positive")
    if len(points) == 0:
        return points.reshape(0, 3).copy(), normals.reshape(0, 3).copy()

    # Quantise to voxel grid
    mins = points.min(axis=0)
    keys = np.floor((points - mins) / voxel_size).astype(np.int64)
    _, first, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
    inverse = inverse.ravel()

    # Renumber voxels by first occurrence
    order = np.argsort(first)
    rank = np.empty_like(order)
    rank[order] = np.arange(len(order))
    voxel_ids = rank[inverse]

    count = len(first)
    sums = np.zeros((count, 3), dtype=np.float64)
    normal_sums = np.zeros((count, 3), dtype=np.float64)
    np.add.at(sums, voxel_ids, points)
    np.add.at(normal_sums, voxel_ids, normals)
    counts = np.bincount(voxel_ids, minlength=count).astype(np.float64)

    centroids = sums / counts[:, None]
    norms = np.linalg.norm(normal_sums, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return centroids, normal_sums / norms


def estimate_normals(
    points: np.ndarray,
    k: int = 20,
    *,
    viewpoint: np.ndarray | None = None,
) -> np.ndarray:
    """Per-point surface normals for clouds loaded without them.

    Each normal is the least-variance direction of the point's *k* nearest
    neighbours.  Correspondence matching compares reflected normals up to
    sign, so orientation is optional: pass *viewpoint* to flip every
    normal towards the sensor, which keeps exported normals consistent.
    """
    points = np.asarray(points, dtype=np.float64)
    n = len(points)
    if n == 0:
        return np.zeros((0, 3), dtype=np.float64)
    if n < 3:
        return np.tile([0.0, 0.0, 1.0], (n, 1))

    _, idx = cKDTree(points).query(points, k=min(k, n))
    neighbourhoods = points[idx]
    centered = neighbourhoods - neighbourhoods.mean(axis=1, keepdims=True)
    scatter = np.einsum("nki,nkj->nij", centered, centered)
    _, eigvecs = np.linalg.eigh(scatter)
    normals = eigvecs[:, :, 0]

    if viewpoint is not None:
        towards = np.asarray(viewpoint, dtype=np.float64) - points
        flip = np.einsum("ij,ij->i", normals, towards) < 0
        normals[flip] = -normals[flip]

    norms = np.linalg.norm(normals, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return normals / norms
