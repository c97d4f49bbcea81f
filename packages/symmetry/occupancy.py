"""Occupancy queries: which parts of space were observed, free or occluded.

The detector only depends on the :class:`OccupancyQuery` protocol.
:class:`VoxelOccupancyMap` is a simple reference implementation built by
casting a ray from the sensor viewpoint to every observed point:

* voxels holding a point are *observed*,
* voxels crossed by a ray before it reaches its point are *free*,
* every other voxel inside the map bounds is *occluded*,
* anything outside the bounds is *unknown*.
"""

from __future__ import annotations

import logging
from typing import Protocol

import numpy as np

from packages.core.types import OccupancyState

logger = logging.getLogger(__name__)

_OBSERVED = np.int8(1)
_FREE = np.int8(2)


class OccupancyQuery(Protocol):
    """Anything that can classify a 3D location."""

    def classify(self, point: np.ndarray) -> OccupancyState: ...


class VoxelOccupancyMap:
    """Dense voxel grid labelled by ray casting from a single viewpoint."""

    def __init__(
        self,
        origin: np.ndarray,
        voxel_size: float,
        labels: np.ndarray,
    ) -> None:
        if voxel_size <= 0:
            raise ValueError("voxel_size must be positive")
        self.origin = np.asarray(origin, dtype=np.float64)
        self.voxel_size = float(voxel_size)
        self.labels = labels

    @classmethod
    def from_points(
        cls,
        points: np.ndarray,
        viewpoint: np.ndarray,
        *,
        voxel_size: float = 0.02,
        padding: float = 0.1,
    ) -> VoxelOccupancyMap:
        """Build a map from an observed cloud and the sensor position."""
        if voxel_size <= 0:
            raise ValueError("voxel_size must be positive")
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        viewpoint = np.asarray(viewpoint, dtype=np.float64)

        extent = np.vstack([points, viewpoint[None, :]])
        origin = extent.min(axis=0) - padding
        upper = extent.max(axis=0) + padding
        shape = np.maximum(np.ceil((upper - origin) / voxel_size).astype(np.int64), 1)
        labels = np.zeros(tuple(shape), dtype=np.int8)

        occ_map = cls(origin, voxel_size, labels)
        step = voxel_size / 2.0
        for p in points:
            ray = p - viewpoint
            length = float(np.linalg.norm(ray))
            # Stop one voxel short of the surface so it is not carved away
            free_length = length - voxel_size
            if free_length <= 0:
                continue
            ts = np.arange(0.0, free_length, step)
            samples = viewpoint + np.outer(ts / length, ray)
            idx = occ_map._voxel_indices(samples)
            inside = occ_map._inside(idx)
            idx = idx[inside]
            labels[idx[:, 0], idx[:, 1], idx[:, 2]] = _FREE

        idx = occ_map._voxel_indices(points)
        labels[idx[:, 0], idx[:, 1], idx[:, 2]] = _OBSERVED

        logger.info(
            "Built occupancy map %s (voxel=%.3f): %d observed, %d free voxels",
            tuple(int(s) for s in shape),
            voxel_size,
            int((labels == _OBSERVED).sum()),
            int((labels == _FREE).sum()),
        )
        return occ_map

    def _voxel_indices(self, points: np.ndarray) -> np.ndarray:
        return np.floor((points - self.origin) / self.voxel_size).astype(np.int64)

    def _inside(self, idx: np.ndarray) -> np.ndarray:
        return np.all((idx >= 0) & (idx < np.array(self.labels.shape)), axis=-1)

    def classify(self, point: np.ndarray) -> OccupancyState:
        idx = self._voxel_indices(np.asarray(point, dtype=np.float64))
        if not self._inside(idx):
            return OccupancyState.UNKNOWN
        label = self.labels[idx[0], idx[1], idx[2]]
        if label == _OBSERVED:
            return OccupancyState.OBSERVED
        if label == _FREE:
            return OccupancyState.FREE
        return OccupancyState.OCCLUDED
