"""Shared test fixtures – synthetic symmetric clouds and stub occupancy maps."""

from __future__ import annotations

import numpy as np
import pytest

from packages.core.types import OccupancyState

BOX_CENTRE = np.array([0.2, -0.1, 0.5])
BOX_HALF_EXTENTS = np.array([0.5, 0.3, 0.2])
CUBE_CENTRE = np.array([1.0, 2.0, 3.0])


def _symmetric_grid(half_extent: float, spacing: float) -> np.ndarray:
    """Cell-centred grid over ``[-half_extent, half_extent]``, exactly symmetric about 0."""
    n = int(round(2 * half_extent / spacing))
    return (np.arange(n) - (n - 1) / 2) * spacing


def make_box_surface(
    centre: np.ndarray = BOX_CENTRE,
    half_extents: np.ndarray = BOX_HALF_EXTENTS,
    spacing: float = 0.05,
) -> tuple[np.ndarray, np.ndarray]:
    """Grid-sample the six faces of an axis-aligned box.

    Edges are left out so that every point has a single face normal.
    Returns ``(points, normals)``.
    """
    points: list[np.ndarray] = []
    normals: list[np.ndarray] = []
    for axis in range(3):
        u_axis, v_axis = [a for a in range(3) if a != axis]
        u = _symmetric_grid(half_extents[u_axis], spacing)
        v = _symmetric_grid(half_extents[v_axis], spacing)
        uu, vv = np.meshgrid(u, v, indexing="ij")
        for sign in (-1.0, 1.0):
            face = np.zeros((uu.size, 3))
            face[:, axis] = sign * half_extents[axis]
            face[:, u_axis] = uu.ravel()
            face[:, v_axis] = vv.ravel()
            normal = np.zeros((uu.size, 3))
            normal[:, axis] = sign
            points.append(centre + face)
            normals.append(normal)
    return np.vstack(points), np.vstack(normals)


class StaticOccupancy:
    """Occupancy stub that reports the same state everywhere."""

    def __init__(self, state: OccupancyState) -> None:
        self.state = state
        self.queries = 0

    def classify(self, point: np.ndarray) -> OccupancyState:
        self.queries += 1
        return self.state


@pytest.fixture()
def box_cloud() -> tuple[np.ndarray, np.ndarray]:
    """A 1.0 × 0.6 × 0.4 m box surface, symmetric about x, y and z through its centre."""
    return make_box_surface()


@pytest.fixture()
def cube_corners() -> tuple[np.ndarray, np.ndarray]:
    """The 8 corners of a unit cube centred on CUBE_CENTRE, with outward normals."""
    signs = np.array(
        [[sx, sy, sz] for sx in (-1, 1) for sy in (-1, 1) for sz in (-1, 1)],
        dtype=np.float64,
    )
    points = CUBE_CENTRE + 0.5 * signs
    normals = signs / np.linalg.norm(signs, axis=1, keepdims=True)
    return points, normals


@pytest.fixture()
def free_occupancy() -> StaticOccupancy:
    return StaticOccupancy(OccupancyState.FREE)


@pytest.fixture()
def occluded_occupancy() -> StaticOccupancy:
    return StaticOccupancy(OccupancyState.OCCLUDED)
