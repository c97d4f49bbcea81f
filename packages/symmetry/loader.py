"""Load oriented point clouds from PLY files via the ``plyfile`` library."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
from plyfile import PlyData

logger = logging.getLogger(__name__)

# Common PLY normal property names
_NORMAL_CANDIDATES = (("nx", "ny", "nz"), ("normal_x", "normal_y", "normal_z"))


def load_ply(path: str | Path) -> dict:
    """Read a binary or ASCII PLY file and return positions + optional normals.

    Returns a dict with:
      - 'positions': (N, 3) float64 array of XYZ coordinates
      - 'normals': (N, 3) float64 array of unit normals, or None
    """
    ply = PlyData.read(str(path))
    vertex = ply["vertex"]
    positions = np.column_stack(
        [np.asarray(vertex[axis], dtype=np.float64) for axis in ("x", "y", "z")]
    )
    logger.info(f"📄 PLY file loaded: {len(positions):,} vertices")

    prop_names = {p.name for p in vertex.properties}
    normals = None
    for names in _NORMAL_CANDIDATES:
        if all(n in prop_names for n in names):
            normals = np.column_stack(
                [np.asarray(vertex[n], dtype=np.float64) for n in names]
            )
            norms = np.linalg.norm(normals, axis=1, keepdims=True)
            norms[norms == 0] = 1.0
            normals = normals / norms
            logger.info(f"🧭 Found normal properties: {', '.join(names)}")
            break
    else:
        logger.info("⚪ No normals in PLY file")

    return {"positions": positions, "normals": normals}


def load_point_cloud(path: str | Path) -> dict:
    """Auto-detect format and return a dict with 'positions' and optional 'normals'.

    Raises ``ValueError`` for unsupported extensions.
    """
    p = Path(path)
    ext = p.suffix.lower()
    if ext == ".ply":
        return load_ply(p)
    raise ValueError(f"Unsupported point-cloud format '{ext}'. Supported: .ply")
