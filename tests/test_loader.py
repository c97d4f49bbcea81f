"""Tests for point-cloud loading."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from plyfile import PlyData, PlyElement

from packages.symmetry.loader import load_ply, load_point_cloud


def _write_ply(path: Path, points: np.ndarray, normals: np.ndarray | None = None) -> None:
    """Helper: write an (N, 3) array (plus optional normals) as a binary PLY file."""
    dtype = [("x", "f4"), ("y", "f4"), ("z", "f4")]
    if normals is not None:
        dtype += [("nx", "f4"), ("ny", "f4"), ("nz", "f4")]
    structured = np.empty(len(points), dtype=dtype)
    structured["x"] = points[:, 0]
    structured["y"] = points[:, 1]
    structured["z"] = points[:, 2]
    if normals is not None:
        structured["nx"] = normals[:, 0]
        structured["ny"] = normals[:, 1]
        structured["nz"] = normals[:, 2]
    el = PlyElement.describe(structured, "vertex")
    PlyData([el], text=False).write(str(path))


class TestLoadPly:
    def test_round_trip(self, tmp_path: Path):
        pts = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]], dtype=np.float32)
        ply_file = tmp_path / "test.ply"
        _write_ply(ply_file, pts)

        result = load_ply(ply_file)
        assert result["positions"].shape == (2, 3)
        np.testing.assert_allclose(result["positions"], pts, atol=1e-5)
        assert result["normals"] is None  # no normals in this test file

    def test_normals_are_read_and_normalised(self, tmp_path: Path):
        pts = np.zeros((2, 3), dtype=np.float32)
        normals = np.array([[0.0, 0.0, 2.0], [3.0, 0.0, 0.0]], dtype=np.float32)
        ply_file = tmp_path / "oriented.ply"
        _write_ply(ply_file, pts, normals)

        result = load_ply(ply_file)
        np.testing.assert_allclose(result["normals"], [[0, 0, 1], [1, 0, 0]], atol=1e-6)

    def test_load_point_cloud_dispatch(self, tmp_path: Path):
        pts = np.random.default_rng(0).random((10, 3)).astype(np.float32)
        ply_file = tmp_path / "cloud.ply"
        _write_ply(ply_file, pts)

        result = load_point_cloud(ply_file)
        assert result["positions"].shape == (10, 3)


class TestUnsupportedFormat:
    def test_unsupported_extension(self, tmp_path: Path):
        fake = tmp_path / "file.xyz"
        fake.write_text("dummy")
        with pytest.raises(ValueError, match="Unsupported"):
            load_point_cloud(fake)
