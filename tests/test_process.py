"""End-to-end tests for the processing pipeline and the CLI."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest
from click.testing import CliRunner
from plyfile import PlyData, PlyElement

from packages.core.types import DetectionParameters, SymmetryReport
from packages.symmetry.cli import main
from packages.symmetry.process import detect_symmetries, process_scan, process_scan_to_json

from conftest import BOX_CENTRE


def _write_ply(path: Path, points: np.ndarray, normals: np.ndarray) -> None:
    dtype = [("x", "f4"), ("y", "f4"), ("z", "f4"), ("nx", "f4"), ("ny", "f4"), ("nz", "f4")]
    structured = np.empty(len(points), dtype=dtype)
    for i, name in enumerate("xyz"):
        structured[name] = points[:, i]
        structured["n" + name] = normals[:, i]
    el = PlyElement.describe(structured, "vertex")
    PlyData([el], text=False).write(str(path))


@pytest.fixture()
def box_ply(box_cloud, tmp_path: Path) -> Path:
    ply_file = tmp_path / "box.ply"
    _write_ply(ply_file, *box_cloud)
    return ply_file


VIEWPOINT = (0.2, -0.1, 3.0)


class TestProcessScan:
    def test_produces_valid_report(self, box_ply: Path, box_cloud):
        report = process_scan(box_ply, viewpoint=VIEWPOINT)

        assert isinstance(report, SymmetryReport)
        assert report.version == "0.1.0"
        assert report.units == "metres"
        assert report.source_file == "box.ply"
        assert report.point_count == len(box_cloud[0])
        assert report.downsampled_point_count == len(box_cloud[0])
        assert report.merged_ids
        assert set(report.merged_ids) <= set(report.filtered_ids)
        for entry in report.symmetries:
            assert entry.filtered == (entry.index in report.filtered_ids)
            assert entry.merged == (entry.index in report.merged_ids)

    def test_finds_box_planes(self, box_ply: Path):
        report = process_scan(box_ply, viewpoint=VIEWPOINT)
        merged = [report.symmetries[i] for i in report.merged_ids]
        for axis in np.eye(3):
            assert any(
                abs(s.normal.to_array() @ axis) > np.cos(np.radians(1.0))
                and np.linalg.norm(s.reference_point.to_array() - BOX_CENTRE) < 0.01
                for s in merged
            )

    def test_json_output(self, box_ply: Path, tmp_path: Path):
        out_json = tmp_path / "report.json"

        json_str = process_scan_to_json(box_ply, output_path=out_json, viewpoint=VIEWPOINT)

        assert out_json.exists()
        data = json.loads(json_str)
        assert "symmetries" in data
        assert "parameters" in data
        report = SymmetryReport.model_validate(data)
        assert report.source_file == "box.ply"

    def test_default_output_path(self, box_ply: Path):
        process_scan_to_json(box_ply, viewpoint=VIEWPOINT)
        assert box_ply.with_suffix(".symmetry.json").exists()

    def test_parameters_recorded(self, box_ply: Path):
        params = DetectionParameters(num_angle_divisions=3, voxel_size=0.05)
        report = process_scan(box_ply, viewpoint=VIEWPOINT, params=params)
        assert report.parameters == params


class TestDetectSymmetries:
    def test_empty_cloud(self):
        report = detect_symmetries(np.zeros((0, 3)))
        assert report.point_count == 0
        assert report.symmetries == []
        assert report.merged_ids == []

    def test_estimates_missing_normals(self, box_cloud):
        points, _ = box_cloud
        report = detect_symmetries(points, viewpoint=VIEWPOINT)
        assert report.point_count == len(points)
        assert report.merged_ids

    def test_single_point(self):
        report = detect_symmetries(np.array([[1.0, 2.0, 3.0]]), np.array([[0.0, 0.0, 1.0]]))
        assert report.point_count == 1
        assert report.symmetries == []


class TestCli:
    def test_detect_command(self, box_ply: Path, tmp_path: Path):
        out_json = tmp_path / "cli.json"
        result = CliRunner().invoke(
            main,
            ["detect", str(box_ply), "-o", str(out_json), "--viewpoint", "0.2", "-0.1", "3.0"],
        )
        assert result.exit_code == 0, result.output
        report = SymmetryReport.model_validate_json(out_json.read_text())
        assert report.merged_ids

    def test_parameter_overrides(self, box_ply: Path, tmp_path: Path):
        params_file = tmp_path / "params.json"
        params_file.write_text(DetectionParameters(refine_iterations=5).model_dump_json())
        out_json = tmp_path / "cli.json"

        result = CliRunner().invoke(
            main,
            [
                "detect", str(box_ply), "-o", str(out_json),
                "--params", str(params_file),
                "--angle-divisions", "3",
                "--max-angle-diff", "5",
            ],
        )

        assert result.exit_code == 0, result.output
        params = SymmetryReport.model_validate_json(out_json.read_text()).parameters
        assert params.refine_iterations == 5
        assert params.num_angle_divisions == 3
        assert params.symmetry_min_angle_diff == pytest.approx(np.radians(5))

    def test_rejects_invalid_parameters(self, box_ply: Path):
        result = CliRunner().invoke(main, ["detect", str(box_ply), "--voxel-size", "-1"])
        assert result.exit_code != 0
