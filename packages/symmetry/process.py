"""End-to-end pipeline: load a point cloud → produce a symmetry report JSON."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from packages.core.types import DetectionParameters, SymmetryReport
from packages.symmetry.detection import ReflectionalSymmetryDetector
from packages.symmetry.loader import load_point_cloud
from packages.symmetry.occupancy import VoxelOccupancyMap
from packages.symmetry.preprocess import estimate_normals
from packages.symmetry.report import build_symmetry_report

logger = logging.getLogger(__name__)


def detect_symmetries(
    points: np.ndarray,
    normals: np.ndarray | None = None,
    *,
    viewpoint: tuple[float, float, float] = (0.0, 0.0, 0.0),
    params: DetectionParameters | None = None,
    occupancy_voxel_size: float = 0.02,
    source_file: str = "",
) -> SymmetryReport:
    """Run detection, filtering and merging on an in-memory cloud.

    1. Build an occupancy map by ray casting from *viewpoint*.
    2. Detect, refine and score candidates.
    3. Filter and merge them.
    4. Assemble a :class:`SymmetryReport`.
    """
    params = params or DetectionParameters()
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)

    if normals is None and len(points) > 0:
        logger.info("No normals supplied; estimating them facing the viewpoint")
        normals = estimate_normals(points, viewpoint=np.asarray(viewpoint, dtype=np.float64))

    detector = ReflectionalSymmetryDetector(params)
    detector.set_input_cloud(points, normals)

    if len(points) > 0:
        logger.info("Building occupancy map (voxel_size=%.3f) …", occupancy_voxel_size)
        occupancy = VoxelOccupancyMap.from_points(
            points, np.asarray(viewpoint, dtype=np.float64), voxel_size=occupancy_voxel_size
        )
        detector.set_occupancy_map(occupancy)
        if detector.detect():
            detector.filter()
            detector.merge()
        else:
            logger.warning("Detection failed; report will list no symmetries")
    else:
        logger.warning("Empty cloud; report will list no symmetries")

    return build_symmetry_report(detector, source_file=source_file, point_count=len(points))


def process_scan(
    input_path: str | Path,
    *,
    viewpoint: tuple[float, float, float] = (0.0, 0.0, 0.0),
    params: DetectionParameters | None = None,
    occupancy_voxel_size: float = 0.02,
) -> SymmetryReport:
    """Load a point-cloud file and run the symmetry pipeline on it."""
    input_path = Path(input_path)
    logger.info("Loading %s …", input_path.name)
    cloud_data = load_point_cloud(input_path)
    logger.info("Loaded %d points", len(cloud_data["positions"]))

    report = detect_symmetries(
        cloud_data["positions"],
        cloud_data["normals"],
        viewpoint=viewpoint,
        params=params,
        occupancy_voxel_size=occupancy_voxel_size,
        source_file=input_path.name,
    )
    logger.info(
        "Kept %d symmetries after filtering, %d after merging",
        len(report.filtered_ids), len(report.merged_ids),
    )
    return report


def process_scan_to_json(
    input_path: str | Path,
    output_path: str | Path | None = None,
    **kwargs,
) -> str:
    """Run the pipeline and write the symmetry report to a JSON file.

    Returns the JSON string.
    """
    report = process_scan(input_path, **kwargs)
    json_str = report.model_dump_json(indent=2)

    if output_path is None:
        output_path = Path(input_path).with_suffix(".symmetry.json")
    Path(output_path).write_text(json_str)
    logger.info("Wrote symmetry report → %s", output_path)
    return json_str
